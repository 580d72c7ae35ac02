# schemas.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Mood = Literal["very_sad", "sad", "neutral", "happy", "very_happy"]
SentimentLabel = Literal["positive", "negative", "neutral", "mixed"]
SessionType = Literal["general_support", "mood_analysis", "coping_strategies", "crisis_intervention"]
MentalState = Literal["excellent", "good", "neutral", "concerning", "critical"]


class CamelModel(BaseModel):
    """对外 JSON 使用 camelCase，Python 内部使用 snake_case。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -----------------------------
# 用户 & 认证
# -----------------------------
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please provide a name")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    preferences: Optional[dict] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    preferences: dict
    created_at: datetime


# -----------------------------
# 日记
# -----------------------------
def _normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    return [t.strip().lower() for t in tags if t and t.strip()]


class EntryCreate(CamelModel):
    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=5000)
    mood: Mood
    tags: List[str] = []
    is_private: bool = True

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please provide a title")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _normalize_tags(v)


class EntryUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    mood: Optional[Mood] = None
    tags: Optional[List[str]] = None
    is_private: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip() if v is not None else v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _normalize_tags(v)


class EntryOut(CamelModel):
    id: int
    title: str
    content: str
    mood: Mood
    tags: List[str]
    is_private: bool
    analysis: Optional[dict] = None
    created_at: datetime
    updated_at: datetime


# -----------------------------
# 分析结果（与外部模型约定的 JSON 结构）
# -----------------------------
class Sentiment(BaseModel):
    score: float = Field(ge=-1, le=1)
    magnitude: float = Field(ge=0, le=1)
    label: SentimentLabel


class Emotion(BaseModel):
    emotion: str
    confidence: float = Field(ge=0, le=1)


class Insights(BaseModel):
    patterns: str = ""
    strengths: str = ""
    concerns: str = ""
    growth: str = ""


class AnalysisResult(CamelModel):
    sentiment: Sentiment
    emotions: List[Emotion] = Field(min_length=1)
    keywords: List[str] = Field(min_length=1)
    wellness_score: int = Field(ge=0, le=100)
    suggestions: List[str] = Field(min_length=1)
    insights: Optional[Insights] = None

    @field_validator("wellness_score", mode="before")
    @classmethod
    def round_score(cls, v):
        # 模型偶尔返回 72.5 这种小数
        if isinstance(v, float):
            return round(v)
        return v


# -----------------------------
# 聊天
# -----------------------------
class SessionCreate(CamelModel):
    title: Optional[str] = Field(default=None, max_length=100)
    session_type: SessionType = "general_support"


class MessageCreate(BaseModel):
    content: str = Field(max_length=2000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content is required")
        return v


class MessageOut(CamelModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


class SessionSummary(CamelModel):
    id: int
    title: str
    session_type: SessionType
    user_mental_state: Optional[MentalState] = None
    is_active: bool
    created_at: datetime
    last_activity: datetime


class SessionOut(SessionSummary):
    messages: List[MessageOut]
