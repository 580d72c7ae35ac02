# analysis.py
"""日记分析流水线。

- evaluate(): 判断已保存的分析是否完整（COMPLETE / STALE / ABSENT）
- heuristic(): 不依赖 AI 的确定性降级分析
- parse_analysis(): 解析模型输出，返回 Parsed 或 Unparseable
- analyze_entry(): 缓存 -> 调用模型 -> 降级 -> 保存
"""
import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

import models
import schemas
from database import commit
from errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


# -----------------------------
# 完整性判断
# -----------------------------
class AnalysisState(str, enum.Enum):
    COMPLETE = "complete"
    STALE = "stale"
    ABSENT = "absent"


def evaluate(analysis: Optional[dict]) -> AnalysisState:
    if not analysis or not analysis.get("analyzedAt"):
        return AnalysisState.ABSENT
    complete = (
        bool(analysis.get("sentiment"))
        and analysis.get("wellnessScore") is not None
        and bool(analysis.get("suggestions"))
        and bool(analysis.get("keywords"))
        and bool(analysis.get("emotions"))
    )
    return AnalysisState.COMPLETE if complete else AnalysisState.STALE


def describe_state(analysis: dict) -> dict:
    """STALE 时记录日志用的字段概况。"""
    return {
        "has_sentiment": bool(analysis.get("sentiment")),
        "has_wellness_score": analysis.get("wellnessScore") is not None,
        "suggestions": len(analysis.get("suggestions") or []),
        "keywords": len(analysis.get("keywords") or []),
        "emotions": len(analysis.get("emotions") or []),
    }


# -----------------------------
# 降级分析（关键词计数）
# -----------------------------
MOOD_BASE_SCORES = {
    "very_happy": 0.8,
    "happy": 0.5,
    "neutral": 0.0,
    "sad": -0.5,
    "very_sad": -0.8,
}

POSITIVE_WORDS = ("happy", "joy", "good", "great", "amazing", "wonderful", "excited", "grateful", "love", "success")
NEGATIVE_WORDS = ("sad", "angry", "frustrated", "worried", "anxious", "stressed", "depressed", "tired", "lonely", "difficult")

WORD_ADJUSTMENT = 0.3

FALLBACK_SUGGESTIONS = [
    "Continue regular journaling to track your mental wellness",
    "Consider talking to friends or family about your experiences",
    "Practice mindfulness or meditation to enhance self-awareness",
]


def count_occurrences(text: str, words) -> int:
    """大小写不敏感的子串计数（"unhappy" 也算一次 "happy"）。"""
    lowered = text.lower()
    return sum(lowered.count(w) for w in words)


def wellness_band(score: float) -> int:
    if score > 0.3:
        return 75
    if score > 0:
        return 65
    if score < -0.3:
        return 25
    if score < 0:
        return 35
    return 50


def sentiment_label(score: float) -> str:
    # 这里不会产出 "mixed"，只有外部模型会给出该标签
    if score > 0.1:
        return "positive"
    if score < -0.1:
        return "negative"
    return "neutral"


def heuristic(title: str, content: str, mood: str) -> schemas.AnalysisResult:
    score = MOOD_BASE_SCORES.get(mood, 0.0)

    positive = count_occurrences(content, POSITIVE_WORDS)
    negative = count_occurrences(content, NEGATIVE_WORDS)
    if positive > negative:
        score += WORD_ADJUSTMENT
    elif negative > positive:
        score -= WORD_ADJUSTMENT

    score = max(-1.0, min(1.0, score))

    return schemas.AnalysisResult(
        sentiment=schemas.Sentiment(score=score, magnitude=abs(score), label=sentiment_label(score)),
        emotions=[schemas.Emotion(emotion=mood.replace("_", " "), confidence=0.8)],
        keywords=[title.lower(), "journal", "reflection"],
        wellness_score=wellness_band(score),
        suggestions=list(FALLBACK_SUGGESTIONS),
        insights=schemas.Insights(
            patterns="This entry reflects your current emotional state and daily experiences",
            strengths="You are actively engaging in self-reflection through journaling",
            concerns=(
                "Consider seeking support if negative feelings persist"
                if score < 0
                else "No major concerns identified"
            ),
            growth="Continue using journaling as a tool for emotional processing and growth",
        ),
    )


# -----------------------------
# 模型输出解析
# -----------------------------
@dataclass(frozen=True)
class Parsed:
    result: schemas.AnalysisResult


@dataclass(frozen=True)
class Unparseable:
    raw: str
    reason: str


ParseOutcome = Union[Parsed, Unparseable]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    m = _FENCE_RE.match(cleaned)
    return m.group(1) if m else cleaned


def extract_json_from_string(text: str) -> Optional[str]:
    """从任意文本中提取第一个 { 到最后一个 } 之间的内容（尽量宽松）。"""
    m = re.search(r"\{.*\}", text, re.DOTALL)
    return m.group(0) if m else None


def _load_object(text: Optional[str]) -> Optional[dict]:
    if not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def parse_analysis(text: str) -> ParseOutcome:
    payload = _load_object(strip_code_fence(text))
    if payload is None:
        payload = _load_object(extract_json_from_string(text))
    if payload is None:
        return Unparseable(raw=text, reason="no JSON object found")
    try:
        return Parsed(schemas.AnalysisResult.model_validate(payload))
    except ValidationError as e:
        return Unparseable(raw=text, reason=f"invalid analysis structure: {e.error_count()} error(s)")


# -----------------------------
# 分析编排
# -----------------------------
def get_entry(db: Session, user: models.User, entry_id: int) -> models.JournalEntry:
    entry = (
        db.query(models.JournalEntry)
        .filter(models.JournalEntry.id == entry_id, models.JournalEntry.user_id == user.id)
        .first()
    )
    if entry is None:
        raise NotFoundError("Journal entry not found")
    return entry


def generate_analysis(llm, title: str, content: str, mood: str) -> schemas.AnalysisResult:
    """先调用外部模型；任何失败都回落到 heuristic()。"""
    try:
        raw = llm.analyze_entry(title, content, mood)
    except UpstreamError as e:
        logger.warning("AI analysis unavailable, using heuristic fallback: %s", e)
        return heuristic(title, content, mood)

    outcome = parse_analysis(raw)
    if isinstance(outcome, Unparseable):
        logger.warning("AI analysis unparseable (%s), using heuristic fallback", outcome.reason)
        logger.debug("Raw analysis text: %s", outcome.raw)
        return heuristic(title, content, mood)
    return outcome.result


def analyze_entry(db: Session, user: models.User, entry_id: int, llm) -> dict:
    entry = get_entry(db, user, entry_id)

    state = evaluate(entry.analysis)
    if state is AnalysisState.COMPLETE:
        logger.info("Using cached analysis for entry %s", entry.id)
        return entry.analysis
    if state is AnalysisState.STALE:
        logger.info("Incomplete analysis for entry %s, regenerating: %s", entry.id, describe_state(entry.analysis))
    else:
        logger.info("No analysis for entry %s, generating", entry.id)

    result = generate_analysis(llm, entry.title, entry.content, entry.mood)

    now = models.utcnow()
    stored = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    stored["analyzedAt"] = now.isoformat()

    # 整体替换 JSON 列，确保 SQLAlchemy 能检测到变更
    entry.analysis = stored
    entry.updated_at = now
    commit(db, "Server error during analysis")

    logger.info("Analysis saved for entry %s", entry.id)
    return stored
