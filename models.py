# models.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """当前 UTC 时间（naive），SQLite 与 Postgres 存储一致。"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def default_preferences() -> dict:
    return {
        "theme": "auto",
        "notifications": {"daily_reminder": True, "analysis_updates": True},
        "privacy": {"data_sharing": False},
    }


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    preferences = Column(JSON, nullable=False, default=default_preferences)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)
    mood = Column(String(20), index=True, nullable=False)
    is_private = Column(Boolean, default=True, nullable=False)
    # 分析结果整体作为一个 JSON 文档保存，只能整体替换
    analysis = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    tag_rows = relationship(
        "EntryTag",
        cascade="all, delete-orphan",
        order_by="EntryTag.id",
        lazy="selectin",
    )

    @property
    def tags(self):
        return [t.name for t in self.tag_rows]

    @tags.setter
    def tags(self, names):
        self.tag_rows = [EntryTag(name=n) for n in names]


class EntryTag(Base):
    __tablename__ = "entry_tags"

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("journal_entries.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(50), index=True, nullable=False)


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(100), default="Mental Health Chat", nullable=False)
    session_type = Column(String(32), default="general_support", nullable=False)
    user_mental_state = Column(String(16), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_activity = Column(DateTime, default=utcnow, index=True, nullable=False)

    # 只追加，不修改/删除单条消息
    messages = relationship(
        "ChatMessage",
        cascade="all, delete-orphan",
        order_by="ChatMessage.id",
        lazy="selectin",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("chat_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
