# companion.py
import logging
import random
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

import models
from database import commit
from errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
RECENT_SESSIONS_LIMIT = 10

WELCOME_MESSAGE = (
    "Hello! I'm your AI wellness companion. I'm here to listen, provide support, and help you "
    "work through any thoughts or feelings you'd like to discuss. How are you feeling today?"
)

FALLBACK_REPLIES = {
    "general_support": [
        "I understand you're going through a challenging time. Can you tell me more about what's been on your mind lately?",
        "It sounds like you're dealing with a lot right now. Remember that it's okay to feel overwhelmed sometimes.",
        "Thank you for sharing that with me. How has this been affecting your daily routine?",
        "I hear what you're saying. What kind of support do you think would be most helpful for you right now?",
    ],
    "mood_analysis": [
        "Based on what you've shared, it seems like you're experiencing some mixed emotions. That's completely normal.",
        "I notice some patterns in how you're feeling. Have you considered what might be contributing to these emotions?",
        "Your emotional awareness is really good. What strategies have you tried before when feeling this way?",
    ],
    "coping_strategies": [
        "Here are some coping strategies that might help: deep breathing exercises, journaling, or taking a short walk.",
        "Have you tried mindfulness techniques? They can be really effective for managing stress and anxiety.",
        "It might help to establish a daily routine that includes activities you enjoy. What brings you joy?",
    ],
    "crisis_intervention": [
        "I'm concerned about what you've shared. Please remember that you're not alone and help is available.",
        "If you're having thoughts of self-harm, please reach out to a crisis hotline or emergency services immediately.",
        "Your safety is the most important thing right now. Is there someone you trust who you can talk to?",
    ],
}


def fallback_reply(session_type: Optional[str]) -> str:
    replies = FALLBACK_REPLIES.get(session_type or "", FALLBACK_REPLIES["general_support"])
    return random.choice(replies)


def create_session(db: Session, user: models.User, title: Optional[str], session_type: str) -> models.ChatSession:
    now = models.utcnow()
    chat = models.ChatSession(
        user_id=user.id,
        title=title or "Mental Health Chat",
        session_type=session_type or "general_support",
        created_at=now,
        last_activity=now,
    )
    chat.messages.append(models.ChatMessage(role="assistant", content=WELCOME_MESSAGE, timestamp=now))
    db.add(chat)
    commit(db, "Server error during chat session creation")
    db.refresh(chat)
    return chat


def list_sessions(db: Session, user: models.User) -> List[models.ChatSession]:
    return (
        db.query(models.ChatSession)
        .filter(models.ChatSession.user_id == user.id)
        .order_by(desc(models.ChatSession.last_activity), desc(models.ChatSession.id))
        .limit(RECENT_SESSIONS_LIMIT)
        .all()
    )


def get_session(db: Session, user: models.User, session_id: int) -> models.ChatSession:
    chat = (
        db.query(models.ChatSession)
        .filter(models.ChatSession.id == session_id, models.ChatSession.user_id == user.id)
        .first()
    )
    if chat is None:
        raise NotFoundError("Chat session not found")
    return chat


def delete_session(db: Session, user: models.User, session_id: int):
    chat = get_session(db, user, session_id)
    db.delete(chat)
    commit(db, "Server error during chat session deletion")


def send_message(db: Session, user: models.User, session_id: int, content: str, llm) -> models.ChatSession:
    """追加用户消息和助手回复。模型失败时用预设回复，不向调用方抛错。"""
    chat = get_session(db, user, session_id)

    chat.messages.append(models.ChatMessage(role="user", content=content, timestamp=models.utcnow()))

    history = [(m.role, m.content) for m in chat.messages]
    try:
        reply = llm.chat_reply(history, user.name)
    except UpstreamError as e:
        logger.warning("AI reply unavailable for session %s, using fallback: %s", chat.id, e)
        reply = fallback_reply(chat.session_type)

    now = models.utcnow()
    chat.messages.append(
        models.ChatMessage(role="assistant", content=reply.strip()[:MAX_MESSAGE_LENGTH], timestamp=now)
    )
    chat.last_activity = now
    commit(db, "Server error during message processing")
    db.refresh(chat)
    return chat
