# main.py
import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import desc
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import analysis
import analytics
import companion
import config
import models
import schemas
from database import commit, engine, get_db
from errors import AuthenticationError, JournalAppError, ValidationFailed
from llm import GeminiClient, get_llm
from security import create_access_token, get_current_user, get_password_hash, verify_password

# 根据模型建表（简单场景可用；复杂迁移建议 Alembic）
models.Base.metadata.create_all(bind=engine)

# -----------------------------
# FastAPI 应用 & 中间件
# -----------------------------
app = FastAPI(title="Journal Companion API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("uvicorn.error")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    client = request.client.host if request.client else "-"
    logger.info("%s %s from %s", request.method, request.url.path, client)
    return await call_next(request)


# -----------------------------
# 全局异常处理：保证前端总能拿到 {success: false, message}
# -----------------------------
def error_response(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
        headers=headers,
    )


@app.exception_handler(JournalAppError)
async def app_error_handler(request: Request, exc: JournalAppError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return error_response(exc.status_code, exc.message, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = str(first.get("msg", "Invalid input")).removeprefix("Value error, ")
        message = f"{field}: {msg}" if field else msg
    else:
        message = "Invalid input"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def all_exception_handler(request: Request, exc: Exception):
    logger.exception(exc)
    extra = {"error": str(exc)[:200]} if config.IS_DEVELOPMENT else {}
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", **extra)


# -----------------------------
# 健康检查（用于唤醒 & 自测数据库连通）
# -----------------------------
@app.get("/api/health")
def health():
    with engine.begin() as conn:
        conn.exec_driver_sql("SELECT 1")
    return {"status": "OK", "timestamp": models.utcnow().isoformat()}


# -----------------------------
# 认证
# -----------------------------
def user_payload(user: models.User) -> schemas.UserOut:
    return schemas.UserOut.model_validate(user)


@app.post("/api/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    if db.query(models.User).filter(models.User.email == payload.email).first():
        raise ValidationFailed("User already exists with this email")

    user = models.User(
        name=payload.name,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        preferences=models.default_preferences(),
    )
    db.add(user)
    commit(db, "Server error during registration")
    db.refresh(user)
    logger.info("Registration successful for user %s", user.id)
    return {"success": True, "token": create_access_token(user.id), "user": user_payload(user)}


@app.post("/api/auth/login")
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = db.query(models.User).filter(models.User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    return {"success": True, "token": create_access_token(user.id), "user": user_payload(user)}


@app.get("/api/auth/me")
def me(user: models.User = Depends(get_current_user)):
    return {"success": True, "user": user_payload(user)}


@app.post("/api/auth/logout")
def logout(user: models.User = Depends(get_current_user)):
    # token 无状态，客户端丢弃即可
    return {"success": True, "message": "Logged out successfully"}


@app.put("/api/auth/update-profile")
def update_profile(
    payload: schemas.ProfileUpdate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if payload.name is not None:
        user.name = payload.name
    if payload.preferences:
        user.preferences = {**(user.preferences or {}), **payload.preferences}
    commit(db, "Server error while updating profile")
    db.refresh(user)
    return {"success": True, "user": user_payload(user)}


# -----------------------------
# 日记
# -----------------------------
def entry_payload(entry: models.JournalEntry) -> schemas.EntryOut:
    return schemas.EntryOut.model_validate(entry)


@app.post("/api/journal", status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: schemas.EntryCreate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    now = models.utcnow()
    entry = models.JournalEntry(
        user_id=user.id,
        title=payload.title,
        content=payload.content,
        mood=payload.mood,
        tags=payload.tags,
        is_private=payload.is_private,
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    commit(db, "Server error during journal entry creation")
    db.refresh(entry)
    logger.info("Journal entry %s created", entry.id)
    return {"success": True, "data": entry_payload(entry)}


@app.get("/api/journal")
def list_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    mood: Optional[schemas.Mood] = None,
    tags: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(models.JournalEntry).filter(models.JournalEntry.user_id == user.id)
    if mood:
        query = query.filter(models.JournalEntry.mood == mood)
    if tags:
        wanted = [t.strip().lower() for t in tags.split(",") if t.strip()]
        query = query.filter(models.JournalEntry.tag_rows.any(models.EntryTag.name.in_(wanted)))
    if start_date:
        query = query.filter(models.JournalEntry.created_at >= start_date)
    if end_date:
        query = query.filter(models.JournalEntry.created_at <= end_date)

    total = query.count()
    entries = (
        query.order_by(desc(models.JournalEntry.created_at), desc(models.JournalEntry.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": [entry_payload(e) for e in entries],
        "pagination": {"current": page, "pages": math.ceil(total / limit), "total": total},
    }


@app.get("/api/journal/stats/overview")
def journal_stats(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.journal_stats(db, user)}


@app.get("/api/journal/{entry_id}")
def read_entry(entry_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": entry_payload(analysis.get_entry(db, user, entry_id))}


@app.put("/api/journal/{entry_id}")
def update_entry(
    entry_id: int,
    payload: schemas.EntryUpdate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entry = analysis.get_entry(db, user, entry_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(entry, field, value)
    entry.updated_at = models.utcnow()
    commit(db, "Server error during journal entry update")
    db.refresh(entry)
    return {"success": True, "data": entry_payload(entry)}


@app.delete("/api/journal/{entry_id}")
def delete_entry(entry_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = analysis.get_entry(db, user, entry_id)
    db.delete(entry)
    commit(db, "Server error during journal entry deletion")
    logger.info("Journal entry %s deleted", entry_id)
    return {"success": True, "message": "Journal entry deleted successfully"}


# -----------------------------
# AI 分析
# -----------------------------
@app.post("/api/analysis/analyze/{entry_id}")
def analyze_entry(
    entry_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: GeminiClient = Depends(get_llm),
):
    result = analysis.analyze_entry(db, user, entry_id, llm)
    return {"success": True, "data": {"entryId": entry_id, "analysis": result}}


# -----------------------------
# 聊天
# -----------------------------
@app.post("/api/chat/sessions", status_code=status.HTTP_201_CREATED)
def create_chat_session(
    payload: Optional[schemas.SessionCreate] = None,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payload = payload or schemas.SessionCreate()
    chat = companion.create_session(db, user, payload.title, payload.session_type)
    logger.info("Chat session %s created", chat.id)
    return {"success": True, "data": schemas.SessionOut.model_validate(chat)}


@app.get("/api/chat/sessions")
def list_chat_sessions(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    sessions = companion.list_sessions(db, user)
    return {"success": True, "data": [schemas.SessionSummary.model_validate(s) for s in sessions]}


@app.get("/api/chat/sessions/{session_id}")
def read_chat_session(session_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    chat = companion.get_session(db, user, session_id)
    return {"success": True, "data": schemas.SessionOut.model_validate(chat)}


@app.delete("/api/chat/sessions/{session_id}")
def delete_chat_session(session_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    companion.delete_session(db, user, session_id)
    return {"success": True, "message": "Chat session deleted successfully"}


@app.post("/api/chat/sessions/{session_id}/messages")
def send_chat_message(
    session_id: int,
    payload: schemas.MessageCreate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: GeminiClient = Depends(get_llm),
):
    chat = companion.send_message(db, user, session_id, payload.content, llm)
    return {
        "success": True,
        "data": {
            "sessionId": chat.id,
            "messages": [schemas.MessageOut.model_validate(m) for m in chat.messages],
        },
    }


# -----------------------------
# 统计
# -----------------------------
@app.get("/api/analytics/overview")
def analytics_overview(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.overview(db, user)}


@app.get("/api/analytics/trends")
def analytics_trends(
    period: int = Query(30, ge=1),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": analytics.trends(db, user, period)}


@app.get("/api/analytics/insights")
def analytics_insights(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": {"insights": analytics.insights(db, user)}}
