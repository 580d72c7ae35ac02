# security.py
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

import config
import models
from database import get_db
from errors import AuthenticationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = models.utcnow() + (expires_delta or timedelta(days=config.JWT_EXPIRE_DAYS))
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """解析 Bearer token，返回当前用户。业务函数显式接收这个 user 参数。"""
    if not token:
        raise AuthenticationError("Access denied. No token provided.")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError) as e:
        logger.info("Token verification failed: %s", e)
        raise AuthenticationError("Invalid token.") from e

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise AuthenticationError("Invalid token. User not found.")
    return user
