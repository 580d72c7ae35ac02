# database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL
from errors import PersistenceError

logger = logging.getLogger(__name__)

# SQLite 需要允许跨线程（FastAPI 在线程池里执行同步端点）
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
    )
else:
    # 开启探活 & 连接回收，适配 serverless 空闲挂起
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,   # 取连接前 ping，失效则重连
        pool_recycle=1800,    # 连接最大生存 30 分钟，避免被服务端断开
        pool_size=5,
        max_overflow=0,
    )

# Session 工厂 & 依赖（每请求创建/关闭）
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI 依赖：确保每个请求用完即关闭会话，避免长连失效。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit(db, message: str):
    """提交事务；数据库错误统一转为 PersistenceError（HTTP 500）。"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(message)
        raise PersistenceError(message) from e
