# config.py
import os
import logging

from dotenv import load_dotenv

# -----------------------------
# 环境 & 基础配置
# -----------------------------
load_dotenv()  # 读取 .env（本地开发用；部署环境用 Secrets）

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ENVIRONMENT = os.getenv("ENVIRONMENT", "production").strip().lower()
IS_DEVELOPMENT = ENVIRONMENT in {"development", "dev", "local"}

# -----------------------------
# 数据库配置（Postgres/SQLite）
# -----------------------------
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    # 本地开发回退到 SQLite
    logger.warning("DATABASE_URL not set, falling back to local SQLite file.")
    DATABASE_URL = "sqlite:///./journal.db"

# 托管 Postgres 需要 TLS；如果 URL 中缺少 sslmode，则补上
if DATABASE_URL.startswith("postgresql://") and "sslmode=" not in DATABASE_URL:
    sep = "&" if "?" in DATABASE_URL else "?"
    DATABASE_URL = f"{DATABASE_URL}{sep}sslmode=require"

# 部分环境/旧驱动不支持 channel_binding=require，会导致 SSL 被断开
if "channel_binding=require" in DATABASE_URL:
    DATABASE_URL = DATABASE_URL.replace("&channel_binding=require", "").replace("?channel_binding=require", "?")

# -----------------------------
# CORS
# -----------------------------
origins_env = os.getenv("ORIGINS", "").strip()
if origins_env:
    ORIGINS = [o.strip() for o in origins_env.split(",") if o.strip()]
else:
    ORIGINS = ["*"]

# -----------------------------
# 认证
# -----------------------------
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    logger.warning("JWT_SECRET not set, using an insecure development secret.")
    JWT_SECRET = "dev-insecure-secret-change-me"
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))

# -----------------------------
# Gemini API 配置
# -----------------------------
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or None
if not GEMINI_API_KEY:
    logger.warning("GEMINI_API_KEY not set, AI analysis and chat will use local fallbacks.")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "45"))
