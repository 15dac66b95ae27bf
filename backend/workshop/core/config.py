# backend/workshop/core/config.py
import os
import json
from typing import List, Optional

from dotenv import dotenv_values, load_dotenv, find_dotenv

# Project root (backend/) and .env path
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
DEFAULT_DOTENV = os.path.join(BASE_DIR, ".env")


def _norm_key(k: str) -> str:
    return k.replace("\ufeff", "").strip() if isinstance(k, str) else k


# Load .env without overriding what the environment (CI, container) already set
dotenv_path = DEFAULT_DOTENV if os.path.exists(DEFAULT_DOTENV) else find_dotenv(filename=".env", usecwd=True)
if dotenv_path:
    cfg = dotenv_values(dotenv_path, encoding="utf-8-sig")
    for k, v in cfg.items():
        nk = _norm_key(k)
        if v is not None and (nk not in os.environ or not os.environ[nk].strip()):
            os.environ[nk] = v
    load_dotenv(dotenv_path, override=False)


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def parse_origins(env_val: Optional[str]) -> List[str]:
    if not env_val or env_val.strip() == "*":
        return ["*"]
    try:
        parsed = json.loads(env_val)
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    except ValueError:
        pass
    return [s.strip() for s in env_val.split(",") if s.strip()]


DATABASE_URL = os.environ.get("DATABASE_URL") or os.environ.get("MSSQL_DSN")

# Business calendar wall clock
WORKSHOP_TZ = os.getenv("WORKSHOP_TZ", "Asia/Bangkok")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ALLOW_ORIGINS = parse_origins(os.getenv("CORS_ALLOW_ORIGINS", "*"))

# Actor label written on ledger entries the system posts on its own
LEDGER_SYSTEM_ACTOR = os.getenv("LEDGER_SYSTEM_ACTOR", "system")

# Create tables on startup (dev / SQLite); production uses alembic
AUTO_CREATE_SCHEMA = _flag("AUTO_CREATE_SCHEMA")
