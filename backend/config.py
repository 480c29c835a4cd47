# config.py
import os

def _csv_env(name: str, default: str = "") -> list[str]:
    val = os.getenv(name, default)
    # split only if non-empty; strip whitespace
    return [x.strip() for x in val.split(",") if x.strip()] if val else []

def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default

class BaseConfig:
    DEBUG = False
    TESTING = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB request bodies
    FORCE_HTTPS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    SECRET_KEY = os.getenv("APP_SECRET_KEY") or "dev-only-secret-change-me"

    # CORS
    CORS_ORIGINS = _csv_env("CORS_ORIGINS", "http://localhost:5500,http://localhost:3000")

    # Oracle ("gemini" or "openrouter")
    ORACLE_PROVIDER = os.getenv("ORACLE_PROVIDER", "gemini").lower()
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1")
    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
    OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.3-70b-instruct:free")
    OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    ORACLE_TIMEOUT = _float_env("ORACLE_TIMEOUT", 60.0)

    # Rate limits (Flask-Limiter)
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    GENERATE_RATE_LIMIT = os.getenv("GENERATE_RATE_LIMIT", "30/minute")

class DevConfig(BaseConfig):
    DEBUG = True

class ProdConfig(BaseConfig):
    FORCE_HTTPS = os.getenv("FORCE_HTTPS", "1") not in ("0", "false", "False")

class TestConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False
    ORACLE_PROVIDER = "gemini"
    GEMINI_API_KEY = "test-key"

# Client side (controller / cli)
class ClientConfig:
    GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:5000")
    GATEWAY_TIMEOUT = _float_env("GATEWAY_TIMEOUT", 90.0)

def config_for_env():
    return ProdConfig if os.getenv("ENV") == "prod" else DevConfig

def validate_required_secrets(cfg=None):
    cfg = cfg or config_for_env()
    if os.getenv("ENV") != "prod":
        return
    if not os.getenv("APP_SECRET_KEY"):
        raise RuntimeError("APP_SECRET_KEY must be set in production")
    if cfg.ORACLE_PROVIDER == "openrouter":
        if not cfg.OPENROUTER_API_KEY:
            raise RuntimeError("OPENROUTER_API_KEY must be set in production")
    elif not cfg.GEMINI_API_KEY:
        raise RuntimeError("GEMINI_API_KEY must be set in production")
