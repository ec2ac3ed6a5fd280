import os

from dotenv import load_dotenv

load_dotenv()

# ── Server ──
HOST: str = os.getenv("PLAN_BUILDER_HOST", "127.0.0.1")
PORT: int = int(os.getenv("PLAN_BUILDER_PORT", "8000"))

# ── Logging ──
LOG_LEVEL: str = os.getenv("PLAN_BUILDER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s"

# ── CORS (comma-separated origins) ──
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "PLAN_BUILDER_CORS_ORIGINS",
        "http://127.0.0.1:8000,http://localhost:8000",
    ).split(",")
    if o.strip()
]
