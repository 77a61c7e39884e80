import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./circle.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Frontend base URL, used to build shareable circle links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:4200")

# Comma-separated list of origins allowed by CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:4200,http://localhost:5173,http://localhost:3000",
).split(",")

# Server-sent events
SSE_KEEPALIVE_SECONDS = float(os.getenv("SSE_KEEPALIVE_SECONDS", "15"))
# Per-subscriber buffer; events beyond this are dropped for that subscriber
EVENT_QUEUE_SIZE = int(os.getenv("EVENT_QUEUE_SIZE", "100"))
