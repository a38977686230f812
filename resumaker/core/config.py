import os
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8080",
]


class Settings(BaseModel):
    """Runtime configuration read from the environment (and a local .env file)."""

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_max_attempts: int = 1
    capture_scale: int = 2
    capture_backend: Literal["pillow", "browser"] = "pillow"
    max_photo_bytes: int = 5 * 1024 * 1024
    cors_origins: List[str] = DEFAULT_CORS_ORIGINS


def load_settings() -> Settings:
    load_dotenv()

    origins = os.getenv("RESUMAKER_CORS_ORIGINS")
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_max_attempts=int(os.getenv("GEMINI_MAX_ATTEMPTS", "1")),
        capture_scale=int(os.getenv("RESUMAKER_CAPTURE_SCALE", "2")),
        capture_backend=os.getenv("RESUMAKER_CAPTURE_BACKEND", "pillow"),
        max_photo_bytes=int(os.getenv("RESUMAKER_MAX_PHOTO_BYTES", str(5 * 1024 * 1024))),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else DEFAULT_CORS_ORIGINS,
    )
