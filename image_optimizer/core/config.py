import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()  # picks up a .env next to the host application


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    MAX_FILE_SIZE: int = int(os.getenv("IMAGE_MAX_FILE_SIZE", 10 * 1024 * 1024))
    MAX_DIMENSION: int = int(os.getenv("IMAGE_MAX_DIMENSION", 4000))
    ALLOWED_FORMATS: List[str] = ["jpeg", "jpg", "png", "webp", "gif"]
    MAX_WORKERS: int = int(os.getenv("IMAGE_MAX_WORKERS", 4))
    CLOUDINARY_CLOUD_NAME: Optional[str] = os.getenv("CLOUDINARY_CLOUD_NAME")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    JSON_LOGS: bool = _env_bool("JSON_LOGS")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")


settings = Settings()
