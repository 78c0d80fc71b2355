import os
import re
import secrets
import time
from typing import Iterable, List

from loguru import logger

SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
MAX_FILENAME_LEN = 255

_DANGEROUS = (
    re.compile(r"\.\."),
    re.compile(r"[<>:\"|?*\x00-\x1f/\\]"),
    re.compile(r"^(con|prn|aux|nul|com[1-9]|lpt[1-9])$", re.I),
    re.compile(r"\.(php|jsp|asp|exe|bat|cmd|scr|com|pif|vbs|js|jar|sh)$", re.I),
)

def cleanup(file_paths: Iterable[str]) -> None:
    """Delete every path it can; failures are logged and skipped."""
    for path in file_paths:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Failed to cleanup file {path}: {e}")

def secure_filename(original_name: str) -> str:
    ext = os.path.splitext(original_name)[1].lower()
    return f"{int(time.time() * 1000)}_{secrets.token_hex(8)}{ext}"

def validate_filename(name: str) -> List[str]:
    errors: List[str] = []
    if any(p.search(name) for p in _DANGEROUS):
        errors.append("Filename contains dangerous patterns")
    if len(name) > MAX_FILENAME_LEN:
        errors.append("Filename too long")
    if len(name.split(".")) > 2:
        errors.append("Multiple file extensions not allowed")
    if os.path.splitext(name)[1].lower() not in SUPPORTED_EXTS:
        errors.append(f"File extension {os.path.splitext(name)[1].lower() or '(none)'} not allowed")
    return errors
