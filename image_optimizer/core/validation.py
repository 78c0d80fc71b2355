import os
from typing import List, Optional

import filetype
from loguru import logger
from PIL import Image

from .config import Settings, settings as default_settings
from .errors import ValidationFailure
from .io_utils import validate_filename
from .models import SourceMetadata, ValidationResult, normalize_format

LARGE_EXIF_BYTES = 65536
USUAL_MODES = {"1", "L", "LA", "P", "PA", "RGB", "RGBA", "CMYK", "LAB", "YCbCr"}


def validate_image(file_path: str, settings: Optional[Settings] = None) -> ValidationResult:
    """Header-only check against the size, dimension and format limits; all violations are collected.

    An unreadable file gives ``metadata=None`` and a single "Invalid image file" error.
    """
    cfg = settings or default_settings
    try:
        with Image.open(file_path) as im:
            metadata = SourceMetadata(
                im.width, im.height, normalize_format(im.format), os.path.getsize(file_path)
            )
            frames = getattr(im, "n_frames", 1)
            exif_len = len(im.info.get("exif", b""))
            mode = im.mode
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Could not read image metadata for {file_path}: {e}")
        return ValidationResult(is_valid=False, errors=[f"Invalid image file: {e}"])

    result = ValidationResult(is_valid=True, metadata=metadata)

    if metadata.size > cfg.MAX_FILE_SIZE:
        result.errors.append(f"File size exceeds {cfg.MAX_FILE_SIZE // (1024 * 1024)}MB limit")

    if metadata.width > cfg.MAX_DIMENSION or metadata.height > cfg.MAX_DIMENSION:
        result.errors.append(
            f"Image dimensions exceed {cfg.MAX_DIMENSION}x{cfg.MAX_DIMENSION} limit"
        )

    if metadata.format not in cfg.ALLOWED_FORMATS:
        result.errors.append(f"Unsupported format: {metadata.format}")

    if frames > 1:
        result.warnings.append("Animated image detected")
    if exif_len > LARGE_EXIF_BYTES:
        result.warnings.append("Large EXIF data detected")
    if mode not in USUAL_MODES:
        result.warnings.append(f"Unusual color mode: {mode}")

    result.is_valid = not result.errors
    return result


def ensure_valid(file_path: str, settings: Optional[Settings] = None) -> SourceMetadata:
    """Like validate_image, but raises ValidationFailure instead of returning errors."""
    result = validate_image(file_path, settings)
    if not result.is_valid:
        raise ValidationFailure(file_path, result.errors)
    return result.metadata


def check_signature(file_path: str, original_filename: str) -> List[str]:
    """Errors when the sniffed content type disagrees with the client-supplied extension."""
    kind = filetype.guess(file_path)
    if kind is None:
        return ["Unknown file signature"]
    claimed = normalize_format(os.path.splitext(original_filename)[1])
    if claimed and normalize_format(kind.extension) != claimed:
        return [f"File signature ({kind.mime}) does not match extension .{claimed}"]
    return []


def validate_upload(
    file_path: str, original_filename: str, settings: Optional[Settings] = None
) -> ValidationResult:
    """validate_image plus filename and content-signature checks for a fresh upload."""
    result = validate_image(file_path, settings)
    extra = validate_filename(original_filename)
    if result.metadata is not None:
        extra += check_signature(file_path, original_filename)
    if extra:
        result.errors.extend(extra)
        result.is_valid = False
    return result
