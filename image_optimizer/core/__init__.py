from .models import (SizeSpec, ProcessingOptions, ProcessingResult, Derivative, OptimizedOriginal,
                     SourceMetadata, ValidationResult, DEFAULT_SIZES, DEFAULT_QUALITY, DEFAULT_FORMATS)
from .errors import ImageOptimizerError, ValidationFailure, ProcessingFailure
from .io_utils import cleanup, secure_filename, validate_filename
from .validation import validate_image, ensure_valid, validate_upload
from .negotiation import get_optimal_format, negotiate_format
from .resize_service import (calc_target_box, resize_and_optimize, optimize_original,
                             process_image, process_upload, sanitize_image)

__all__ = [
    "SizeSpec",
    "ProcessingOptions",
    "ProcessingResult",
    "Derivative",
    "OptimizedOriginal",
    "SourceMetadata",
    "ValidationResult",
    "DEFAULT_SIZES",
    "DEFAULT_QUALITY",
    "DEFAULT_FORMATS",
    "ImageOptimizerError",
    "ValidationFailure",
    "ProcessingFailure",
    "cleanup",
    "secure_filename",
    "validate_filename",
    "validate_image",
    "ensure_valid",
    "validate_upload",
    "get_optimal_format",
    "negotiate_format",
    "calc_target_box",
    "resize_and_optimize",
    "optimize_original",
    "process_image",
    "process_upload",
    "sanitize_image",
]
