from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .adapters import (generate_cloudinary_urls, generate_srcset, is_allowed_image_url,
                       optimize_cloudinary_url)

__version__ = "0.1.0"

__all__ = _core_all + [
    "generate_cloudinary_urls",
    "generate_srcset",
    "is_allowed_image_url",
    "optimize_cloudinary_url",
]
