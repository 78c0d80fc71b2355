from .cloudinary_urls import (generate_cloudinary_urls, generate_srcset, is_allowed_image_url,
                              optimize_cloudinary_url)

__all__ = [
    "generate_cloudinary_urls",
    "generate_srcset",
    "is_allowed_image_url",
    "optimize_cloudinary_url",
]
