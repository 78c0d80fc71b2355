import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote, urlparse, urlunparse

from ..core.config import settings
from ..core.models import DEFAULT_SIZES, SizeSpec
from ..core.negotiation import FALLBACK_FORMAT, get_optimal_format

CLOUDINARY_HOST = "res.cloudinary.com"
CLOUDINARY_DOMAIN = "cloudinary.com"
UPLOAD_SEGMENT = "/upload/"
DEFAULT_CDN_FORMATS = ("webp", "auto")
SRCSET_SIZES = ("small", "medium", "large")
ALLOWED_IMAGE_DOMAINS = ("cloudinary.com", "amazonaws.com", "localhost")
_VERSIONED = re.compile(r"^v\d+/")

def _host_matches(host:str, domain:str) -> bool:
    return host == domain or host.endswith("." + domain)

def transformation_string(spec:SizeSpec, quality:Any, fmt:str) -> str:
    """``w_,h_,c_fill,q_,f_``, always in that order."""
    return ",".join([f"w_{spec.width}", f"h_{spec.height}", "c_fill", f"q_{quality}", f"f_{fmt}"])

def cloudinary_url(public_id:str, transformation:str, cloud_name:str, secure:bool=True) -> str:
    public_id = public_id.lstrip("/")
    # folder ids get a v1 segment, as the Cloudinary SDKs do by default
    if "/" in public_id and not _VERSIONED.match(public_id): public_id = f"v1/{public_id}"
    path = "/".join(["", quote(cloud_name, safe=""), "image", "upload", transformation, quote(public_id, safe="/")])
    return urlunparse(("https" if secure else "http", CLOUDINARY_HOST, path, "", "", ""))

def generate_cloudinary_urls(public_id:str, sizes:Optional[Mapping[str, Any]]=None,
                             formats:Sequence[str]=DEFAULT_CDN_FORMATS, quality:Any="auto",
                             cloud_name:Optional[str]=None, secure:bool=True) -> Dict[str, Dict[str, str]]:
    """``{size: {format: url}}`` for a public id already on Cloudinary. Raises ValueError without a cloud name."""
    table = sizes if sizes is not None else DEFAULT_SIZES
    name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
    if not name: raise ValueError("Must supply cloud_name or set CLOUDINARY_CLOUD_NAME")
    urls: Dict[str, Dict[str, str]] = {}
    for size_name, raw_spec in table.items():
        spec = SizeSpec.coerce(raw_spec)
        urls[size_name] = {fmt: cloudinary_url(public_id, transformation_string(spec, quality, fmt), name, secure)
                           for fmt in formats}
    return urls

def optimize_cloudinary_url(base_url:str, width:Optional[int]=None, height:Optional[int]=None,
                            quality:Any="auto", format:str="auto", user_agent:str="",
                            accept:Optional[str]=None) -> str:
    """Splice ``w_,h_,q_,f_`` in after ``/upload/``. Anything that is not a Cloudinary upload URL comes back unchanged."""
    if not base_url: return base_url
    parsed = urlparse(base_url)
    if not _host_matches(parsed.hostname or "", CLOUDINARY_DOMAIN): return base_url
    head, sep, tail = parsed.path.partition(UPLOAD_SEGMENT)
    if not sep or UPLOAD_SEGMENT in tail: return base_url

    fmt = format
    if fmt == "auto":
        chosen = get_optimal_format(user_agent, accept)
        fmt = "auto" if chosen == FALLBACK_FORMAT else chosen

    parts: List[str] = []
    if width: parts.append(f"w_{width}")
    if height: parts.append(f"h_{height}")
    parts += [f"q_{quality}", f"f_{fmt}"]
    return urlunparse(parsed._replace(path=f"{head}{UPLOAD_SEGMENT}{','.join(parts)}/{tail}"))

def generate_srcset(urls:Mapping[str, Mapping[str, str]], fmt:str="webp",
                    sizes:Optional[Mapping[str, Any]]=None, names:Iterable[str]=SRCSET_SIZES,
                    fallback:Optional[str]=None) -> Optional[str]:
    """``srcset`` value ordered by ascending width, or ``fallback`` when nothing matched."""
    table = sizes if sizes is not None else DEFAULT_SIZES
    entries = []
    for name in names:
        url = urls.get(name, {}).get(fmt)
        if url and name in table: entries.append((SizeSpec.coerce(table[name]).width, url))
    if not entries: return fallback
    return ", ".join(f"{url} {width}w" for width, url in sorted(entries))

def is_allowed_image_url(url:str, allowed_domains:Sequence[str]=ALLOWED_IMAGE_DOMAINS) -> bool:
    """https only (http tolerated for localhost), host equal to or under an allowed domain."""
    try:
        parsed = urlparse(url)
        host = parsed.hostname or ""
    except ValueError:
        return False
    if parsed.scheme != "https" and not (parsed.scheme == "http" and host == "localhost"):
        return False
    return any(_host_matches(host, d) for d in allowed_domains)
