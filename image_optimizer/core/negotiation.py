from typing import Dict, Optional

WEBP_BROWSERS = ("Chrome", "Firefox", "Edge", "Opera")
# preferred first when q-values tie
MODERN_TYPES = (("image/avif", "avif"), ("image/webp", "webp"))
FALLBACK_FORMAT = "jpeg"

def _accept_qualities(accept: str) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for item in accept.split(","):
        parts = [p.strip() for p in item.split(";")]
        media = parts[0].lower()
        if not media: continue
        q = 1.0
        for param in parts[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        out[media] = max(q, out.get(media, 0.0))
    return out

def negotiate_format(accept: str) -> str:
    """Pick an output format from an HTTP Accept header. Wildcards never imply avif/webp."""
    qualities = _accept_qualities(accept or "")
    best, best_q = FALLBACK_FORMAT, 0.0
    for media, fmt in MODERN_TYPES:
        q = qualities.get(media, 0.0)
        if q > best_q: best, best_q = fmt, q
    return best

def get_optimal_format(user_agent: str = "", accept: Optional[str] = None) -> str:
    """
    Choose the delivery format for a client.

    The Accept header is authoritative when present. Without it, fall back to
    substring matching on the user agent, which is approximate at best.
    """
    if accept:
        return negotiate_format(accept)
    ua = user_agent or ""
    if any(name in ua for name in WEBP_BROWSERS):
        return "webp"
    return FALLBACK_FORMAT
