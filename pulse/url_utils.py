from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from url_normalize import url_normalize

_TRACKING_PREFIXES = ("utm_",)
_TRACKING_PARAMS = {"fbclid", "gclid", "ref", "ref_src"}


def _is_tracking(name: str) -> bool:
    lowered = name.lower()
    return lowered in _TRACKING_PARAMS or lowered.startswith(_TRACKING_PREFIXES)


def normalize_url(url: object) -> str:
    """
    Canonical form of a model-supplied source URL.

    Only absolute http(s) URLs survive; anything else becomes "" so the
    generator can synthesize a stable link instead. Tracking parameters and
    fragments are dropped, the remaining query is kept in order.
    """
    candidate = url.strip() if isinstance(url, str) else ""
    if not candidate:
        return ""
    try:
        candidate = url_normalize(candidate)
    except Exception:
        return ""

    parts = urlsplit(candidate)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""
    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking(k)]
    )
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), query, ""))
