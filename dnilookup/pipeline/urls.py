from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode, urljoin, urlparse, urlunparse, parse_qsl


def absolutize_url(href: Optional[str], base_url: str) -> str:
    """Resolve ``href`` against ``base_url``.

    Absolute URLs pass through, relative ones are joined, and anything
    urllib refuses to parse is returned unchanged. Empty input gives "".
    """
    if not href:
        return ""
    try:
        joined = urljoin(base_url, href)
        # .port raises ValueError on a non-numeric or out-of-range port
        urlparse(joined).port
        return joined
    except ValueError:
        return href


def with_query_params(url: str, params: dict[str, str]) -> str:
    """Return ``url`` with ``params`` set, replacing same-named parameters."""
    p = urlparse(url)
    pairs = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k not in params]
    pairs.extend(params.items())
    return urlunparse(p._replace(query=urlencode(pairs)))
