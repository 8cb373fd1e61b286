import re
from typing import Callable, Iterable

from urllib3.util import parse_url

from .config import MATCH_ALL_STRING


def _scheme_and_host(url: str):
    parsed = parse_url(url)
    scheme = (parsed.scheme or "http").lower()
    host = (parsed.host or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if scheme in ("http", "https"):
        # possessive, so the alternation never backtracks
        scheme = "https?+"
    else:
        scheme = re.escape(scheme)
    return scheme, host, parsed.path or ""


def full_domain_filter(url: str) -> str:
    """Pattern matching everything below the host of ``url``, with or without ``www.``."""
    scheme, host, _ = _scheme_and_host(url)
    if not host:
        return scheme + ".*"
    return f"{scheme}://(www\\.)?{re.escape(host)}.*"


def subpath_filter_for(url: str) -> str:
    """Like full_domain_filter, restricted to the path of ``url`` and below."""
    scheme, host, path = _scheme_and_host(url)
    if not host:
        return scheme + ".*"
    return f"{scheme}://(www\\.)?{re.escape(host)}{re.escape(path)}.*"


def _combine(urls: Iterable[str], build: Callable[[str], str]) -> str:
    filters = dict.fromkeys(build(u) for u in urls if u)
    if not filters:
        return MATCH_ALL_STRING
    return "|".join(filters)


def site_filter(urls: Iterable[str]) -> str:
    return _combine(urls, full_domain_filter)


def subpath_filter(urls: Iterable[str]) -> str:
    return _combine(urls, subpath_filter_for)
