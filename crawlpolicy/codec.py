"""Canonical string encoding of crawl profile fields.

A profile is persisted as a flat ``Dict[str, str]``. Writers in this module
produce exactly one string form per value; readers never raise and fall
back to the field default, logging what they could not decode.
"""
import base64
import hashlib
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

from .config import HANDLE_LENGTH, RECRAWL_NEVER, UNLIMITED
from .types import CacheStrategy


logger = logging.getLogger(__name__)


HANDLE = "handle"
NAME = "name"
AGENT_NAME = "agentName"
DEPTH = "generalDepth"
DIRECT_DOC_BY_URL = "directDocByURL"
RECRAWL_IF_OLDER = "recrawlIfOlder"
DOM_MAX_PAGES = "domMaxPages"
CRAWLING_Q = "crawlingQ"
FOLLOW_FRAMES = "followFrames"
OBEY_HTML_ROBOTS_NOINDEX = "obeyHtmlRobotsNoindex"
OBEY_HTML_ROBOTS_NOFOLLOW = "obeyHtmlRobotsNofollow"
INDEX_TEXT = "indexText"
INDEX_MEDIA = "indexMedia"
STORE_HTCACHE = "storeHTCache"
REMOTE_INDEXING = "remoteIndexing"
CACHE_STRATEGY = "cacheStrategy"
COLLECTIONS = "collections"
SCRAPER = "scraper"
TIMEZONE_OFFSET = "timezoneOffset"
CRAWLER_URL_MUSTMATCH = "crawlerURLMustMatch"
CRAWLER_URL_MUSTNOTMATCH = "crawlerURLMustNotMatch"
CRAWLER_IP_MUSTMATCH = "crawlerIPMustMatch"
CRAWLER_IP_MUSTNOTMATCH = "crawlerIPMustNotMatch"
CRAWLER_COUNTRY_MUSTMATCH = "crawlerCountryMustMatch"
CRAWLER_URL_NODEPTHLIMITMATCH = "crawlerNoLimitURLMustMatch"
INDEXING_URL_MUSTMATCH = "indexURLMustMatch"
INDEXING_URL_MUSTNOTMATCH = "indexURLMustNotMatch"
INDEXING_CONTENT_MUSTMATCH = "indexContentMustMatch"
INDEXING_CONTENT_MUSTNOTMATCH = "indexContentMustNotMatch"
SNAPSHOTS_MAXDEPTH = "snapshotsMaxDepth"
SNAPSHOTS_LOADIMAGE = "snapshotsLoadImage"
SNAPSHOTS_REPLACEOLD = "snapshotsReplaceOld"

DEFAULT_CACHE_STRATEGY = CacheStrategy.IFEXIST

_WHITESPACE = re.compile(r"\s+")


def compute_handle(name: str, url_must_match: str, depth: str, url_must_not_match: str,
                   dom_max_pages: str, collections: str) -> str:
    """Content hash over the scope-defining fields, in their stored string form."""
    raw = name + url_must_match + depth + url_must_not_match + dom_max_pages + collections
    digest = hashlib.md5(raw.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")[:HANDLE_LENGTH]


def encode_bool(value: bool) -> str:
    return "true" if value else "false"


def encode_int(value: int) -> str:
    return str(int(value))


def encode_dom_max_pages(value: Optional[int]) -> str:
    if value is None or value < 0 or value >= UNLIMITED:
        return "-1"
    return str(int(value))


def encode_recrawl_if_older(value: Optional[int]) -> str:
    return str(RECRAWL_NEVER if value is None else int(value))


def encode_cache_strategy(value: Optional[CacheStrategy]) -> str:
    return (value or DEFAULT_CACHE_STRATEGY).name


def normalize_collections(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub("", value)


def encode_scraper(value: Optional[Mapping[str, Any]]) -> str:
    return json.dumps(dict(value or {}), sort_keys=True, separators=(",", ":"))


def read_bool(record: Mapping[str, str], key: str, default: bool = False) -> bool:
    r = record.get(key)
    if r is None:
        return default
    return r == "true"


def read_int(record: Mapping[str, str], key: str, default: int = 0) -> int:
    r = record.get(key)
    if r is None:
        return default
    try:
        return int(r)
    except (TypeError, ValueError):
        logger.warning("Cannot decode %s=%r as integer, using %d", key, r, default)
        return default


def read_dom_max_pages(record: Mapping[str, str]) -> int:
    i = read_int(record, DOM_MAX_PAGES, UNLIMITED)
    return UNLIMITED if i < 0 else i


def read_recrawl_if_older(record: Mapping[str, str]) -> int:
    r = record.get(RECRAWL_IF_OLDER)
    if r is None:
        return RECRAWL_NEVER
    try:
        return max(0, int(r))
    except (TypeError, ValueError):
        logger.warning("Cannot decode %s=%r as timestamp, using never", RECRAWL_IF_OLDER, r)
        return RECRAWL_NEVER


def read_snapshot_max_depth(record: Mapping[str, str]) -> int:
    i = read_int(record, SNAPSHOTS_MAXDEPTH, -1)
    return -1 if i < 0 else i


def read_cache_strategy(record: Mapping[str, str]) -> CacheStrategy:
    r = record.get(CACHE_STRATEGY)
    if r is None:
        return DEFAULT_CACHE_STRATEGY
    if r in CacheStrategy.__members__:
        return CacheStrategy[r]
    # older maps carry the numeric code
    try:
        return CacheStrategy(int(r))
    except ValueError:
        logger.warning("Unknown %s=%r, using %s", CACHE_STRATEGY, r, DEFAULT_CACHE_STRATEGY.name)
        return DEFAULT_CACHE_STRATEGY


def read_scraper(record: Mapping[str, str]) -> Dict[str, Any]:
    r = record.get(SCRAPER)
    if not r:
        return {}
    try:
        data = json.loads(r)
    except ValueError:
        logger.warning("Cannot decode %s blob, using empty structure", SCRAPER)
        return {}
    if not isinstance(data, dict):
        logger.warning("%s blob is not an object, using empty structure", SCRAPER)
        return {}
    return data
