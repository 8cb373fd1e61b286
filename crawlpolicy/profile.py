import logging
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import codec
from .config import (
    MATCH_ALL_STRING,
    MATCH_NEVER_STRING,
    PUSH_PROFILE_PREFIX,
    UNLIMITED,
    PolicyConfig,
)
from .domains import DomainAdmissionTracker
from .errors import MissingField
from .patterns import (
    CRAWLER_IP_MUST_MATCH,
    CRAWLER_IP_MUST_NOT_MATCH,
    CRAWLER_NO_DEPTH_LIMIT_MATCH,
    CRAWLER_URL_MUST_MATCH,
    CRAWLER_URL_MUST_NOT_MATCH,
    INDEX_CONTENT_MUST_MATCH,
    INDEX_CONTENT_MUST_NOT_MATCH,
    INDEX_URL_MUST_MATCH,
    INDEX_URL_MUST_NOT_MATCH,
    CompiledFilter,
    Memo,
    PatternCache,
)
from .tags import parse_collections
from .types import Agent, AgentRegistryProtocol, CacheStrategy


logger = logging.getLogger(__name__)


class CrawlProfile:
    """Policy record of one crawl job.

    The stored fields are an immutable string map (the persisted form).
    Typed properties decode from it on access, compiled filters are cached
    per instance, and the domain counters are the only mutable state.
    """

    def __init__(self, record: Optional[Mapping[str, str]] = None):
        self._record: Mapping[str, str] = MappingProxyType(dict(record or {}))
        self.patterns = PatternCache(self._record)
        self.domains = DomainAdmissionTracker()
        self._collections: Memo[Dict[str, CompiledFilter]] = Memo(
            lambda: parse_collections(self._record.get(codec.COLLECTIONS))
        )
        self._scraper: Memo[Dict[str, Any]] = Memo(lambda: codec.read_scraper(self._record))

    @classmethod
    def create(
        cls,
        name: Optional[str],
        *,
        crawler_url_must_match: Optional[str] = None,
        crawler_url_must_not_match: Optional[str] = None,
        crawler_ip_must_match: Optional[str] = None,
        crawler_ip_must_not_match: Optional[str] = None,
        crawler_country_must_match: Optional[str] = None,
        crawler_no_depth_limit_match: Optional[str] = None,
        index_url_must_match: Optional[str] = None,
        index_url_must_not_match: Optional[str] = None,
        index_content_must_match: Optional[str] = None,
        index_content_must_not_match: Optional[str] = None,
        depth: int = 0,
        direct_doc_by_url: bool = False,
        recrawl_if_older: Optional[int] = None,
        dom_max_pages: Optional[int] = None,
        crawling_q: bool = False,
        follow_frames: bool = False,
        obey_robots_noindex: bool = False,
        obey_robots_nofollow: bool = False,
        index_text: bool = True,
        index_media: bool = True,
        store_cache: bool = False,
        remote_indexing: bool = False,
        snapshot_max_depth: int = -1,
        snapshot_load_image: bool = False,
        snapshot_replace_old: bool = False,
        cache_strategy: Optional[CacheStrategy] = None,
        collections: Optional[str] = None,
        agent_name: Optional[str] = None,
        scraper: Optional[Mapping[str, Any]] = None,
        timezone_offset: int = 0,
        config: Optional[PolicyConfig] = None,
    ) -> "CrawlProfile":
        """Build a profile from explicit values.

        ``recrawl_if_older`` is epoch milliseconds, None meaning never.
        ``dom_max_pages`` of None or a negative number means no limit.
        Raises MissingField when ``name`` is None or empty.
        """
        config = config or PolicyConfig()
        if not name:
            raise MissingField(codec.NAME)
        if len(name) > config.name_max_length:
            logger.warning("Profile name longer than %d characters, truncating", config.name_max_length)
            name = name[:config.name_max_length]
        if depth < 0:
            depth = 0

        def pick(value: Optional[str], default: str) -> str:
            return default if value is None else value

        record: Dict[str, str] = {
            codec.NAME: name,
            codec.AGENT_NAME: agent_name or config.agent_name,
            codec.CRAWLER_URL_MUSTMATCH: pick(crawler_url_must_match, MATCH_ALL_STRING),
            codec.CRAWLER_URL_MUSTNOTMATCH: pick(crawler_url_must_not_match, MATCH_NEVER_STRING),
            codec.CRAWLER_IP_MUSTMATCH: pick(crawler_ip_must_match, MATCH_ALL_STRING),
            codec.CRAWLER_IP_MUSTNOTMATCH: pick(crawler_ip_must_not_match, MATCH_NEVER_STRING),
            codec.CRAWLER_COUNTRY_MUSTMATCH: pick(crawler_country_must_match, MATCH_NEVER_STRING),
            codec.CRAWLER_URL_NODEPTHLIMITMATCH: pick(crawler_no_depth_limit_match, MATCH_NEVER_STRING),
            codec.INDEXING_URL_MUSTMATCH: pick(index_url_must_match, MATCH_ALL_STRING),
            codec.INDEXING_URL_MUSTNOTMATCH: pick(index_url_must_not_match, MATCH_NEVER_STRING),
            codec.INDEXING_CONTENT_MUSTMATCH: pick(index_content_must_match, MATCH_ALL_STRING),
            codec.INDEXING_CONTENT_MUSTNOTMATCH: pick(index_content_must_not_match, MATCH_NEVER_STRING),
            codec.DEPTH: codec.encode_int(depth),
            codec.DIRECT_DOC_BY_URL: codec.encode_bool(direct_doc_by_url),
            codec.RECRAWL_IF_OLDER: codec.encode_recrawl_if_older(recrawl_if_older),
            codec.DOM_MAX_PAGES: codec.encode_dom_max_pages(dom_max_pages),
            codec.CRAWLING_Q: codec.encode_bool(crawling_q),
            codec.FOLLOW_FRAMES: codec.encode_bool(follow_frames),
            codec.OBEY_HTML_ROBOTS_NOINDEX: codec.encode_bool(obey_robots_noindex),
            codec.OBEY_HTML_ROBOTS_NOFOLLOW: codec.encode_bool(obey_robots_nofollow),
            codec.INDEX_TEXT: codec.encode_bool(index_text),
            codec.INDEX_MEDIA: codec.encode_bool(index_media),
            codec.STORE_HTCACHE: codec.encode_bool(store_cache),
            codec.REMOTE_INDEXING: codec.encode_bool(remote_indexing),
            codec.SNAPSHOTS_MAXDEPTH: codec.encode_int(snapshot_max_depth),
            codec.SNAPSHOTS_LOADIMAGE: codec.encode_bool(snapshot_load_image),
            codec.SNAPSHOTS_REPLACEOLD: codec.encode_bool(snapshot_replace_old),
            codec.CACHE_STRATEGY: codec.encode_cache_strategy(cache_strategy),
            codec.COLLECTIONS: codec.normalize_collections(collections),
            codec.SCRAPER: codec.encode_scraper(scraper),
            codec.TIMEZONE_OFFSET: codec.encode_int(timezone_offset),
        }
        record[codec.HANDLE] = codec.compute_handle(
            record[codec.NAME],
            record[codec.CRAWLER_URL_MUSTMATCH],
            record[codec.DEPTH],
            record[codec.CRAWLER_URL_MUSTNOTMATCH],
            record[codec.DOM_MAX_PAGES],
            record[codec.COLLECTIONS],
        )
        return cls(record)

    @classmethod
    def from_map(cls, record: Optional[Mapping[str, str]]) -> "CrawlProfile":
        return cls(record)

    def to_map(self) -> Dict[str, str]:
        return dict(self._record)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._record.get(key, default)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CrawlProfile):
            return NotImplemented
        return self._record == other._record

    def __hash__(self) -> int:
        return hash(self.handle)

    def __repr__(self) -> str:
        return f"CrawlProfile(handle={self.handle!r}, name={self.name!r})"

    # identity

    @property
    def handle(self) -> str:
        return self._record.get(codec.HANDLE, "")

    @property
    def name(self) -> str:
        return self._record.get(codec.NAME, "")

    @property
    def agent_name(self) -> str:
        return self._record.get(codec.AGENT_NAME, "")

    @property
    def is_push_profile(self) -> bool:
        return self.name.startswith(PUSH_PROFILE_PREFIX)

    @property
    def collection_name(self) -> str:
        """The collections string, unless it is empty or the default ``user``."""
        r = self._record.get(codec.COLLECTIONS)
        return self.name if not r or r == "user" else r

    def agent(self, registry: AgentRegistryProtocol) -> Agent:
        agent = registry.get_agent(self.agent_name)
        if agent is None:
            logger.debug("Agent %r not known to registry", self.agent_name)
            return Agent(self.agent_name)
        return agent

    # filters

    @property
    def url_must_match(self) -> CompiledFilter:
        return self.patterns.get(CRAWLER_URL_MUST_MATCH)

    @property
    def url_must_not_match(self) -> CompiledFilter:
        return self.patterns.get(CRAWLER_URL_MUST_NOT_MATCH)

    @property
    def ip_must_match(self) -> CompiledFilter:
        return self.patterns.get(CRAWLER_IP_MUST_MATCH)

    @property
    def ip_must_not_match(self) -> CompiledFilter:
        return self.patterns.get(CRAWLER_IP_MUST_NOT_MATCH)

    @property
    def no_depth_limit_match(self) -> CompiledFilter:
        """If this matches a URL, the depth limit does not apply to it."""
        return self.patterns.get(CRAWLER_NO_DEPTH_LIMIT_MATCH)

    @property
    def index_url_must_match(self) -> CompiledFilter:
        return self.patterns.get(INDEX_URL_MUST_MATCH)

    @property
    def index_url_must_not_match(self) -> CompiledFilter:
        return self.patterns.get(INDEX_URL_MUST_NOT_MATCH)

    @property
    def index_content_must_match(self) -> CompiledFilter:
        return self.patterns.get(INDEX_CONTENT_MUST_MATCH)

    @property
    def index_content_must_not_match(self) -> CompiledFilter:
        return self.patterns.get(INDEX_CONTENT_MUST_NOT_MATCH)

    @property
    def country_must_match(self) -> Tuple[str, ...]:
        return self.patterns.countries()

    def collections(self) -> Dict[str, CompiledFilter]:
        return self._collections.get()

    @property
    def scraper(self) -> Dict[str, Any]:
        return self._scraper.get()

    # scalars

    @property
    def depth(self) -> int:
        return codec.read_int(self._record, codec.DEPTH, 0)

    @property
    def direct_doc_by_url(self) -> bool:
        return codec.read_bool(self._record, codec.DIRECT_DOC_BY_URL)

    @property
    def recrawl_if_older(self) -> int:
        return codec.read_recrawl_if_older(self._record)

    @property
    def dom_max_pages(self) -> int:
        return codec.read_dom_max_pages(self._record)

    @property
    def crawling_q(self) -> bool:
        return codec.read_bool(self._record, codec.CRAWLING_Q)

    @property
    def follow_frames(self) -> bool:
        return codec.read_bool(self._record, codec.FOLLOW_FRAMES)

    @property
    def obey_robots_noindex(self) -> bool:
        return codec.read_bool(self._record, codec.OBEY_HTML_ROBOTS_NOINDEX)

    @property
    def obey_robots_nofollow(self) -> bool:
        return codec.read_bool(self._record, codec.OBEY_HTML_ROBOTS_NOFOLLOW)

    @property
    def index_text(self) -> bool:
        return codec.read_bool(self._record, codec.INDEX_TEXT, True)

    @property
    def index_media(self) -> bool:
        return codec.read_bool(self._record, codec.INDEX_MEDIA, True)

    @property
    def store_cache(self) -> bool:
        return codec.read_bool(self._record, codec.STORE_HTCACHE)

    @property
    def remote_indexing(self) -> bool:
        return codec.read_bool(self._record, codec.REMOTE_INDEXING)

    @property
    def snapshot_max_depth(self) -> int:
        return codec.read_snapshot_max_depth(self._record)

    @property
    def snapshot_load_image(self) -> bool:
        return codec.read_bool(self._record, codec.SNAPSHOTS_LOADIMAGE)

    @property
    def snapshot_replace_old(self) -> bool:
        return codec.read_bool(self._record, codec.SNAPSHOTS_REPLACEOLD)

    @property
    def cache_strategy(self) -> CacheStrategy:
        return codec.read_cache_strategy(self._record)

    @property
    def timezone_offset(self) -> int:
        return codec.read_int(self._record, codec.TIMEZONE_OFFSET, 0)

    # operator view

    def domain_listing(self, limit: Optional[int] = None) -> List[str]:
        """Domains seen so far as ``domain/c=count``, in first-seen order.

        At most ``limit + 1`` entries; when the list is cut the last entry is
        marked with `` ...``. Empty while the quota is unlimited or zero.
        """
        if limit is None:
            limit = PolicyConfig().domain_list_length
        items: List[str] = []
        if self.dom_max_pages <= 0 or self.dom_max_pages == UNLIMITED:
            return items
        i = 0
        while i <= limit:
            entry = self.domains.domain_at(i)
            if entry is None:
                break
            item = f"{entry[0]}/c={entry[1]}"
            if i == limit:
                item += " ..."
            items.append(item)
            i += 1
        return items


def recrawl_date(old_time_minutes: int, now: Optional[datetime] = None) -> datetime:
    """The point in time ``old_time_minutes`` ago; older documents get recrawled."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(minutes=old_time_minutes)
