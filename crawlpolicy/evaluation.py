import logging
from typing import Optional

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .metrics import PolicyMetrics
from .profile import CrawlProfile
from .types import ACCEPT, Candidate, Decision, GeoResolverProtocol


logger = logging.getLogger(__name__)


URL_MUST_MATCH = "url_must_match"
URL_MUST_NOT_MATCH = "url_must_not_match"
IP_MUST_MATCH = "ip_must_match"
IP_MUST_NOT_MATCH = "ip_must_not_match"
COUNTRY = "country"
DEPTH = "depth"
DOMAIN_QUOTA = "domain_quota"
INDEX_URL_MUST_MATCH = "index_url_must_match"
INDEX_URL_MUST_NOT_MATCH = "index_url_must_not_match"
INDEX_CONTENT_MUST_MATCH = "index_content_must_match"
INDEX_CONTENT_MUST_NOT_MATCH = "index_content_must_not_match"


def domain_of(url: str) -> str:
    try:
        host = parse_url(url).host
    except LocationParseError:
        return ""
    return (host or "").lower()


class CrawlPolicy:
    """Crawl-time and index-time admission against one profile.

    The two checks are independent: a URL may be fetched and still be kept
    out of the index.
    """

    def __init__(self, profile: CrawlProfile, geo: GeoResolverProtocol | None = None,
                 metrics: PolicyMetrics | None = None):
        self.profile = profile
        self.geo = geo
        self.metrics = metrics

    def _country(self, candidate: Candidate) -> Optional[str]:
        if candidate.country:
            return candidate.country.upper()
        if self.geo is not None and candidate.ip:
            country = self.geo.country_of(candidate.ip)
            return country.upper() if country else None
        return None

    def _crawl_reason(self, candidate: Candidate) -> str:
        p = self.profile
        url = candidate.url
        if not p.url_must_match.matches(url):
            return URL_MUST_MATCH
        if p.url_must_not_match.matches(url):
            return URL_MUST_NOT_MATCH
        if not p.ip_must_match.matches(candidate.ip):
            return IP_MUST_MATCH
        if p.ip_must_not_match.matches(candidate.ip):
            return IP_MUST_NOT_MATCH
        countries = p.country_must_match
        if countries and self._country(candidate) not in countries:
            return COUNTRY
        if candidate.depth > p.depth and not p.no_depth_limit_match.matches(url):
            return DEPTH
        domain = candidate.domain if candidate.domain is not None else domain_of(url)
        if p.domains.count(domain) >= p.dom_max_pages:
            return DOMAIN_QUOTA
        return ""

    def check_crawl(self, candidate: Candidate) -> Decision:
        reason = self._crawl_reason(candidate)
        if self.metrics is not None:
            self.metrics.record_crawl(not reason, reason)
        if reason:
            logger.debug("Crawl rejected (%s): %s", reason, candidate.url)
            return Decision(False, reason)
        return ACCEPT

    def admit(self, candidate: Candidate) -> Decision:
        """check_crawl, counting the page against its domain quota when accepted."""
        decision = self.check_crawl(candidate)
        if decision.accepted:
            domain = candidate.domain if candidate.domain is not None else domain_of(candidate.url)
            self.profile.domains.increment(domain)
        return decision

    def _index_reason(self, url: str, content: str) -> str:
        p = self.profile
        if not p.index_url_must_match.matches(url):
            return INDEX_URL_MUST_MATCH
        if p.index_url_must_not_match.matches(url):
            return INDEX_URL_MUST_NOT_MATCH
        if not p.index_content_must_match.matches(content):
            return INDEX_CONTENT_MUST_MATCH
        if p.index_content_must_not_match.matches(content):
            return INDEX_CONTENT_MUST_NOT_MATCH
        return ""

    def check_index(self, url: str, content: str) -> Decision:
        reason = self._index_reason(url, content)
        if self.metrics is not None:
            self.metrics.record_index(not reason, reason)
        if reason:
            logger.debug("Index rejected (%s): %s", reason, url)
            return Decision(False, reason)
        return ACCEPT
