import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from . import codec
from .config import MATCH_ALL_STRING, MATCH_NEVER_STRING


logger = logging.getLogger(__name__)

T = TypeVar("T")

MATCH_ALL_PATTERN = re.compile(MATCH_ALL_STRING, re.DOTALL)
# Empty negative lookahead: fails at every position, so nothing matches, not even "".
MATCH_NEVER_PATTERN = re.compile(r"(?!)")

URL_FLAGS = re.IGNORECASE
CONTENT_FLAGS = re.IGNORECASE | re.DOTALL


@dataclass(frozen=True)
class CompiledFilter:
    source: str
    pattern: "re.Pattern[str]"
    fell_back: bool = False

    def matches(self, text: str) -> bool:
        return self.pattern.fullmatch(text or "") is not None


MATCH_ALL = CompiledFilter(MATCH_ALL_STRING, MATCH_ALL_PATTERN)
MATCH_NEVER = CompiledFilter(MATCH_NEVER_STRING, MATCH_NEVER_PATTERN)


def compile_filter(source: Optional[str], default: str, flags: int = URL_FLAGS) -> CompiledFilter:
    """Compile a stored filter string; a broken regex fails closed to match-never."""
    if source is None:
        source = default
    if source == MATCH_ALL_STRING:
        return MATCH_ALL
    if source == MATCH_NEVER_STRING:
        return MATCH_NEVER
    try:
        return CompiledFilter(source, re.compile(source, flags))
    except (re.error, OverflowError, RecursionError) as exc:
        logger.warning("Invalid filter pattern %r (%s), falling back to match-never", source, exc)
        return CompiledFilter(source, MATCH_NEVER_PATTERN, fell_back=True)


class Memo(Generic[T]):
    """Compute-once cell.

    Two threads reading an empty cell at the same time may both run the
    factory; the factory is pure, so whichever assignment lands last holds an
    equal value.
    """

    __slots__ = ("_factory", "_value", "_done")

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._value: Optional[T] = None
        self._done = False

    def get(self) -> T:
        if not self._done:
            self._value = self._factory()
            self._done = True
        return self._value  # type: ignore[return-value]

    @property
    def computed(self) -> bool:
        return self._done


@dataclass(frozen=True)
class FilterDimension:
    key: str
    default: str
    flags: int = URL_FLAGS


CRAWLER_URL_MUST_MATCH = FilterDimension(codec.CRAWLER_URL_MUSTMATCH, MATCH_ALL_STRING)
CRAWLER_URL_MUST_NOT_MATCH = FilterDimension(codec.CRAWLER_URL_MUSTNOTMATCH, MATCH_NEVER_STRING)
CRAWLER_IP_MUST_MATCH = FilterDimension(codec.CRAWLER_IP_MUSTMATCH, MATCH_ALL_STRING)
CRAWLER_IP_MUST_NOT_MATCH = FilterDimension(codec.CRAWLER_IP_MUSTNOTMATCH, MATCH_NEVER_STRING)
CRAWLER_NO_DEPTH_LIMIT_MATCH = FilterDimension(codec.CRAWLER_URL_NODEPTHLIMITMATCH, MATCH_NEVER_STRING)
INDEX_URL_MUST_MATCH = FilterDimension(codec.INDEXING_URL_MUSTMATCH, MATCH_ALL_STRING)
INDEX_URL_MUST_NOT_MATCH = FilterDimension(codec.INDEXING_URL_MUSTNOTMATCH, MATCH_NEVER_STRING)
INDEX_CONTENT_MUST_MATCH = FilterDimension(codec.INDEXING_CONTENT_MUSTMATCH, MATCH_ALL_STRING, CONTENT_FLAGS)
INDEX_CONTENT_MUST_NOT_MATCH = FilterDimension(codec.INDEXING_CONTENT_MUSTNOTMATCH, MATCH_NEVER_STRING, CONTENT_FLAGS)

REGEX_DIMENSIONS: Tuple[FilterDimension, ...] = (
    CRAWLER_URL_MUST_MATCH,
    CRAWLER_URL_MUST_NOT_MATCH,
    CRAWLER_IP_MUST_MATCH,
    CRAWLER_IP_MUST_NOT_MATCH,
    CRAWLER_NO_DEPTH_LIMIT_MATCH,
    INDEX_URL_MUST_MATCH,
    INDEX_URL_MUST_NOT_MATCH,
    INDEX_CONTENT_MUST_MATCH,
    INDEX_CONTENT_MUST_NOT_MATCH,
)


def parse_country_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(c.strip().upper() for c in raw.split(",") if c.strip())


class PatternCache:
    """Lazily compiled filters of one profile record.

    The record is immutable, so a compiled filter is never invalidated.
    """

    def __init__(self, record: Mapping[str, str]):
        self._record = record
        self._cells: Dict[str, Memo[CompiledFilter]] = {
            d.key: Memo(self._compiler(d)) for d in REGEX_DIMENSIONS
        }
        self._countries: Memo[Tuple[str, ...]] = Memo(
            lambda: parse_country_list(self._record.get(codec.CRAWLER_COUNTRY_MUSTMATCH))
        )

    def _compiler(self, dimension: FilterDimension) -> Callable[[], CompiledFilter]:
        def build() -> CompiledFilter:
            return compile_filter(self._record.get(dimension.key), dimension.default, dimension.flags)
        return build

    def get(self, dimension: FilterDimension) -> CompiledFilter:
        return self._cells[dimension.key].get()

    def countries(self) -> Tuple[str, ...]:
        return self._countries.get()

    def fallbacks(self) -> List[str]:
        """Keys of the dimensions whose stored pattern could not be compiled."""
        return [d.key for d in REGEX_DIMENSIONS if self.get(d).fell_back]
