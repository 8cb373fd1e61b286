from typing import Dict, Optional

from .config import MATCH_ALL_STRING
from .patterns import CONTENT_FLAGS, MATCH_ALL, CompiledFilter, compile_filter


def parse_collections(raw: Optional[str]) -> Dict[str, CompiledFilter]:
    """Parse ``tag`` / ``tag:regex`` tokens into an ordered tag -> filter map.

    A tag without a regex gets match-all. A tag with a broken regex gets
    match-never; the other tags are unaffected.
    """
    tags: Dict[str, CompiledFilter] = {}
    if not raw:
        return tags
    for token in raw.split(","):
        if not token:
            continue
        tag, sep, source = token.partition(":")
        if not sep:
            tags[token] = MATCH_ALL
        else:
            tags[tag] = compile_filter(source, MATCH_ALL_STRING, CONTENT_FLAGS)
    return tags
