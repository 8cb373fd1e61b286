import sys
from dataclasses import dataclass
from typing import Optional


DEFAULT_AGENT_NAME = "policy-crawler"

MATCH_ALL_STRING = ".*"
MATCH_NEVER_STRING = ""

# Unbounded per-domain quota; never stored as a negative number in memory.
UNLIMITED = sys.maxsize
# Java Long.MAX_VALUE, kept so persisted maps stay interchangeable.
RECRAWL_NEVER = 9223372036854775807

HANDLE_LENGTH = 12
NAME_MAX_LENGTH = 256
PUSH_PROFILE_PREFIX = "push_"


@dataclass(frozen=True)
class PolicyConfig:
    agent_name: str = DEFAULT_AGENT_NAME
    name_max_length: int = NAME_MAX_LENGTH
    domain_list_length: int = 10
    metrics_interval: float = 10.0
    prometheus_port: Optional[int] = None
