from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class CacheStrategy(Enum):
    NOCACHE = 0
    IFFRESH = 1
    IFEXIST = 2
    CACHEONLY = 3


@dataclass(frozen=True)
class Agent:
    name: str
    user_agent: str = ""


@dataclass(frozen=True)
class Candidate:
    url: str
    depth: int
    ip: str = ""
    country: Optional[str] = None
    domain: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    accepted: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = Decision(True)


class AgentRegistryProtocol(Protocol):
    def get_agent(self, name: str) -> Optional[Agent]: ...


class GeoResolverProtocol(Protocol):
    def country_of(self, ip: str) -> Optional[str]: ...
