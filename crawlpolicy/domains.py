import threading
from typing import Dict, List, Optional, Tuple


class DomainAdmissionTracker:
    """Per-domain page counters shared by the crawler worker threads.

    Counters only go up. Domains keep the order in which they were first
    referenced.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, domain: str) -> int:
        with self._lock:
            n = self._counts.get(domain, 0) + 1
            self._counts[domain] = n
            return n

    def count(self, domain: str) -> int:
        # read-or-create: an unseen domain is registered at zero
        with self._lock:
            return self._counts.setdefault(domain, 0)

    def domain_at(self, index: int) -> Optional[Tuple[str, int]]:
        if index < 0:
            return None
        with self._lock:
            if index >= len(self._counts):
                return None
            for i, item in enumerate(self._counts.items()):
                if i == index:
                    return item
        return None

    def items(self) -> List[Tuple[str, int]]:
        with self._lock:
            return list(self._counts.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)

    def __contains__(self, domain: str) -> bool:
        with self._lock:
            return domain in self._counts
