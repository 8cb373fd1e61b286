import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .profile import CrawlProfile


logger = logging.getLogger(__name__)


class ProfileExporter:
    """Writes profile maps as JSON lines."""

    def __init__(self, output_path: str, append: bool = False) -> None:
        self.output_path = output_path
        self._lock = threading.Lock()
        out_path = Path(self.output_path)
        if out_path.parent:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        mode = "a" if append else "w"
        self._fh = out_path.open(mode, encoding="utf-8")

    def write(self, profile: CrawlProfile) -> None:
        line = json.dumps(profile.to_map(), ensure_ascii=False, sort_keys=True)
        with self._lock:
            self._fh.write(line + "\n")
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.flush()
                self._fh.close()

    def __enter__(self) -> "ProfileExporter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def read_profiles(path: str) -> List[CrawlProfile]:
    profiles: List[CrawlProfile] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                profiles.append(CrawlProfile.from_map(json.loads(line)))
    return profiles


class ProfileDatabase:
    """Crawl profiles keyed by handle, each stored as its string map."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS profiles ("
                " handle TEXT PRIMARY KEY,"
                " name TEXT,"
                " data TEXT NOT NULL,"
                " stored_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            )
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_profiles_name ON profiles(name)")

    def put(self, profile: CrawlProfile) -> None:
        if not profile.handle:
            raise ValueError("profile has no handle")
        data = json.dumps(profile.to_map(), ensure_ascii=False, sort_keys=True)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO profiles(handle, name, data) VALUES (?, ?, ?)",
                (profile.handle, profile.name, data),
            )
        logger.debug("Stored profile %s (%s)", profile.handle, profile.name)

    def get(self, handle: str) -> Optional[CrawlProfile]:
        with self._lock, self._conn:
            cur = self._conn.execute("SELECT data FROM profiles WHERE handle = ?", (handle,))
            row = cur.fetchone()
        if row is None:
            return None
        return CrawlProfile.from_map(self._decode(handle, row[0]))

    def remove(self, handle: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM profiles WHERE handle = ?", (handle,))
            return cur.rowcount > 0

    def handles(self) -> List[str]:
        with self._lock, self._conn:
            cur = self._conn.execute("SELECT handle FROM profiles ORDER BY stored_at, handle")
            return [row[0] for row in cur.fetchall()]

    def iter_profiles(self) -> Iterator[CrawlProfile]:
        with self._lock, self._conn:
            cur = self._conn.cursor()
            cur.execute("SELECT handle, data FROM profiles ORDER BY stored_at, handle")
            try:
                rows = cur.fetchall()
            finally:
                cur.close()
        for handle, data in rows:
            yield CrawlProfile.from_map(self._decode(handle, data))

    def __contains__(self, handle: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute("SELECT 1 FROM profiles WHERE handle = ? LIMIT 1", (handle,))
            return cur.fetchone() is not None

    def __len__(self) -> int:
        with self._lock, self._conn:
            return self._conn.execute("SELECT COUNT(*) FROM profiles").fetchone()[0]

    @staticmethod
    def _decode(handle: str, data: str) -> Dict[str, str]:
        # a damaged row restores as an empty profile
        try:
            record = json.loads(data)
        except ValueError:
            logger.warning("Profile %s has undecodable data, restoring empty map", handle)
            return {}
        if not isinstance(record, dict):
            logger.warning("Profile %s data is not an object, restoring empty map", handle)
            return {}
        return {str(k): str(v) for k, v in record.items()}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
