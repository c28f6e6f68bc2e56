import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config import PROVIDER_IDS
from ..errors import CacheError
from ..schemas import CacheEntry, Repo


class FileCache:
    """One JSON file per provider, expired after ``ttl_mins``.

    Expired entries are left on disk and simply reported as missing. Writes go
    through a temp file and ``os.replace`` so readers never see a truncated
    file; concurrent writers for the same provider resolve as last-write-wins.
    """

    def __init__(self, cache_dir: Path, ttl_mins: int):
        self.cache_dir = Path(cache_dir)
        self.ttl_secs = ttl_mins * 60

    @staticmethod
    def _now() -> int:
        return int(time.time())

    def cache_file(self, provider_id: str) -> Path:
        return self.cache_dir / f"{provider_id}.json"

    def get(self, provider_id: str) -> Optional[List[Repo]]:
        path = self.cache_file(provider_id)
        if not path.exists():
            return None
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug(f"[cache] unreadable entry for {provider_id}: {exc}")
            return None

        age = max(0, self._now() - entry.timestamp)
        if age > self.ttl_secs:
            logger.debug(f"[cache] expired entry for {provider_id} (age {age}s)")
            return None
        logger.debug(f"[cache] hit for {provider_id} ({len(entry.repos)} repos)")
        return entry.repos

    def set(self, provider_id: str, repos: List[Repo]) -> None:
        entry = CacheEntry(timestamp=self._now(), repos=list(repos))
        path = self.cache_file(provider_id)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.cache_dir, prefix=f".{provider_id}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(entry.model_dump_json(indent=2))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheError(f"Failed to write cache file {path}: {exc}") from exc

    def clear(self, provider_id: str) -> None:
        try:
            self.cache_file(provider_id).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheError(f"Failed to remove cache file for {provider_id}: {exc}") from exc

    def clear_all(self) -> None:
        """Remove every provider's entry and stale temp files.

        Only files this cache writes are touched. The directory itself goes
        only when nothing else is left in it.
        """
        if not self.cache_dir.exists():
            return
        try:
            for path in self._owned_files():
                path.unlink(missing_ok=True)
            if not any(self.cache_dir.iterdir()):
                self.cache_dir.rmdir()
        except OSError as exc:
            raise CacheError(f"Failed to clear cache directory {self.cache_dir}: {exc}") from exc

    def _owned_files(self) -> List[Path]:
        owned = []
        for provider_id in PROVIDER_IDS:
            owned.append(self.cache_file(provider_id))
            owned.extend(self.cache_dir.glob(f".{provider_id}.*.tmp"))
        return owned
