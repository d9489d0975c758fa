"""
Durable cache of email analyses.

Each user has their own store file, holding one versioned JSON record:

    {"key": "gmail-ai-analyses", "version": 1,
     "analyses": {emailId: EmailAnalysis}, "timestamp": <epoch ms>}

A record that can't be read, fails validation, or carries another
version counts as an empty cache. Bumping CACHE_VERSION therefore
invalidates everything at once; nothing is migrated or repaired.

Writes are read-modify-write of the whole record, last writer wins.
The cache only memoizes Gmail + Gemini results, so losing it is harmless.
"""
import hashlib
import json
import os
import tempfile
import time
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from inboxswipe.config import get_settings
from inboxswipe.models.analysis import EmailAnalysis
from inboxswipe.utils.logger import get_logger

logger = get_logger(__name__)

CACHE_KEY = "gmail-ai-analyses"
CACHE_VERSION = 1


class AnalysisCacheStore(BaseModel):
    """On-disk schema of the cache record."""
    key: str = CACHE_KEY
    version: int
    analyses: Dict[str, EmailAnalysis] = {}
    timestamp: int = 0


class AnalysisCache:
    """
    Analysis cache backed by a JSON file.

    Usage:
        cache = AnalysisCache(Path(".cache/analyses.json"))
        cache.put(analyses)
        todo = cache.uncached_of(ids)
    """

    def __init__(self, path: Path, version: int = CACHE_VERSION):
        self.path = Path(path)
        self.version = version

    def _load(self) -> Dict[str, EmailAnalysis]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Analysis cache unreadable, treating as empty: {e}")
            return {}

        try:
            store = AnalysisCacheStore.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Analysis cache invalid, treating as empty: {e.error_count()} error(s)")
            return {}

        if store.key != CACHE_KEY or store.version != self.version:
            logger.info(f"Analysis cache version {store.version} != {self.version}, ignoring it")
            return {}
        return dict(store.analyses)

    def _save(self, analyses: Dict[str, EmailAnalysis]) -> None:
        store = AnalysisCacheStore(
            version=self.version,
            analyses=analyses,
            timestamp=int(time.time() * 1000),
        )
        payload = json.dumps(store.model_dump(mode="json", by_alias=True))

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".analyses-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, email_id: str) -> Optional[EmailAnalysis]:
        """Cached analysis for one email, or None."""
        return self._load().get(email_id)

    def get_all(self) -> Dict[str, EmailAnalysis]:
        """All cached analyses keyed by email id."""
        return self._load()

    def put(self, analyses: Iterable[EmailAnalysis]) -> None:
        """Insert or overwrite analyses by email id."""
        analyses = list(analyses)
        if not analyses:
            return

        existing = self._load()
        for analysis in analyses:
            existing[analysis.email_id] = analysis

        try:
            self._save(existing)
        except OSError as e:
            logger.error(f"Failed to write analysis cache: {e}")
            return
        logger.debug(f"Cached {len(analyses)} analyses ({len(existing)} total)")

    def uncached_of(self, ids: Iterable[str]) -> List[str]:
        """IDs without a cached analysis, in the given order."""
        cached = self._load()
        return [email_id for email_id in ids if email_id not in cached]

    def clear(self) -> None:
        """Drop the whole cache."""
        self.path.unlink(missing_ok=True)
        logger.info("Analysis cache cleared")


def cache_path_for(user_id: str) -> Path:
    """
    Per-user cache file next to settings.analysis_cache_path.

    ``.cache/analyses.json`` becomes ``.cache/analyses-<hash>.json``; the
    user id is hashed so it is always a safe file name.
    """
    base = Path(get_settings().analysis_cache_path)
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:16]
    return base.with_name(f"{base.stem}-{digest}{base.suffix}")


@lru_cache()
def get_analysis_cache(user_id: str) -> AnalysisCache:
    """The analysis cache of one user. Users never share a store."""
    return AnalysisCache(cache_path_for(user_id))
