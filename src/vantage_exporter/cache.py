import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .client import VantageClient
from .schemas import Skill


logger = logging.getLogger(__name__)


class SkillsCache:
    """Short-lived cache of the skills list behind a lock.

    Entries expire by age only. The lock is held across a refresh, so
    concurrent callers wait for one upstream fetch instead of racing.
    """

    def __init__(
        self,
        client: VantageClient,
        ttl_seconds: Optional[int] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.client = client
        if ttl_seconds is None:
            ttl_seconds = int(os.getenv("VANTAGE_SKILLS_CACHE_TTL") or 300)
        self.ttl = timedelta(seconds=ttl_seconds)
        self._now = now
        self._lock = threading.Lock()
        self._skills: List[Skill] = []
        self._refreshed_at: Optional[datetime] = None

    def _is_fresh(self) -> bool:
        if not self._skills or self._refreshed_at is None:
            return False
        return self._now() - self._refreshed_at < self.ttl

    def get(self) -> List[Skill]:
        """Return cached skills, refetching when stale or empty.

        A failed refetch raises and leaves the previous entry untouched.
        """
        with self._lock:
            if self._is_fresh():
                logger.info(f"Using cached skills ({len(self._skills)} skills)")
                return list(self._skills)

            skills = self.client.get_skills()
            self._skills = skills
            self._refreshed_at = self._now()
            logger.info(f"Refreshed skills cache ({len(skills)} skills)")
            return list(skills)
