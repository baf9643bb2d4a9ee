"""Discovery of closed sprints across the configured boards."""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Optional

from services.errors import UpstreamClientError
from services.models import Iteration

logger = logging.getLogger(__name__)

DEFAULT_SPRINT_NAME_PATTERN = r"^\d{4}\.\d{2}\.\d{2}\s*\|\s*Sprint\s+\d+$"
CACHE_SECONDS = 15 * 60

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SprintCatalog:
    """Lists closed sprints, newest first, with a time-based cache.

    The cache holds the full sorted list; ``limit`` only slices it, so a call
    with a bigger limit inside the window still makes no upstream request.
    """

    def __init__(self, client, board_ids, name_pattern: str = DEFAULT_SPRINT_NAME_PATTERN,
                 cache_seconds: float = CACHE_SECONDS, clock=time.monotonic):
        self.client = client
        self.board_ids = [int(b) for b in board_ids]
        self.name_pattern = re.compile(name_pattern, re.IGNORECASE)
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._cache = None  # (timestamp, [Iteration])

    def list_closed_sprints(self, limit: Optional[int] = None) -> list:
        cached = self._cache
        if cached and (self._clock() - cached[0]) < self.cache_seconds:
            logger.debug("Using cached sprints (%d sprints)", len(cached[1]))
            sprints = cached[1]
        else:
            sprints = self._fetch_closed_sprints()
            self._cache = (self._clock(), sprints)
            logger.info("Cached %d closed sprints for %ds", len(sprints), self.cache_seconds)

        return list(sprints[:limit] if limit else sprints)

    def _fetch_closed_sprints(self) -> list:
        sprint_map = {}

        for board_id in self.board_ids:
            try:
                raw_sprints = self.client.get_board_sprints(board_id, state="closed")
            except UpstreamClientError as e:
                # A misconfigured board must not hide the other boards
                logger.error("Failed to fetch sprints from board %s: %s", board_id, e)
                continue

            matched = 0
            for raw in raw_sprints:
                if not raw.get("completeDate"):
                    continue
                if not self.name_pattern.match(raw.get("name", "")):
                    continue
                sprint_map[int(raw["id"])] = Iteration.from_jira(raw)
                matched += 1

            logger.debug("Board %s: %d/%d sprints match pattern", board_id, matched, len(raw_sprints))

        return sorted(
            sprint_map.values(),
            key=lambda s: s.completed_at or _EPOCH,
            reverse=True
        )
