"""Sprint detail orchestration: snapshot first, live reconstruction otherwise."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from services.errors import JiraError
from services.metrics import aggregate, total_points
from services.models import Iteration, Snapshot, WorkItem, parse_jira_datetime
from services.snapshot_store import customer_view

logger = logging.getLogger(__name__)


class SprintDetailService:
    """Resolves sprint details and captures snapshots of closed sprints.

    - Snapshot exists: served from the store (filtered views are recomputed).
    - No snapshot, sprint open: live issues with their current status.
    - No snapshot, sprint closed: live issues with status pinned to the
      sprint's completeDate, then stored write-once.
    """

    def __init__(self, client, store, resolver, replayer, catalog=None):
        self.client = client
        self.store = store
        self.resolver = resolver
        self.replayer = replayer
        self.catalog = catalog

    def get_sprint_details(self, sprint_id: int, customer: Optional[str] = None) -> Snapshot:
        snapshot = self.store.get(sprint_id, customer)
        if snapshot is not None:
            logger.debug("Loaded snapshot for sprint %s", sprint_id)
            return snapshot

        details = self._build(sprint_id)
        if details.iteration.is_closed:
            try:
                self.store.put(sprint_id, details)
            except OSError as e:
                logger.error("Failed to save snapshot for sprint %s: %s", sprint_id, e)

        if customer:
            return customer_view(details, customer, self.resolver)
        return details

    def ensure_snapshot(self, sprint_id: int) -> bool:
        """Capture the snapshot of a closed sprint if it is missing.

        Safe to call repeatedly. Returns True only when a snapshot was written.
        """
        if self.store.exists(sprint_id):
            return False

        details = self._build(sprint_id)
        if not details.iteration.is_closed:
            logger.info("Sprint %s is %s, not capturing a snapshot", sprint_id, details.iteration.state)
            return False

        return self.store.put(sprint_id, details)

    def recapture_snapshot(self, sprint_id: int) -> Optional[Snapshot]:
        """Rebuild a closed sprint's snapshot from Jira, replacing the stored one.

        Administrative backfill only; the old snapshot is kept if Jira or the write fails.
        """
        details = self._build(sprint_id)
        if not details.iteration.is_closed:
            return None

        self.store.replace(sprint_id, details)
        logger.info("Recaptured snapshot for sprint %s", sprint_id)
        return details

    def capture_missing_snapshots(self, limit: int = 50) -> dict:
        """Snapshot every recent closed sprint that has none yet."""
        counts = {"captured": 0, "skipped": 0, "failed": 0}

        for sprint in self._catalog().list_closed_sprints(limit):
            if self.store.exists(sprint.id):
                counts["skipped"] += 1
                continue
            try:
                logger.info("Capturing sprint %s (%s)", sprint.id, sprint.name)
                if self.ensure_snapshot(sprint.id):
                    counts["captured"] += 1
                else:
                    counts["skipped"] += 1
            except (JiraError, OSError) as e:
                logger.error("Failed to capture sprint %s: %s", sprint.id, e)
                counts["failed"] += 1

        logger.info("Snapshot capture completed: %(captured)d captured, "
                    "%(skipped)d skipped, %(failed)d failed", counts)
        return counts

    def get_sprints_by_customer(self, customer: str, limit: int = 50) -> list:
        """Customer-filtered details of recent closed sprints that include ``customer``."""
        results = []
        for sprint in self._catalog().list_closed_sprints(limit):
            try:
                details = self.get_sprint_details(sprint.id)
            except JiraError as e:
                logger.warning("Failed to fetch details for sprint %s: %s", sprint.id, e)
                continue
            if customer in details.metrics.customers:
                results.append(customer_view(details, customer, self.resolver))
        return results

    def _catalog(self):
        if self.catalog is None:
            raise RuntimeError("No sprint catalog configured")
        return self.catalog

    def _build(self, sprint_id: int) -> Snapshot:
        """Fetch a sprint and its issues from Jira and compute full metrics."""
        iteration = Iteration.from_jira(self.client.get_sprint(sprint_id))
        fields_config = self.client.fields_config
        issues = [
            WorkItem.from_jira(raw, fields_config)
            for raw in self.client.get_sprint_issues(sprint_id)
        ]

        captured_at = None
        if iteration.is_closed:
            issues = self._pin_to_close(iteration, issues)
            captured_at = datetime.now(timezone.utc).isoformat()

        customers = aggregate(issues).customers
        target, source = self.resolver.resolve_target(
            iteration.id, None, customers, total_points(issues)
        )

        return Snapshot(
            iteration=iteration,
            issues=issues,
            metrics=aggregate(issues, target, source),
            captured_at=captured_at
        )

    def _pin_to_close(self, iteration: Iteration, issues: list) -> list:
        """Replace each issue's status with the one it had at sprint close."""
        closed_at = iteration.completed_at or parse_jira_datetime(iteration.end_date)
        if closed_at is None:
            logger.warning("Sprint %s is closed but has no completeDate, using current status",
                           iteration.id)
            return issues

        logger.info("Fetching sprint-end status for %d issues of sprint %s (closed %s)",
                    len(issues), iteration.id, closed_at.isoformat())
        states = self.replayer.replay([issue.key for issue in issues], closed_at)

        pinned = []
        for issue in issues:
            state = states.get(issue.key)
            if state is None:
                pinned.append(issue)
            elif state.status is None:
                logger.debug("%s was created after sprint %s closed, not counted",
                             issue.key, iteration.id)
            else:
                pinned.append(replace(issue, status=state.status, task_owner=state.task_owner))

        done = sum(1 for issue in pinned if issue.is_done)
        logger.info("Sprint %s end status captured: %d/%d issues done", iteration.id, done, len(pinned))
        return pinned
