"""Point-in-time reconstruction of issue state from the Jira changelog.

Jira only exposes an issue's current status. For a closed sprint the engine
needs the status each issue had when the sprint was completed, so it replays
the changelog backwards from "now" to the sprint's completeDate.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from services.errors import JiraError
from services.models import ChangeEvent, label_value, parse_jira_datetime, person_name

logger = logging.getLogger(__name__)

STATUS_FIELD = "status"
BATCH_SIZE = 10
DELAY_BETWEEN_BATCHES = 1.5  # seconds


def parse_changelog(issue: dict, tracked_fields: Iterable[str] = (STATUS_FIELD,)) -> list:
    """Extract ``ChangeEvent``s for the tracked fields, oldest first.

    A changelog item matches a tracked field by its ``field`` name or its
    ``fieldId`` (custom fields are reported by display name).

    Raises:
        ValueError: a history entry has no parseable timestamp.
    """
    tracked = set(tracked_fields)
    changelog = issue.get("changelog") or {}
    histories = changelog.get("histories", []) if isinstance(changelog, dict) else []

    events = []
    for history in histories:
        items = [
            item for item in history.get("items") or []
            if item.get("field") in tracked or item.get("fieldId") in tracked
        ]
        if not items:
            continue

        timestamp = parse_jira_datetime(history.get("created"))
        if timestamp is None:
            raise ValueError(
                f"Unparseable changelog timestamp {history.get('created')!r} on {issue.get('key')}"
            )

        for item in items:
            field_name = item["field"] if item.get("field") in tracked else item["fieldId"]
            events.append(ChangeEvent(
                timestamp=timestamp,
                field=field_name,
                from_value=item.get("fromString"),
                to_value=item.get("toString")
            ))

    # Stable sort keeps item order within a single history entry
    events.sort(key=lambda e: e.timestamp)
    return events


def value_at(current_value: Optional[str], events: list, target: datetime,
             field: str = STATUS_FIELD) -> Optional[str]:
    """Value of ``field`` at ``target`` given the current value and its changes.

    Walks the changes newest to oldest. The first change at or before
    ``target`` wins with its "to" value (the boundary is inclusive). A change
    after ``target`` leaves its "from" value as the answer unless an earlier
    change is found. With no changes at all the current value holds.
    """
    value = current_value
    for event in reversed([e for e in events if e.field == field]):
        if event.timestamp > target:
            value = event.from_value
        else:
            return event.to_value
    return value


def status_at(current_status: Optional[str], created: Optional[datetime],
              events: list, target: datetime) -> Optional[str]:
    """Status held at ``target``, or None if the issue did not exist yet."""
    if created is not None and created > target:
        return None
    return value_at(current_status, events, target, STATUS_FIELD)


@dataclass(frozen=True)
class PinnedState:
    """Issue state reconstructed for one instant.

    ``status`` is None when the issue was created after that instant.
    """
    status: Optional[str]
    task_owner: Optional[str] = None


class StatusReplayer:
    """Fetches issue changelogs and pins state at a sprint's close.

    Issues are replayed in batches of ``batch_size`` concurrent fetches with
    ``batch_delay`` seconds between batches, which caps concurrent Jira calls
    at the batch size whatever the sprint size.
    """

    def __init__(self, client, batch_size: int = BATCH_SIZE,
                 batch_delay: float = DELAY_BETWEEN_BATCHES, sleep=time.sleep):
        self.client = client
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep
        self._owner_field = client.fields_config.task_owner_field

    def state_at(self, issue_key: str, target: datetime) -> PinnedState:
        """Reconstruct one issue. Upstream and parse errors propagate."""
        data = self.client.get_issue_history(issue_key)
        fields = data.get("fields") or {}

        created = parse_jira_datetime(fields.get("created"))
        tracked = [STATUS_FIELD]
        if self._owner_field:
            tracked.append(self._owner_field)
        events = parse_changelog(data, tracked)

        status = status_at(label_value(fields.get("status")), created, events, target)
        if status is None:
            return PinnedState(status=None)

        owner = None
        if self._owner_field:
            owner = value_at(person_name(fields.get(self._owner_field)), events, target, self._owner_field)
        return PinnedState(status=status, task_owner=owner)

    def status_at(self, issue_key: str, target: datetime) -> Optional[str]:
        return self.state_at(issue_key, target).status

    def _safe_state_at(self, issue_key: str, target: datetime) -> Optional[PinnedState]:
        try:
            return self.state_at(issue_key, target)
        except (JiraError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Could not reconstruct status of %s at %s, keeping current status: %s",
                issue_key, target.isoformat(), e
            )
            return None

    def replay(self, issue_keys: list, target: datetime) -> dict:
        """Pin state for many issues.

        Returns a dict of issue key to ``PinnedState``. Issues whose history
        could not be read are left out, so callers keep their current state.
        """
        results = {}
        total = len(issue_keys)

        for start in range(0, total, self.batch_size):
            batch = issue_keys[start:start + self.batch_size]

            with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
                futures = {executor.submit(self._safe_state_at, key, target): key for key in batch}
                for future in as_completed(futures):
                    state = future.result()
                    if state is not None:
                        results[futures[future]] = state

            logger.info("Processed %d/%d issues", min(start + self.batch_size, total), total)

            if start + self.batch_size < total:
                self._sleep(self.batch_delay)

        return results
