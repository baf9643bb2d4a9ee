"""Write-once storage of closed sprint snapshots.

One JSON document per sprint id under the snapshot directory. Once a snapshot
exists it is the system of record for that sprint and is never regenerated
automatically, so historical reports stay stable even if Jira drifts.
"""

import json
import logging
import os
import tempfile
from typing import Optional

from services.errors import SnapshotError
from services.metrics import aggregate, filter_by_customer, total_points
from services.models import Snapshot

logger = logging.getLogger(__name__)


def customer_view(snapshot: Snapshot, customer: str, resolver=None) -> Snapshot:
    """Derive a copy of ``snapshot`` limited to one customer.

    Metrics are recomputed over the customer's issues against the customer's
    target. ``snapshot`` itself is left untouched. The view's customer set is
    always ``[customer]``, even when the customer has no issues in the sprint.
    """
    issues = filter_by_customer(snapshot.issues, customer)
    filtered_total = total_points(issues)

    if resolver is not None:
        target, source = resolver.resolve_target(
            snapshot.iteration.id, customer, [customer], filtered_total
        )
    else:
        target, source = filtered_total, "total"

    metrics = aggregate(issues, target, source)
    metrics.customers = [customer]

    return Snapshot(
        iteration=snapshot.iteration,
        issues=issues,
        metrics=metrics,
        captured_at=snapshot.captured_at
    )


class SnapshotStore:
    """File-backed snapshot store with create-if-absent writes."""

    def __init__(self, snapshot_dir: str, resolver=None):
        self.snapshot_dir = snapshot_dir
        self.resolver = resolver

    def path_for(self, sprint_id: int) -> str:
        return os.path.join(self.snapshot_dir, f"{int(sprint_id)}.json")

    def exists(self, sprint_id: int) -> bool:
        return os.path.exists(self.path_for(sprint_id))

    def get(self, sprint_id: int, customer: Optional[str] = None) -> Optional[Snapshot]:
        """Read a snapshot, optionally as a customer-filtered view."""
        path = self.path_for(sprint_id)
        if not os.path.exists(path):
            return None

        try:
            with open(path, "r") as f:
                snapshot = Snapshot.from_dict(json.load(f))
        except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Unreadable snapshot for sprint {sprint_id}: {e}") from e

        if customer:
            return customer_view(snapshot, customer, self.resolver)
        return snapshot

    def exists_and_is_closed(self, sprint_id: int) -> bool:
        try:
            snapshot = self.get(sprint_id)
        except SnapshotError:
            return False
        return snapshot is not None and snapshot.iteration.is_closed

    def put(self, sprint_id: int, snapshot: Snapshot) -> bool:
        """Store ``snapshot`` unless one already exists.

        The document is written to a temp file and hard-linked into place, so
        concurrent writers cannot both win and readers never see a partial file.

        Returns:
            True if this call created the snapshot, False if it already existed.
        """
        path = self.path_for(sprint_id)
        if os.path.exists(path):
            return False

        tmp_path = self._write_temp(snapshot)
        try:
            try:
                os.link(tmp_path, path)
            except FileExistsError:
                return False
        finally:
            os.remove(tmp_path)

        logger.info("Saved snapshot for closed sprint %s (%d issues)", sprint_id, len(snapshot.issues))
        return True

    def replace(self, sprint_id: int, snapshot: Snapshot):
        """Overwrite the stored snapshot in one atomic rename.

        If writing fails the previous document is left in place.
        """
        tmp_path = self._write_temp(snapshot)
        try:
            os.replace(tmp_path, self.path_for(sprint_id))
        except OSError:
            os.remove(tmp_path)
            raise
        logger.info("Replaced snapshot for sprint %s (%d issues)", sprint_id, len(snapshot.issues))

    def _write_temp(self, snapshot: Snapshot) -> str:
        os.makedirs(self.snapshot_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.snapshot_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
        except (OSError, TypeError, ValueError):
            os.remove(tmp_path)
            raise
        return tmp_path
