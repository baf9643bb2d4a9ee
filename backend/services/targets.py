"""Point targets used as the completion-rate denominator.

Targets are stored as two JSON lists edited from the settings page:

- ``customer-targets.json``: ``[{"customer": "Acme", "targetSP": 40}, ...]``
- ``sprint-targets.json``: ``[{"sprintId": 1, "sprintName": "...",
  "targetPoints": 80, "customers": [...], "savedAt": "..."}, ...]``
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from services.errors import TargetValidationError
from services.models import CustomerTarget, SprintTarget

logger = logging.getLogger(__name__)

CUSTOMER_TARGETS_FILE = "customer-targets.json"
SPRINT_TARGETS_FILE = "sprint-targets.json"


class TargetStore:
    """File-backed customer and sprint targets."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def _path(self, filename: str) -> str:
        return os.path.join(self.data_dir, filename)

    def _load(self, filename: str) -> list:
        path = self._path(filename)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a JSON list", path)
            return []
        return data

    def _save(self, filename: str, entries: list):
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self._path(filename), "w") as f:
            json.dump(entries, f, indent=2)

    def customer_targets(self) -> dict:
        """Map of customer name to target points (entries <= 0 are ignored)."""
        targets = {}
        for entry in self._load(CUSTOMER_TARGETS_FILE):
            customer = entry.get("customer")
            try:
                target = float(entry.get("targetSP") or 0)
            except (TypeError, ValueError):
                continue
            if customer and target > 0:
                targets[customer] = target
        return targets

    def customer_target(self, customer: str) -> Optional[float]:
        return self.customer_targets().get(customer)

    def sprint_targets(self) -> list:
        targets = []
        for entry in self._load(SPRINT_TARGETS_FILE):
            try:
                targets.append(SprintTarget.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed sprint target: %r", entry)
        return targets

    def sprint_target(self, sprint_id: int) -> Optional[SprintTarget]:
        for target in self.sprint_targets():
            if target.sprint_id == int(sprint_id):
                return target
        return None

    def save_customer_targets(self, entries: list) -> list:
        """Replace all customer targets, sorted by customer name."""
        if not isinstance(entries, list):
            raise TargetValidationError("Invalid data format")

        targets = []
        for entry in entries:
            customer = entry.get("customer") if isinstance(entry, dict) else None
            target_sp = entry.get("targetSP") if isinstance(entry, dict) else None
            if not customer or isinstance(target_sp, bool) or not isinstance(target_sp, (int, float)):
                raise TargetValidationError("Each customer must have a name and numeric targetSP")
            targets.append(CustomerTarget(customer=customer, target_sp=target_sp))

        targets.sort(key=lambda t: t.customer.lower())
        self._save(CUSTOMER_TARGETS_FILE, [t.to_dict() for t in targets])
        logger.info("Saved %d customer targets", len(targets))
        return targets

    def save_sprint_target(self, data: dict) -> SprintTarget:
        """Insert or update the target of one sprint."""
        target_points = data.get("targetPoints")
        if not data.get("sprintId") or isinstance(target_points, bool) \
                or not isinstance(target_points, (int, float)):
            raise TargetValidationError("sprintId and targetPoints are required")

        entry = SprintTarget(
            sprint_id=int(data["sprintId"]),
            target_points=target_points,
            sprint_name=data.get("sprintName"),
            customers=list(data.get("customers") or []),
            saved_at=data.get("savedAt") or datetime.now(timezone.utc).isoformat()
        )

        targets = [t for t in self.sprint_targets() if t.sprint_id != entry.sprint_id]
        targets.append(entry)
        targets.sort(key=lambda t: t.sprint_id, reverse=True)

        self._save(SPRINT_TARGETS_FILE, [t.to_dict() for t in targets])
        logger.info("Sprint target saved: %s (ID: %s) = %s SP",
                    entry.sprint_name, entry.sprint_id, entry.target_points)
        return entry


class TargetResolver:
    """Picks the target points for a sprint, with fallbacks.

    1. Customer filter: that customer's target, else the filtered total points.
    2. No filter: the target saved for the sprint.
    3. Otherwise the sum of each observed customer's target.
    """

    def __init__(self, store: TargetStore):
        self.store = store

    def resolve_target(self, sprint_id: int, customer_filter: Optional[str],
                       customers, total_points: float = 0) -> tuple:
        """Return ``(target_points, source)``."""
        if customer_filter:
            target = self.store.customer_target(customer_filter)
            if target:
                return target, "customer"
            return total_points, "total"

        saved = self.store.sprint_target(sprint_id)
        if saved is not None and saved.target_points > 0:
            return saved.target_points, "historical"

        customer_targets = self.store.customer_targets()
        target = sum(customer_targets.get(c, 0) for c in customers)
        logger.debug("Sprint %s target calculated: %s SP for %d customers",
                     sprint_id, target, len(customers))
        return target, "calculated"
