"""Sprint metrics derived from a list of work items."""

import math
from typing import Optional

from services.models import (
    BUG_TYPE, IN_PROGRESS_STATUSES, UNKNOWN_CUSTOMER, Metrics, TypeBreakdown
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    if whole > 0:
        return round_half_up(part / whole * 100)
    return 0


def total_points(work_items) -> float:
    """Sum of points, ignoring Canceled / Won't Do items."""
    return sum(item.story_points for item in work_items if not item.is_excluded)


def aggregate(work_items, target: float = 0, target_source: str = "calculated") -> Metrics:
    """Compute sprint metrics.

    Completion rate uses ``target`` as denominator when it is positive, and
    falls back to total points otherwise.
    """
    total = 0.0
    completed = 0.0
    bug_count = 0
    customers = []
    by_status = {"done": 0, "inProgress": 0, "toDo": 0}
    by_type = {}

    for item in work_items:
        points = 0.0 if item.is_excluded else item.story_points
        total += points

        if item.is_done:
            completed += points
            by_status["done"] += 1
        elif item.status in IN_PROGRESS_STATUSES:
            by_status["inProgress"] += 1
        else:
            by_status["toDo"] += 1

        if item.issue_type == BUG_TYPE:
            bug_count += 1

        breakdown = by_type.get(item.issue_type)
        if breakdown is None:
            breakdown = by_type[item.issue_type] = TypeBreakdown(type=item.issue_type)
        breakdown.count += 1
        breakdown.story_points += points
        if item.is_done:
            breakdown.done_count += 1
            breakdown.done_points += points

        if item.customer and item.customer != UNKNOWN_CUSTOMER and item.customer not in customers:
            customers.append(item.customer)

    if target > 0:
        completion_rate = percentage(completed, target)
    else:
        completion_rate = percentage(completed, total)

    return Metrics(
        total_points=total,
        completed_points=completed,
        completion_rate=completion_rate,
        bug_count=bug_count,
        customers=customers,
        target_points=target,
        target_achievement=percentage(completed, target),
        target_source=target_source,
        issues_by_status=by_status,
        issue_types=list(by_type.values())
    )


def filter_by_customer(work_items, customer: Optional[str]) -> list:
    if not customer:
        return list(work_items)
    return [item for item in work_items if item.customer == customer]
