"""Tests for sprint metric aggregation."""

import pytest

from services.metrics import aggregate, round_half_up, total_points
from services.models import WorkItem


def item(key, status, points, issue_type="Story", customer="Acme"):
    return WorkItem(key=key, summary=key, status=status, story_points=points,
                    customer=customer, issue_type=issue_type)


class TestCompletionRate:
    """Completion rate denominators."""

    def test_uses_target_when_positive(self):
        items = [item("P-1", "Done", 20), item("P-2", "To Do", 20)]
        assert aggregate(items, target=80).completion_rate == 25

    def test_falls_back_to_total_points(self):
        """target = 0, total 40, completed 20 -> 50%."""
        items = [item("P-1", "Done", 20), item("P-2", "In Progress", 20)]
        metrics = aggregate(items, target=0)

        assert metrics.total_points == 40
        assert metrics.completed_points == 20
        assert metrics.completion_rate == 50

    def test_zero_target_and_zero_total(self):
        """No division by zero when nothing has points."""
        metrics = aggregate([item("P-1", "Done", 0)], target=0)
        assert metrics.completion_rate == 0
        assert metrics.target_achievement == 0

    def test_empty_sprint(self):
        metrics = aggregate([])
        assert metrics.total_points == 0
        assert metrics.completion_rate == 0
        assert metrics.customers == []

    def test_rounds_half_up(self):
        """1/8 = 12.5% rounds to 13."""
        items = [item("P-1", "Done", 1), item("P-2", "To Do", 7)]
        assert aggregate(items).completion_rate == 13

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (66.6667, 67)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestExclusion:
    """Canceled and Won't Do items carry no points."""

    def test_wont_do_adds_no_points(self):
        items = [item("P-1", "Done", 5), item("P-2", "Won't Do", 8)]
        metrics = aggregate(items)

        assert metrics.total_points == 5
        assert metrics.completed_points == 5
        story = metrics.issue_types[0]
        assert story.story_points == 5
        assert story.done_points == 5
        assert story.count == 2

    def test_canceled_adds_no_points(self):
        assert total_points([item("P-1", "Canceled", 13), item("P-2", "To Do", 2)]) == 2


class TestBreakdowns:

    def test_only_done_counts_as_completed(self):
        """Resolved-looking statuses other than Done are not completed."""
        items = [item("P-1", "Done", 3), item("P-2", "Closed", 5), item("P-3", "In Review", 2)]
        assert aggregate(items).completed_points == 3

    def test_bug_count_counts_issues(self):
        items = [item("B-1", "Done", 5, "Bug"), item("B-2", "To Do", 0, "Bug"), item("S-1", "Done", 3)]
        assert aggregate(items).bug_count == 2

    def test_per_type_breakdown(self):
        items = [
            item("S-1", "Done", 3),
            item("S-2", "To Do", 5),
            item("B-1", "Done", 2, "Bug"),
        ]
        by_type = {t.type: t for t in aggregate(items).issue_types}

        assert (by_type["Story"].count, by_type["Story"].story_points) == (2, 8)
        assert (by_type["Story"].done_count, by_type["Story"].done_points) == (1, 3)
        assert (by_type["Bug"].count, by_type["Bug"].done_points) == (1, 2)

    def test_issues_by_status(self):
        items = [item("P-1", "Done", 1), item("P-2", "In Development", 1),
                 item("P-3", "In Progress", 1), item("P-4", "To Do", 1)]
        assert aggregate(items).issues_by_status == {"done": 1, "inProgress": 2, "toDo": 1}

    def test_customers_are_distinct_and_known(self):
        items = [item("P-1", "Done", 1, customer="Acme"),
                 item("P-2", "Done", 1, customer="Unknown"),
                 item("P-3", "Done", 1, customer="Globex"),
                 item("P-4", "Done", 1, customer="Acme"),
                 item("P-5", "Done", 1, customer="")]
        assert aggregate(items).customers == ["Acme", "Globex"]

    def test_target_fields(self):
        metrics = aggregate([item("P-1", "Done", 30)], target=40, target_source="historical")

        assert metrics.target_points == 40
        assert metrics.target_achievement == 75
        assert metrics.target_source == "historical"
        assert metrics.velocity == 30
