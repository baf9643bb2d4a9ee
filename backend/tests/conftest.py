"""Shared fixtures for sprint snapshot engine tests."""

import os
import sys
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.models import FieldConfig, Iteration, Metrics, Snapshot, WorkItem


@pytest.fixture
def mock_jira_credentials():
    """Mock Jira credentials for testing."""
    return {
        "server": "https://test.atlassian.net",
        "email": "test@example.com",
        "token": "test-token-123"
    }


@pytest.fixture
def fields_config():
    return FieldConfig(
        customer_field="customfield_10000",
        story_points_field="customfield_10002",
        task_owner_field="customfield_10656"
    )


@pytest.fixture
def closed_sprint():
    """Closed sprint as returned by the Agile API."""
    return {
        "id": 100,
        "name": "2024.01.01 | Sprint 1",
        "state": "closed",
        "startDate": "2024-01-01T00:00:00.000Z",
        "endDate": "2024-01-14T00:00:00.000Z",
        "completeDate": "2024-01-14T17:00:00.000Z",
        "goal": "Complete feature X"
    }


@pytest.fixture
def active_sprint():
    return {
        "id": 101,
        "name": "2024.01.15 | Sprint 2",
        "state": "active",
        "startDate": "2024-01-15T00:00:00.000Z",
        "endDate": "2024-01-28T00:00:00.000Z"
    }


@pytest.fixture
def sprint_issues():
    """Sprint issues covering the three customer field shapes."""
    return [
        {
            "key": "PROJ-1",
            "fields": {
                "summary": "Checkout redesign",
                "status": {"name": "Done"},
                "issuetype": {"name": "Story"},
                "assignee": {"displayName": "Ada Lovelace"},
                "created": "2024-01-02T10:00:00.000+0000",
                "resolutiondate": "2024-01-10T15:30:00.000+0000",
                "customfield_10000": {"value": "Acme"},
                "customfield_10002": 5.0,
                "customfield_10656": {"displayName": "Grace Hopper"}
            }
        },
        {
            "key": "PROJ-2",
            "fields": {
                "summary": "Fix payment bug",
                "status": {"name": "In Progress"},
                "issuetype": {"name": "Bug"},
                "assignee": None,
                "created": "2024-01-03T10:00:00.000+0000",
                "resolutiondate": None,
                "customfield_10000": "Globex",
                "customfield_10002": 3.0
            }
        },
        {
            "key": "PROJ-3",
            "fields": {
                "summary": "Drop legacy report",
                "status": {"name": "Won't Do"},
                "issuetype": {"name": "Task"},
                "created": "2024-01-04T10:00:00.000+0000",
                "customfield_10000": {"name": "Acme"},
                "customfield_10002": 8.0
            }
        }
    ]


def make_history(key, current_status, created, transitions):
    """Issue payload with a status changelog; transitions are (when, from, to)."""
    return {
        "key": key,
        "fields": {
            "status": {"name": current_status},
            "created": created
        },
        "changelog": {
            "histories": [
                {
                    "created": when,
                    "items": [{"field": "status", "fromString": from_status, "toString": to_status}]
                }
                for when, from_status, to_status in transitions
            ]
        }
    }


@pytest.fixture
def issue_history_factory():
    return make_history


@pytest.fixture
def fake_client(fields_config):
    """JiraClient stand-in with configurable responses."""
    client = Mock()
    client.fields_config = fields_config
    return client


@pytest.fixture
def snapshot_two_customers():
    """Snapshot with customers A (10 pts, 5 done) and B (20 pts, 20 done)."""
    issues = [
        WorkItem(key="A-1", summary="a1", status="Done", story_points=5, customer="A", issue_type="Story"),
        WorkItem(key="A-2", summary="a2", status="To Do", story_points=5, customer="A", issue_type="Bug"),
        WorkItem(key="B-1", summary="b1", status="Done", story_points=12, customer="B", issue_type="Story"),
        WorkItem(key="B-2", summary="b2", status="Done", story_points=8, customer="B", issue_type="Task"),
    ]
    return Snapshot(
        iteration=Iteration(id=100, name="2024.01.01 | Sprint 1", state="closed",
                            complete_date="2024-01-14T17:00:00.000Z"),
        issues=issues,
        metrics=Metrics(total_points=30, completed_points=25, completion_rate=83,
                        customers=["A", "B"]),
        captured_at="2024-01-15T08:00:00+00:00"
    )


@pytest.fixture
def app(tmp_path):
    """Create Flask test app with an isolated data directory."""
    from app import create_app
    app = create_app({
        "TESTING": True,
        "JIRA_SERVER": "https://test.atlassian.net",
        "JIRA_EMAIL": "test@example.com",
        "JIRA_API_TOKEN": "token123",
        "SPRINT_BOARD_IDS": [1],
        "DATA_DIR": str(tmp_path)
    })
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
