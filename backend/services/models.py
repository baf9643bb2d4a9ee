"""Domain models for sprints, work items and snapshots.

Jira payloads are normalized into these shapes at ingestion so the rest of the
engine never has to deal with the raw field variants. ``to_dict``/``from_dict``
use the camelCase document shape stored in snapshot files and returned by the API.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

DONE_STATUS = "Done"
EXCLUDED_STATUSES = frozenset({"Canceled", "Won't Do"})
IN_PROGRESS_STATUSES = frozenset({"In Progress", "In Development"})
BUG_TYPE = "Bug"
UNKNOWN_CUSTOMER = "Unknown"


def parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a Jira timestamp into an aware datetime (naive values are UTC)."""
    if not value:
        return None

    # Jira formats: "2024-10-31T12:11:56.289-0400", "2024-01-01T00:00:00.000Z"
    formats = [
        "%Y-%m-%dT%H:%M:%S.%f%z",
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d"
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None


def label_value(raw) -> Optional[str]:
    """Normalize a labeled Jira field.

    Select/option fields arrive as a bare string, ``{"value": ...}`` or
    ``{"name": ...}``; user pickers as ``{"displayName": ...}``.
    """
    if not raw:
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        for key in ("value", "name", "displayName"):
            if raw.get(key):
                return raw[key]
    return None


def person_name(raw) -> Optional[str]:
    """Display name of a user field (string, displayName or name)."""
    if not raw:
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        return raw.get("displayName") or raw.get("name") or None
    return None


def _points(raw) -> float:
    try:
        return float(raw) if raw is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


@dataclass
class FieldConfig:
    """Custom field ids for the Jira instance."""
    customer_field: str = "customfield_10000"
    story_points_field: str = "customfield_10002"
    task_owner_field: str = "customfield_10656"


@dataclass
class Iteration:
    id: int
    name: str
    state: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    complete_date: Optional[str] = None
    goal: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def completed_at(self) -> Optional[datetime]:
        return parse_jira_datetime(self.complete_date)

    @classmethod
    def from_jira(cls, data: dict) -> "Iteration":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            state=data.get("state", ""),
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            complete_date=data.get("completeDate"),
            goal=data.get("goal") or None
        )

    # Snapshot documents use the same keys as the Jira payload
    from_dict = from_jira

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "completeDate": self.complete_date,
            "goal": self.goal
        }


@dataclass
class WorkItem:
    key: str
    summary: str
    status: str
    story_points: float = 0.0
    customer: str = UNKNOWN_CUSTOMER
    issue_type: str = "Other"
    assignee: Optional[str] = None
    task_owner: Optional[str] = None
    created: Optional[str] = None
    due_date: Optional[str] = None
    resolution_date: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.status == DONE_STATUS

    @property
    def is_excluded(self) -> bool:
        return self.status in EXCLUDED_STATUSES

    @classmethod
    def from_jira(cls, issue: dict, fields_config: FieldConfig) -> "WorkItem":
        fields = issue.get("fields") or {}
        assignee = fields.get("assignee")
        return cls(
            key=issue["key"],
            summary=fields.get("summary", ""),
            status=(fields.get("status") or {}).get("name", ""),
            story_points=_points(fields.get(fields_config.story_points_field)),
            customer=label_value(fields.get(fields_config.customer_field)) or UNKNOWN_CUSTOMER,
            issue_type=(fields.get("issuetype") or {}).get("name") or "Other",
            assignee=person_name(assignee),
            task_owner=person_name(fields.get(fields_config.task_owner_field)),
            created=fields.get("created"),
            due_date=fields.get("duedate"),
            resolution_date=fields.get("resolutiondate")
        )

    @classmethod
    def from_dict(cls, data: dict) -> "WorkItem":
        # Older snapshots stored status/issueType/assignee as objects
        return cls(
            key=data["key"],
            summary=data.get("summary", ""),
            status=label_value(data.get("status")) or "",
            story_points=_points(data.get("storyPoints")),
            customer=label_value(data.get("customer")) or UNKNOWN_CUSTOMER,
            issue_type=label_value(data.get("issueType")) or "Other",
            assignee=person_name(data.get("assignee")),
            task_owner=person_name(data.get("taskOwner")),
            created=data.get("created"),
            due_date=data.get("dueDate"),
            resolution_date=data.get("resolutionDate")
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "summary": self.summary,
            "status": self.status,
            "storyPoints": self.story_points,
            "customer": self.customer,
            "issueType": self.issue_type,
            "assignee": self.assignee,
            "taskOwner": self.task_owner,
            "created": self.created,
            "dueDate": self.due_date,
            "resolutionDate": self.resolution_date
        }


@dataclass(frozen=True)
class ChangeEvent:
    """One field transition from an issue's changelog."""
    timestamp: datetime
    field: str
    from_value: Optional[str]
    to_value: Optional[str]


@dataclass
class TypeBreakdown:
    type: str
    count: int = 0
    story_points: float = 0.0
    done_count: int = 0
    done_points: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "TypeBreakdown":
        return cls(
            type=data["type"],
            count=data.get("count", 0),
            story_points=data.get("storyPoints", 0),
            done_count=data.get("doneCount", 0),
            done_points=data.get("donePoints", 0)
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "count": self.count,
            "storyPoints": self.story_points,
            "doneCount": self.done_count,
            "donePoints": self.done_points
        }


@dataclass
class Metrics:
    total_points: float = 0.0
    completed_points: float = 0.0
    completion_rate: int = 0
    bug_count: int = 0
    customers: list = field(default_factory=list)
    target_points: float = 0.0
    target_achievement: int = 0
    target_source: str = "calculated"
    issues_by_status: dict = field(
        default_factory=lambda: {"done": 0, "inProgress": 0, "toDo": 0}
    )
    issue_types: list = field(default_factory=list)

    @property
    def velocity(self) -> float:
        return self.completed_points

    @classmethod
    def from_dict(cls, data: dict, issue_types: Optional[list] = None) -> "Metrics":
        return cls(
            total_points=data.get("totalPoints", 0),
            completed_points=data.get("completedPoints", 0),
            completion_rate=data.get("completionRate", 0),
            bug_count=data.get("bugCount", 0),
            customers=list(data.get("customers", [])),
            target_points=data.get("targetPoints", 0),
            target_achievement=data.get("targetAchievement", 0),
            target_source=data.get("targetSource", "calculated"),
            issues_by_status=dict(
                data.get("issuesByStatus") or {"done": 0, "inProgress": 0, "toDo": 0}
            ),
            issue_types=[TypeBreakdown.from_dict(t) for t in (issue_types or [])]
        )

    def to_dict(self) -> dict:
        return {
            "totalPoints": self.total_points,
            "completedPoints": self.completed_points,
            "completionRate": self.completion_rate,
            "velocity": self.velocity,
            "bugCount": self.bug_count,
            "customers": list(self.customers),
            "targetPoints": self.target_points,
            "targetAchievement": self.target_achievement,
            "targetSource": self.target_source,
            "issuesByStatus": dict(self.issues_by_status)
        }


@dataclass
class Snapshot:
    """A sprint's issues and derived metrics.

    Persisted for closed sprints; live results for open sprints use the same
    shape with ``captured_at`` left as None.
    """
    iteration: Iteration
    issues: list
    metrics: Metrics
    captured_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        return cls(
            iteration=Iteration.from_dict(data["sprint"]),
            issues=[WorkItem.from_dict(i) for i in data.get("issues", [])],
            metrics=Metrics.from_dict(data.get("metrics") or {}, data.get("issueTypes")),
            captured_at=data.get("capturedAt")
        )

    def to_dict(self) -> dict:
        return {
            "sprint": self.iteration.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
            "metrics": self.metrics.to_dict(),
            "issueTypes": [t.to_dict() for t in self.metrics.issue_types],
            "capturedAt": self.captured_at
        }


@dataclass
class CustomerTarget:
    customer: str
    target_sp: float

    def to_dict(self) -> dict:
        return {"customer": self.customer, "targetSP": self.target_sp}


@dataclass
class SprintTarget:
    sprint_id: int
    target_points: float
    sprint_name: Optional[str] = None
    customers: list = field(default_factory=list)
    saved_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SprintTarget":
        return cls(
            sprint_id=int(data["sprintId"]),
            target_points=_points(data.get("targetPoints")),
            sprint_name=data.get("sprintName"),
            customers=list(data.get("customers") or []),
            saved_at=data.get("savedAt")
        )

    def to_dict(self) -> dict:
        return {
            "sprintId": self.sprint_id,
            "sprintName": self.sprint_name,
            "targetPoints": self.target_points,
            "customers": list(self.customers),
            "savedAt": self.saved_at
        }
