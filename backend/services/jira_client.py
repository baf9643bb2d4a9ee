"""Jira REST client used by the snapshot engine."""

import logging
from typing import Optional

from services.errors import UpstreamClientError, UpstreamUnavailableError
from services.jira_fetcher import RetryingFetcher
from services.models import FieldConfig

logger = logging.getLogger(__name__)


class JiraClient:
    """Thin wrapper over the Agile and Platform REST APIs.

    Every call goes through ``RetryingFetcher`` and uses HTTP Basic auth with
    the account email and API token.
    """

    def __init__(self, server: str, email: str, token: str,
                 fetcher: Optional[RetryingFetcher] = None,
                 fields_config: Optional[FieldConfig] = None):
        self.server = server.rstrip("/")
        self.email = email
        self.token = token
        self.fetcher = fetcher or RetryingFetcher()
        self.fields_config = fields_config or FieldConfig()

    def _request(self, endpoint: str, params: Optional[dict] = None):
        """Make authenticated request to Jira API and return the JSON body."""
        response = self.fetcher.fetch(
            f"{self.server}{endpoint}",
            params=params,
            auth=(self.email, self.token),
            headers={"Accept": "application/json"}
        )

        status = response.status_code
        if status >= 500:
            raise UpstreamUnavailableError(
                f"Jira API error: {status} for {endpoint}", status_code=status
            )
        if status >= 400:
            body = response.text[:500] if response.text else ""
            logger.error("Jira API error %s for %s: %s", status, endpoint, body)
            raise UpstreamClientError(
                f"Jira API error: {status} for {endpoint}", status_code=status, body=body
            )

        return response.json()

    def get_board_sprints(self, board_id: int, state: str = "closed") -> list:
        """Get all sprints of a board in the given state (paginated)."""
        all_sprints = []
        start_at = 0
        max_results = 50

        while True:
            data = self._request(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={"state": state, "startAt": start_at, "maxResults": max_results}
            )

            sprints = data.get("values", [])
            all_sprints.extend(sprints)

            if data.get("isLast", True) or len(sprints) < max_results:
                break

            start_at += max_results

        return all_sprints

    def get_sprint(self, sprint_id: int) -> dict:
        return self._request(f"/rest/agile/1.0/sprint/{sprint_id}")

    def issue_fields(self) -> list:
        """Field projection used for sprint issue listings."""
        base_fields = [
            "summary", "status", "issuetype", "assignee",
            "created", "duedate", "resolutiondate"
        ]
        for custom in (self.fields_config.customer_field,
                       self.fields_config.story_points_field,
                       self.fields_config.task_owner_field):
            if custom and custom not in base_fields:
                base_fields.append(custom)
        return base_fields

    def get_sprint_issues(self, sprint_id: int) -> list:
        """Get all issues currently in a sprint (paginated)."""
        fields = ",".join(self.issue_fields())
        all_issues = []
        start_at = 0
        max_results = 100

        while True:
            data = self._request(
                f"/rest/agile/1.0/sprint/{sprint_id}/issue",
                params={"startAt": start_at, "maxResults": max_results, "fields": fields}
            )

            issues = data.get("issues", [])
            all_issues.extend(issues)

            total = data.get("total")
            if len(issues) < max_results or (total is not None and start_at + len(issues) >= total):
                break

            start_at += max_results

        return all_issues

    def get_issue_history(self, issue_key: str) -> dict:
        """Get an issue's current status, owner, creation date and changelog."""
        fields = ["status", "created"]
        if self.fields_config.task_owner_field:
            fields.append(self.fields_config.task_owner_field)
        return self._request(
            f"/rest/api/3/issue/{issue_key}",
            params={"expand": "changelog", "fields": ",".join(fields)}
        )
