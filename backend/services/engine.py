"""Wiring of the snapshot engine services.

Built once per application and passed around explicitly, so tests can build
fresh instances instead of sharing module-level caches.
"""

import os
from dataclasses import dataclass

from services.jira_client import JiraClient
from services.jira_fetcher import RetryingFetcher
from services.models import FieldConfig
from services.snapshot_store import SnapshotStore
from services.sprint_catalog import SprintCatalog
from services.sprint_details import SprintDetailService
from services.status_replay import StatusReplayer
from services.targets import TargetResolver, TargetStore


@dataclass
class Engine:
    client: JiraClient
    catalog: SprintCatalog
    replayer: StatusReplayer
    targets: TargetStore
    resolver: TargetResolver
    snapshots: SnapshotStore
    details: SprintDetailService


def build_engine(config) -> Engine:
    """Build all services from a Flask-style config mapping."""
    client = JiraClient(
        config["JIRA_SERVER"],
        config["JIRA_EMAIL"],
        config["JIRA_API_TOKEN"],
        fetcher=RetryingFetcher(),
        fields_config=FieldConfig(
            customer_field=config["JIRA_CUSTOMER_FIELD"],
            story_points_field=config["JIRA_STORY_POINTS_FIELD"],
            task_owner_field=config["JIRA_TASK_OWNER_FIELD"]
        )
    )

    catalog = SprintCatalog(
        client,
        config["SPRINT_BOARD_IDS"],
        name_pattern=config["SPRINT_NAME_PATTERN"],
        cache_seconds=config["SPRINT_CACHE_SECONDS"]
    )
    replayer = StatusReplayer(
        client,
        batch_size=config["REPLAY_BATCH_SIZE"],
        batch_delay=config["REPLAY_BATCH_DELAY"]
    )

    targets = TargetStore(config["DATA_DIR"])
    resolver = TargetResolver(targets)
    snapshots = SnapshotStore(os.path.join(config["DATA_DIR"], "sprint-snapshots"), resolver)

    details = SprintDetailService(client, snapshots, resolver, replayer, catalog)

    return Engine(
        client=client,
        catalog=catalog,
        replayer=replayer,
        targets=targets,
        resolver=resolver,
        snapshots=snapshots,
        details=details
    )
