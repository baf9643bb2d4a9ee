"""Flask application factory."""

import json
import os

import click
from flask import Flask
from flask_cors import CORS

from services.engine import build_engine
from services.sprint_catalog import CACHE_SECONDS, DEFAULT_SPRINT_NAME_PATTERN

BACKEND_DIR = os.path.join(os.path.dirname(__file__), "..")

CONFIG_PATH = os.path.join(BACKEND_DIR, "config", "engine-config.json")


def _split(value):
    return [v.strip() for v in value.split(",") if v.strip()]


def default_config():
    """Configuration from environment variables."""
    server = os.environ.get("JIRA_SERVER", "")
    if not server and os.environ.get("JIRA_HOST"):
        server = f"https://{os.environ['JIRA_HOST']}"

    return {
        "JIRA_SERVER": server,
        "JIRA_EMAIL": os.environ.get("JIRA_EMAIL", ""),
        "JIRA_API_TOKEN": os.environ.get("JIRA_API_TOKEN", ""),
        "JIRA_CUSTOMER_FIELD": os.environ.get("JIRA_CUSTOMER_FIELD", "customfield_10000"),
        "JIRA_STORY_POINTS_FIELD": os.environ.get("JIRA_STORY_POINTS_FIELD", "customfield_10002"),
        "JIRA_TASK_OWNER_FIELD": os.environ.get("JIRA_TASK_OWNER_FIELD", "customfield_10656"),
        "SPRINT_BOARD_IDS": [int(b) for b in _split(os.environ.get("SPRINT_BOARD_IDS", ""))],
        "SPRINT_NAME_PATTERN": os.environ.get("SPRINT_NAME_PATTERN", DEFAULT_SPRINT_NAME_PATTERN),
        "SPRINT_CACHE_SECONDS": float(os.environ.get("SPRINT_CACHE_SECONDS", CACHE_SECONDS)),
        "DATA_DIR": os.environ.get("DATA_DIR", os.path.join(BACKEND_DIR, "data")),
        "REPLAY_BATCH_SIZE": int(os.environ.get("REPLAY_BATCH_SIZE", 10)),
        "REPLAY_BATCH_DELAY": float(os.environ.get("REPLAY_BATCH_DELAY", 1.5)),
        "CORS_ORIGINS": _split(os.environ.get(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        )),
    }


def load_engine_config(app, config_path=CONFIG_PATH):
    """Overlay settings from the JSON config file, if present.

    Recognized keys: ``boardIds``, ``sprintNamePattern``.
    """
    if not os.path.exists(config_path):
        app.logger.info("No engine-config.json found, using environment settings")
        return

    try:
        with open(config_path, "r") as f:
            config = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        app.logger.warning(f"Failed to load engine config: {e}")
        return

    if "boardIds" in config:
        app.config["SPRINT_BOARD_IDS"] = [int(b) for b in config["boardIds"]]
    if config.get("sprintNamePattern"):
        app.config["SPRINT_NAME_PATTERN"] = config["sprintNamePattern"]

    app.logger.info(f"Loaded {len(app.config['SPRINT_BOARD_IDS'])} board IDs from engine config")


def get_engine(app=None):
    """Engine services bound to the (current) app."""
    from flask import current_app
    return (app or current_app).extensions["sprint_engine"]


def register_commands(app):
    """CLI entry points for the snapshot scheduler (cron)."""

    @app.cli.command("capture-snapshots")
    @click.option("--limit", default=50, show_default=True, help="Closed sprints to scan.")
    def capture_snapshots(limit):
        """Capture snapshots for closed sprints that have none yet."""
        counts = get_engine(app).details.capture_missing_snapshots(limit)
        click.echo(
            f"Captured: {counts['captured']}, skipped: {counts['skipped']}, failed: {counts['failed']}"
        )

    @app.cli.command("recapture-snapshot")
    @click.argument("sprint_id", type=int)
    def recapture_snapshot(sprint_id):
        """Rebuild a closed sprint's snapshot from Jira (administrative backfill)."""
        snapshot = get_engine(app).details.recapture_snapshot(sprint_id)
        if snapshot is None:
            raise click.ClickException(f"Sprint {sprint_id} is not closed")
        click.echo(f"Snapshot rebuilt for sprint {sprint_id} ({len(snapshot.issues)} issues)")


def create_app(test_config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_mapping(default_config())

    load_engine_config(app)

    if test_config:
        app.config.update(test_config)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config["CORS_ORIGINS"],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    app.extensions["sprint_engine"] = build_engine(app.config)

    # Register blueprints
    from app.api import settings, sprints
    app.register_blueprint(sprints.bp)
    app.register_blueprint(settings.bp)

    register_commands(app)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
