"""Sprint and snapshot API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from app import get_engine
from services.errors import SnapshotError, UpstreamClientError, UpstreamUnavailableError

bp = Blueprint("sprints", __name__, url_prefix="/api/sprints")


def get_limit(default):
    """Positive ``limit`` query param, or None if invalid."""
    raw = request.args.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError:
        return None
    return limit if limit > 0 else None


@bp.errorhandler(UpstreamUnavailableError)
def handle_unavailable(e):
    current_app.logger.error(f"Jira unavailable: {e}")
    return jsonify({"error": "Sprint data is temporarily unavailable, retry"}), 503


@bp.errorhandler(UpstreamClientError)
def handle_client_error(e):
    if e.status_code == 404:
        return jsonify({"error": "Sprint not found"}), 404
    current_app.logger.error(f"Jira rejected request: {e}")
    return jsonify({"error": str(e)}), 502


@bp.errorhandler(SnapshotError)
def handle_snapshot_error(e):
    current_app.logger.error(str(e))
    return jsonify({"error": str(e)}), 500


@bp.route("", methods=["GET"])
def list_sprints():
    """Closed sprints across the configured boards, newest first.

    Query params:
        - limit: Number of sprints to return (default: 50)
    """
    limit = get_limit(50)
    if limit is None:
        return jsonify({"error": "Invalid limit parameter. Must be a positive number."}), 400

    sprints = get_engine().catalog.list_closed_sprints(limit)
    return jsonify({"data": [sprint.to_dict() for sprint in sprints]})


@bp.route("/<int:sprint_id>", methods=["GET"])
def get_sprint(sprint_id):
    """Sprint details with metrics.

    Query params:
        - customer: Optional customer name to filter issues and metrics by
    """
    customer = request.args.get("customer") or None
    details = get_engine().details.get_sprint_details(sprint_id, customer)
    return jsonify({"data": details.to_dict()})


@bp.route("/<int:sprint_id>/snapshot", methods=["POST"])
def capture_snapshot(sprint_id):
    """Capture the snapshot of a closed sprint if it does not exist yet."""
    created = get_engine().details.ensure_snapshot(sprint_id)
    return jsonify({"data": {"sprintId": sprint_id, "created": created}})


@bp.route("/customers/<customer>", methods=["GET"])
def get_customer_sprints(customer):
    """Recent closed sprints containing work for a customer.

    Query params:
        - limit: Number of closed sprints to scan (default: 50)
    """
    limit = get_limit(50)
    if limit is None:
        return jsonify({"error": "Invalid limit parameter. Must be a positive number."}), 400

    results = get_engine().details.get_sprints_by_customer(customer, limit)
    return jsonify({"data": [details.to_dict() for details in results]})
