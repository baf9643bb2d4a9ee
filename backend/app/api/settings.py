"""Target settings API endpoints.

Targets are stored as JSON files in the data directory.
"""

from flask import Blueprint, jsonify, request

from app import get_engine
from services.errors import TargetValidationError

bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@bp.errorhandler(TargetValidationError)
def handle_validation_error(e):
    return jsonify({"error": str(e)}), 400


@bp.route("/customer-targets", methods=["GET"])
def get_customer_targets():
    targets = get_engine().targets.customer_targets()
    return jsonify({"data": [
        {"customer": customer, "targetSP": target}
        for customer, target in sorted(targets.items())
    ]})


@bp.route("/customer-targets", methods=["POST"])
def save_customer_targets():
    """Replace the customer targets.

    Expects a JSON list of ``{"customer": str, "targetSP": number}``.
    """
    data = request.get_json(silent=True)

    if data is None:
        return jsonify({"error": "Missing request body"}), 400

    targets = get_engine().targets.save_customer_targets(data)
    return jsonify({"data": [t.to_dict() for t in targets]})


@bp.route("/sprint-targets", methods=["GET"])
def get_sprint_targets():
    targets = get_engine().targets.sprint_targets()
    return jsonify({"data": [t.to_dict() for t in targets]})


@bp.route("/sprint-targets", methods=["POST"])
def save_sprint_target():
    """Save or update a sprint target.

    Expects JSON body with:
        - sprintId, targetPoints (required)
        - sprintName, customers, savedAt (optional)
    """
    data = request.get_json(silent=True)

    if not isinstance(data, dict):
        return jsonify({"error": "Missing request body"}), 400

    target = get_engine().targets.save_sprint_target(data)
    return jsonify({"data": target.to_dict()})
