"""Sprint metrics API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from services.errors import (
    DataSourceUnavailable,
    InvalidSprintWindow,
    MetricsError,
    SprintNotFound,
)

bp = Blueprint("metrics", __name__, url_prefix="/api")

ERROR_STATUS = (
    (SprintNotFound, 404),
    (InvalidSprintWindow, 422),
    (DataSourceUnavailable, 503),
)


def get_engine():
    return current_app.extensions["metrics_engine"]


def error_response(error: Exception):
    """JSON error body with the status code matching the error type."""
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            if status == 503:
                current_app.logger.error(f"Data source unavailable: {error}")
            return jsonify({"error": str(error)}), status
    if isinstance(error, MetricsError):
        return jsonify({"error": str(error)}), 400
    current_app.logger.exception("Unexpected error")
    return jsonify({"error": str(error)}), 500


def get_id_list(name: str):
    """Parse a comma-separated id list from query params."""
    raw = request.args.get(name, "")
    return [s.strip() for s in raw.split(",") if s.strip()]


@bp.route("/sprints/<sprint_id>/burndown", methods=["GET"])
def get_burndown(sprint_id):
    """Get the per-day burndown of a sprint.

    Query params:
        - developer_id: Optional; only items assigned to this developer on
          each day. Omit for the squad burndown.
        - squad_id: Optional squad filter
        - initiative_id: Optional initiative filter
    """
    try:
        data = get_engine().compute_burndown(
            sprint_id,
            developer_id=request.args.get("developer_id") or None,
            squad_id=request.args.get("squad_id") or None,
            initiative_id=request.args.get("initiative_id") or None,
        )
        return jsonify({"data": data})
    except Exception as e:
        return error_response(e)


@bp.route("/sprints/<sprint_id>/metrics", methods=["POST"])
def post_sprint_metrics(sprint_id):
    """Compute the sprint rollup and append it to the rollup history."""
    try:
        return jsonify({"data": get_engine().compute_sprint_metrics(sprint_id)})
    except Exception as e:
        return error_response(e)


@bp.route("/sprints/<sprint_id>/metrics/history", methods=["GET"])
def get_sprint_metrics_history(sprint_id):
    try:
        return jsonify({"data": get_engine().sprint_metrics_history(sprint_id)})
    except Exception as e:
        return error_response(e)


@bp.route("/sprints/<sprint_id>/developer-metrics", methods=["POST"])
def post_developer_metrics(sprint_id):
    """Compute and store one rollup per developer of the sprint."""
    try:
        return jsonify({"data": get_engine().compute_developer_metrics(sprint_id)})
    except Exception as e:
        return error_response(e)


@bp.route("/sprints/<sprint_id>/closure-audit", methods=["GET"])
def get_closure_audit(sprint_id):
    try:
        return jsonify({"data": get_engine().audit_sprint_closure(sprint_id)})
    except Exception as e:
        return error_response(e)


@bp.route("/allocations", methods=["GET"])
def get_allocations():
    """Get allocation percentages per squad, initiative and developer.

    Query params:
        - sprint_ids: Comma-separated sprint ids (required)

    Returns:
        - records: one allocation record per (squad, initiative, developer)
        - totalsByDeveloper: percentages summed per developer, unnormalized
    """
    sprint_ids = get_id_list("sprint_ids")
    if not sprint_ids:
        return jsonify({"error": "sprint_ids query parameter is required"}), 400

    try:
        return jsonify({"data": get_engine().compute_allocations(sprint_ids)})
    except Exception as e:
        return error_response(e)
