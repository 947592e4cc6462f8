"""Recompute pass endpoint."""

from flask import Blueprint, current_app, jsonify, request

from app.api.metrics import error_response, get_engine
from services.recompute import run_recompute

bp = Blueprint("recompute", __name__, url_prefix="/api")


@bp.route("/recompute", methods=["POST"])
def post_recompute():
    """Recompute stored rollups for a set of sprints.

    Body (JSON), one of:
        - sprintIds: list of sprint ids
        - squadId: recompute every sprint of the squad

    Returns 409 if another pass is already running.
    """
    body = request.get_json(silent=True) or {}
    sprint_ids = body.get("sprintIds")
    squad_id = body.get("squadId")

    if sprint_ids is None and squad_id is None:
        return jsonify({"error": "Provide sprintIds or squadId"}), 400
    if sprint_ids is not None and not isinstance(sprint_ids, list):
        return jsonify({"error": "sprintIds must be a list"}), 400

    engine = get_engine()
    try:
        if sprint_ids is None:
            sprint_ids = engine.sprint_ids_for_squad(squad_id)
    except Exception as e:
        return error_response(e)

    run = run_recompute(engine, sprint_ids, current_app.extensions["recompute_guard"])
    if run.skipped:
        return jsonify({"error": "A recompute pass is already running"}), 409
    return jsonify({"data": run.to_dict()})
