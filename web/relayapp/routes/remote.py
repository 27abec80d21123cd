"""
Remote routes: run a tick on demand, control the scheduler, report status.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from relayapp.managers.relay_manager import RelayManager, tick_result_dict

bp = Blueprint("remote", __name__, url_prefix="/remote")


@bp.route("/tick", methods=["POST"])
def tick():
    """Drain expired records and send them as one batch now."""
    mgr: RelayManager = current_app.extensions["relay_mgr"]
    result = mgr.tick_now()
    return jsonify({"success": result.status != "failed", "result": tick_result_dict(result)})


@bp.route("/status")
def status():
    """Scheduler state, last tick outcome and buffered record count."""
    mgr: RelayManager = current_app.extensions["relay_mgr"]
    return jsonify(mgr.snapshot())


@bp.route("/start", methods=["POST"])
def start():
    mgr: RelayManager = current_app.extensions["relay_mgr"]
    ok, msg = mgr.start()
    current_app.logger.info("Start scheduler: %s", msg)
    return jsonify({"success": ok, "message": msg}), 200 if ok else 400


@bp.route("/stop", methods=["POST"])
def stop():
    mgr: RelayManager = current_app.extensions["relay_mgr"]
    if not mgr.stop():
        return jsonify({"success": False, "message": "Scheduler not active"}), 400
    return jsonify({"success": True, "message": "Scheduler stopped", "status": mgr.snapshot()})
