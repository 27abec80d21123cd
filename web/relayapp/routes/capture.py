"""
Capture routes: push decoded protocol events (JSON) or a recorded pcap into
the buffering store.
"""

from __future__ import annotations
from datetime import datetime
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from udm_relay import EventDecodeError

from relayapp.managers.relay_manager import RelayManager
from relayapp.utils import allowed_file, as_documents

bp = Blueprint("capture", __name__, url_prefix="/capture")


@bp.route("", methods=["POST"])
def capture():
    """
    Buffer one event document or a list of them.

    Body (JSON):
      { "kind": "DNS_REQUEST", "flow": {...}, ... }   or   [ {...}, {...} ]

    Documents of an unsupported kind are skipped, not rejected.
    """
    documents = as_documents(request.get_json(silent=True))
    if documents is None:
        return jsonify({"success": False, "error": "Body must be a JSON object or a list of objects"}), 400

    mgr: RelayManager = current_app.extensions["relay_mgr"]
    try:
        keys, skipped = mgr.capture_documents(documents)
    except EventDecodeError as e:
        current_app.logger.warning("Rejected capture request: %s", e)
        return jsonify({"success": False, "error": str(e)}), 400

    return jsonify({"success": True, "stored": len(keys), "skipped": skipped, "keys": keys})


@bp.route("/pcap", methods=["POST"])
def capture_pcap():
    """Upload a pcap/pcapng (optionally .gz/.zst) and buffer its DNS/DHCP events."""
    if "file" not in request.files:
        return jsonify({"success": False, "error": "No file part"}), 400

    file = request.files["file"]
    if not file or file.filename == "":
        return jsonify({"success": False, "error": "No selected file"}), 400

    if not allowed_file(file.filename, current_app.config["ALLOWED_EXTENSIONS"]):
        return jsonify({"success": False, "error": "Invalid file type"}), 400

    upload_dir = Path(current_app.config["UPLOAD_FOLDER"])
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{ts}_{secure_filename(file.filename)}"
    dest = upload_dir / filename
    file.save(dest)

    mgr: RelayManager = current_app.extensions["relay_mgr"]
    stored = mgr.capture_file(dest)
    return jsonify({"success": True, "filename": filename, "stored": stored})
