"""
Flask app factory: registers config, logging, the relay manager, blueprints,
and error handlers.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Type

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from udm_relay import HttpTransport
from udm_relay.ports import TransportPort

from relayapp.config import Config, DevelopmentConfig, ProductionConfig, build_relay_config
from relayapp.utils import ensure_dirs, init_logging
from relayapp.managers.relay_manager import RelayManager
from relayapp.routes import capture as capture_bp
from relayapp.routes import remote as remote_bp


def create_app(config_class: Type[Config] | None = None, transport: Optional[TransportPort] = None) -> Flask:
    """
    Create and configure the Flask application.

    `transport` replaces the httpx transport built from the config (tests,
    alternative sinks).
    """
    app = Flask(__name__)

    # Config selection
    cfg: Type[Config]
    env = os.getenv("FLASK_ENV", "production").lower()
    if config_class is not None:
        cfg = config_class
    elif env.startswith("dev"):
        cfg = DevelopmentConfig
    else:
        cfg = ProductionConfig
    app.config.from_object(cfg)

    # Ensure folders
    ensure_dirs(Path(app.config["UPLOAD_FOLDER"]), Path(app.config["LOG_FOLDER"]))

    # Logging
    logger = init_logging(app)
    app.logger = logger  # align Flask's logger with ours

    # Relay state stored in extensions registry
    relay_cfg = build_relay_config(app.config)
    if transport is None:
        transport = HttpTransport(relay_cfg.endpoint_base_url, timeout=relay_cfg.request_timeout_seconds)
    mgr = RelayManager(logger=logger, cfg=relay_cfg, transport=transport)
    app.extensions["relay_mgr"] = mgr

    if app.config["RELAY_AUTOSTART"]:
        mgr.start()

    # Error handlers
    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(_e):
        return jsonify({"success": False, "error": "File too large"}), 413

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify({"success": False, "error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_exception(e: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    # Blueprints
    app.register_blueprint(capture_bp.bp)
    app.register_blueprint(remote_bp.bp)

    # Health
    @app.route("/healthz")
    def healthz():
        return jsonify({"status": "ok"}), 200

    return app
