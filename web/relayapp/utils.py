"""
Utility helpers: directory setup, logging config, upload validation, and time utils.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime, timezone
from typing import List, Optional
from flask import Flask

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def ensure_dirs(*paths: Path) -> None:
    """Ensure each directory exists."""
    for p in paths:
        p.mkdir(parents=True, exist_ok=True)


def init_logging(app: Flask) -> logging.Logger:
    """
    Configure a console logger + rotating file handler.

    The same handlers are attached to the `udm_relay` logger so pipeline
    messages (sent batches, transport failures) land in the app log.
    """
    log_level = getattr(logging, app.config["LOG_LEVEL"].upper(), logging.INFO)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(logging.Formatter(_FORMAT))

    log_file = Path(app.config["LOG_FILE"])
    ensure_dirs(log_file.parent)
    fh = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5)
    fh.setLevel(log_level)
    fh.setFormatter(logging.Formatter(_FORMAT))

    logger = logging.getLogger("relayapp")
    for name in ("relayapp", "udm_relay"):
        lg = logging.getLogger(name)
        lg.setLevel(log_level)
        lg.propagate = False  # avoid duplicate logs if root has handlers
        lg.handlers.clear()
        lg.addHandler(ch)
        lg.addHandler(fh)

    if not app.config["UDM_API_KEY"]:
        logger.warning("UDM_API_KEY is empty; the ingestion API will reject batches.")

    return logger


def allowed_file(filename: str, allowed: set[str]) -> bool:
    """Return True if the filename has an allowed extension."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in allowed


def utcnow_iso(ts: Optional[float] = None) -> str:
    """Return a UTC timestamp (now, or the given epoch seconds) in RFC3339-ish ISO format."""
    moment = datetime.now(timezone.utc) if ts is None else datetime.fromtimestamp(ts, timezone.utc)
    return moment.replace(tzinfo=None).isoformat() + "Z"


def as_documents(body) -> Optional[List]:
    """A JSON body of one document or a list of documents, as a list; None otherwise."""
    if isinstance(body, dict):
        return [body]
    if isinstance(body, list):
        return body
    return None
