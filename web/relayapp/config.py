"""
Configuration objects for the Flask application.

Override via environment variables. `build_relay_config` turns the Flask
config mapping into the relay's own RelayConfig.
"""

from __future__ import annotations
import os
from typing import Any, Mapping

from udm_relay import RelayConfig


class Config:
    """Base configuration (safe defaults)."""

    # Storage
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    LOG_FOLDER = os.getenv("LOG_FOLDER", "logs")

    # Requests / uploads
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(64 * 1024 * 1024)))  # 64 MiB

    # Replay uploads
    ALLOWED_EXTENSIONS = set(
        (os.getenv("ALLOWED_EXTENSIONS", "pcap,pcapng,gz,zst")).split(",")
    )

    # Logging
    LOG_FILE = os.getenv("APP_LOG_FILE", "logs/app.log")
    LOG_LEVEL = os.getenv("APP_LOG_LEVEL", "INFO")

    # Ingestion endpoint
    UDM_API_KEY = os.getenv("UDM_API_KEY", "")
    UDM_BASE_URL = os.getenv("UDM_BASE_URL", "https://malachiteingestion-pa.googleapis.com")
    UDM_TIMEOUT_SECONDS = float(os.getenv("UDM_TIMEOUT_SECONDS", "10"))

    # Relay identity / scheduling
    RELAY_INSTANCE_ID = os.getenv("RELAY_INSTANCE_ID", "00000000-0000-0000-0000-000000000000")
    RELAY_HOSTNAME = os.getenv("RELAY_HOSTNAME", "localhost")
    RELAY_SESSION_PREFIX = os.getenv("RELAY_SESSION_PREFIX", "chronicle")
    RELAY_TTL_SECONDS = int(os.getenv("RELAY_TTL_SECONDS", "30"))
    RELAY_TICK_SECONDS = int(os.getenv("RELAY_TICK_SECONDS", "30"))
    RELAY_AUTOSTART = os.getenv("RELAY_AUTOSTART", "0").lower() in ("1", "true", "yes")


class ProductionConfig(Config):
    """Production overrides."""
    LOG_LEVEL = os.getenv("APP_LOG_LEVEL", "INFO")
    RELAY_AUTOSTART = os.getenv("RELAY_AUTOSTART", "1").lower() in ("1", "true", "yes")


class DevelopmentConfig(Config):
    """Development overrides."""
    LOG_LEVEL = os.getenv("APP_LOG_LEVEL", "DEBUG")


def build_relay_config(conf: Mapping[str, Any]) -> RelayConfig:
    """Map the Flask config keys onto RelayConfig fields."""
    return RelayConfig(
        session_prefix=conf["RELAY_SESSION_PREFIX"],
        record_ttl_seconds=conf["RELAY_TTL_SECONDS"],
        tick_interval_seconds=conf["RELAY_TICK_SECONDS"],
        instance_id=conf["RELAY_INSTANCE_ID"],
        product_hostname=conf["RELAY_HOSTNAME"],
        endpoint_base_url=conf["UDM_BASE_URL"],
        api_key=conf["UDM_API_KEY"],
        request_timeout_seconds=conf["UDM_TIMEOUT_SECONDS"],
    )
