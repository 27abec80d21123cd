"""
Configuration schema for the relay.

One frozen object covers both phases: the CAPTURE side only needs the session
prefix and TTL, the REMOTE side needs the identity, deep-link and endpoint
settings.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RelayConfig(BaseModel):
    """
    Centralized, validated configuration for CAPTURE and REMOTE.
    Times are seconds unless noted otherwise.
    """

    # === Buffering ===
    session_prefix: str = Field(
        default="chronicle",
        pattern=r"^\w+$",
        description="Namespace prefix for buffered record keys.",
    )
    record_ttl_seconds: int = Field(
        default=30,
        ge=0,
        description="Expiry of a buffered record; it is sent on the first tick after expiry.",
    )
    tick_interval_seconds: int = Field(
        default=30,
        ge=1,
        description="Scheduling interval of the REMOTE phase.",
    )

    # === Identity ===
    instance_id: str = Field(
        default="00000000-0000-0000-0000-000000000000",
        description="Per-deployment identifier folded into every asset id.",
    )
    asset_namespace: str = Field(
        default="ExtraHop.RevealX",
        description="Product namespace prefix of asset ids.",
    )
    vendor_name: str = Field(default="ExtraHop")
    product_name: str = Field(default="RevealX")

    # === Deep links ===
    product_hostname: str = Field(
        default="localhost",
        description="Host the deep link back to the source records points at.",
    )
    deep_link_window_seconds: int = Field(
        default=1800,
        ge=0,
        description="Half-width of the time window referenced by the deep link.",
    )

    # === Outbound ===
    endpoint_base_url: str = Field(
        default="https://malachiteingestion-pa.googleapis.com",
        description="Scheme and host of the ingestion API.",
    )
    endpoint_path: str = Field(default="/v1/udmevents")
    api_key: str = Field(default="", description="Instance authentication key.")
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)

    class Config:
        frozen = True

    # --- derived ---

    @property
    def asset_prefix(self) -> str:
        return f"{self.asset_namespace}:{self.instance_id}"

    @property
    def endpoint(self) -> str:
        """Path (with key) the batch is posted to."""
        return f"{self.endpoint_path}?key={self.api_key}"

    @property
    def key_pattern(self) -> str:
        """Regular expression matching every key written by CAPTURE."""
        return rf"^{self.session_prefix}\.\w+\.[0-9.]+$"
