"""
Offline replay CLI.

    python -m udm_relay.replay capture.pcap.zst --api-key KEY
    python -m udm_relay.replay capture.pcap --output batch.json

With --output the batch is written to a file instead of being posted.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from .config import RelayConfig
from .egress.http_transport import HttpTransport
from .intake.session_store import InMemoryRecordStore
from .orchestration.runner import replay_pcap
from .ports import TransportPort


class FileTransport(TransportPort):
    """Writes the batch payload to a local file instead of the network."""

    def __init__(self, output_path: str) -> None:
        self.output_path = output_path

    def post(self, path: str, payload: bytes) -> bool:
        with open(self.output_path, "wb") as f:
            f.write(payload)
        return True


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Replay DNS/DHCP traffic from a pcap as one UDM batch.")
    ap.add_argument("capture", help="Path to .pcap/.pcapng (optionally .gz or .zst).")
    ap.add_argument("--api-key", default=os.getenv("UDM_API_KEY", ""), help="Ingestion API key.")
    ap.add_argument("--base-url", default=os.getenv("UDM_BASE_URL"), help="Ingestion API base URL.")
    ap.add_argument("--instance-id", default=os.getenv("RELAY_INSTANCE_ID"), help="Instance id folded into asset ids.")
    ap.add_argument("--hostname", default=os.getenv("RELAY_HOSTNAME"), help="Host used in deep links.")
    ap.add_argument("--output", "-o", help="Write the batch JSON here instead of posting it.")
    ap.add_argument("--quiet", action="store_true", help="Disable the progress bar.")
    ap.add_argument("--log-level", default="INFO")
    return ap


def config_from_args(args: argparse.Namespace) -> RelayConfig:
    overrides = {
        "api_key": args.api_key,
        "endpoint_base_url": args.base_url,
        "instance_id": args.instance_id,
        "product_hostname": args.hostname,
    }
    return RelayConfig(**{k: v for k, v in overrides.items() if v is not None})


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
    )
    cfg = config_from_args(args)

    if args.output:
        transport: TransportPort = FileTransport(args.output)
    else:
        transport = HttpTransport(cfg.endpoint_base_url, timeout=cfg.request_timeout_seconds)

    try:
        result = replay_pcap(args.capture, store=InMemoryRecordStore(), transport=transport, cfg=cfg, progress=not args.quiet)
    finally:
        if isinstance(transport, HttpTransport):
            transport.close()

    print(f"[+] {result.status}: {result.emitted} event(s) from {args.capture}")
    return 1 if result.status == "failed" else 0


if __name__ == "__main__":
    sys.exit(main())
