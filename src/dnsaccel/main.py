#!/usr/bin/env python3
# ./src/dnsaccel/main.py
"""Command-line interface for inspecting and exercising dnsaccel.

Run via ``dnsaccel`` (console script) or ``python -m dnsaccel.main``.
Inputs: CLI command + positional domain values + optional ``--config`` JSON path.
Outputs: JSON/text printed to stdout; exit code 1 for "not found" style results.
Side effects: ``resolve`` queries upstream nameservers and updates the on-disk snapshot.
Operational notes: ``snapshot`` reads the file only and never starts a janitor.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, List, Optional

from .accel import build_accelerator
from .models import PoolConstructionError
from .utils.config import load_config
from .utils.fakeip import Pool
from .utils.hosts import HostsTable
from .utils.snapshot import Snapshot


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


def _snapshot_rows(snapshot: Snapshot) -> List[dict]:
    now = time.time()
    rows = []
    for key, (payload, expires_at) in sorted(snapshot.load().items()):
        rows.append(
            {
                "key": key,
                "payload_chars": len(payload),
                "expires_at": int(expires_at),
                "remaining_seconds": int(expires_at - now),
            }
        )
    return rows


def _cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dnsaccel",
        description="DNS answer cache and fake-ip pool tools",
    )
    parser.add_argument("--config", help="Path to config.json", default=None)
    subcommands = parser.add_subparsers(dest="cmd", required=True)

    subcommands.add_parser("snapshot", help="Dump the persisted cache snapshot")

    fakeip_parser = subcommands.add_parser("fakeip", help="Draw fake-ip addresses")
    fakeip_parser.add_argument("--range", dest="prefix", default=None)
    fakeip_parser.add_argument("--count", type=int, default=1)

    hosts_parser = subcommands.add_parser("hosts", help="Look up the static hosts table")
    hosts_parser.add_argument("domain")

    resolve_parser = subcommands.add_parser("resolve", help="Resolve through the cache")
    resolve_parser.add_argument("domain")
    resolve_parser.add_argument("--type", dest="qtype", default="A")

    args = parser.parse_args(argv)
    cfg = load_config(args.config)

    if args.cmd == "snapshot":
        snapshot = Snapshot(cfg.home_dir, cfg.snapshot_filename)
        print(_to_json(_snapshot_rows(snapshot)))
    elif args.cmd == "fakeip":
        try:
            pool = Pool(args.prefix or cfg.fake_ip_range)
        except PoolConstructionError as err:
            print(str(err), file=sys.stderr)
            return 2
        for _ in range(max(1, args.count)):
            print(pool.get())
    elif args.cmd == "hosts":
        mapping = HostsTable.from_mapping(cfg.hosts).get(args.domain)
        if mapping is None:
            print("not found")
            return 1
        if mapping.address is not None:
            print(mapping.address)
        else:
            print(",".join(mapping.resolvers))
    elif args.cmd == "resolve":
        with build_accelerator(args.config) as accel:
            response = accel.resolve(args.domain, args.qtype)
        for rrset in response.answer:
            print(rrset.to_text())
        if not response.answer:
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(_cli())
