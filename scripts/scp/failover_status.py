#!/usr/bin/env python3
"""Print which failover IPs are currently routed to which server."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from nc_failover.allocator import parse_address  # noqa: E402
from nc_failover.config import FailoverPrefixSet  # noqa: E402
from nc_failover.errors import FailoverError  # noqa: E402
from nc_failover.scp import ScpClient  # noqa: E402
from nc_failover_ccm.config import load_config  # noqa: E402


LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/kubernetes/nc-failover.yaml"),
        help="Cloud configuration file (inline username/password required)",
    )
    parser.add_argument("--username", help="Override the configured login name")
    parser.add_argument("--password", help="Override the configured password")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def collect(scp: ScpClient, prefixes: FailoverPrefixSet) -> List[Dict[str, Any]]:
    servers = []
    for name in scp.get_vservers():
        routed = [
            str(parse_address(ip))
            for ip in scp.get_vserver_ips(name)
            if prefixes.is_failover_ip(parse_address(ip))
        ]
        servers.append(
            {
                "server": name,
                "state": scp.get_vserver_state(name),
                "failover": routed,
            }
        )
    return servers


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        cloud = load_config(args.config).cloud
        if args.username:
            cloud.username = args.username
        if args.password:
            cloud.password = args.password
        prefixes = cloud.prefix_set()
        scp = ScpClient(cloud.username, cloud.password, endpoint=cloud.endpoint, timeout=cloud.timeout)
        servers = collect(scp, prefixes)
    except FailoverError as exc:
        LOG.error("%s", exc)
        return 1

    json.dump({"servers": servers}, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
