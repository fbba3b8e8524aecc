# ai_blocker/cli.py

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .activity_log import close_logging, log_event, setup_logging
from .config import build_run_config, load_domains_file, load_raw_config
from .firewall_win import FirewallStore, PowerShellFirewallStore, is_admin
from .reconciler import PrivilegeError, Reconciler
from .resolver import Resolver, SocketResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-blocker",
        description=(
            "Block outbound traffic to AI chat services with per-IP Windows Firewall rules.\n"
            "Run this as Administrator."
        ),
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--uninstall",
        action="store_true",
        help="Remove every rule this tool created",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="List the rules this tool currently owns",
    )
    mode.add_argument(
        "--block-browsers",
        action="store_true",
        default=None,
        help="Also block all outbound traffic of installed browsers",
    )

    parser.add_argument(
        "--domain",
        dest="domains",
        action="append",
        metavar="NAME",
        help="Domain to block (repeatable; replaces the default list)",
    )
    parser.add_argument(
        "--domains-file",
        type=Path,
        help="Text file with one domain per line (replaces the default list)",
    )
    parser.add_argument("--log-path", help="Log file to append to")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (default: config.json next to the package)",
    )
    return parser


def main(
    argv: Optional[List[str]] = None,
    resolver: Optional[Resolver] = None,
    store: Optional[FirewallStore] = None,
    admin_check=is_admin,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        raw = load_raw_config(args.config)
        domains = None
        if args.domains_file is not None:
            domains = load_domains_file(args.domains_file)
        if args.domains:
            domains = (domains or []) + args.domains

        mode = "uninstall" if args.uninstall else "status" if args.status else "block"
        config = build_run_config(
            raw,
            domains=domains,
            log_path=args.log_path,
            block_browsers=args.block_browsers,
            mode=mode,
        )
    except (OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    reconciler = Reconciler(
        config,
        resolver=resolver if resolver is not None else SocketResolver(),
        store=store if store is not None else PowerShellFirewallStore(),
        is_admin=admin_check,
    )

    # Checked before the log file is opened; nothing is written when not elevated
    if mode != "status" and not admin_check():
        print("[ERROR] This process is NOT running as Administrator.", file=sys.stderr)
        print("        Please run your terminal as 'Run as administrator'.", file=sys.stderr)
        return 1

    setup_logging(config.log_path)
    try:
        if mode == "uninstall":
            reconciler.uninstall()
            print(f"[OK] Uninstall complete. See {config.log_path} for details.")
        elif mode == "status":
            reconciler.status()
        else:
            reconciler.run()
            print(f"[OK] Block rules applied/updated. See {config.log_path} for details.")
    except PrivilegeError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        log_event("RUN_FAILED", f"Firewall operation failed (mode={mode}): {e}", level=logging.ERROR)
        print("[ERROR] Firewall operation failed:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 1
    finally:
        close_logging()

    return 0


if __name__ == "__main__":
    sys.exit(main())
