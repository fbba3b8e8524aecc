# ai_blocker/reconciler.py

from __future__ import annotations

import logging
from pathlib import Path, PureWindowsPath
from typing import Callable, Dict, List

from .activity_log import log_event
from .config import RULE_GROUP, RULE_PREFIX
from .firewall_win import FirewallStore
from .models import RuleHandle, RuleSpec, RunConfig, RunSummary, UninstallSummary
from .resolver import ResolutionError, Resolver, unique_addresses


class PrivilegeError(RuntimeError):
    """The process is not elevated; nothing was changed."""


# ---------------------------------------------------------------------------
# Rule naming
# ---------------------------------------------------------------------------

def sanitize_address(address: str) -> str:
    """
    Make an address safe for a rule name. IPv6 colons become '-'; neither
    IPv4 nor IPv6 text ever contains '-', so distinct addresses stay distinct.
    """
    return address.replace(":", "-")


def rule_name(domain: str, address: str) -> str:
    return f"{RULE_PREFIX}{domain}_{sanitize_address(address)}"


def browser_rule_name(exe_path: str) -> str:
    exe_name = PureWindowsPath(exe_path).name or exe_path
    return f"{RULE_PREFIX}Browser_{exe_name}"


def domain_rule_spec(domain: str, address: str) -> RuleSpec:
    return RuleSpec(
        name=rule_name(domain, address),
        group=RULE_GROUP,
        description=f"Blocks outbound traffic to {domain} ({address})",
        remote_address=address,
    )


def browser_rule_spec(exe_path: str) -> RuleSpec:
    return RuleSpec(
        name=browser_rule_name(exe_path),
        group=RULE_GROUP,
        description=f"Blocks all outbound traffic from {exe_path}",
        program=exe_path,
    )


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

class Reconciler:
    """
    Bring the firewall in line with the configured block list.

    run() creates or refreshes one outbound block rule per (domain, address)
    and, optionally, one rule per installed browser. uninstall() removes
    every rule tagged with RULE_GROUP. Rules for addresses a domain no
    longer resolves to are left alone until uninstall.
    """

    def __init__(
        self,
        config: RunConfig,
        resolver: Resolver,
        store: FirewallStore,
        is_admin: Callable[[], bool],
    ):
        self.config = config
        self.resolver = resolver
        self.store = store
        self._is_admin = is_admin

    def _require_admin(self) -> None:
        if not self._is_admin():
            raise PrivilegeError(
                "Administrator rights are required. "
                "Re-run this tool from an elevated ('Run as administrator') terminal."
            )

    # -- block mode ---------------------------------------------------------

    def run(self) -> RunSummary:
        self._require_admin()

        summary = RunSummary()
        log_event(
            "RUN_START",
            f"=== Run started (mode=block, domains={len(self.config.domains)}, "
            f"block_browsers={self.config.block_browsers}) ===",
        )

        for domain in self.config.domains:
            self._apply_domain(domain, summary)

        if self.config.block_browsers:
            self._apply_browsers(summary)

        log_event(
            "RUN_SUMMARY",
            f"Total addresses resolved: {summary.addresses_resolved}; "
            f"new rules created: {summary.rules_created}",
            {
                "updated": summary.rules_updated,
                "failed_domains": len(summary.failed_domains),
                "browser_rules_created": summary.browser_rules_created,
            },
        )
        log_event("RUN_END", "=== Run finished (mode=block) ===")
        return summary

    def _apply_domain(self, domain: str, summary: RunSummary) -> None:
        try:
            addresses = unique_addresses(self.resolver.resolve(domain))
            if not addresses:
                log_event(
                    "DOMAIN_NO_ADDRESSES",
                    f"{domain} resolved to no addresses; nothing to block",
                    level=logging.WARNING,
                )
                summary.empty_domains.append(domain)
                return

            summary.addresses_resolved += len(addresses)
            for address in addresses:
                spec = domain_rule_spec(domain, address)
                if self.store.upsert_rule(spec):
                    summary.rules_created += 1
                    log_event("RULE_CREATED", f"Created rule '{spec.name}'",
                              {"domain": domain, "address": address})
                else:
                    summary.rules_updated += 1
                    log_event("RULE_UPDATED", f"Updated rule '{spec.name}'",
                              {"domain": domain, "address": address})
        except ResolutionError as e:
            summary.failed_domains.append(domain)
            log_event("DOMAIN_RESOLVE_FAILED", f"DNS resolution failed for {domain}: {e.reason}",
                      level=logging.ERROR)
        except RuntimeError as e:
            summary.failed_domains.append(domain)
            log_event("DOMAIN_RULE_FAILED", f"Firewall update failed for {domain}: {e}",
                      level=logging.ERROR)
        except Exception as e:
            summary.failed_domains.append(domain)
            log_event("DOMAIN_FAILED", f"Processing failed for {domain}: {type(e).__name__}: {e}",
                      level=logging.ERROR)

    def _apply_browsers(self, summary: RunSummary) -> None:
        # rule name -> path that claimed it in this run
        claimed: Dict[str, str] = {}
        for exe_path in self.config.browser_paths:
            if not Path(exe_path).is_file():
                logging.getLogger(__name__).debug("Browser not installed: %s", exe_path)
                continue

            spec = browser_rule_spec(exe_path)
            if spec.name in claimed:
                # One rule per filename; a second install would overwrite -Program
                log_event(
                    "BROWSER_RULE_NAME_TAKEN",
                    f"Not blocking {exe_path}: rule {spec.name} already covers {claimed[spec.name]}",
                    level=logging.WARNING,
                )
                continue
            claimed[spec.name] = exe_path

            try:
                created = self.store.upsert_rule(spec)
            except Exception as e:
                log_event("BROWSER_RULE_FAILED", f"Firewall update failed for {exe_path}: {e}",
                          level=logging.ERROR)
                continue

            if created:
                summary.browser_rules_created += 1
                log_event("BROWSER_RULE_CREATED", f"Created rule '{spec.name}'",
                          {"program": exe_path})
            else:
                summary.browser_rules_updated += 1
                log_event("BROWSER_RULE_UPDATED", f"Updated rule '{spec.name}'",
                          {"program": exe_path})

    # -- uninstall mode -----------------------------------------------------

    def uninstall(self) -> UninstallSummary:
        self._require_admin()

        log_event("RUN_START", "=== Run started (mode=uninstall) ===")
        handles = self.store.find_by_group(RULE_GROUP)

        if not handles:
            log_event("UNINSTALL_NO_RULES", f"No rules found in group '{RULE_GROUP}'; nothing to remove")
            log_event("RUN_END", "=== Run finished (mode=uninstall) ===")
            return UninstallSummary()

        self.store.delete_rules(handles)
        log_event(
            "UNINSTALL_DONE",
            f"Removed {len(handles)} rules from group '{RULE_GROUP}'",
            {"count": len(handles)},
        )
        log_event("RUN_END", "=== Run finished (mode=uninstall) ===")
        return UninstallSummary(rules_removed=len(handles))

    # -- status mode --------------------------------------------------------

    def status(self) -> List[RuleHandle]:
        handles = sorted(self.store.find_by_group(RULE_GROUP), key=lambda h: h.display_name)
        log_event("STATUS", f"{len(handles)} rules in group '{RULE_GROUP}'")
        for h in handles:
            log_event("STATUS_RULE", f"  {h.display_name}")
        return handles
