# ai_blocker/firewall_win.py

from __future__ import annotations

import ctypes
import json
import subprocess
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from .models import RuleHandle, RuleSpec

POWERSHELL = ["powershell", "-NoProfile", "-NonInteractive", "-Command"]

# Remove-NetFirewallRule takes the ids on the command line
DELETE_CHUNK = 200

_DIRECTIONS = {"in": "Inbound", "out": "Outbound"}
_ACTIONS = {"allow": "Allow", "block": "Block"}


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def is_admin() -> bool:
    """Return True if the current process has administrator rights."""
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        return False


def _ps_quote(value: str) -> str:
    """Single-quote a value for PowerShell (no variable expansion)."""
    return "'" + str(value).replace("'", "''") + "'"


def _run_powershell(script: str) -> subprocess.CompletedProcess:
    """
    Run a PowerShell snippet.

    Raises RuntimeError on non-zero exit code, with stderr/stdout included.
    """
    cmd = POWERSHELL + [script]

    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        check=False,
    )

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        stdout = (result.stdout or "").strip()
        msg = stderr or stdout or "Unknown error from PowerShell"
        raise RuntimeError(
            f"PowerShell failed (code {result.returncode}): {script}\n{msg}"
        )

    return result


def _parse_handles(stdout: str) -> List[RuleHandle]:
    """
    Parse ConvertTo-Json output of (Name, DisplayName) objects.
    A single rule serializes as an object, several as a list.
    """
    text = (stdout or "").strip()
    if not text:
        return []

    data: Any = json.loads(text)
    if isinstance(data, dict):
        data = [data]

    return [
        RuleHandle(rule_id=item["Name"], display_name=item.get("DisplayName") or "")
        for item in data
        if item and item.get("Name")
    ]


def _rule_args(spec: RuleSpec) -> str:
    """Parameters shared by New-NetFirewallRule and Set-NetFirewallRule."""
    args = [
        f"-Direction {_DIRECTIONS[spec.direction]}",
        f"-Action {_ACTIONS[spec.action]}",
        f"-Enabled {'True' if spec.enabled else 'False'}",
        f"-Profile {spec.profile.capitalize()}",
        f"-Description {_ps_quote(spec.description)}",
    ]
    if spec.remote_address:
        args.append(f"-RemoteAddress {_ps_quote(spec.remote_address)}")
    if spec.program:
        args.append(f"-Program {_ps_quote(spec.program)}")
    return " ".join(args)


# ---------------------------------------------------------------------------
# Firewall store interface
# ---------------------------------------------------------------------------

class FirewallStore(ABC):
    """
    The handful of rule-store operations the reconciler needs.
    """

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[RuleHandle]:
        """Return the rule with this display name, or None."""

    @abstractmethod
    def find_by_group(self, group: str) -> List[RuleHandle]:
        """Return every rule tagged with this group."""

    @abstractmethod
    def create_rule(self, spec: RuleSpec) -> None:
        ...

    @abstractmethod
    def update_rule(self, spec: RuleSpec) -> None:
        """Force an existing rule (matched by display name) to spec."""

    @abstractmethod
    def delete_rules(self, handles: List[RuleHandle]) -> None:
        ...

    def upsert_rule(self, spec: RuleSpec) -> bool:
        """
        Create the rule if absent, otherwise overwrite it in place.
        Returns True when a new rule was created.
        """
        if self.find_by_name(spec.name) is None:
            self.create_rule(spec)
            return True
        self.update_rule(spec)
        return False


class PowerShellFirewallStore(FirewallStore):
    """
    Windows Firewall through the NetSecurity cmdlets
    (Get/New/Set/Remove-NetFirewallRule).
    """

    def _query(self, selector: str) -> List[RuleHandle]:
        script = (
            f"$r = @(Get-NetFirewallRule {selector} -ErrorAction SilentlyContinue); "
            "if ($r.Count -gt 0) { "
            "ConvertTo-Json -Compress -InputObject @($r | Select-Object Name, DisplayName) "
            "}; exit 0"
        )
        result = _run_powershell(script)
        return _parse_handles(result.stdout)

    def find_by_name(self, name: str) -> Optional[RuleHandle]:
        handles = self._query(f"-DisplayName {_ps_quote(name)}")
        return handles[0] if handles else None

    def find_by_group(self, group: str) -> List[RuleHandle]:
        return self._query(f"-Group {_ps_quote(group)}")

    def create_rule(self, spec: RuleSpec) -> None:
        script = (
            f"New-NetFirewallRule -DisplayName {_ps_quote(spec.name)} "
            f"-Group {_ps_quote(spec.group)} {_rule_args(spec)} | Out-Null"
        )
        _run_powershell(script)

    def update_rule(self, spec: RuleSpec) -> None:
        # Group has no Set-NetFirewallRule parameter; it is written back
        # through the rule object instead.
        script = (
            f"$r = Get-NetFirewallRule -DisplayName {_ps_quote(spec.name)} -ErrorAction Stop; "
            f"$r.Group = {_ps_quote(spec.group)}; "
            "Set-NetFirewallRule -InputObject $r; "
            f"Set-NetFirewallRule -DisplayName {_ps_quote(spec.name)} {_rule_args(spec)}"
        )
        _run_powershell(script)

    def delete_rules(self, handles: List[RuleHandle]) -> None:
        ids = [h.rule_id for h in handles]
        for start in range(0, len(ids), DELETE_CHUNK):
            chunk = ids[start:start + DELETE_CHUNK]
            names = ",".join(_ps_quote(i) for i in chunk)
            _run_powershell(f"Remove-NetFirewallRule -Name {names}")
