# ai_blocker/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional

Action = Literal["allow", "block"]
Direction = Literal["in", "out"]
Mode = Literal["block", "uninstall", "status"]


@dataclass
class RuleSpec:
    """
    Canonical desired state of one firewall rule.

    Exactly one of remote_address / program is set:
      - per-IP domain rules carry remote_address
      - browser rules carry program
    """
    name: str                              # display name, our identity key
    group: str
    description: str = ""
    remote_address: Optional[str] = None
    program: Optional[str] = None
    direction: Direction = "out"
    action: Action = "block"
    enabled: bool = True
    profile: str = "any"                   # Domain, Private, Public


@dataclass(frozen=True)
class RuleHandle:
    """
    Reference to a rule that currently exists in the firewall store.
    """
    rule_id: str           # store-assigned unique id (GUID on Windows)
    display_name: str


@dataclass
class RunConfig:
    """
    Everything one invocation needs, passed explicitly to the Reconciler.
    """
    domains: List[str]
    log_path: Path
    block_browsers: bool = False
    browser_paths: List[str] = field(default_factory=list)
    mode: Mode = "block"


@dataclass
class RunSummary:
    addresses_resolved: int = 0
    rules_created: int = 0
    rules_updated: int = 0
    failed_domains: List[str] = field(default_factory=list)
    empty_domains: List[str] = field(default_factory=list)
    browser_rules_created: int = 0
    browser_rules_updated: int = 0


@dataclass
class UninstallSummary:
    rules_removed: int = 0
