import logging
from typing import Dict, List, Optional, Union

import pytest

from ai_blocker.activity_log import LOGGER_NAME, close_logging
from ai_blocker.firewall_win import FirewallStore
from ai_blocker.models import RuleHandle, RuleSpec, RunConfig
from ai_blocker.resolver import ResolutionError


class FakeResolver:
    """Maps domain -> address list, or -> exception to raise."""

    def __init__(self, answers: Dict[str, Union[List[str], Exception]]):
        self.answers = answers
        self.calls: List[str] = []

    def resolve(self, domain: str) -> List[str]:
        self.calls.append(domain)
        answer = self.answers.get(domain, ResolutionError(domain, "Name or service not known"))
        if isinstance(answer, Exception):
            raise answer
        return list(answer)


class FakeFirewallStore(FirewallStore):
    def __init__(self):
        self.rules: Dict[str, RuleSpec] = {}
        self.ids: Dict[str, str] = {}
        self.create_calls = 0
        self.update_calls = 0
        self.delete_calls = 0
        self.fail_on: set = set()
        self._next_id = 0

    def find_by_name(self, name: str) -> Optional[RuleHandle]:
        if name in self.rules:
            return RuleHandle(self.ids[name], name)
        return None

    def find_by_group(self, group: str) -> List[RuleHandle]:
        return [
            RuleHandle(self.ids[name], name)
            for name, spec in self.rules.items()
            if spec.group == group
        ]

    def create_rule(self, spec: RuleSpec) -> None:
        if spec.name in self.fail_on:
            raise RuntimeError(f"PowerShell failed (code 1): access denied for {spec.name}")
        assert spec.name not in self.rules, f"duplicate rule {spec.name}"
        self.create_calls += 1
        self._next_id += 1
        self.ids[spec.name] = f"{{guid-{self._next_id}}}"
        self.rules[spec.name] = spec

    def update_rule(self, spec: RuleSpec) -> None:
        assert spec.name in self.rules, f"missing rule {spec.name}"
        self.update_calls += 1
        self.rules[spec.name] = spec

    def delete_rules(self, handles: List[RuleHandle]) -> None:
        self.delete_calls += 1
        for h in handles:
            self.rules.pop(h.display_name, None)
            self.ids.pop(h.display_name, None)

    def add_foreign(self, name: str, group: str = "Some Other Tool") -> None:
        self.create_rule(RuleSpec(name=name, group=group, remote_address="10.0.0.1"))


@pytest.fixture
def fake_resolver():
    return FakeResolver


@pytest.fixture
def store():
    return FakeFirewallStore()


@pytest.fixture
def make_config(tmp_path):
    def _make(domains, block_browsers=False, browser_paths=None):
        return RunConfig(
            domains=list(domains),
            log_path=tmp_path / "blocker.log",
            block_browsers=block_browsers,
            browser_paths=list(browser_paths or []),
        )
    return _make


@pytest.fixture(autouse=True)
def activity_caplog(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    yield caplog
    close_logging()
