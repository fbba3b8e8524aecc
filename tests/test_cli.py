import json

import pytest

from ai_blocker.cli import main
from ai_blocker.config import RULE_GROUP


def _run(argv, resolver, store, admin=True):
    return main(argv, resolver=resolver, store=store, admin_check=lambda: admin)


def test_block_then_rerun_appends_to_log(tmp_path, fake_resolver, store, capsys):
    log = tmp_path / "logs" / "run.log"
    resolver = fake_resolver({"example.com": ["93.184.216.34"]})
    argv = ["--domain", "example.com", "--log-path", str(log)]

    assert _run(argv, resolver, store) == 0
    assert _run(argv, resolver, store) == 0

    text = log.read_text(encoding="utf-8")
    assert text.count("Run started (mode=block") == 2
    assert "Created rule 'AIBlock_example.com_93.184.216.34'" in text
    assert "Updated rule 'AIBlock_example.com_93.184.216.34'" in text
    assert "[INFO]" in text
    assert len(store.rules) == 1

    out = capsys.readouterr().out
    assert "Block rules applied/updated" in out
    assert str(log) in out


def test_not_admin_exits_non_zero(tmp_path, fake_resolver, store, capsys):
    resolver = fake_resolver({"example.com": ["93.184.216.34"]})
    code = _run(["--domain", "example.com", "--log-path", str(tmp_path / "r.log")],
                resolver, store, admin=False)

    assert code == 1
    assert store.rules == {}
    assert resolver.calls == []
    assert "Administrator" in capsys.readouterr().err


def test_uninstall_mode(tmp_path, fake_resolver, store, capsys):
    log = tmp_path / "r.log"
    resolver = fake_resolver({"example.com": ["192.0.2.1", "192.0.2.2"]})
    _run(["--domain", "example.com", "--log-path", str(log)], resolver, store)

    assert _run(["--uninstall", "--log-path", str(log)], resolver, store) == 0
    assert store.find_by_group(RULE_GROUP) == []
    assert _run(["--uninstall", "--log-path", str(log)], resolver, store) == 0

    text = log.read_text(encoding="utf-8")
    assert "Removed 2 rules" in text
    assert "No rules found" in text
    assert resolver.calls == ["example.com"]


def test_status_mode_needs_no_admin(tmp_path, fake_resolver, store):
    log = tmp_path / "r.log"
    resolver = fake_resolver({"example.com": ["192.0.2.1"]})
    _run(["--domain", "example.com", "--log-path", str(log)], resolver, store)

    assert _run(["--status", "--log-path", str(log)], resolver, store, admin=False) == 0
    assert "AIBlock_example.com_192.0.2.1" in log.read_text(encoding="utf-8")


def test_domains_file_and_flag_combine(tmp_path, fake_resolver, store):
    domains = tmp_path / "domains.txt"
    domains.write_text("a.example\n# skip\n", encoding="utf-8")
    resolver = fake_resolver({"a.example": ["192.0.2.1"], "b.example": ["192.0.2.2"]})

    _run(["--domains-file", str(domains), "--domain", "B.example",
          "--log-path", str(tmp_path / "r.log")], resolver, store)

    assert resolver.calls == ["a.example", "b.example"]


def test_config_file_drives_defaults(tmp_path, fake_resolver, store):
    log = tmp_path / "from-config.log"
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"domains": ["claude.ai"], "log_path": str(log)}), encoding="utf-8")
    resolver = fake_resolver({"claude.ai": ["160.79.104.10"]})

    assert _run(["--config", str(cfg)], resolver, store) == 0
    assert resolver.calls == ["claude.ai"]
    assert log.exists()


def test_bad_config_file_exits_2(tmp_path, fake_resolver, store, capsys):
    cfg = tmp_path / "config.json"
    cfg.write_text("{oops", encoding="utf-8")

    assert _run(["--config", str(cfg)], fake_resolver({}), store) == 2
    assert "not valid JSON" in capsys.readouterr().err


def test_failed_domains_still_exit_zero(tmp_path, fake_resolver, store):
    resolver = fake_resolver({"ok.example": ["192.0.2.1"]})
    code = _run(["--domain", "missing.example", "--domain", "ok.example",
                 "--log-path", str(tmp_path / "r.log")], resolver, store)

    assert code == 0
    assert len(store.rules) == 1


def test_modes_are_mutually_exclusive(fake_resolver, store):
    with pytest.raises(SystemExit) as exc:
        _run(["--uninstall", "--block-browsers"], fake_resolver({}), store)
    assert exc.value.code == 2


def test_missing_explicit_config_exits_2(tmp_path, fake_resolver, store, capsys):
    code = _run(["--config", str(tmp_path / "typo.json")], fake_resolver({}), store)

    assert code == 2
    assert "Config file not found" in capsys.readouterr().err
    assert store.rules == {}


def test_wrongly_typed_config_exits_2(tmp_path, fake_resolver, store):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"block_browsers": "false"}), encoding="utf-8")

    assert _run(["--config", str(cfg)], fake_resolver({}), store) == 2


def test_not_admin_writes_no_log(tmp_path, fake_resolver, store):
    log_dir = tmp_path / "logs"
    code = _run(["--domain", "example.com", "--log-path", str(log_dir / "r.log")],
                fake_resolver({"example.com": ["192.0.2.1"]}), store, admin=False)

    assert code == 1
    assert not log_dir.exists()


def test_firewall_failure_during_uninstall_is_logged(tmp_path, fake_resolver, store, capsys):
    def broken_find(group):
        raise RuntimeError("PowerShell failed (code 1): Access is denied.")

    store.find_by_group = broken_find
    log = tmp_path / "r.log"

    assert _run(["--uninstall", "--log-path", str(log)], fake_resolver({}), store) == 1

    text = log.read_text(encoding="utf-8")
    assert "[ERROR]" in text
    assert "Access is denied" in text
    assert "Access is denied" in capsys.readouterr().err
