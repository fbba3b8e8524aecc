# ai_blocker/config.py

from __future__ import annotations

import json
import os
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .models import Mode, RunConfig

# Repo root (config.json and logs/ live here by default)
ROOT_DIR = Path(__file__).resolve().parent.parent
CONFIG_PATH = ROOT_DIR / "config.json"
DEFAULT_LOG_PATH = ROOT_DIR / "logs" / "ai_blocker.log"

# Every rule we create starts with this prefix and carries this group.
# The group is the only selector used by uninstall, so never reuse it.
RULE_PREFIX = "AIBlock_"
RULE_GROUP = "AI Domain Blocker"

DEFAULT_DOMAINS: List[str] = [
    "chat.openai.com",
    "chatgpt.com",
    "openai.com",
    "api.openai.com",
    "claude.ai",
    "anthropic.com",
    "gemini.google.com",
    "bard.google.com",
    "copilot.microsoft.com",
    "perplexity.ai",
    "poe.com",
    "character.ai",
    "you.com",
    "chat.deepseek.com",
    "deepseek.com",
    "grok.com",
    "x.ai",
    "chat.mistral.ai",
    "pi.ai",
    "huggingface.co",
]

DEFAULT_BROWSER_PATHS: List[str] = [
    r"%ProgramFiles%\Google\Chrome\Application\chrome.exe",
    r"%ProgramFiles(x86)%\Google\Chrome\Application\chrome.exe",
    r"%LOCALAPPDATA%\Google\Chrome\Application\chrome.exe",
    r"%ProgramFiles(x86)%\Microsoft\Edge\Application\msedge.exe",
    r"%ProgramFiles%\Microsoft\Edge\Application\msedge.exe",
    r"%ProgramFiles%\Mozilla Firefox\firefox.exe",
    r"%ProgramFiles(x86)%\Mozilla Firefox\firefox.exe",
    r"%ProgramFiles%\BraveSoftware\Brave-Browser\Application\brave.exe",
    r"%LOCALAPPDATA%\BraveSoftware\Brave-Browser\Application\brave.exe",
    r"%LOCALAPPDATA%\Programs\Opera\opera.exe",
]


def normalize_domains(domains: Iterable[str]) -> List[str]:
    """
    Strip, lower-case and de-duplicate domains, keeping first-seen order.
    Blank entries and a trailing root dot are dropped.
    """
    seen: List[str] = []
    for d in domains:
        name = (d or "").strip().lower().rstrip(".")
        if name and name not in seen:
            seen.append(name)
    return seen


def load_domains_file(path: Path) -> List[str]:
    """
    Read a plain-text domain list: one domain per line, '#' starts a comment.
    """
    domains: List[str] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            entry = line.split("#", 1)[0].strip()
            if entry:
                domains.append(entry)
    return domains


def load_raw_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the JSON config file and return it as a plain dict.
    A missing default config.json yields an empty dict (defaults apply);
    a missing file that was asked for explicitly raises FileNotFoundError.
    """
    if path is None:
        cfg_path = CONFIG_PATH
        if not cfg_path.exists():
            return {}
    else:
        cfg_path = Path(path)
        if not cfg_path.exists():
            raise FileNotFoundError(f"Config file not found: {cfg_path}")

    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except JSONDecodeError as e:
        raise ValueError(f"Config file is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a JSON object")
    return raw


def _list_of_str(raw: Dict[str, Any], key: str) -> Optional[List[str]]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Config key '{key}' must be a list of strings")
    return value


def expand_browser_paths(paths: Iterable[str]) -> List[str]:
    # %ProgramFiles% etc. stay literal on hosts where they are unset,
    # so such entries simply never exist on disk.
    return [os.path.expandvars(p) for p in paths]


def build_run_config(
    raw: Optional[Dict[str, Any]] = None,
    domains: Optional[Iterable[str]] = None,
    log_path: Optional[str] = None,
    block_browsers: Optional[bool] = None,
    mode: Mode = "block",
) -> RunConfig:
    """
    Merge defaults, the raw config dict and explicit overrides (CLI flags)
    into a RunConfig. Explicit arguments win over the config file.
    """
    raw = raw or {}

    if domains is not None:
        domain_list = list(domains)
    else:
        domain_list = _list_of_str(raw, "domains") or list(DEFAULT_DOMAINS)

    if log_path is None:
        log_path = raw.get("log_path")
        if log_path is not None and not isinstance(log_path, str):
            raise ValueError("Config key 'log_path' must be a string")
        log_path = log_path or str(DEFAULT_LOG_PATH)

    if block_browsers is None:
        block_browsers = raw.get("block_browsers", False)
        if not isinstance(block_browsers, bool):
            raise ValueError("Config key 'block_browsers' must be true or false")

    browser_paths = _list_of_str(raw, "browser_paths") or DEFAULT_BROWSER_PATHS

    return RunConfig(
        domains=normalize_domains(domain_list),
        log_path=Path(log_path),
        block_browsers=block_browsers,
        browser_paths=expand_browser_paths(browser_paths),
        mode=mode,
    )
