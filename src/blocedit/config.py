"""blocedit.toml loading and editor settings."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_NAME = "blocedit.toml"


@dataclass(frozen=True, slots=True)
class Settings:
    """Settings shared by the CLI and the language server."""

    indent_width: int = 4
    tab_width: int = 8
    comment_start: str = "//"
    linter_command: list[str] = field(default_factory=list)
    linter_timeout: float = 10.0


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / CONFIG_NAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def settings_from_config(config: dict[str, Any]) -> Settings:
    """Pick the known keys out of a loaded config, ignoring bad values."""
    defaults = Settings()
    indent_width = defaults.indent_width
    tab_width = defaults.tab_width
    comment_start = defaults.comment_start
    linter_command: list[str] = []
    linter_timeout = defaults.linter_timeout

    cfg_indent = config.get("indent")
    if isinstance(cfg_indent, dict):
        width = cfg_indent.get("width")
        if isinstance(width, int) and width > 0:
            indent_width = width
        tabs = cfg_indent.get("tab_width")
        if isinstance(tabs, int) and tabs > 0:
            tab_width = tabs

    cfg_syntax = config.get("syntax")
    if isinstance(cfg_syntax, dict):
        comment = cfg_syntax.get("comment")
        if isinstance(comment, str) and comment:
            comment_start = comment

    cfg_linter = config.get("linter")
    if isinstance(cfg_linter, dict):
        command = cfg_linter.get("command")
        if isinstance(command, str):
            linter_command = command.split()
        elif isinstance(command, list):
            linter_command = [str(arg) for arg in command]
        timeout = cfg_linter.get("timeout")
        if isinstance(timeout, (int, float)):
            linter_timeout = float(timeout)

    return Settings(
        indent_width=indent_width,
        tab_width=tab_width,
        comment_start=comment_start,
        linter_command=linter_command,
        linter_timeout=linter_timeout,
    )
