"""Layered YAML configuration with include: support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

CONFIG_FILENAME = "rebasekit.yaml"
DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"

# Config loading runs before the real logger exists, so it gets a
# throwaway console logger of its own.
_bootstrap_logger = None


def _get_bootstrap_logger():
    global _bootstrap_logger
    if _bootstrap_logger is None:
        from rebasekit.core.log import Logger
        _bootstrap_logger = Logger()
        _bootstrap_logger.setup(log_root=Path.home(), run_name="bootstrap")
    return _bootstrap_logger


def _cleanup_bootstrap_logger():
    """Close the bootstrap logger once Config has installed the real one."""
    global _bootstrap_logger
    if _bootstrap_logger:
        _bootstrap_logger.close()
        _bootstrap_logger = None


def cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every `--include FILE` pair in argv."""
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        i += 1
    return includes


def deep_merge(base: dict, override: dict) -> dict:
    """Return base with override merged in recursively; override wins."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML source that layers several files and follows include:.

    Load order, later wins:
        package defaults < user config < ./rebasekit.yaml < --include
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        base = yaml_file or settings_cls.model_config.get("yaml_file")
        includes = cli_includes(sys.argv)
        if base and includes:
            base = ([base] if isinstance(base, str) else list(base))
            yaml_file = base + includes
        elif includes:
            yaml_file = includes
        else:
            yaml_file = base

        super().__init__(settings_cls, yaml_file)

    def _candidate_files(self, files) -> list[Path]:
        candidates = [
            DEFAULTS_FILE,
            Path(user_config_dir("rebasekit", appauthor=False))
            / CONFIG_FILENAME,
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            candidates.extend(Path(f).expanduser() for f in files)
        return candidates

    def _read_files(self, files):
        result = {}
        for file_path in self._candidate_files(files):
            if not file_path.is_file():
                _get_bootstrap_logger().debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
                continue
            with _get_bootstrap_logger().span(
                "Configuration loading", file=str(file_path)
            ):
                data = self._load_file_recursive(file_path, set())
                result = deep_merge(result, data)
        return result

    def _load_file_recursive(self, filepath: Path, visited: set[Path]) -> dict:
        """Load one file, resolving its include: list depth first.

        Raises:
            ValueError: On a circular include
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        for inc in includes:
            inc_path = Path(inc).expanduser()
            if not inc_path.is_absolute():
                inc_path = filepath.parent / inc_path
            # Including file overrides what it includes
            data = deep_merge(
                self._load_file_recursive(inc_path, visited.copy()), data
            )
        return data
