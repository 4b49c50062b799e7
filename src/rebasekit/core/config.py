"""Application configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from rebasekit.core.base import BaseConfig, BaseState
from rebasekit.core.log import Logger
from rebasekit.core.yaml_settings import YamlWithIncludesSettingsSource

# Names usable in templates besides the State itself, e.g.
# {platformdirs.user_state_dir} or {os.getcwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

# ============================================================
# CONFIG SECTIONS
# ============================================================

class GitConfig(BaseConfig):
    """Repository and rebase settings."""

    repo_path: Path = Field(
        default=Path("."),
        description="Working copy whose branch is rebased"
    )
    remote: str = Field(
        default="origin",
        description="Remote the target branch is fetched from"
    )
    target_branch: str = Field(
        default="main",
        description="Base branch to rebase onto (fetched from the remote)"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description=(
            "Maximum resolve-and-continue cycles before the rebase "
            "is aborted"
        ),
    )
    detect_cycles: bool = Field(
        default=True,
        description=(
            "Abort when a conflict batch repeats an earlier batch "
            "exactly (same files, same conflicted content)"
        ),
    )
    timeout: int | None = Field(
        default=600,
        description="Seconds before a single git command is killed",
    )


class LLMConfig(BaseConfig):
    """Model provider and call settings."""

    model: str = Field(
        default="openai:gpt-4o",
        description=(
            "Model used for resolution. Format 'provider:model' "
            "(e.g. openai:gpt-4o, anthropic:claude-sonnet-4-0)"
        )
    )
    api_key: str | None = Field(
        default=None,
        description=(
            "Provider API key. When unset the provider reads its own "
            "environment variable (OPENAI_API_KEY, ...)"
        )
    )
    base_url: str | None = Field(
        default=None,
        description="Base URL override for OpenAI-compatible endpoints"
    )
    retries: int = Field(
        default=1,
        description="Agent-level retries for malformed model responses"
    )
    max_parallel: int = Field(
        default=4,
        ge=1,
        description="Concurrent model calls within one conflict batch"
    )


class BackupConfig(BaseConfig):
    """Safety branch created before AI edits are applied."""

    enabled: bool = Field(default=True, description="Create backups")
    branch_template: str = Field(
        default="backup_kit/{session_id}",
        description="Backup branch name; {session_id} is substituted"
    )


class Config(BaseConfig):
    """All configuration sections."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    git: GitConfig = Field(default_factory=GitConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)

    log_level: str = Field(
        default="info",
        alias="log-level",
        description=(
            "Console log level: 'spew', 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "rebasekit"
        ),
        description="Root directory for log files",
    )
    run_name: str = Field(
        default="rebase",
        description="Name of this run; used for log file paths",
    )
    prompts: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Prompt templates for the resolution model",
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode='after')
    def _setup_logger(self) -> Config:
        """Install the global logger from the loaded logger section."""
        from rebasekit.core.log import setup_logger
        from rebasekit.core.yaml_settings import _cleanup_bootstrap_logger

        if self.logger is None:
            self.logger = Logger(level=self.log_level)

        self.logger = setup_logger(
            log_root=self.log_root,
            run_name=self.run_name,
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            logfire=self.logger.logfire,
            level=self.log_level,
        )
        _cleanup_bootstrap_logger()
        return self


# ============================================================
# STATE (config loaded from every source)
# ============================================================

class State(BaseSettings):
    """Loaded configuration, as handed to every command.

    Per-rebase runtime data does not live here: each run creates its
    own session object (see rebasekit.workflow), so several
    repositories can be driven from one process.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)"
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to deep-merge on top of the "
            "defaults. Use --include on the CLI or include: in YAML."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="rebasekit.yaml",
        env_file=".env",
        env_prefix="REBASEKIT_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Source priority, highest first: init, YAML, .env, env, secrets."""
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        """Expand {config.x.y} style templates in every string field."""
        self._substitute_recursive(self)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                obj[i] = self._substitute_value(item)

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            substituted = self._substitute_string(str(value))
            return value if substituted == str(value) else Path(substituted)
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {dotted.path} references that resolve; leave others.

        Examples:
            "{config.git.repo_path}/.git" → "/home/me/repo/.git"
            "{platformdirs.user_log_dir}" → "~/.local/state/rebasekit/log"
        """
        def replace(match):
            parts = match.group(1).split(".")
            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('rebasekit', appauthor=False)
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(r'\{([a-z._]+)\}', replace, value)


__all__ = [
    "State",
    "Config",
    "GitConfig",
    "LLMConfig",
    "BackupConfig",
    "BaseConfig",
    "BaseState",
]
