"""LLM model wrappers."""

from rebasekit.model.resolver import (
    ConflictModel,
    inject_provider_params,
    parse_analysis,
)

__all__ = [
    "ConflictModel",
    "inject_provider_params",
    "parse_analysis",
]
