"""CLI command modules for rebasekit."""

from rebasekit.command.abort import AbortCommand
from rebasekit.command.rebase import RebaseCommand
from rebasekit.command.resolve import ResolveCommand
from rebasekit.command.review import ReviewCommand

__all__ = ["RebaseCommand", "ReviewCommand", "ResolveCommand", "AbortCommand"]
