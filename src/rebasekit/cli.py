#!/usr/bin/env python3
"""rebasekit CLI - AI-assisted conflict resolution for git rebases."""

import asyncio

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from rebasekit.command.abort import AbortCommand
from rebasekit.command.rebase import RebaseCommand
from rebasekit.command.resolve import ResolveCommand
from rebasekit.command.review import ReviewCommand
from rebasekit.core.config import State
from rebasekit.core.log import logger


class CliState(State):
    """AI-assisted conflict resolution for git rebases.

    rebasekit rebases a branch onto a moving base branch and hands
    each conflicted file to an LLM. Headless runs apply a batch only
    when every file in it resolved; the review command lets you
    approve resolutions file by file first.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.git.target_branch value)
    2. rebasekit.yaml in the current directory, plus --include files
    3. .env file for secrets
    4. Environment variables
       (REBASEKIT_CONFIG__LLM__MODEL=value)

    The [JSON] options allow setting multiple values at once:
      --config.git '{"target_branch": "develop", "max_retries": 5}'
    """

    rebase: CliSubCommand[RebaseCommand]
    review: CliSubCommand[ReviewCommand]
    resolve: CliSubCommand[ResolveCommand]
    abort: CliSubCommand[AbortCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            import sys
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Use logger as context manager to ensure files are closed on exit
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
