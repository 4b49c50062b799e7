"""Workflow nodes for the headless rebase graph."""

from rebasekit.workflow.nodes.collect_conflicts import CollectConflicts
from rebasekit.workflow.nodes.continue_rebase import ContinueRebase
from rebasekit.workflow.nodes.fetch import Fetch
from rebasekit.workflow.nodes.resolve_batch import ResolveBatch
from rebasekit.workflow.nodes.start_rebase import StartRebase
from rebasekit.workflow.nodes.verify import Verify

__all__ = [
    "Fetch",
    "StartRebase",
    "CollectConflicts",
    "ResolveBatch",
    "ContinueRebase",
    "Verify",
]
