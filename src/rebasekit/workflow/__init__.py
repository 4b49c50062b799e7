"""Headless rebase orchestration and the interactive review workflow."""
