"""Git access for rebasekit."""

from rebasekit.git.gateway import GitCommandError, GitGateway

__all__ = ["GitGateway", "GitCommandError"]
