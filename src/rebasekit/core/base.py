"""Base classes for configuration and runtime models.

Every config section and every runtime session object in rebasekit
derives from one of the classes here, so that closing the top-level
object releases everything below it (log files, exporters, open
sessions). Kept separate from config.py and log.py so both can import
it without a cycle.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

# ============================================================
# CLOSEABLE PROTOCOL AND BASE CLASS
# ============================================================

@runtime_checkable
class Closeable(Protocol):
    """Anything that can release its resources with close()."""

    def close(self) -> None:
        """Release resources."""
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields on close().

    Usable as a context manager. A failing child does not stop the
    remaining children from being closed; the failure is reported on
    stderr because the logger may itself be the thing being closed.

    Cascade: State → Config → Logger → Sink.
    """

    def close(self):
        """Close every field value that implements close()."""
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None or not isinstance(child, Closeable):
                continue
            try:
                child.close()
            except Exception as e:
                print(
                    f"Warning: Error closing {field_name}: {e}",
                    file=sys.stderr,
                )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


# ============================================================
# MARKER BASE CLASSES
# ============================================================

class BaseConfig(BaseCloseable):
    """Configuration section loaded from YAML/env/CLI."""
    pass


class BaseState(BaseCloseable):
    """Runtime state mutated while a workflow runs."""
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
