"""Query compilation and execution."""

from .executor import Executor, execute

__all__ = ["Executor", "execute"]
