"""One-time task rewards."""

from gigvault.modules.tasks.service import TaskService

__all__ = ["TaskService"]
