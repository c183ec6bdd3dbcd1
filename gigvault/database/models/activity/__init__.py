"""Activity models: tasks, their completions and wheel spins."""

from .spin_record import SpinRecord
from .task import TaskCompletion, TaskDefinition

__all__ = ["TaskDefinition", "TaskCompletion", "SpinRecord"]
