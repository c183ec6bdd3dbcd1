"""
Task Service
============

Purpose
-------
One-time task rewards. An account may complete each task at most once,
including under concurrent duplicate submissions.

Domain
------
- claim_task(): completion insert + credit in one unit
- list_tasks(): active tasks with a per-account `completed` flag
- create_task() / set_task_active(): catalog maintenance

Design Notes
------------
- The completion insert is `INSERT ... ON CONFLICT (account_id, task_id)
  DO NOTHING RETURNING id`. No row back means another request already
  completed the task; the unit aborts with `AlreadyClaimedError`.
- A concurrent duplicate waits on the unique index until the first unit
  commits, then sees the conflict. There is no read-then-write window.

Events
------
- task.claimed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from gigvault.core.database.service import DatabaseService
from gigvault.core.logging.logger import get_logger
from gigvault.core.validation.input_validator import InputValidator
from gigvault.database.models import TaskCompletion, TaskDefinition
from gigvault.modules.shared.base_repository import BaseRepository
from gigvault.modules.shared.base_service import BaseService
from gigvault.modules.shared.exceptions import (
    AlreadyClaimedError,
    NotFoundError,
    TaskInactiveError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from gigvault.core.config.manager import ConfigManager
    from gigvault.core.database.retry_policy import DatabaseRetryPolicy
    from gigvault.core.event.bus import EventBus
    from gigvault.modules.ledger.service import LedgerService


class TaskService(BaseService):
    """
    Task claim resolver.

    Public Methods
    --------------
    - claim_task() -> {reward, new_balance}
    - list_tasks() -> active tasks with `completed`
    - create_task() / set_task_active()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger: LedgerService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, retry_policy)
        self._ledger = ledger
        self._tasks = BaseRepository[TaskDefinition](
            model_class=TaskDefinition,
            logger=get_logger(f"{__name__}.TaskRepository"),
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def claim_task(self, identity: int, task_id: int) -> Dict[str, Any]:
        """
        Complete a task and credit its reward, once per account.

        Raises:
            NotFoundError: Unknown account or task
            TaskInactiveError: Task is deactivated
            AlreadyClaimedError: Account already completed this task
        """
        identity = InputValidator.validate_caller(identity, "claim_task")
        task_id = InputValidator.validate_positive_integer(task_id, "task_id")

        async def _work(session: AsyncSession) -> Dict[str, Any]:
            account = await self._ledger.require_account(session, identity)
            if account.is_banned:
                raise UnauthorizedError("claim_task", "account is banned")

            task = await self._tasks.get(session, task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            if not task.is_active:
                raise TaskInactiveError(task_id)

            stmt = (
                insert(TaskCompletion)
                .values(account_id=account.id, task_id=task.id)
                .on_conflict_do_nothing(index_elements=["account_id", "task_id"])
                .returning(TaskCompletion.id)
            )
            if (await session.execute(stmt)).scalar_one_or_none() is None:
                raise AlreadyClaimedError(identity, task_id)

            new_balance = await self._ledger.apply_delta(
                session, account.id, task.reward, reason=f"task:{task.id}"
            )
            return {"reward": task.reward, "new_balance": new_balance}

        result = await self.run_atomic(
            "tasks.claim",
            _work,
            context={"account_identity": identity, "task_id": task_id},
        )

        self.log_operation("claim_task", account_identity=identity, task_id=task_id, **result)
        await self.emit_event(
            "task.claimed",
            {"account_identity": identity, "task_id": task_id, **result},
        )
        return result

    async def create_task(
        self, title: str, reward: int, link: Optional[str] = None
    ) -> Dict[str, Any]:
        title = InputValidator.validate_string(title, "title", min_length=1, max_length=200)
        reward = InputValidator.validate_integer(reward, "reward", min_value=0)

        async def _work(session: AsyncSession) -> TaskDefinition:
            task = self._tasks.add(
                session, TaskDefinition(title=title, reward=reward, link=link)
            )
            await self._tasks.flush(session)
            return task

        task = await self.run_atomic("tasks.create", _work)
        self.log_operation("create_task", task_id=task.id, reward=reward)
        return self._serialize(task)

    async def set_task_active(self, task_id: int, is_active: bool) -> Dict[str, Any]:
        task_id = InputValidator.validate_positive_integer(task_id, "task_id")

        async def _work(session: AsyncSession) -> TaskDefinition:
            task = await self._tasks.get_for_update(session, task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            task.is_active = bool(is_active)
            return task

        task = await self.run_atomic("tasks.set_active", _work)
        self.log_operation("set_task_active", task_id=task_id, is_active=task.is_active)
        return self._serialize(task)

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def list_tasks(self, identity: int) -> List[Dict[str, Any]]:
        """Active tasks in creation order, flagged with the caller's completions."""
        identity = InputValidator.validate_caller(identity, "list_tasks")

        async with DatabaseService.get_session() as session:
            tasks = await self._tasks.find_many_where(
                session,
                TaskDefinition.is_active.is_(True),
                order_by=[TaskDefinition.id],
            )

            completed: set[int] = set()
            account = await self._ledger.get_account_by_identity(session, identity)
            if account is not None:
                rows = await session.scalars(
                    select(TaskCompletion.task_id).where(
                        TaskCompletion.account_id == account.id
                    )
                )
                completed = set(rows.all())

        return [
            {**self._serialize(task), "completed": task.id in completed}
            for task in tasks
        ]

    @staticmethod
    def _serialize(task: TaskDefinition) -> Dict[str, Any]:
        return {
            "task_id": task.id,
            "title": task.title,
            "reward": task.reward,
            "link": task.link,
            "is_active": task.is_active,
        }
