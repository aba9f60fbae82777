"""The one place a task's assignee changes.

Both the task.assigned consumer and the direct HTTP assignment route call
AssignmentCoordinator.assign, so they share the same lookup, write and
invalidation sequence: store write first, cache invalidation second.
"""

from typing import Optional

from pydantic import ValidationError
import structlog

from taskhub.core.cache import CacheService, KeyKind, TTLCategory
from taskhub.core.exceptions import TaskNotFound, UserNotFound
from taskhub.repositories.task_repository import TaskRepository
from taskhub.repositories.user_repository import UserRepository
from taskhub.schemas.events import AssignmentMetadata
from taskhub.schemas.task import TaskRead

logger = structlog.get_logger(__name__)


class AssignmentCoordinator:
    def __init__(self, tasks: TaskRepository, users: UserRepository, cache: CacheService):
        self.tasks = tasks
        self.users = users
        self.cache = cache

    def _cached_task(self, task_id: int) -> Optional[TaskRead]:
        def load():
            task = self.tasks.find(task_id)
            return TaskRead.model_validate(task).model_dump(mode="json") if task else None

        data = self.cache.remember_item(KeyKind.TASK, task_id, TTLCategory.ITEMS, load)
        if data is None:
            return None
        try:
            return TaskRead.model_validate(data)
        except ValidationError:
            # unreadable entry; the row decides and the invalidation below replaces it
            logger.warning("malformed_cache_entry", key=f"task:{task_id}")
            return None

    def assign(self, task_id: int, assignee_id: int, metadata: Optional[AssignmentMetadata] = None) -> TaskRead:
        cached = self._cached_task(task_id)

        task = self.tasks.find(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        if self.users.find(assignee_id) is None:
            raise UserNotFound(assignee_id)

        previous_assignee_id = task.assigned_user_id
        # the cached view may lag the row; both count as "old"
        old_assignees = {previous_assignee_id}
        old_projects = {task.project_id}
        if cached is not None:
            old_assignees.add(cached.assigned_user_id)
            old_projects.add(cached.project_id)

        task = self.tasks.assign_to_user(task, assignee_id)
        self.cache.invalidate_task(
            task.id,
            project_ids=old_projects | {task.project_id},
            assignee_ids=old_assignees | {task.assigned_user_id},
        )

        if metadata is not None:
            logger.info(
                "task_assigned",
                task_id=task.id,
                assignee_id=assignee_id,
                previous_assignee_id=previous_assignee_id,
                score=metadata.score,
                reason=metadata.reason,
                assigned_at=metadata.assigned_at.isoformat() if metadata.assigned_at else None,
            )

        return TaskRead.model_validate(task)
