from typing import Callable, List, Optional

import structlog

from taskhub.core.cache import CacheKey, CacheService, KeyKind, TTLCategory
from taskhub.core.exceptions import ChannelConnectionError, TaskNotFound
from taskhub.repositories.task_repository import TaskRepository
from taskhub.schemas.task import TaskCreate, TaskRead, TaskUpdate
from taskhub.services.events import EventPublisher

logger = structlog.get_logger(__name__)

# schedule(fn, *args) runs fn later; FastAPI's BackgroundTasks.add_task fits
Scheduler = Callable[..., None]


def _dump(tasks) -> List[dict]:
    return [TaskRead.model_validate(t).model_dump(mode="json") for t in tasks]


class TaskService:
    def __init__(self, tasks: TaskRepository, cache: CacheService, publisher: Optional[EventPublisher] = None):
        self.tasks = tasks
        self.cache = cache
        self.publisher = publisher

    def get_all_tasks(self) -> List[TaskRead]:
        data = self.cache.remember_list(CacheKey.tasks(), TTLCategory.LISTS, lambda: _dump(self.tasks.all()))
        return [TaskRead.model_validate(t) for t in data]

    def get_task(self, task_id: int) -> TaskRead:
        def load():
            task = self.tasks.find(task_id)
            return TaskRead.model_validate(task).model_dump(mode="json") if task else None

        data = self.cache.remember_item(KeyKind.TASK, task_id, TTLCategory.ITEMS, load)
        if data is None:
            raise TaskNotFound(task_id)
        return TaskRead.model_validate(data)

    def get_tasks_by_user(self, user_id: int) -> List[TaskRead]:
        data = self.cache.remember_list(
            CacheKey.tasks_by_user(user_id), TTLCategory.LISTS, lambda: _dump(self.tasks.find_by_user(user_id))
        )
        return [TaskRead.model_validate(t) for t in data]

    def get_tasks_by_project(self, project_id: int) -> List[TaskRead]:
        data = self.cache.remember_list(
            CacheKey.tasks_by_project(project_id), TTLCategory.LISTS, lambda: _dump(self.tasks.find_by_project(project_id))
        )
        return [TaskRead.model_validate(t) for t in data]

    def create_task(self, data: TaskCreate, schedule: Optional[Scheduler] = None) -> TaskRead:
        task = TaskRead.model_validate(self.tasks.create(data.model_dump(mode="python")))
        self.cache.invalidate_task(task.id, [task.project_id], [task.assigned_user_id])

        # Tasks created with an assignee skip the scoring service entirely.
        if task.assigned_user_id is None and self.publisher is not None:
            if schedule is not None:
                schedule(self._publish_created, task)
            else:
                self.publisher.task_created(task)
        return task

    def _publish_created(self, task: TaskRead):
        # Runs after the response is sent, so a failure can only be logged.
        try:
            self.publisher.task_created(task)
        except ChannelConnectionError:
            logger.exception("task_created_publish_failed", task_id=task.id)

    def update_task(self, task_id: int, data: TaskUpdate) -> TaskRead:
        task = self.tasks.find(task_id)
        if task is None:
            raise TaskNotFound(task_id)

        old_project_id = task.project_id
        old_assignee_id = task.assigned_user_id

        task = self.tasks.update(task, data.model_dump(exclude_unset=True, mode="python"))
        self.cache.invalidate_task(
            task.id,
            [old_project_id, task.project_id],
            [old_assignee_id, task.assigned_user_id],
        )
        return TaskRead.model_validate(task)

    def delete_task(self, task_id: int) -> bool:
        task = self.tasks.find(task_id)
        if task is None:
            raise TaskNotFound(task_id)

        # the row is gone after delete, so capture what the keys derive from
        project_id = task.project_id
        assignee_id = task.assigned_user_id

        result = self.tasks.delete(task)
        if result:
            self.cache.invalidate_task(task_id, [project_id], [assignee_id])
        return result
