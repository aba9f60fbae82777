from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.models.task import Task


class TaskRepository:
    """Task persistence. Every write commits before returning."""

    def __init__(self, session: Session):
        self.session = session

    def all(self) -> List[Task]:
        return list(self.session.scalars(select(Task).order_by(Task.id)))

    def find(self, task_id: int) -> Optional[Task]:
        return self.session.get(Task, task_id, populate_existing=True)

    def find_by_user(self, user_id: int) -> List[Task]:
        stmt = select(Task).where(Task.assigned_user_id == user_id).order_by(Task.id)
        return list(self.session.scalars(stmt))

    def find_by_project(self, project_id: int) -> List[Task]:
        stmt = select(Task).where(Task.project_id == project_id).order_by(Task.id)
        return list(self.session.scalars(stmt))

    def create(self, data: Dict[str, Any]) -> Task:
        task = Task(**data)
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def update(self, task: Task, data: Dict[str, Any]) -> Task:
        for field, value in data.items():
            setattr(task, field, value)
        self.session.commit()
        self.session.refresh(task)
        return task

    def delete(self, task: Task) -> bool:
        self.session.delete(task)
        self.session.commit()
        return True

    def assign_to_user(self, task: Task, user_id: int) -> Task:
        task.assigned_user_id = user_id
        self.session.commit()
        self.session.refresh(task)
        return task
