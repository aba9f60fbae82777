"""Wire payloads exchanged with the scoring service over the `tasks` exchange."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from taskhub.schemas.task import TaskPriority, TaskRead


class TaskCreatedEvent(BaseModel):
    """Published once when a task is created without an assignee."""

    model_config = ConfigDict(frozen=True)

    task_id: int
    title: str
    description: str = ""
    priority: TaskPriority
    project_id: int
    skills: List[str] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_task(cls, task: TaskRead) -> "TaskCreatedEvent":
        return cls(
            task_id=task.id,
            title=task.title,
            description=task.description or "",
            priority=task.priority,
            project_id=task.project_id,
            skills=list(task.required_skills or []),
            created_at=task.created_at or datetime.now(timezone.utc),
        )


class AssignmentMetadata(BaseModel):
    score: Optional[float] = None
    reason: Optional[str] = None
    assigned_at: Optional[datetime] = None


class TaskAssignedEvent(BaseModel):
    """Assignment decision consumed from the `task.assigned` queue."""

    model_config = ConfigDict(frozen=True)

    task_id: int = Field(..., gt=0)
    assignee_id: int = Field(..., gt=0)
    score: float
    reason: str
    assigned_at: datetime

    @property
    def metadata(self) -> AssignmentMetadata:
        return AssignmentMetadata(score=self.score, reason=self.reason, assigned_at=self.assigned_at)
