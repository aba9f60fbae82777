from taskhub.repositories.project_repository import ProjectRepository
from taskhub.repositories.task_repository import TaskRepository
from taskhub.repositories.user_repository import UserRepository

__all__ = ["ProjectRepository", "TaskRepository", "UserRepository"]
