from taskhub.models.project import Project
from taskhub.models.task import Task
from taskhub.models.user import User

__all__ = ["Project", "Task", "User"]
