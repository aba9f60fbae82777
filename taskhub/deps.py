import threading

from fastapi import Depends
import structlog
from sqlalchemy.orm import Session

from taskhub.core.broker import BrokerClient
from taskhub.core.cache import CacheService
from taskhub.core.config import settings
from taskhub.core.database import get_db
from taskhub.repositories import ProjectRepository, TaskRepository, UserRepository
from taskhub.services.assignment import AssignmentCoordinator
from taskhub.services.events import EventPublisher
from taskhub.services.project_service import ProjectService
from taskhub.services.task_service import TaskService
from taskhub.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Process-wide handles, created at import. Neither connects until first used.
cache = CacheService.from_url(settings.REDIS_URL)
broker = BrokerClient(settings)
publisher = EventPublisher(broker)
_publisher_lock = threading.Lock()


def get_cache() -> CacheService:
    return cache


def get_publisher() -> EventPublisher:
    """Hand out the shared publisher, replacing its broker once the channel is lost.

    The request that hit the failure already got its error; only later requests
    see the new connection.
    """
    global broker, publisher
    with _publisher_lock:
        if broker.broken:
            broker.close()
            broker = BrokerClient(settings)
            publisher = EventPublisher(broker)
            logger.warning("broker_replaced")
        return publisher


def close_broker():
    with _publisher_lock:
        broker.close()


def get_task_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    publisher: EventPublisher = Depends(get_publisher),
) -> TaskService:
    return TaskService(TaskRepository(db), cache, publisher)


def get_user_service(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> UserService:
    return UserService(UserRepository(db), cache)


def get_project_service(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> ProjectService:
    return ProjectService(ProjectRepository(db), cache)


def get_assignment_coordinator(
    db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)
) -> AssignmentCoordinator:
    return AssignmentCoordinator(TaskRepository(db), UserRepository(db), cache)
