from typing import Any, Dict

import structlog

from taskhub.core.broker import BrokerClient
from taskhub.core.config import settings
from taskhub.schemas.events import TaskCreatedEvent
from taskhub.schemas.task import TaskRead

logger = structlog.get_logger(__name__)


class EventPublisher:
    """Turns domain facts into persistent messages on the tasks exchange."""

    def __init__(self, broker: BrokerClient, exchange: str = settings.RABBITMQ_EXCHANGE,
                 task_created_key: str = settings.ROUTING_TASK_CREATED):
        self.broker = broker
        self.exchange = exchange
        self.task_created_key = task_created_key

    def publish(self, topic: str, routing_key: str, payload: Dict[str, Any]):
        self.broker.publish(topic, routing_key, payload)

    def task_created(self, task: TaskRead) -> TaskCreatedEvent:
        event = TaskCreatedEvent.from_task(task)
        self.publish(self.exchange, self.task_created_key, event.model_dump(mode="json"))
        logger.info("task_created_published", task_id=task.id, project_id=task.project_id)
        return event
