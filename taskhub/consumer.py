"""task.assigned consumer process.

One delivery at a time: pull it off the channel, decode it, hand it to the
AssignmentCoordinator inside its own DB session, then ack or nack. Handler
errors become nack decisions and never leave the loop; broker connection
errors do, and end the process with a non-zero exit code.

Failed applies are requeued until CONSUMER_MAX_ATTEMPTS is reached, after
which the message is rejected without requeue and the broker routes it to
the dead-letter queue. Undecodable payloads are rejected straight away.
"""

import hashlib
import sys
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.orm import Session

from taskhub.core.broker import BrokerClient, Delivery
from taskhub.core.cache import CacheService
from taskhub.core.config import Settings, settings as default_settings
from taskhub.core.exceptions import ChannelConnectionError, MessageDecodeError
from taskhub.repositories.task_repository import TaskRepository
from taskhub.repositories.user_repository import UserRepository
from taskhub.schemas.events import TaskAssignedEvent
from taskhub.schemas.task import TaskRead
from taskhub.services.assignment import AssignmentCoordinator

logger = structlog.get_logger(__name__)

# bounded so bodies that never come back don't pile up
_MAX_TRACKED_MESSAGES = 10_000


class Outcome(str, Enum):
    ACK = "ack"
    RETRY = "retry"
    REJECT = "reject"


@dataclass(frozen=True)
class HandleResult:
    outcome: Outcome
    error: Optional[Exception] = None
    task: Optional[TaskRead] = None


def decode(body: bytes) -> TaskAssignedEvent:
    try:
        return TaskAssignedEvent.model_validate_json(body)
    except ValidationError as e:
        raise MessageDecodeError(f"invalid task.assigned payload: {e}", body) from e


class AssignmentConsumer:
    def __init__(
        self,
        broker: BrokerClient,
        session_factory: Callable[[], Session],
        cache: CacheService,
        settings: Settings = default_settings,
    ):
        self.broker = broker
        self.session_factory = session_factory
        self.cache = cache
        self.queue = settings.QUEUE_TASK_ASSIGNED
        self.max_attempts = settings.CONSUMER_MAX_ATTEMPTS
        self._failures: "OrderedDict[str, int]" = OrderedDict()

    def handle(self, delivery: Delivery) -> HandleResult:
        try:
            event = decode(delivery.body)
        except MessageDecodeError as e:
            logger.error("message_decode_failed", error=str(e), body=delivery.body[:512].decode("utf-8", "replace"))
            return HandleResult(Outcome.REJECT, error=e)

        log = logger.bind(task_id=event.task_id, assignee_id=event.assignee_id)
        log.info("task_assigned_received", redelivered=delivery.redelivered)
        try:
            with self.session_factory() as session:
                coordinator = AssignmentCoordinator(TaskRepository(session), UserRepository(session), self.cache)
                task = coordinator.assign(event.task_id, event.assignee_id, event.metadata)
        except Exception as e:
            log.warning("task_assignment_failed", error=repr(e))
            return HandleResult(Outcome.RETRY, error=e)

        return HandleResult(Outcome.ACK, task=task)

    def _message_key(self, delivery: Delivery) -> str:
        if delivery.message_id:
            return f"id:{delivery.message_id}"
        return "sha256:" + hashlib.sha256(delivery.body).hexdigest()

    def _record_failure(self, delivery: Delivery) -> int:
        key = self._message_key(delivery)
        attempts = self._failures.pop(key, 0) + 1
        # quorum queues count earlier deliveries for us, across consumer processes
        broker_count = delivery.headers.get("x-delivery-count")
        if isinstance(broker_count, int):
            attempts = max(attempts, broker_count + 1)
        self._failures[key] = attempts
        while len(self._failures) > _MAX_TRACKED_MESSAGES:
            self._failures.popitem(last=False)
        return attempts

    def _forget(self, delivery: Delivery):
        self._failures.pop(self._message_key(delivery), None)

    def settle(self, delivery: Delivery, result: HandleResult) -> Outcome:
        outcome = result.outcome
        if outcome is Outcome.RETRY:
            attempts = self._record_failure(delivery)
            if 0 < self.max_attempts <= attempts:
                logger.error("message_dead_lettered", attempts=attempts, error=repr(result.error),
                             delivery_tag=delivery.delivery_tag)
                outcome = Outcome.REJECT

        if outcome is Outcome.ACK:
            self.broker.ack(delivery)
            self._forget(delivery)
        elif outcome is Outcome.RETRY:
            self.broker.nack(delivery, requeue=True)
        else:
            self.broker.nack(delivery, requeue=False)
            self._forget(delivery)
        return outcome

    def process(self, delivery: Delivery) -> Outcome:
        return self.settle(delivery, self.handle(delivery))

    def run(self, queue: Optional[str] = None):
        queue = queue or self.queue
        logger.info("consumer_started", queue=queue, max_attempts=self.max_attempts)
        for delivery in self.broker.deliveries(queue):
            outcome = self.process(delivery)
            logger.debug("delivery_settled", delivery_tag=delivery.delivery_tag, outcome=outcome.value)


def main() -> int:
    from taskhub.core.database import SessionLocal
    from taskhub.core.logging_setup import setup_logging

    setup_logging()
    cache = CacheService.from_url(default_settings.REDIS_URL)

    with BrokerClient(default_settings) as broker:
        consumer = AssignmentConsumer(broker, SessionLocal, cache)
        try:
            consumer.run()
        except ChannelConnectionError as e:
            logger.error("broker_connection_lost", error=str(e))
            return 1
        except KeyboardInterrupt:
            logger.info("consumer_stopped")
            return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
