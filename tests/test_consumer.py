import json
from unittest.mock import MagicMock, patch

import pytest

from taskhub.consumer import AssignmentConsumer, HandleResult, Outcome, decode, main
from taskhub.core.broker import Delivery
from taskhub.core.config import Settings
from taskhub.core.exceptions import ChannelConnectionError, MessageDecodeError
from taskhub.models import Task
from taskhub.schemas.task import TaskRead


def message(task_id=7, assignee_id=3, **extra):
    payload = {
        "task_id": task_id,
        "assignee_id": assignee_id,
        "score": 0.92,
        "reason": "skill match",
        "assigned_at": "2024-01-01T00:00:00Z",
    }
    payload.update(extra)
    return json.dumps(payload).encode()


def delivery(body, tag=1, headers=None, message_id=None):
    return Delivery(
        delivery_tag=tag, routing_key="task.assigned", body=body, headers=headers or {}, message_id=message_id
    )


@pytest.fixture
def broker():
    return MagicMock()


@pytest.fixture
def consumer(broker, session_factory, cache):
    return AssignmentConsumer(broker, session_factory, cache, Settings(CONSUMER_MAX_ATTEMPTS=3))


@pytest.fixture
def task7(make_user, make_project, make_task):
    owner = make_user(role="manager")
    assignee = make_user(id=3)
    project = make_project()
    make_task(id=7, title="X", project_id=project.id, created_by=owner.id)
    return assignee, project


def stored_assignee(session_factory, task_id=7):
    with session_factory() as session:
        task = session.get(Task, task_id)
        return task.assigned_user_id if task else None


class TestDecode:
    def test_valid_payload(self):
        event = decode(message())
        assert (event.task_id, event.assignee_id, event.score) == (7, 3, 0.92)
        assert event.metadata.reason == "skill match"

    @pytest.mark.parametrize("body", [b"not json", b"{}", message(task_id="seven"), message(assignee_id=0)])
    def test_invalid_payload(self, body):
        with pytest.raises(MessageDecodeError):
            decode(body)


class TestProcess:
    def test_assignment_is_applied_and_acked(self, consumer, broker, redis_client, session_factory, task7):
        _, project = task7
        with session_factory() as session:
            cached = TaskRead.model_validate(session.get(Task, 7)).model_dump(mode="json")
        redis_client.set("task:7", json.dumps(cached))
        for key in ("tasks:list", "tasks:user:3", f"tasks:project:{project.id}"):
            redis_client.set(key, "[]")
        d = delivery(message())

        assert consumer.process(d) is Outcome.ACK

        broker.ack.assert_called_once_with(d)
        broker.nack.assert_not_called()
        assert stored_assignee(session_factory) == 3
        assert redis_client.exists("task:7", "tasks:list", "tasks:user:3") == 0

    def test_redelivered_duplicate_converges(self, consumer, broker, session_factory, task7):
        assert consumer.process(delivery(message(), tag=1)) is Outcome.ACK
        assert consumer.process(delivery(message(), tag=2)) is Outcome.ACK

        assert broker.ack.call_count == 2
        assert stored_assignee(session_factory) == 3

    def test_missing_task_is_requeued_without_mutation(self, consumer, broker, session_factory):
        d = delivery(message())

        assert consumer.process(d) is Outcome.RETRY

        broker.nack.assert_called_once_with(d, requeue=True)
        broker.ack.assert_not_called()
        assert stored_assignee(session_factory) is None

    def test_failed_apply_succeeds_on_redelivery(self, consumer, broker, session_factory, make_user, make_project, make_task):
        owner = make_user(role="manager")
        project = make_project()
        make_task(id=7, project_id=project.id, created_by=owner.id)

        # assignee 3 does not exist yet
        first = consumer.process(delivery(message(), tag=1))
        make_user(id=3)
        second = consumer.process(delivery(message(), tag=2))

        assert (first, second) == (Outcome.RETRY, Outcome.ACK)
        broker.nack.assert_called_once()
        broker.ack.assert_called_once()
        assert stored_assignee(session_factory) == 3
        assert consumer._failures == {}

    def test_malformed_payload_is_dead_lettered(self, consumer, broker):
        d = delivery(b"{\"task_id\": ")

        assert consumer.process(d) is Outcome.REJECT

        broker.nack.assert_called_once_with(d, requeue=False)

    def test_retries_are_bounded(self, consumer, broker):
        outcomes = [consumer.process(delivery(message(), tag=n)) for n in range(1, 4)]

        assert outcomes == [Outcome.RETRY, Outcome.RETRY, Outcome.REJECT]
        assert [c.kwargs["requeue"] for c in broker.nack.call_args_list] == [True, True, False]
        assert consumer._failures == {}

    def test_broker_delivery_count_is_honoured(self, consumer, broker):
        d = delivery(message(), headers={"x-delivery-count": 2})

        assert consumer.process(d) is Outcome.REJECT
        broker.nack.assert_called_once_with(d, requeue=False)

    def test_identical_bodies_with_distinct_ids_have_separate_budgets(self, consumer, broker):
        first = [consumer.process(delivery(message(), tag=n, message_id="a")) for n in (1, 2)]
        other = consumer.process(delivery(message(), tag=3, message_id="b"))
        last = consumer.process(delivery(message(), tag=4, message_id="a"))

        assert first == [Outcome.RETRY, Outcome.RETRY]
        assert other is Outcome.RETRY
        assert last is Outcome.REJECT
        assert set(consumer._failures) == {"id:b"}

    def test_unbounded_when_max_attempts_disabled(self, broker, session_factory, cache):
        consumer = AssignmentConsumer(broker, session_factory, cache, Settings(CONSUMER_MAX_ATTEMPTS=0))

        outcomes = {consumer.process(delivery(message(), tag=n)) for n in range(10)}

        assert outcomes == {Outcome.RETRY}

    def test_unexpected_handler_error_is_requeued(self, consumer, broker, task7):
        with patch("taskhub.consumer.AssignmentCoordinator.assign", side_effect=RuntimeError("db gone")):
            result = consumer.handle(delivery(message()))

        assert result.outcome is Outcome.RETRY
        assert isinstance(result.error, RuntimeError)


class TestSettle:
    def test_ack(self, consumer, broker):
        d = delivery(message())
        consumer.settle(d, HandleResult(Outcome.ACK))
        broker.ack.assert_called_once_with(d)

    def test_ack_failure_is_fatal(self, consumer, broker):
        broker.ack.side_effect = ChannelConnectionError("lost")
        with pytest.raises(ChannelConnectionError):
            consumer.settle(delivery(message()), HandleResult(Outcome.ACK))


class TestRun:
    def test_loop_survives_failing_messages(self, consumer, broker, session_factory, task7):
        broker.deliveries.return_value = iter([
            delivery(b"garbage", tag=1),
            delivery(message(task_id=8), tag=2),
            delivery(message(), tag=3),
        ])

        consumer.run()

        broker.deliveries.assert_called_once_with("task.assigned")
        assert broker.nack.call_count == 2
        broker.ack.assert_called_once()
        assert stored_assignee(session_factory) == 3

    def test_connection_loss_escapes_the_loop(self, consumer, broker):
        broker.deliveries.side_effect = ChannelConnectionError("lost")
        with pytest.raises(ChannelConnectionError):
            consumer.run()


class TestMain:
    def test_exits_non_zero_on_connection_loss(self):
        broker = MagicMock()
        broker.__enter__.return_value = broker
        broker.deliveries.side_effect = ChannelConnectionError("refused")

        with patch("taskhub.consumer.BrokerClient", return_value=broker), \
                patch("taskhub.consumer.CacheService"), \
                patch("taskhub.core.logging_setup.setup_logging"):
            assert main() == 1

        broker.__exit__.assert_called_once()
