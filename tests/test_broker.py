import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pika
import pika.exceptions
import pytest
from structlog.testing import capture_logs

from taskhub.core.broker import BrokerClient, Delivery
from taskhub.core.config import Settings
from taskhub.core.exceptions import ChannelConnectionError


@pytest.fixture
def connection():
    with patch("taskhub.core.broker.pika.BlockingConnection") as factory:
        conn = factory.return_value
        conn.is_open = True
        conn.channel.return_value.is_open = True
        conn.factory = factory
        yield conn


@pytest.fixture
def channel(connection):
    return connection.channel.return_value


@pytest.fixture
def client():
    return BrokerClient(Settings(RABBITMQ_HOST="rabbit", RABBITMQ_VHOST="work", CONSUMER_PREFETCH=4))


def test_connection_parameters_come_from_settings(client):
    assert client.parameters.host == "rabbit"
    assert client.parameters.port == 5672
    assert client.parameters.virtual_host == "work"
    assert client.parameters.credentials.username == "guest"


def test_connects_lazily_and_reuses_channel(client, connection, channel):
    connection.factory.assert_not_called()

    client.publish("tasks", "task.created", {"task_id": 1})
    client.publish("tasks", "task.created", {"task_id": 2})

    connection.factory.assert_called_once_with(client.parameters)
    connection.channel.assert_called_once()
    assert channel.basic_publish.call_count == 2


def test_publish_is_persistent_json_on_durable_topic_exchange(client, channel):
    client.publish("tasks", "task.created", {"task_id": 1, "skills": []})

    channel.exchange_declare.assert_called_with(exchange="tasks", exchange_type="topic", durable=True)
    kwargs = channel.basic_publish.call_args.kwargs
    assert kwargs["exchange"] == "tasks"
    assert kwargs["routing_key"] == "task.created"
    assert json.loads(kwargs["body"]) == {"task_id": 1, "skills": []}
    assert kwargs["properties"].delivery_mode == 2
    assert kwargs["properties"].content_type == "application/json"
    assert kwargs["properties"].message_id


def test_connection_failure_is_surfaced(client, connection):
    connection.factory.side_effect = pika.exceptions.AMQPConnectionError("refused")

    with pytest.raises(ChannelConnectionError):
        client.publish("tasks", "task.created", {})

    assert connection.factory.call_count == 1


def test_publish_failure_is_not_retried(client, channel):
    channel.basic_publish.side_effect = pika.exceptions.StreamLostError("gone")

    with pytest.raises(ChannelConnectionError):
        client.publish("tasks", "task.created", {})

    assert channel.basic_publish.call_count == 1


def test_queue_topology(client, channel):
    client.declare_queue("task.assigned")

    channel.queue_declare.assert_any_call(
        queue="task.assigned",
        durable=True,
        auto_delete=False,
        arguments={"x-dead-letter-exchange": "tasks.dlx"},
    )
    channel.queue_bind.assert_any_call(queue="task.assigned", exchange="tasks", routing_key="task.assigned")
    channel.queue_declare.assert_any_call(queue="task.assigned.dead", durable=True, auto_delete=False)
    channel.queue_bind.assert_any_call(queue="task.assigned.dead", exchange="tasks.dlx", routing_key="task.assigned")


def test_deliveries_are_pulled_one_at_a_time(client, channel):
    method = SimpleNamespace(delivery_tag=5, routing_key="task.assigned", redelivered=True)
    props = pika.BasicProperties(headers=None)
    channel.consume.return_value = iter([(method, props, b'{"task_id": 7}')])

    deliveries = list(client.deliveries("task.assigned"))

    channel.basic_qos.assert_called_once_with(prefetch_count=4)
    channel.consume.assert_called_once_with("task.assigned", auto_ack=False)
    assert deliveries == [
        Delivery(delivery_tag=5, routing_key="task.assigned", body=b'{"task_id": 7}', headers={}, redelivered=True)
    ]
    channel.cancel.assert_called_once()


def test_dropped_connection_while_consuming_is_fatal(client, channel):
    def consume(*args, **kwargs):
        raise pika.exceptions.StreamLostError("gone")
        yield  # pragma: no cover

    channel.consume.side_effect = consume

    with pytest.raises(ChannelConnectionError):
        list(client.deliveries("task.assigned"))


def test_cancel_failure_does_not_mask_connection_loss(client, channel):
    def consume(*args, **kwargs):
        raise pika.exceptions.StreamLostError("gone")
        yield  # pragma: no cover

    channel.consume.side_effect = consume
    channel.cancel.side_effect = pika.exceptions.ChannelWrongStateError("closing")

    with capture_logs() as logs:
        with pytest.raises(ChannelConnectionError):
            list(client.deliveries("task.assigned"))

    assert "consumer_cancel_failed" in [e["event"] for e in logs]


def test_closed_channel_is_not_reopened(client, connection, channel):
    client.declare_exchange()
    channel.is_open = False
    d = Delivery(delivery_tag=9, routing_key="task.assigned", body=b"{}")

    assert client.broken
    with pytest.raises(ChannelConnectionError):
        client.ack(d)
    with pytest.raises(ChannelConnectionError):
        client.publish("tasks", "task.created", {})

    assert connection.factory.call_count == 1
    channel.basic_ack.assert_not_called()


def test_close_releases_connection_after_channel_loss(client, connection, channel):
    client.declare_exchange()
    channel.is_open = False

    client.close()

    connection.close.assert_called_once()
    channel.close.assert_not_called()


def test_ack_and_nack(client, channel):
    d = Delivery(delivery_tag=9, routing_key="task.assigned", body=b"{}")

    client.ack(d)
    client.nack(d, requeue=True)

    channel.basic_ack.assert_called_once_with(delivery_tag=9)
    channel.basic_nack.assert_called_once_with(delivery_tag=9, requeue=True)


def test_context_manager_closes_on_error(connection, channel):
    with pytest.raises(RuntimeError):
        with BrokerClient(Settings()) as client:
            client.declare_exchange()
            raise RuntimeError("boom")

    channel.close.assert_called_once()
    connection.close.assert_called_once()


def test_close_without_connection_is_noop(client, connection):
    client.close()
    connection.factory.assert_not_called()
