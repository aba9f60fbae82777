"""AMQP client owning one connection and one channel per process.

The handle is created once at startup and passed to whatever publishes or
consumes. Nothing reconnects behind the caller's back: a lost connection is
raised as ChannelConnectionError and the current operation fails, as does
every later one. A caller that wants a new connection builds a new client.

pika's BlockingConnection is not thread-safe. Publishing takes a lock because
the API shares one client across its threadpool; consuming is meant for a
single-threaded loop and takes no lock.
"""

import json
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional

import pika
import pika.exceptions
import structlog

from taskhub.core.config import Settings, settings as default_settings
from taskhub.core.exceptions import ChannelConnectionError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Delivery:
    delivery_tag: int
    routing_key: str
    body: bytes
    headers: Mapping[str, Any] = field(default_factory=dict)
    redelivered: bool = False
    message_id: Optional[str] = None


class BrokerClient:
    def __init__(self, settings: Settings = default_settings, parameters: Optional[pika.ConnectionParameters] = None):
        self.settings = settings
        self.exchange = settings.RABBITMQ_EXCHANGE
        self.dead_letter_exchange = settings.RABBITMQ_DLX
        self.parameters = parameters or pika.ConnectionParameters(
            host=settings.RABBITMQ_HOST,
            port=settings.RABBITMQ_PORT,
            virtual_host=settings.RABBITMQ_VHOST,
            credentials=pika.PlainCredentials(settings.RABBITMQ_USER, settings.RABBITMQ_PASSWORD),
        )
        self._connection = None
        self._channel = None
        self._connected = False
        self._lock = threading.Lock()

    def __enter__(self) -> "BrokerClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def broken(self) -> bool:
        """True once a connection was made and its channel is no longer usable."""
        return self._connected and (self._channel is None or not self._channel.is_open)

    @property
    def channel(self):
        """Open the connection on first use and hand back the same channel afterwards."""
        if self._connected:
            if self.broken:
                raise ChannelConnectionError(
                    f"channel to {self.parameters.host}:{self.parameters.port} is closed"
                )
            return self._channel

        try:
            self._connection = pika.BlockingConnection(self.parameters)
            self._channel = self._connection.channel()
        except pika.exceptions.AMQPError as e:
            self.close()
            raise ChannelConnectionError(
                f"cannot connect to broker at {self.parameters.host}:{self.parameters.port}: {e!r}"
            ) from e
        self._connected = True
        logger.info("broker_connected", host=self.parameters.host, port=self.parameters.port)
        return self._channel

    def close(self):
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        try:
            if channel is not None and channel.is_open:
                channel.close()
            if connection is not None and connection.is_open:
                connection.close()
        except pika.exceptions.AMQPError as e:
            logger.warning("broker_close_failed", error=repr(e))

    def declare_exchange(self, name: Optional[str] = None):
        try:
            self.channel.exchange_declare(exchange=name or self.exchange, exchange_type="topic", durable=True)
        except pika.exceptions.AMQPError as e:
            raise ChannelConnectionError(f"exchange declare failed: {e!r}") from e

    def declare_queue(self, queue: str):
        """Declare a durable queue bound under its own name, with a dead-letter route."""
        self.declare_exchange()
        try:
            self.channel.exchange_declare(exchange=self.dead_letter_exchange, exchange_type="topic", durable=True)
            dead_queue = f"{queue}.dead"
            self.channel.queue_declare(queue=dead_queue, durable=True, auto_delete=False)
            self.channel.queue_bind(queue=dead_queue, exchange=self.dead_letter_exchange, routing_key=queue)

            self.channel.queue_declare(
                queue=queue,
                durable=True,
                auto_delete=False,
                arguments={"x-dead-letter-exchange": self.dead_letter_exchange},
            )
            self.channel.queue_bind(queue=queue, exchange=self.exchange, routing_key=queue)
        except pika.exceptions.AMQPError as e:
            raise ChannelConnectionError(f"queue declare failed for {queue}: {e!r}") from e

    def publish(self, exchange: str, routing_key: str, payload: Dict[str, Any]):
        body = json.dumps(payload).encode("utf-8")
        properties = pika.BasicProperties(
            content_type="application/json",
            delivery_mode=pika.DeliveryMode.Persistent,
            message_id=uuid.uuid4().hex,
        )
        with self._lock:
            self.declare_exchange(exchange)
            try:
                self.channel.basic_publish(exchange=exchange, routing_key=routing_key, body=body, properties=properties)
            except pika.exceptions.AMQPError as e:
                raise ChannelConnectionError(f"publish to {exchange}/{routing_key} failed: {e!r}") from e
        logger.info("message_published", exchange=exchange, routing_key=routing_key, payload=payload)

    def deliveries(self, queue: str) -> Iterator[Delivery]:
        """Yield deliveries one at a time; blocks until the next one arrives."""
        self.declare_queue(queue)
        channel = self.channel
        try:
            channel.basic_qos(prefetch_count=self.settings.CONSUMER_PREFETCH)
            logger.info("consuming", queue=queue, prefetch=self.settings.CONSUMER_PREFETCH)
            for method, properties, body in channel.consume(queue, auto_ack=False):
                yield Delivery(
                    delivery_tag=method.delivery_tag,
                    routing_key=method.routing_key,
                    body=body,
                    headers=dict(properties.headers or {}),
                    redelivered=bool(method.redelivered),
                    message_id=properties.message_id,
                )
        except pika.exceptions.AMQPError as e:
            raise ChannelConnectionError(f"consume on {queue} failed: {e!r}") from e
        finally:
            if channel.is_open:
                try:
                    channel.cancel()
                except pika.exceptions.AMQPError as e:
                    logger.warning("consumer_cancel_failed", queue=queue, error=repr(e))

    def ack(self, delivery: Delivery):
        try:
            self.channel.basic_ack(delivery_tag=delivery.delivery_tag)
        except pika.exceptions.AMQPError as e:
            raise ChannelConnectionError(f"ack failed for delivery {delivery.delivery_tag}: {e!r}") from e

    def nack(self, delivery: Delivery, requeue: bool):
        try:
            self.channel.basic_nack(delivery_tag=delivery.delivery_tag, requeue=requeue)
        except pika.exceptions.AMQPError as e:
            raise ChannelConnectionError(f"nack failed for delivery {delivery.delivery_tag}: {e!r}") from e
