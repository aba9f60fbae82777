class TaskhubError(Exception):
    """Base class for every error raised by taskhub itself."""


class NotFoundError(TaskhubError):
    entity = "entity"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class TaskNotFound(NotFoundError):
    entity = "task"


class UserNotFound(NotFoundError):
    entity = "user"


class ProjectNotFound(NotFoundError):
    entity = "project"


class DuplicateEmailError(TaskhubError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"email {email} is already registered")


class CacheUnavailableError(TaskhubError):
    """The cache backend could not be reached or answered with an error."""


class ChannelConnectionError(TaskhubError):
    """The broker connection could not be opened or was lost.

    Fatal: there is no reconnect strategy, the consumer process exits non-zero.
    """


class MessageDecodeError(TaskhubError):
    """A delivery body is not a valid payload for its queue."""

    def __init__(self, message: str, body: bytes = b""):
        self.body = body
        super().__init__(message)
