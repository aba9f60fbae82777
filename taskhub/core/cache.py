"""Read-through / write-invalidate cache in front of the entity store.

Keys are only ever built through :class:`CacheKey`, so the remember path and the
invalidate path cannot drift apart. Values are stored as JSON strings with an
expiry taken from their TTL category; a ``None`` load result is not cached.

There is no locking here. A reader racing a writer between commit and
invalidation may repopulate a stale value; that window is bounded by the TTL.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

import redis
import structlog

from taskhub.core.config import settings
from taskhub.core.exceptions import CacheUnavailableError

logger = structlog.get_logger(__name__)


class KeyKind(str, Enum):
    TASK = "task:{id}"
    TASKS = "tasks:list"
    TASKS_BY_PROJECT = "tasks:project:{id}"
    TASKS_BY_USER = "tasks:user:{id}"
    USER = "user:{id}"
    USER_WORKLOAD = "user:{id}:workload"
    USERS = "users:list"
    PROJECT = "project:{id}"
    PROJECTS = "projects:list"

    @property
    def takes_id(self) -> bool:
        return "{id}" in self.value


class TTLCategory(str, Enum):
    LISTS = "lists"
    ITEMS = "items"
    WORKLOAD = "workload"


@dataclass(frozen=True)
class CacheKey:
    kind: KeyKind
    ident: Optional[int] = None

    def __post_init__(self):
        if self.kind.takes_id and self.ident is None:
            raise ValueError(f"{self.kind.name} key requires an id")
        if not self.kind.takes_id and self.ident is not None:
            raise ValueError(f"{self.kind.name} key does not take an id")

    def __str__(self) -> str:
        return self.kind.value.format(id=self.ident)

    @classmethod
    def task(cls, task_id: int) -> "CacheKey":
        return cls(KeyKind.TASK, task_id)

    @classmethod
    def tasks(cls) -> "CacheKey":
        return cls(KeyKind.TASKS)

    @classmethod
    def tasks_by_project(cls, project_id: int) -> "CacheKey":
        return cls(KeyKind.TASKS_BY_PROJECT, project_id)

    @classmethod
    def tasks_by_user(cls, user_id: int) -> "CacheKey":
        return cls(KeyKind.TASKS_BY_USER, user_id)

    @classmethod
    def user(cls, user_id: int) -> "CacheKey":
        return cls(KeyKind.USER, user_id)

    @classmethod
    def user_workload(cls, user_id: int) -> "CacheKey":
        return cls(KeyKind.USER_WORKLOAD, user_id)

    @classmethod
    def users(cls) -> "CacheKey":
        return cls(KeyKind.USERS)

    @classmethod
    def project(cls, project_id: int) -> "CacheKey":
        return cls(KeyKind.PROJECT, project_id)

    @classmethod
    def projects(cls) -> "CacheKey":
        return cls(KeyKind.PROJECTS)


def task_keys(
    task_id: int,
    project_ids: Iterable[Optional[int]] = (),
    assignee_ids: Iterable[Optional[int]] = (),
) -> frozenset[CacheKey]:
    """Keys made stale by a task mutation.

    ``project_ids`` and ``assignee_ids`` carry both the values recorded before the
    write and the values after it; ``None`` entries are skipped.
    """
    keys = {CacheKey.task(task_id), CacheKey.tasks()}
    keys.update(CacheKey.tasks_by_project(p) for p in project_ids if p is not None)
    keys.update(CacheKey.tasks_by_user(u) for u in assignee_ids if u is not None)
    return frozenset(keys)


def user_keys(user_id: int) -> frozenset[CacheKey]:
    return frozenset({CacheKey.user(user_id), CacheKey.user_workload(user_id), CacheKey.users()})


def project_keys(project_id: int, deleted: bool = False) -> frozenset[CacheKey]:
    keys = {CacheKey.project(project_id), CacheKey.tasks_by_project(project_id), CacheKey.projects()}
    if deleted:
        # the cascade removed tasks that the global list may still hold
        keys.add(CacheKey.tasks())
    return frozenset(keys)


class CacheService:
    def __init__(self, client: redis.Redis, ttls: Optional[Mapping[TTLCategory, int]] = None):
        self.client = client
        self.ttls = dict(ttls) if ttls is not None else {
            TTLCategory.LISTS: settings.CACHE_TTL_LISTS,
            TTLCategory.ITEMS: settings.CACHE_TTL_ITEMS,
            TTLCategory.WORKLOAD: settings.CACHE_TTL_WORKLOAD,
        }

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "CacheService":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True), **kwargs)

    def ttl(self, category: TTLCategory) -> int:
        return self.ttls[category]

    def remember(self, key: CacheKey, category: TTLCategory, loader: Callable[[], Any]) -> Any:
        name = str(key)
        try:
            cached = self.client.get(name)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"cache read failed for {name}: {e}") from e

        if cached is not None:
            logger.debug("cache_hit", key=name)
            return json.loads(cached)

        logger.debug("cache_miss", key=name)
        value = loader()
        if value is None:
            return None

        try:
            self.client.set(name, json.dumps(value), ex=self.ttl(category))
        except redis.RedisError as e:
            raise CacheUnavailableError(f"cache write failed for {name}: {e}") from e
        return value

    def remember_list(self, key: CacheKey, category: TTLCategory, loader: Callable[[], Any]) -> Any:
        return self.remember(key, category, loader)

    def remember_item(self, kind: KeyKind, ident: int, category: TTLCategory, loader: Callable[[], Any]) -> Any:
        return self.remember(CacheKey(kind, ident), category, loader)

    def invalidate(self, *keys: CacheKey) -> frozenset[CacheKey]:
        if not keys:
            return frozenset()
        names = sorted({str(k) for k in keys})
        try:
            self.client.delete(*names)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"cache invalidation failed: {e}") from e
        logger.debug("cache_invalidated", keys=names)
        return frozenset(keys)

    def invalidate_task(
        self,
        task_id: int,
        project_ids: Iterable[Optional[int]] = (),
        assignee_ids: Iterable[Optional[int]] = (),
    ) -> frozenset[CacheKey]:
        return self.invalidate(*task_keys(task_id, project_ids, assignee_ids))

    def invalidate_user(self, user_id: int) -> frozenset[CacheKey]:
        return self.invalidate(*user_keys(user_id))

    def invalidate_project(self, project_id: int, deleted: bool = False) -> frozenset[CacheKey]:
        return self.invalidate(*project_keys(project_id, deleted))
