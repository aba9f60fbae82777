"""Shared fixtures: in-memory SQLite store, fakeredis cache, entity factories."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import taskhub.models  # noqa: F401
from taskhub.core.cache import CacheService, TTLCategory
from taskhub.core.database import Base
from taskhub.models import Project, Task, User

TEST_TTLS = {TTLCategory.LISTS: 300, TTLCategory.ITEMS: 600, TTLCategory.WORKLOAD: 120}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return CacheService(redis_client, ttls=TEST_TTLS)


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def factory(**overrides):
        counter["n"] += 1
        data = {
            "name": f"User {counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "role": "user",
            "skills": ["python"],
            "workload": 0,
            "max_workload": 40,
        }
        data.update(overrides)
        user = User(**data)
        session.add(user)
        session.commit()
        return user

    return factory


@pytest.fixture
def make_project(session):
    def factory(**overrides):
        data = {"name": "Platform", "description": "Core platform work", "status": "active"}
        data.update(overrides)
        project = Project(**data)
        session.add(project)
        session.commit()
        return project

    return factory


@pytest.fixture
def make_task(session):
    def factory(**overrides):
        data = {
            "title": "Write migration",
            "description": "Add the tasks table",
            "status": "pending",
            "priority": "medium",
            "required_skills": [],
            "complexity": 1,
        }
        data.update(overrides)
        task = Task(**data)
        session.add(task)
        session.commit()
        return task

    return factory
