from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings

# Synchronous engine: the assignment consumer is a blocking loop and the
# HTTP routes run in FastAPI's threadpool.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    engine, expire_on_commit=False
)

Base = declarative_base()

def get_db():
    with SessionLocal() as session:
        yield session
