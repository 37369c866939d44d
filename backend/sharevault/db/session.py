from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from sharevault.core.config import settings


def make_engine(database_uri: str) -> Engine:
    # SQLite specific configuration for multi-threading; the timeout lets
    # concurrent writers wait for the database lock instead of failing
    connect_args = {"check_same_thread": False, "timeout": 30} if database_uri.startswith("sqlite") else {}
    return create_engine(
        database_uri,
        pool_pre_ping=True,
        connect_args=connect_args
    )


engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
