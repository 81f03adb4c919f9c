# app/db.py
from functools import lru_cache, partial
from typing import Callable, Iterator, Optional

from fastapi import Depends, HTTPException
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings, get_settings

Base = declarative_base()

SessionFactory = Callable[[], Session]


@lru_cache(maxsize=None)
def get_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


@lru_cache(maxsize=None)
def _sessionmaker_for(database_url: str) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def open_session(database_url: str) -> Session:
    return _sessionmaker_for(database_url)()


def get_session_factory(settings: Settings = Depends(get_settings)) -> Optional[SessionFactory]:
    """
    Returns a callable that opens a new Session, or None when DATABASE_URL is unset.
    The engine is built on first use, so a malformed URL surfaces inside the request.
    """
    url = settings.database_url
    if not url:
        return None
    return partial(open_session, url)


def get_db(session_factory: Optional[SessionFactory] = Depends(get_session_factory)) -> Iterator[Session]:
    if session_factory is None:
        raise HTTPException(status_code=500, detail="Database configuration missing")
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
