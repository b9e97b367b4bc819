from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()

def make_engine(url: str, **kwargs) -> Engine:
    # SQLite: el historial se escribe desde hilos de trabajo (asyncio.to_thread)
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, future=True, **kwargs)

def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

def init_db(bind: Engine) -> None:
    # importa los modelos para registrarlos en Base.metadata
    from sentinel import models  # noqa: F401
    Base.metadata.create_all(bind=bind)
