from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from seatmap.config import DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args = connect_args
)

SessionLocal = sessionmaker(autocommit = False, autoflush = False, bind = engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # tables must be registered on Base before create_all
    from seatmap import db_models  # noqa: F401

    Base.metadata.create_all(bind = bind or engine)
