from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from core.config import settings

engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True)


# make sure all SQLModel models are imported (models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly
# for more details: https://github.com/tiangolo/full-stack-fastapi-postgresql/issues/28
import models  # noqa: E402,F401


def init_db(bind: Engine = engine) -> None:
    # Create tables if they don't exist. Alembic owns the schema in deployed
    # environments; this keeps a fresh dev database usable.
    SQLModel.metadata.create_all(bind)
