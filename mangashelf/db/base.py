from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (sqlite for local runs and tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
