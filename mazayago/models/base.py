from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from mazayago.db.metadata import metadata_obj

# BigInteger keys everywhere except SQLite, which only autoincrements INTEGER.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base shared by every giveaway table."""

    metadata = metadata_obj


__all__ = ["Base", "ID_TYPE"]
