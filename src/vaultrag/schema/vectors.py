"""
Per-dimension chunk tables.

Every embedding model writes into the table matching its vector width.
Tables are never mixed and never created on the fly: the mapping below is
the complete set, and an unknown dimension is a configuration error.
"""
from typing import Any, Dict, List, Type

from sqlmodel import Field
from sqlalchemy import Column
from sqlalchemy.dialects.postgresql import JSONB
from pgvector.sqlalchemy import Vector

from vaultrag.core.exceptions import UnknownDimensionError
from .base import VectorRecordBase


class Embedding1536(VectorRecordBase, table=True):
    __tablename__ = "embeddings_1536"

    embedding: List[float] = Field(sa_column=Column(Vector(1536)))
    metadata_: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONB, nullable=False))


class Embedding1024(VectorRecordBase, table=True):
    __tablename__ = "embeddings_1024"

    embedding: List[float] = Field(sa_column=Column(Vector(1024)))
    metadata_: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONB, nullable=False))


class Embedding768(VectorRecordBase, table=True):
    __tablename__ = "embeddings_768"

    embedding: List[float] = Field(sa_column=Column(Vector(768)))
    metadata_: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONB, nullable=False))


class Embedding512(VectorRecordBase, table=True):
    __tablename__ = "embeddings_512"

    embedding: List[float] = Field(sa_column=Column(Vector(512)))
    metadata_: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONB, nullable=False))


class Embedding384(VectorRecordBase, table=True):
    __tablename__ = "embeddings_384"

    embedding: List[float] = Field(sa_column=Column(Vector(384)))
    metadata_: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONB, nullable=False))


VECTOR_TABLES: Dict[int, Type[VectorRecordBase]] = {
    1536: Embedding1536,
    1024: Embedding1024,
    768: Embedding768,
    512: Embedding512,
    384: Embedding384,
}

SUPPORTED_DIMENSIONS = frozenset(VECTOR_TABLES)


def get_vector_table(dimension: int) -> Type[VectorRecordBase]:
    """Return the table class for a vector width."""
    try:
        return VECTOR_TABLES[dimension]
    except KeyError:
        raise UnknownDimensionError(dimension, SUPPORTED_DIMENSIONS) from None
