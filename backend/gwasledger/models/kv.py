# SPDX-License-Identifier: Apache-2.0
"""Generic key/value entry (getData/setData surface)."""
from datetime import datetime

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel

from gwasledger.core.clock import utcnow


class KeyValueEntry(SQLModel, table=True):
    __tablename__ = "kv_entries"
    key: str = Field(primary_key=True, max_length=200)
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    version: int = 1
    updated_at: datetime = Field(default_factory=utcnow)
