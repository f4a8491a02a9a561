# SPDX-License-Identifier: Apache-2.0
"""Ledger event model (append-only, hash chained)."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from gwasledger.config import INITIAL_HASH
from gwasledger.core.clock import utcnow


class LedgerEvent(SQLModel, table=True):
    __tablename__ = "ledger_events"
    id: int | None = Field(default=None, primary_key=True)
    dataset_id: int | None = Field(default=None, foreign_key="datasets.id", index=True)
    event_type: str = ""
    actor: str = ""
    details: str = "{}"
    previous_hash: str = INITIAL_HASH
    entry_hash: str = ""
    created_at: datetime = Field(default_factory=utcnow)
