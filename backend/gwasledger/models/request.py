# SPDX-License-Identifier: Apache-2.0
"""Decryption request correlation model."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from gwasledger.core.clock import utcnow

FLOW_ANALYSIS = "analysis"
FLOW_REVEAL = "reveal"


class DecryptionRequest(SQLModel, table=True):
    __tablename__ = "decryption_requests"
    request_id: str = Field(primary_key=True, max_length=64)
    dataset_id: int = Field(foreign_key="datasets.id", index=True)
    flow: str = FLOW_ANALYSIS
    requested_by: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    fulfilled_at: datetime | None = None
    # set when the request can never complete (undecryptable or unusable cleartext)
    failed_at: datetime | None = None
    error: str | None = Field(default=None, max_length=500)
