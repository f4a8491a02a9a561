# SPDX-License-Identifier: Apache-2.0
"""Dataset and AnalysisResult models."""
from datetime import datetime

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel

from gwasledger.core.clock import utcnow

STATUS_PENDING = "pending"
STATUS_ANALYZED = "analyzed"
STATUS_REVEALED = "revealed"


class Dataset(SQLModel, table=True):
    __tablename__ = "datasets"
    __table_args__ = {"sqlite_autoincrement": True}
    id: int | None = Field(default=None, primary_key=True)
    institution: str = Field(index=True)
    encrypted_genotype: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    encrypted_phenotype: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    status: str = STATUS_PENDING
    created_at: datetime = Field(default_factory=utcnow)


class AnalysisResult(SQLModel, table=True):
    __tablename__ = "analysis_results"
    dataset_id: int = Field(foreign_key="datasets.id", primary_key=True)
    association_test: str = ""
    encrypted_statistic: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    encrypted_ratio: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    revealed: bool = False
    statistic: float | None = None
    p_value: float | None = None
    odds_ratio: float | None = None
    analyzed_at: datetime | None = None
    revealed_at: datetime | None = None
