# SPDX-License-Identifier: Apache-2.0
"""Strict schema for records stored under gwas_<id>, and the unparseable variant."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from gwassync.exceptions import ParseError

INDEX_KEY = "gwas_keys"
RECORD_PREFIX = "gwas_"

RecordStatus = Literal["pending", "processed", "error"]


def record_key(dataset_id: str) -> str:
    return f"{RECORD_PREFIX}{dataset_id}"


class StoredRecord(BaseModel):
    """Wire form: {data, timestamp, institution, studyType, status}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data: str = Field(..., min_length=1)
    timestamp: int = Field(..., ge=0)
    institution: str = Field(..., min_length=1)
    study_type: str = Field(..., alias="studyType", min_length=1)
    status: RecordStatus = "pending"

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class GwasDataset(StoredRecord):
    id: str

    def owned_by(self, account: str) -> bool:
        return bool(account) and self.institution.lower() == account.lower()

    def stored(self) -> StoredRecord:
        return StoredRecord.model_validate(self.model_dump(exclude={"id"}))


@dataclass(frozen=True)
class UnparseableRecord:
    id: str
    error: ParseError


class DatasetDraft(BaseModel):
    """What the uploader fills in; genomic_data is never stored in the clear."""

    study_type: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    genomic_data: str = Field(..., min_length=1)


def parse_record(dataset_id: str, raw: bytes) -> GwasDataset:
    key = record_key(dataset_id)
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(key, f"invalid JSON ({e})") from e
    if not isinstance(body, dict):
        raise ParseError(key, "record is not a JSON object")
    try:
        return GwasDataset.model_validate({**body, "id": dataset_id})
    except PydanticValidationError as e:
        raise ParseError(key, "; ".join(err["msg"] for err in e.errors())) from e


def parse_index(raw: bytes) -> list[str]:
    try:
        ids = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(INDEX_KEY, f"invalid JSON ({e})") from e
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ParseError(INDEX_KEY, "index is not a list of strings")
    return ids


def encode_index(ids: list[str]) -> bytes:
    return json.dumps(ids).encode("utf-8")
