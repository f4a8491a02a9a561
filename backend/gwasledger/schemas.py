# SPDX-License-Identifier: Apache-2.0
"""Pydantic request/response schemas. Binary fields travel as base64 strings."""
import base64
import binascii

from pydantic import BaseModel, Field as PydanticField

from gwasledger.core.exceptions import ValidationError


def b64decode_field(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"Field '{name}' is not valid base64")


def b64encode_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


class DatasetSubmit(BaseModel):
    encrypted_genotype: str = PydanticField(..., min_length=1, description="base64 BFV ciphertext of allele dosages")
    encrypted_phenotype: str = PydanticField(..., min_length=1, description="base64 BFV ciphertext of case/control flags")


class OracleCallback(BaseModel):
    request_id: str = PydanticField(..., max_length=64)
    cleartext: str = PydanticField(..., description="base64 packed uint64 words")
    proof: str = PydanticField(..., description="base64 proof")


class KeyValueWrite(BaseModel):
    value: str = PydanticField("", description="base64 value")
    expected_version: int | None = PydanticField(None, ge=0, description="compare-and-swap guard; 0 = key absent")
