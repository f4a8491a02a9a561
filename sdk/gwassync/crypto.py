# SPDX-License-Identifier: Apache-2.0
"""
Client-side encryption. Dosage and trait vectors are encrypted locally under
the ledger's public BFV context; only ciphertexts leave the machine.
"""
from __future__ import annotations

import base64
import json

from gwassync.records import DatasetDraft

ENVELOPE_PREFIX = "FHE-GWAS-"


def seal_draft(draft: DatasetDraft) -> str:
    """Opaque envelope stored in a key/value record's data field."""
    payload = json.dumps(draft.model_dump(), sort_keys=True).encode("utf-8")
    return ENVELOPE_PREFIX + base64.b64encode(payload).decode("ascii")


def open_envelope(data: str) -> dict:
    if not data.startswith(ENVELOPE_PREFIX):
        raise ValueError("Not an FHE-GWAS envelope")
    return json.loads(base64.b64decode(data[len(ENVELOPE_PREFIX):]))


def parse_vector(text: str, allowed: set[int]) -> list[int]:
    """'0,1,2,1' -> [0, 1, 2, 1], rejecting values outside allowed."""
    values = [int(v) for v in text.replace(" ", "").split(",") if v != ""]
    if not values:
        raise ValueError("Vector must contain at least one value")
    bad = sorted({v for v in values if v not in allowed})
    if bad:
        raise ValueError(f"Values {bad} not allowed (expected one of {sorted(allowed)})")
    return values


def encrypt_vector(public_context: bytes, values: list[int]) -> bytes:
    """Encrypt an integer vector under a serialized public BFV context."""
    import tenseal as ts

    ctx = ts.context_from(public_context)
    return ts.bfv_vector(ctx, [int(v) for v in values]).serialize()


def encrypt_dataset(public_context: bytes, genotypes: list[int], phenotypes: list[int]) -> tuple[bytes, bytes]:
    """Encrypt allele dosages (0/1/2) and case/control flags (1/0) for ledger submission."""
    if len(genotypes) != len(phenotypes):
        raise ValueError(f"Genotype/phenotype length mismatch: {len(genotypes)} vs {len(phenotypes)}")
    return encrypt_vector(public_context, genotypes), encrypt_vector(public_context, phenotypes)
