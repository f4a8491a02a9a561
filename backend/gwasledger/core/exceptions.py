# SPDX-License-Identifier: Apache-2.0
"""Custom exception classes."""
from __future__ import annotations


class GwasLedgerError(Exception):
    """Base exception for the ledger."""

    status_code = 400


class ValidationError(GwasLedgerError):
    """Input validation failed."""


class NotFoundError(GwasLedgerError):
    """Resource not found."""

    status_code = 404


class NotAuthorizedError(GwasLedgerError):
    """Caller is not the dataset owner (or not the oracle)."""

    status_code = 403


class AlreadyAnalyzedError(GwasLedgerError):
    """Dataset has already left the pending stage."""

    status_code = 409


class AlreadyRevealedError(GwasLedgerError):
    """Dataset result has already been revealed."""

    status_code = 409


class NotAnalyzedError(GwasLedgerError):
    """Reveal requested before the analysis callback landed."""

    status_code = 409


class RequestPendingError(GwasLedgerError):
    """A decryption request for this dataset and stage is still in flight."""

    status_code = 409


class InvalidRequestError(GwasLedgerError):
    """Callback carries a request id the ledger never issued for that flow."""

    status_code = 404


class ProofVerificationFailedError(GwasLedgerError):
    """Decryption proof does not match the supplied cleartext."""


class CleartextFormatError(GwasLedgerError):
    """Oracle cleartext cannot be decoded into the expected vectors."""

    status_code = 422


class VersionConflictError(GwasLedgerError):
    """Compare-and-swap write lost against a concurrent writer."""

    status_code = 409

    def __init__(self, key: str, expected: int, current: int):
        super().__init__(f"Version conflict on '{key}': expected {expected}, current {current}")
        self.key = key
        self.expected = expected
        self.current = current
