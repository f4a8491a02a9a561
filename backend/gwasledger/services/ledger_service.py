# SPDX-License-Identifier: Apache-2.0
"""
Dataset lifecycle ledger.

pending --(request_analysis + oracle callback)--> analyzed
        --(request_reveal + oracle callback)--> revealed

Each public method opens one session and commits once; a raised error leaves
datasets and results untouched. A request whose verified cleartext cannot be
used is marked failed so the owner can ask again.
"""
from __future__ import annotations

import logging
from typing import NamedTuple

from fastapi import Request
from sqlmodel import Session, select

from gwasledger.core.clock import as_utc, utcnow
from gwasledger.core.codec import decode_fixed_point, encode_fixed_point, unpack_cleartext
from gwasledger.core.exceptions import (
    AlreadyAnalyzedError,
    AlreadyRevealedError,
    CleartextFormatError,
    InvalidRequestError,
    NotAnalyzedError,
    NotAuthorizedError,
    NotFoundError,
    ProofVerificationFailedError,
    RequestPendingError,
    ValidationError,
)
from gwasledger.core.statistics import ASSOCIATION_TESTS, chi2_sf_1df, run_association_test
from gwasledger.models import AnalysisResult, Dataset, DecryptionRequest
from gwasledger.models.dataset import STATUS_ANALYZED, STATUS_PENDING, STATUS_REVEALED
from gwasledger.models.request import FLOW_ANALYSIS, FLOW_REVEAL
from gwasledger.services import event_service

logger = logging.getLogger("gwasledger")


class EncryptedResult(NamedTuple):
    statistic: bytes
    ratio: bytes
    revealed: bool


def dataset_view(dataset: Dataset, result: AnalysisResult | None) -> dict:
    """Public view of a dataset: no ciphertext bytes."""
    out = {
        "id": dataset.id,
        "institution": dataset.institution,
        "status": dataset.status,
        "created_at": as_utc(dataset.created_at).isoformat(),
        "revealed": bool(result and result.revealed),
    }
    if result is not None and result.revealed:
        out["result"] = {
            "association_test": result.association_test,
            "statistic": result.statistic,
            "p_value": result.p_value,
            "odds_ratio": result.odds_ratio,
            "revealed_at": as_utc(result.revealed_at).isoformat() if result.revealed_at else None,
        }
    return out


class GwasLedger:
    """Authoritative record of encrypted datasets, results and decryption requests."""

    def __init__(
        self,
        engine,
        backend,
        oracle,
        verifier,
        association_test: str = "allelic_chi_square",
        max_payload_bytes: int | None = None,
    ):
        if association_test not in ASSOCIATION_TESTS:
            raise ValueError(f"Unknown association test: {association_test}")
        self.engine = engine
        self.backend = backend
        self.oracle = oracle
        self.verifier = verifier
        self.association_test = association_test
        self.max_payload_bytes = max_payload_bytes

    # -- helpers ---------------------------------------------------------

    def _encrypted_zero(self) -> bytes:
        return self.backend.encrypt(encode_fixed_point(0.0))

    @staticmethod
    def _get_dataset(session: Session, dataset_id: int) -> Dataset:
        dataset = session.get(Dataset, dataset_id)
        if dataset is None:
            raise NotFoundError(f"Dataset {dataset_id} not found")
        return dataset

    @staticmethod
    def _require_owner(dataset: Dataset, caller: str) -> None:
        if dataset.institution != caller.lower():
            raise NotAuthorizedError(f"Only the submitting institution may act on dataset {dataset.id}")

    @staticmethod
    def _has_outstanding(session: Session, dataset_id: int, flow: str) -> bool:
        stmt = select(DecryptionRequest).where(
            DecryptionRequest.dataset_id == dataset_id,
            DecryptionRequest.flow == flow,
            DecryptionRequest.fulfilled_at == None,  # noqa: E711
            DecryptionRequest.failed_at == None,  # noqa: E711
        )
        return session.exec(stmt).first() is not None

    @staticmethod
    def _resolve(session: Session, request_id: str, flow: str) -> DecryptionRequest:
        request = session.get(DecryptionRequest, request_id)
        if request is None or request.flow != flow:
            raise InvalidRequestError(f"Unknown {flow} request {request_id}")
        if request.failed_at is not None:
            raise InvalidRequestError(f"Request {request_id} was abandoned: {request.error}")
        return request

    def _verify(self, request_id: str, cleartext: bytes, proof: bytes) -> None:
        if not self.verifier.verify(request_id, cleartext, proof):
            raise ProofVerificationFailedError(f"Decryption proof rejected for request {request_id}")

    @staticmethod
    def _record_failure(session: Session, request_id: str, reason: str) -> None:
        request = session.get(DecryptionRequest, request_id)
        if request is None or request.fulfilled_at is not None or request.failed_at is not None:
            return
        request.failed_at = utcnow()
        request.error = reason[:500]
        session.add(request)
        event_service.write_event(
            session,
            event_service.DECRYPTION_FAILED,
            request.dataset_id,
            "oracle",
            {"request_id": request_id, "flow": request.flow, "error": request.error},
        )
        session.commit()
        logger.warning("Decryption request %s for dataset %s failed: %s", request_id, request.dataset_id, reason)

    def _check_payload(self, name: str, payload: bytes) -> None:
        if not payload:
            raise ValidationError(f"{name} ciphertext must not be empty")
        if self.max_payload_bytes is not None and len(payload) > self.max_payload_bytes:
            raise ValidationError(f"{name} ciphertext exceeds {self.max_payload_bytes} bytes")

    # -- state-changing entry points --------------------------------------

    def submit(self, caller: str, encrypted_genotype: bytes, encrypted_phenotype: bytes) -> int:
        self._check_payload("Genotype", encrypted_genotype)
        self._check_payload("Phenotype", encrypted_phenotype)
        institution = caller.lower()
        with Session(self.engine) as session:
            dataset = Dataset(
                institution=institution,
                encrypted_genotype=encrypted_genotype,
                encrypted_phenotype=encrypted_phenotype,
            )
            session.add(dataset)
            session.flush()
            session.add(
                AnalysisResult(
                    dataset_id=dataset.id,
                    encrypted_statistic=self._encrypted_zero(),
                    encrypted_ratio=self._encrypted_zero(),
                )
            )
            event_service.write_event(session, event_service.DATASET_SUBMITTED, dataset.id, institution, {})
            session.commit()
            return dataset.id

    def request_analysis(self, caller: str, dataset_id: int) -> str:
        with Session(self.engine) as session:
            dataset = self._get_dataset(session, dataset_id)
            self._require_owner(dataset, caller)
            if dataset.status != STATUS_PENDING:
                raise AlreadyAnalyzedError(f"Dataset {dataset_id} is already {dataset.status}")
            if self._has_outstanding(session, dataset_id, FLOW_ANALYSIS):
                raise RequestPendingError(f"Analysis of dataset {dataset_id} is already in flight")
            request_id = self.oracle.request_decryption(
                [dataset.encrypted_genotype, dataset.encrypted_phenotype], FLOW_ANALYSIS
            )
            session.add(
                DecryptionRequest(
                    request_id=request_id, dataset_id=dataset_id, flow=FLOW_ANALYSIS, requested_by=dataset.institution
                )
            )
            event_service.write_event(
                session, event_service.ANALYSIS_REQUESTED, dataset_id, dataset.institution, {"request_id": request_id}
            )
            session.commit()
            return request_id

    def complete_analysis(self, request_id: str, cleartext: bytes, proof: bytes) -> None:
        with Session(self.engine) as session:
            request = self._resolve(session, request_id, FLOW_ANALYSIS)
            self._verify(request_id, cleartext, proof)
            dataset = self._get_dataset(session, request.dataset_id)
            if dataset.status != STATUS_PENDING:
                raise AlreadyAnalyzedError(f"Dataset {dataset.id} is already {dataset.status}")
            try:
                genotypes, phenotypes = unpack_cleartext(cleartext, 2)
                outcome = run_association_test(self.association_test, genotypes, phenotypes)
            except CleartextFormatError as e:
                session.rollback()
                self._record_failure(session, request_id, str(e))
                raise
            result = session.get(AnalysisResult, dataset.id)
            result.association_test = self.association_test
            result.encrypted_statistic = self.backend.encrypt(encode_fixed_point(outcome.statistic))
            result.encrypted_ratio = self.backend.encrypt(encode_fixed_point(outcome.odds_ratio))
            result.analyzed_at = utcnow()
            dataset.status = STATUS_ANALYZED
            request.fulfilled_at = utcnow()
            session.add_all([result, dataset, request])
            event_service.write_event(
                session,
                event_service.ANALYSIS_COMPLETED,
                dataset.id,
                "oracle",
                {"request_id": request_id, "association_test": self.association_test, "samples": len(genotypes)},
            )
            session.commit()

    def request_reveal(self, caller: str, dataset_id: int) -> str:
        with Session(self.engine) as session:
            dataset = self._get_dataset(session, dataset_id)
            self._require_owner(dataset, caller)
            if dataset.status == STATUS_PENDING:
                raise NotAnalyzedError(f"Dataset {dataset_id} has not been analyzed yet")
            if dataset.status == STATUS_REVEALED:
                raise AlreadyRevealedError(f"Dataset {dataset_id} is already revealed")
            if self._has_outstanding(session, dataset_id, FLOW_REVEAL):
                raise RequestPendingError(f"Reveal of dataset {dataset_id} is already in flight")
            result = session.get(AnalysisResult, dataset_id)
            request_id = self.oracle.request_decryption(
                [result.encrypted_statistic, result.encrypted_ratio], FLOW_REVEAL
            )
            session.add(
                DecryptionRequest(
                    request_id=request_id, dataset_id=dataset_id, flow=FLOW_REVEAL, requested_by=dataset.institution
                )
            )
            event_service.write_event(
                session, event_service.REVEAL_REQUESTED, dataset_id, dataset.institution, {"request_id": request_id}
            )
            session.commit()
            return request_id

    def complete_reveal(self, request_id: str, cleartext: bytes, proof: bytes) -> None:
        with Session(self.engine) as session:
            request = self._resolve(session, request_id, FLOW_REVEAL)
            self._verify(request_id, cleartext, proof)
            dataset = self._get_dataset(session, request.dataset_id)
            if dataset.status == STATUS_REVEALED:
                raise AlreadyRevealedError(f"Dataset {dataset.id} is already revealed")
            try:
                statistic_limbs, ratio_limbs = unpack_cleartext(cleartext, 2)
                statistic = decode_fixed_point(statistic_limbs)
                odds_ratio = decode_fixed_point(ratio_limbs)
            except CleartextFormatError as e:
                session.rollback()
                self._record_failure(session, request_id, str(e))
                raise
            result = session.get(AnalysisResult, dataset.id)
            result.statistic = statistic
            result.p_value = chi2_sf_1df(statistic)
            result.odds_ratio = odds_ratio
            result.revealed = True
            result.revealed_at = utcnow()
            dataset.status = STATUS_REVEALED
            request.fulfilled_at = utcnow()
            session.add_all([result, dataset, request])
            event_service.write_event(
                session,
                event_service.RESULT_REVEALED,
                dataset.id,
                "oracle",
                {"request_id": request_id, "statistic": statistic, "p_value": result.p_value, "odds_ratio": odds_ratio},
            )
            session.commit()

    def fail_request(self, request_id: str, reason: str) -> None:
        """
        Abandon an outstanding request that will never be delivered. The
        dataset keeps its status and the owner may request again. Unknown,
        fulfilled or already failed requests are left alone.
        """
        with Session(self.engine) as session:
            self._record_failure(session, request_id, reason)

    # -- read entry points -------------------------------------------------

    def get_result(self, dataset_id: int) -> EncryptedResult:
        with Session(self.engine) as session:
            self._get_dataset(session, dataset_id)
            result = session.get(AnalysisResult, dataset_id)
            return EncryptedResult(result.encrypted_statistic, result.encrypted_ratio, result.revealed)

    def dataset_for_request(self, request_id: str) -> int:
        with Session(self.engine) as session:
            request = session.get(DecryptionRequest, request_id)
            if request is None:
                raise InvalidRequestError(f"Unknown request {request_id}")
            return request.dataset_id

    def get_dataset(self, dataset_id: int) -> dict:
        with Session(self.engine) as session:
            dataset = self._get_dataset(session, dataset_id)
            return dataset_view(dataset, session.get(AnalysisResult, dataset_id))

    def list_datasets(self, institution: str | None = None, status: str | None = None) -> list[dict]:
        with Session(self.engine) as session:
            stmt = select(Dataset).order_by(Dataset.id.asc())
            if institution:
                stmt = stmt.where(Dataset.institution == institution.lower())
            if status:
                stmt = stmt.where(Dataset.status == status)
            rows = session.exec(stmt).all()
            return [dataset_view(d, session.get(AnalysisResult, d.id)) for d in rows]


def get_ledger(request: Request) -> GwasLedger:
    """FastAPI dependency: the ledger constructed once at startup."""
    return request.app.state.ledger
