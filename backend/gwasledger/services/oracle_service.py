# SPDX-License-Identifier: Apache-2.0
"""
Decryption oracle: accepts ciphertext handles, later returns packed cleartext
plus a proof through the ledger's completion callbacks.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import threading
import uuid
from dataclasses import dataclass, field

from gwasledger.core.clock import utcnow
from gwasledger.core.codec import pack_cleartext
from gwasledger.core.exceptions import GwasLedgerError, InvalidRequestError

logger = logging.getLogger("gwasledger")


def compute_proof(key: bytes, request_id: str, cleartext: bytes) -> bytes:
    return hmac.new(key, request_id.encode("utf-8") + cleartext, hashlib.sha3_256).digest()


class ProofVerifier:
    """Checks that a cleartext was produced by the oracle for this request id."""

    def __init__(self, key: bytes | str):
        self._key = key.encode("utf-8") if isinstance(key, str) else key

    def verify(self, request_id: str, cleartext: bytes, proof: bytes) -> bool:
        return hmac.compare_digest(compute_proof(self._key, request_id, cleartext), proof)


@dataclass
class PendingDecryption:
    request_id: str
    handles: list[bytes]
    callback: str
    created_at: object = field(default_factory=utcnow)


@dataclass(frozen=True)
class DecryptionResponse:
    request_id: str
    cleartext: bytes
    proof: bytes


class DecryptionOracle:
    """In-process oracle holding the secret context. Requests are fulfilled in any order, never cancelled."""

    def __init__(self, backend, signing_key: bytes | str):
        self._backend = backend
        self._key = signing_key.encode("utf-8") if isinstance(signing_key, str) else signing_key
        self._pending: dict[str, PendingDecryption] = {}
        self._lock = threading.Lock()

    def request_decryption(self, handles: list[bytes], callback: str) -> str:
        request_id = uuid.uuid4().hex
        with self._lock:
            self._pending[request_id] = PendingDecryption(request_id, list(handles), callback)
        logger.info("oracle accepted decryption request %s (%s, %d ciphertexts)", request_id, callback, len(handles))
        return request_id

    def pending_requests(self) -> list[PendingDecryption]:
        with self._lock:
            return list(self._pending.values())

    def fulfill(self, request_id: str) -> DecryptionResponse:
        """Decrypt and sign one request, removing it from the queue."""
        with self._lock:
            pending = self._pending.pop(request_id, None)
        if pending is None:
            raise InvalidRequestError(f"Oracle has no pending request {request_id}")
        cleartext = pack_cleartext([self._backend.decrypt(h) for h in pending.handles])
        return DecryptionResponse(request_id, cleartext, compute_proof(self._key, request_id, cleartext))

    def relay(self, ledger) -> list[dict]:
        """Fulfil every pending request and deliver it to the matching ledger callback."""
        callbacks = {
            "analysis": ledger.complete_analysis,
            "reveal": ledger.complete_reveal,
        }
        delivered = []
        for pending in self.pending_requests():
            callback = callbacks.get(pending.callback)
            if callback is None:
                logger.error("Dropping request %s with unknown callback %s", pending.request_id, pending.callback)
                self.discard(pending.request_id)
                continue
            try:
                response = self.fulfill(pending.request_id)
                callback(response.request_id, response.cleartext, response.proof)
            except GwasLedgerError as e:
                logger.warning("Callback %s for %s rejected: %s", pending.callback, pending.request_id, e)
                self._abandon(ledger, pending, str(e), delivered)
                continue
            except Exception as e:
                # decryption backends raise their own error types on malformed ciphertexts
                logger.error("Decryption of %s failed: %s", pending.request_id, e, exc_info=True)
                self._abandon(ledger, pending, f"Decryption failed: {e}", delivered)
                continue
            delivered.append({"request_id": pending.request_id, "callback": pending.callback, "ok": True})
        return delivered

    def _abandon(self, ledger, pending: PendingDecryption, reason: str, delivered: list[dict]) -> None:
        """Drop a request that will never be delivered and tell the ledger so its dataset is not left waiting."""
        self.discard(pending.request_id)
        ledger.fail_request(pending.request_id, reason)
        delivered.append({"request_id": pending.request_id, "callback": pending.callback, "ok": False, "error": reason})

    def discard(self, request_id: str) -> None:
        with self._lock:
            self._pending.pop(request_id, None)
