# SPDX-License-Identifier: Apache-2.0
"""Homomorphic encryption backend: TenSEAL BFV vectors as opaque ciphertext handles."""
from __future__ import annotations

import logging
from pathlib import Path

import tenseal as ts

logger = logging.getLogger("gwasledger")


class TenSealBackend:
    """
    Integer vectors under the BFV scheme.
    The ledger only needs encrypt() and public_context(); decrypt() requires
    the secret context and is used by the decryption oracle alone.
    """

    def __init__(self, context: "ts.Context"):
        self._context = context

    @classmethod
    def generate(cls, poly_modulus_degree: int = 4096, plain_modulus: int = 1032193) -> "TenSealBackend":
        context = ts.context(
            ts.SCHEME_TYPE.BFV,
            poly_modulus_degree=poly_modulus_degree,
            plain_modulus=plain_modulus,
        )
        return cls(context)

    @classmethod
    def from_bytes(cls, serialized: bytes) -> "TenSealBackend":
        return cls(ts.context_from(serialized))

    @classmethod
    def from_settings(cls, settings) -> "TenSealBackend":
        """Load the secret context from settings.fhe_context_file, generating (and saving) it when absent."""
        path: Path | None = settings.fhe_context_file
        if path is not None and path.exists():
            logger.info("Loading BFV context from %s", path)
            return cls.from_bytes(path.read_bytes())
        backend = cls.generate(settings.poly_modulus_degree, settings.plain_modulus)
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(backend.secret_context())
            logger.info("Generated BFV context and saved it to %s", path)
        else:
            logger.warning("Generated ephemeral BFV context; ciphertexts will not survive a restart")
        return backend

    @property
    def has_secret_key(self) -> bool:
        return self._context.has_secret_key()

    def public_context(self) -> bytes:
        return self._context.serialize(save_secret_key=False)

    def secret_context(self) -> bytes:
        return self._context.serialize(save_secret_key=True)

    def encrypt(self, values: list[int]) -> bytes:
        return ts.bfv_vector(self._context, [int(v) for v in values]).serialize()

    def decrypt(self, handle: bytes) -> list[int]:
        if not self.has_secret_key:
            raise PermissionError("Decryption requires the secret BFV context")
        vector = ts.bfv_vector_from(self._context, handle)
        return [int(v) for v in vector.decrypt()]
