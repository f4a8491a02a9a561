# SPDX-License-Identifier: Apache-2.0
"""All configuration via environment variables (12-factor). No hardcoded values."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite:///./gwas_ledger.db", description="Database URL")

    # Payload limits
    max_payload_mb: int = Field(default=16, ge=1, le=512, description="Max ciphertext payload size in MB")
    kv_max_value_kb: int = Field(default=512, ge=1, le=65536, description="Max key/value entry size in KB")

    # Security: set real values in .env for production
    secret_key: str = Field(default="dev-secret-key-change-in-production", min_length=16)
    rate_limit_enabled: bool = Field(default=True, description="Enable slowapi rate limits")

    # CORS
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )

    # Decryption oracle
    oracle_token: str = Field(default="dev-oracle-token-change-me", min_length=16, description="Shared token for oracle callbacks")
    oracle_proof_key: str = Field(default="dev-oracle-proof-key-change-me", min_length=16, description="HMAC key for decryption proofs")

    # FHE (TenSEAL BFV)
    fhe_context_path: str | None = Field(default=None, description="Persist the secret BFV context here; ephemeral when unset")
    poly_modulus_degree: int = Field(default=4096, description="BFV polynomial modulus degree")
    plain_modulus: int = Field(default=1032193, description="BFV plaintext modulus")

    # Statistics
    association_test: str = Field(default="allelic_chi_square", description="Association test run on analysis callbacks")

    # Logging
    log_level: str = Field(default="INFO", description="Level for the gwasledger logger")

    @property
    def fhe_context_file(self) -> Path | None:
        return Path(self.fhe_context_path) if self.fhe_context_path else None

    @property
    def max_payload_bytes(self) -> int:
        return self.max_payload_mb * 1024 * 1024

    @property
    def kv_max_value_bytes(self) -> int:
        return self.kv_max_value_kb * 1024

    @property
    def production(self) -> bool:
        return self.secret_key != "dev-secret-key-change-in-production"


settings = Settings()

# Derived once at import; routers and services read these
SQLITE_URL = settings.database_url
MAX_PAYLOAD_BYTES = settings.max_payload_bytes
KV_MAX_VALUE_BYTES = settings.kv_max_value_bytes
PRODUCTION = settings.production
KV_KEY_PATTERN = r"^[A-Za-z0-9_.:\-]{1,200}$"
INITIAL_HASH = "0" * 64
