# SPDX-License-Identifier: Apache-2.0
"""LedgerClient: the ledger's dataset workflow over HTTP."""
from __future__ import annotations

import base64
from typing import Any

import requests

from gwassync.exceptions import APIError


class LedgerClient:
    """Client for the ledger API, acting as one institution."""

    def __init__(
        self,
        api_base_url: str = "http://localhost:8000",
        institution: str = "",
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.institution = institution
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"X-Institution": self.institution} if self.institution else {}
        headers.update(extra or {})
        return headers

    def _request(self, method: str, path: str, headers: dict[str, str] | None = None, **kwargs) -> Any:
        try:
            resp = self.session.request(
                method, f"{self.api_base_url}{path}", headers=self._headers(headers), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise APIError(0, str(e)) from e
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise APIError(resp.status_code, str(detail))
        return resp.json()

    def is_available(self) -> bool:
        try:
            return self._request("GET", "/system/health").get("status") == "ok"
        except APIError:
            return False

    def public_context(self) -> bytes:
        return base64.b64decode(self._request("GET", "/system/public-context")["context"])

    def submit(self, encrypted_genotype: bytes, encrypted_phenotype: bytes) -> int:
        body = {
            "encrypted_genotype": base64.b64encode(encrypted_genotype).decode("ascii"),
            "encrypted_phenotype": base64.b64encode(encrypted_phenotype).decode("ascii"),
        }
        return int(self._request("POST", "/datasets", json=body)["dataset_id"])

    def request_analysis(self, dataset_id: int) -> str:
        return self._request("POST", f"/datasets/{dataset_id}/analysis")["request_id"]

    def request_reveal(self, dataset_id: int) -> str:
        return self._request("POST", f"/datasets/{dataset_id}/reveal")["request_id"]

    def get_result(self, dataset_id: int) -> dict[str, Any]:
        """Encrypted statistic/ratio as bytes plus the revealed flag."""
        body = self._request("GET", f"/datasets/{dataset_id}/result")
        return {
            "statistic": base64.b64decode(body["statistic"]),
            "ratio": base64.b64decode(body["ratio"]),
            "revealed": bool(body["revealed"]),
        }

    def get_dataset(self, dataset_id: int) -> dict[str, Any]:
        return self._request("GET", f"/datasets/{dataset_id}")

    def list_datasets(self, institution: str = "", status: str = "") -> list[dict[str, Any]]:
        return self._request("GET", "/datasets", params={"institution": institution, "status": status})

    def relay(self, oracle_token: str) -> list[dict[str, Any]]:
        """Ask the in-process oracle to fulfil and deliver every pending request."""
        return self._request("POST", "/oracle/relay", headers={"X-Oracle-Token": oracle_token})["delivered"]
