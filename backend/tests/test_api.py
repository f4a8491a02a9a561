# SPDX-License-Identifier: Apache-2.0
"""HTTP surface: dataset workflow, oracle callbacks, key/value store, system routes."""
import base64

import pytest

from gwasledger.core.codec import decode_fixed_point, pack_cleartext
from gwasledger.core.statistics import allelic_chi_square
from gwasledger.services.oracle_service import compute_proof

OWNER = {"X-Institution": "0xOwner"}
OTHER = {"X-Institution": "0xother"}


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _submit(client, backend, samples, headers=OWNER):
    g, p = samples
    resp = client.post(
        "/datasets",
        json={"encrypted_genotype": b64(backend.encrypt(g)), "encrypted_phenotype": b64(backend.encrypt(p))},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["dataset_id"]


def _deliver(client, oracle, oracle_headers, request_id, flow):
    response = oracle.fulfill(request_id)
    return client.post(
        f"/oracle/callbacks/{flow}",
        json={"request_id": request_id, "cleartext": b64(response.cleartext), "proof": b64(response.proof)},
        headers=oracle_headers,
    )


def test_health(client):
    resp = client.get("/system/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_public_context(client):
    resp = client.get("/system/public-context")
    assert base64.b64decode(resp.json()["context"]) == b"fake-public-context"


def test_association_tests_listed(client):
    body = client.get("/system/association-tests").json()
    assert body["active"] == "allelic_chi_square"
    assert set(body["tests"]) == {"allelic_chi_square", "cochran_armitage_trend"}


def test_submit_and_get(client, backend, samples):
    dataset_id = _submit(client, backend, samples)
    body = client.get(f"/datasets/{dataset_id}").json()
    assert body["status"] == "pending"
    assert body["institution"] == "0xowner"
    listed = client.get("/datasets", params={"institution": "0xOWNER"}).json()
    assert [d["id"] for d in listed] == [dataset_id]


def test_submit_requires_institution_header(client, backend, samples):
    g, p = samples
    resp = client.post(
        "/datasets",
        json={"encrypted_genotype": b64(backend.encrypt(g)), "encrypted_phenotype": b64(backend.encrypt(p))},
    )
    assert resp.status_code == 422


def test_submit_rejects_bad_base64(client):
    resp = client.post(
        "/datasets", json={"encrypted_genotype": "not base64!!", "encrypted_phenotype": "AAAA"}, headers=OWNER
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


def test_unknown_dataset_is_404(client):
    assert client.get("/datasets/42").status_code == 404
    resp = client.post("/datasets/42/analysis", headers=OWNER)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFoundError"


def test_result_placeholders(client, backend, samples):
    dataset_id = _submit(client, backend, samples)
    body = client.get(f"/datasets/{dataset_id}/result").json()
    assert body["revealed"] is False
    assert decode_fixed_point(backend.decrypt(base64.b64decode(body["statistic"]))) == 0.0


def test_non_owner_forbidden(client, backend, samples):
    dataset_id = _submit(client, backend, samples)
    resp = client.post(f"/datasets/{dataset_id}/analysis", headers=OTHER)
    assert resp.status_code == 403
    assert resp.json()["error"] == "NotAuthorizedError"


def test_full_workflow_over_http(client, backend, oracle, oracle_headers, samples):
    dataset_id = _submit(client, backend, samples)

    resp = client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER)
    assert resp.status_code == 200
    request_id = resp.json()["request_id"]
    assert client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).status_code == 409

    pending = client.get("/oracle/requests", headers=oracle_headers).json()
    assert [p["request_id"] for p in pending] == [request_id]

    resp = _deliver(client, oracle, oracle_headers, request_id, "analysis")
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "analyzed"

    resp = client.post(f"/datasets/{dataset_id}/reveal", headers=OWNER)
    assert resp.status_code == 200
    resp = _deliver(client, oracle, oracle_headers, resp.json()["request_id"], "reveal")
    body = resp.json()
    assert body["status"] == "revealed"
    expected = allelic_chi_square(*samples)
    assert body["result"]["statistic"] == pytest.approx(expected.statistic, abs=1e-6)
    assert body["result"]["odds_ratio"] == pytest.approx(expected.odds_ratio, abs=1e-6)

    verify = client.get("/system/events/verify").json()
    assert verify["valid"] is True
    assert verify["checked"] == 5
    events = client.get("/system/events", params={"dataset_id": dataset_id}).json()
    assert [e["event_type"] for e in events][-1] == "ResultRevealed"


def test_reveal_before_analysis_conflicts(client, backend, samples):
    dataset_id = _submit(client, backend, samples)
    resp = client.post(f"/datasets/{dataset_id}/reveal", headers=OWNER)
    assert resp.status_code == 409
    assert resp.json()["error"] == "NotAnalyzedError"


def test_callback_requires_oracle_token(client, backend, oracle, samples):
    dataset_id = _submit(client, backend, samples)
    request_id = client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).json()["request_id"]
    response = oracle.fulfill(request_id)
    body = {"request_id": request_id, "cleartext": b64(response.cleartext), "proof": b64(response.proof)}
    assert client.post("/oracle/callbacks/analysis", json=body).status_code == 422
    resp = client.post("/oracle/callbacks/analysis", json=body, headers={"X-Oracle-Token": "wrong-token-value"})
    assert resp.status_code == 403
    assert client.get(f"/datasets/{dataset_id}").json()["status"] == "pending"


def test_callback_with_bad_proof(client, backend, oracle, oracle_headers, samples):
    dataset_id = _submit(client, backend, samples)
    request_id = client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).json()["request_id"]
    response = oracle.fulfill(request_id)
    body = {"request_id": request_id, "cleartext": b64(response.cleartext), "proof": b64(b"\x01" * 32)}
    resp = client.post("/oracle/callbacks/analysis", json=body, headers=oracle_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "ProofVerificationFailedError"


def test_callback_unknown_request(client, oracle_headers):
    body = {"request_id": "nope", "cleartext": "", "proof": ""}
    resp = client.post("/oracle/callbacks/reveal", json=body, headers=oracle_headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "InvalidRequestError"


def test_relay_endpoint(client, backend, oracle_headers, samples):
    dataset_id = _submit(client, backend, samples)
    client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER)
    resp = client.post("/oracle/relay", headers=oracle_headers)
    assert resp.status_code == 200
    assert [d["ok"] for d in resp.json()["delivered"]] == [True]
    assert client.get(f"/datasets/{dataset_id}").json()["status"] == "analyzed"


def test_relay_endpoint_reports_undecryptable_submission(client, oracle_headers):
    body = {"encrypted_genotype": b64(b"garbage"), "encrypted_phenotype": b64(b"garbage")}
    dataset_id = client.post("/datasets", json=body, headers=OWNER).json()["dataset_id"]
    request_id = client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).json()["request_id"]
    resp = client.post("/oracle/relay", headers=oracle_headers)
    assert resp.status_code == 200
    [outcome] = resp.json()["delivered"]
    assert outcome["request_id"] == request_id
    assert outcome["ok"] is False
    assert client.get(f"/datasets/{dataset_id}").json()["status"] == "pending"
    events = client.get("/system/events", params={"dataset_id": dataset_id}).json()
    assert events[-1]["event_type"] == "DecryptionFailed"
    assert client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).status_code == 200


def test_http_callback_removes_request_from_relay_queue(client, backend, oracle_headers, samples):
    dataset_id = _submit(client, backend, samples)
    request_id = client.post(f"/datasets/{dataset_id}/analysis", headers=OWNER).json()["request_id"]
    # an external relayer decrypts and signs without touching the in-process queue
    cleartext = pack_cleartext(list(samples))
    proof = compute_proof(b"test-oracle-proof-key", request_id, cleartext)
    body = {"request_id": request_id, "cleartext": b64(cleartext), "proof": b64(proof)}
    assert client.post("/oracle/callbacks/analysis", json=body, headers=oracle_headers).status_code == 200
    assert client.get("/oracle/requests", headers=oracle_headers).json() == []
    assert client.post("/oracle/relay", headers=oracle_headers).json() == {"delivered": []}
    assert client.get(f"/datasets/{dataset_id}").json()["status"] == "analyzed"


def test_kv_get_missing(client):
    assert client.get("/kv/gwas_keys").json() == {"key": "gwas_keys", "value": "", "version": 0}


def test_kv_put_and_get(client):
    resp = client.put("/kv/gwas_keys", json={"value": b64(b'["a"]')})
    assert resp.json() == {"key": "gwas_keys", "version": 1}
    body = client.get("/kv/gwas_keys").json()
    assert base64.b64decode(body["value"]) == b'["a"]'
    assert body["version"] == 1


def test_kv_compare_and_set_conflict(client):
    assert client.put("/kv/k", json={"value": b64(b"1"), "expected_version": 0}).status_code == 200
    resp = client.put("/kv/k", json={"value": b64(b"2"), "expected_version": 0})
    assert resp.status_code == 409
    assert resp.json()["error"] == "VersionConflictError"
    assert client.put("/kv/k", json={"value": b64(b"2"), "expected_version": 1}).json()["version"] == 2


def test_kv_invalid_key(client):
    resp = client.put("/kv/bad key", json={"value": ""})
    assert resp.status_code == 400
