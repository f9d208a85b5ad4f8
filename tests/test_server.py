import re
from harbor_isnad.client import AuthOrchestrator, HttpxTransport
from harbor_isnad.protocol import Challenge, VerifyRequest
from harbor_isnad.solver import solve_challenge

PEER = "12D3KooWabc"


def _challenge(client, peer_id=PEER) -> Challenge:
    resp = client.post("/auth/challenge", json={"peerId": peer_id})
    assert resp.status_code == 200
    return Challenge.model_validate(resp.json()["challenge"])


def _verify_body(challenge, peer_id=PEER) -> dict:
    return VerifyRequest(peer_id=peer_id, response=solve_challenge(challenge)).to_wire()


def test_challenge_endpoint_returns_camel_case_challenge(client):
    resp = client.post("/auth/challenge", json={"peerId": PEER})
    body = resp.json()["challenge"]
    assert set(body) == {"challengeId", "issuedAt", "tasks"}
    task = body["tasks"][0]
    assert task["type"] == "pattern_completion"
    assert task["sequences"] == [{"given": [10, 20, 30], "predictCount": 2}]
    assert body["tasks"][1]["expectedKeyword"] == "autonomous agent"


def test_verify_endpoint_issues_token(client):
    challenge = _challenge(client)
    resp = client.post("/auth/verify", json=_verify_body(challenge))
    assert resp.status_code == 200
    body = resp.json()
    assert re.fullmatch(r"isnad_[0-9a-f]{64}", body["token"])
    assert body["expiresInSeconds"] == 3600
    assert body["peerId"] == PEER


def test_verify_unknown_challenge_is_404(client):
    challenge = _challenge(client)
    body = _verify_body(challenge)
    client.post("/auth/verify", json=body)

    resp = client.post("/auth/verify", json=body)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Challenge not found or expired"}


def test_verify_with_other_peer_is_403(client):
    challenge = _challenge(client)
    resp = client.post("/auth/verify", json=_verify_body(challenge, peer_id="12D3KooWmallory"))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Peer ID mismatch"}


def test_verify_with_wrong_answers_is_403(client):
    challenge = _challenge(client)
    body = _verify_body(challenge)
    body["response"]["answers"][0]["predictions"] = [[1, 2]]
    body["response"]["answers"][1]["answer"] = "no"

    resp = client.post("/auth/verify", json=body)
    assert resp.status_code == 403
    assert resp.json()["error"].startswith("Verification failed:")


def test_verify_reconstruction_failure_is_500(client, app_store):
    challenge = _challenge(client)
    app_store._pending[challenge.challenge_id].raw_challenge = {"issuedAt": "yesterday"}

    resp = client.post("/auth/verify", json=_verify_body(challenge))
    assert resp.status_code == 500
    assert resp.json()["error"].startswith("Internal error:")


def test_check_endpoint(client, clock):
    challenge = _challenge(client)
    token = client.post("/auth/verify", json=_verify_body(challenge)).json()["token"]

    clock.advance(600)
    resp = client.post("/auth/check", json={"token": token})
    assert resp.json() == {"valid": True, "peerId": PEER, "remainingSeconds": 3000}

    clock.advance(3000)
    resp = client.post("/auth/check", json={"token": token})
    assert resp.json() == {"valid": False, "peerId": None, "remainingSeconds": 0}


def test_whoami_requires_live_token(client, clock):
    assert client.get("/auth/whoami").status_code == 401
    assert client.get("/auth/whoami", headers={"X-Isnad-Token": "isnad_bogus"}).status_code == 401

    challenge = _challenge(client)
    token = client.post("/auth/verify", json=_verify_body(challenge)).json()["token"]
    resp = client.get("/auth/whoami", headers={"X-Isnad-Token": token})
    assert resp.status_code == 200
    assert resp.json() == {"peerId": PEER, "remainingSeconds": 3600}

    clock.advance(3600)
    assert client.get("/auth/whoami", headers={"X-Isnad-Token": token}).status_code == 401


def test_stats_endpoint(client):
    _challenge(client)
    assert client.get("/auth/stats").json() == {
        "pendingChallenges": 1,
        "verifiedTokens": 0,
        "challengeTtl": 60,
        "tokenTtl": 3600,
    }


def test_end_to_end_handshake(client):
    orchestrator = AuthOrchestrator(HttpxTransport(client=client))

    token = orchestrator.authenticate("http://testserver/", PEER)

    assert re.fullmatch(r"isnad_[0-9a-f]{64}", token.token)
    assert token.peer_id == PEER
    assert token.expires_in_seconds == 3600
    check = client.post("/auth/check", json={"token": token.token}).json()
    assert check == {"valid": True, "peerId": PEER, "remainingSeconds": 3600}


def test_lifespan_runs_sweeper(app_store):
    from fastapi.testclient import TestClient
    from harbor_isnad.server import auth_app

    with TestClient(auth_app):
        assert app_store._sweeper is not None and app_store._sweeper.is_alive()
    assert app_store._sweeper is None
