import time

import jwt
import pytest
from pydantic import ValidationError

from bistro import config
from bistro.auth import ALGORITHM, TokenClaims, Unauthorized, issue_token, verify_token


def test_issued_token_verifies_to_same_claims():
    claims = TokenClaims(email="a@x.com")
    token = issue_token(claims)
    assert verify_token(token) == claims


def test_token_expires_after_one_hour():
    claims = TokenClaims(email="a@x.com")
    issued_at = int(time.time())
    payload = jwt.decode(issue_token(claims, now=issued_at), options={"verify_signature": False})
    assert payload["exp"] - payload["iat"] == 3600

    stale = issue_token(claims, now=issued_at - 3601)
    with pytest.raises(Unauthorized):
        verify_token(stale)


def test_token_signed_with_other_secret_rejected():
    forged = jwt.encode({"email": "a@x.com", "exp": int(time.time()) + 60}, "not-the-secret", algorithm=ALGORITHM)
    with pytest.raises(Unauthorized):
        verify_token(forged)


def test_secret_rotation_invalidates_old_tokens():
    token = issue_token(TokenClaims(email="a@x.com"))
    original = config.settings().token_secret
    config.configure(token_secret="rotated")
    try:
        with pytest.raises(Unauthorized):
            verify_token(token)
    finally:
        config.configure(token_secret=original)


@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
def test_malformed_tokens_rejected(token):
    with pytest.raises(Unauthorized):
        verify_token(token)


def test_token_without_email_rejected():
    secret = config.settings().token_secret
    token = jwt.encode({"name": "nobody", "exp": int(time.time()) + 60}, secret, algorithm=ALGORITHM)
    with pytest.raises(Unauthorized):
        verify_token(token)


def test_token_without_expiry_rejected():
    token = jwt.encode({"email": "a@x.com"}, config.settings().token_secret, algorithm=ALGORITHM)
    with pytest.raises(Unauthorized):
        verify_token(token)


def test_claims_reject_unknown_fields():
    with pytest.raises(ValidationError):
        TokenClaims(email="a@x.com", role="admin")


def test_jwt_endpoint_issues_token(client):
    r = client.post("/jwt", json={"email": "a@x.com"})
    assert r.status_code == 200
    assert verify_token(r.json()["token"]).email == "a@x.com"


def test_jwt_endpoint_rejects_nonconforming_claims(client):
    assert client.post("/jwt", json={"name": "no email"}).status_code == 422
    assert client.post("/jwt", json={"email": "not-an-email"}).status_code == 422
    assert client.post("/jwt", json={"email": "a@x.com", "role": "admin"}).status_code == 422
