"""
Tests for the JWT token management functionality.

This module tests token signing, verification outcomes, issuance into the
user's allowlists, revocation and refresh token rotation.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from pydantic import SecretStr

from farm_auth.config import settings
from farm_auth.config.jwt_config import (TOKEN_TYPE_ACCESS, TOKEN_TYPE_REFRESH,
                                         ConfigurationError, get_signing_key)
from farm_auth.models import User
from farm_auth.token import (RefreshTokenNotFoundError, TokenStatus,
                             create_token, issue_token_pair, revoke_all_tokens,
                             rotate_refresh_token, verify_token)


def _now():
    return datetime.now(timezone.utc).replace(microsecond=0)


def test_create_access_token_claims(test_user):
    """Access tokens carry the user, type, a unique id and a 15 minute lifetime."""
    token = create_token(test_user.id, TOKEN_TYPE_ACCESS)

    payload = jwt.decode(token, "test-access-secret", algorithms=["HS256"])
    assert payload["sub"] == test_user.id
    assert payload["type"] == TOKEN_TYPE_ACCESS
    assert payload["jti"]
    assert payload["exp"] - payload["iat"] == 15 * 60


def test_create_refresh_token_lifetime(test_user):
    """Refresh tokens live seven days and use the refresh secret."""
    token = create_token(test_user.id, TOKEN_TYPE_REFRESH)

    payload = jwt.decode(token, "test-refresh-secret", algorithms=["HS256"])
    assert payload["type"] == TOKEN_TYPE_REFRESH
    assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60


def test_tokens_minted_together_are_distinct(test_user):
    """Two tokens for the same user in the same second still differ."""
    now = _now()
    first = create_token(test_user.id, TOKEN_TYPE_ACCESS, now=now)
    second = create_token(test_user.id, TOKEN_TYPE_ACCESS, now=now)
    assert first != second


def test_verify_valid_token(test_user):
    token = create_token(test_user.id, TOKEN_TYPE_ACCESS)

    result = verify_token(token, TOKEN_TYPE_ACCESS)

    assert result.status is TokenStatus.VALID
    assert result.ok
    assert result.user_id == test_user.id


def test_expiry_boundary():
    """A token one second past expiry is expired; one second before it is valid."""
    now = _now()
    expired = create_token("user-1", TOKEN_TYPE_ACCESS, expires_delta=timedelta(seconds=-1), now=now)
    fresh = create_token("user-1", TOKEN_TYPE_ACCESS, expires_delta=timedelta(seconds=1), now=now)

    expired_result = verify_token(expired, TOKEN_TYPE_ACCESS, now=now)
    assert expired_result.status is TokenStatus.EXPIRED
    assert expired_result.user_id == "user-1"

    assert verify_token(fresh, TOKEN_TYPE_ACCESS, now=now).status is TokenStatus.VALID


def test_token_expires_exactly_at_exp():
    now = _now()
    token = create_token("user-1", TOKEN_TYPE_ACCESS, expires_delta=timedelta(seconds=0), now=now)
    assert verify_token(token, TOKEN_TYPE_ACCESS, now=now).status is TokenStatus.EXPIRED


def test_access_token_rejected_as_refresh_token(test_user):
    """Access and refresh tokens are signed with different secrets."""
    token = create_token(test_user.id, TOKEN_TYPE_ACCESS)
    assert verify_token(token, TOKEN_TYPE_REFRESH).status is TokenStatus.SIGNATURE_MISMATCH


def test_tampered_token_signature_mismatch(test_user):
    token = create_token(test_user.id, TOKEN_TYPE_ACCESS)
    forged = jwt.encode(
        jwt.decode(token, options={"verify_signature": False}),
        "some-other-secret",
        algorithm="HS256",
    )
    assert verify_token(forged, TOKEN_TYPE_ACCESS).status is TokenStatus.SIGNATURE_MISMATCH


@pytest.mark.parametrize("token", ["invalid.token.string", "not-a-jwt", ""])
def test_garbage_token_is_malformed(token):
    assert verify_token(token, TOKEN_TYPE_ACCESS).status is TokenStatus.MALFORMED


def test_token_without_subject_is_malformed():
    now = _now()
    token = jwt.encode(
        {"type": TOKEN_TYPE_ACCESS, "jti": "x", "iat": now, "exp": now + timedelta(minutes=5)},
        "test-access-secret",
        algorithm="HS256",
    )
    assert verify_token(token, TOKEN_TYPE_ACCESS).status is TokenStatus.MALFORMED


def test_token_without_expiry_is_malformed():
    token = jwt.encode(
        {"sub": "user-1", "type": TOKEN_TYPE_ACCESS, "jti": "x"},
        "test-access-secret",
        algorithm="HS256",
    )
    assert verify_token(token, TOKEN_TYPE_ACCESS).status is TokenStatus.MALFORMED


def test_token_with_wrong_type_claim_is_malformed():
    """A correctly signed token claiming the other type is refused."""
    now = _now()
    token = jwt.encode(
        {"sub": "user-1", "type": TOKEN_TYPE_REFRESH, "jti": "x", "iat": now,
         "exp": now + timedelta(minutes=5)},
        "test-access-secret",
        algorithm="HS256",
    )
    assert verify_token(token, TOKEN_TYPE_ACCESS).status is TokenStatus.MALFORMED


def test_missing_secret_is_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "JWT_ACCESS_SECRET", None)

    with pytest.raises(ConfigurationError):
        get_signing_key(TOKEN_TYPE_ACCESS)
    with pytest.raises(ConfigurationError):
        verify_token("anything", TOKEN_TYPE_ACCESS)


def test_equal_secrets_are_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "JWT_REFRESH_SECRET", SecretStr("test-access-secret"))

    with pytest.raises(ConfigurationError):
        create_token("user-1", TOKEN_TYPE_REFRESH)


def test_issue_token_pair_appends_to_allowlists(test_user, db_session):
    """Every issuance appends, in order, without dropping earlier tokens."""
    first = issue_token_pair(test_user, db_session)
    second = issue_token_pair(test_user, db_session)

    user = db_session.get(User, test_user.id)
    assert user.valid_access_tokens == [first.access_token, second.access_token]
    assert user.valid_refresh_tokens == [first.refresh_token, second.refresh_token]
    assert first != second


def test_issued_tokens_verify(test_user, db_session):
    pair = issue_token_pair(test_user, db_session)

    assert verify_token(pair.access_token, TOKEN_TYPE_ACCESS).ok
    assert verify_token(pair.refresh_token, TOKEN_TYPE_REFRESH).ok


def test_issue_without_secret_records_nothing(test_user, db_session, monkeypatch):
    monkeypatch.setattr(settings, "JWT_REFRESH_SECRET", None)

    with pytest.raises(ConfigurationError):
        issue_token_pair(test_user, db_session)

    db_session.rollback()
    user = db_session.get(User, test_user.id)
    assert user.valid_access_tokens == []
    assert user.valid_refresh_tokens == []


def test_revoke_all_tokens(test_user, db_session):
    issue_token_pair(test_user, db_session)
    issue_token_pair(test_user, db_session)

    revoke_all_tokens(test_user, db_session)

    user = db_session.get(User, test_user.id)
    assert user.valid_access_tokens == []
    assert user.valid_refresh_tokens == []


def test_rotate_refresh_token(test_user, db_session):
    """Rotation drops the presented refresh token and records the new pair."""
    original = issue_token_pair(test_user, db_session)

    rotated = rotate_refresh_token(test_user, original.refresh_token, db_session)

    user = db_session.get(User, test_user.id)
    assert original.refresh_token not in user.valid_refresh_tokens
    assert rotated.refresh_token in user.valid_refresh_tokens
    assert user.valid_access_tokens == [original.access_token, rotated.access_token]


def test_rotate_refresh_token_is_single_use(test_user, db_session):
    original = issue_token_pair(test_user, db_session)
    rotate_refresh_token(test_user, original.refresh_token, db_session)

    with pytest.raises(RefreshTokenNotFoundError):
        rotate_refresh_token(test_user, original.refresh_token, db_session)


def test_rotate_after_revocation_fails(test_user, db_session):
    original = issue_token_pair(test_user, db_session)
    revoke_all_tokens(test_user, db_session)

    with pytest.raises(RefreshTokenNotFoundError):
        rotate_refresh_token(test_user, original.refresh_token, db_session)


def test_concurrent_rotation_only_one_wins(test_user, db_session, session_factory):
    """Two sessions that both saw the token in the allowlist cannot both rotate it."""
    original = issue_token_pair(test_user, db_session)
    user_id = test_user.id

    first_session = session_factory()
    second_session = session_factory()
    try:
        first_copy = first_session.get(User, user_id)
        second_copy = second_session.get(User, user_id)
        assert second_copy.has_refresh_token(original.refresh_token)

        rotate_refresh_token(first_copy, original.refresh_token, first_session)

        with pytest.raises(RefreshTokenNotFoundError):
            rotate_refresh_token(second_copy, original.refresh_token, second_session)
    finally:
        first_session.close()
        second_session.close()


def test_overlapping_logins_both_keep_their_tokens(test_user, db_session, session_factory):
    """A login that read the user before another login committed still succeeds."""
    existing = issue_token_pair(test_user, db_session)
    user_id = test_user.id

    first_session = session_factory()
    second_session = session_factory()
    try:
        first_copy = first_session.get(User, user_id)
        second_copy = second_session.get(User, user_id)

        first = issue_token_pair(first_copy, first_session)
        second = issue_token_pair(second_copy, second_session)
    finally:
        first_session.close()
        second_session.close()

    db_session.expire_all()
    user = db_session.get(User, user_id)
    assert user.valid_access_tokens == [
        existing.access_token, first.access_token, second.access_token
    ]
    assert user.valid_refresh_tokens == [
        existing.refresh_token, first.refresh_token, second.refresh_token
    ]


def test_logout_overlapping_login_still_revokes(test_user, db_session, session_factory):
    """A logout that read the user before a login committed clears every token."""
    issue_token_pair(test_user, db_session)
    user_id = test_user.id

    login_session = session_factory()
    logout_session = session_factory()
    try:
        login_copy = login_session.get(User, user_id)
        logout_copy = logout_session.get(User, user_id)

        issue_token_pair(login_copy, login_session)
        revoke_all_tokens(logout_copy, logout_session)
    finally:
        login_session.close()
        logout_session.close()

    db_session.expire_all()
    user = db_session.get(User, user_id)
    assert user.valid_access_tokens == []
    assert user.valid_refresh_tokens == []
