import jwt
import pytest

from clinic_backend.auth.jwt_handler import Identity, TokenVerifier


def test_verify_round_trips_subject_and_role() -> None:
    verifier = TokenVerifier('unit-test-secret')
    token = verifier.create_access_token(user_id=42, role='patient', email='p@clinic.test')

    assert verifier.verify(token) == Identity(user_id=42, role='patient', email='p@clinic.test')


def test_verify_rejects_token_signed_with_another_key() -> None:
    token = TokenVerifier('first-secret').create_access_token(user_id=1, role='doctor')

    with pytest.raises(jwt.InvalidSignatureError):
        TokenVerifier('second-secret').verify(token)


def test_verify_rejects_expired_token() -> None:
    verifier = TokenVerifier('unit-test-secret')
    token = verifier.create_access_token(user_id=1, role='admin', expires_minutes=-1)

    with pytest.raises(jwt.ExpiredSignatureError):
        verifier.verify(token)


def test_verify_rejects_token_without_role() -> None:
    token = jwt.encode({'sub': '7'}, 'unit-test-secret', algorithm='HS256')

    with pytest.raises(jwt.InvalidTokenError):
        TokenVerifier('unit-test-secret').verify(token)


def test_token_verifier_requires_a_key() -> None:
    with pytest.raises(ValueError):
        TokenVerifier('')
