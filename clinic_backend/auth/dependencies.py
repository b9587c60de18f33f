from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import PyJWTError

from clinic_backend.auth.jwt_handler import Identity, TokenVerifier
from clinic_backend.core.errors import AuthenticationError, AuthorizationError
from clinic_backend.models.user import ROLE_DOCTOR, ROLE_PATIENT

security = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token required")

    try:
        return verifier.verify(credentials.credentials)
    except PyJWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc


def require_patient(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != ROLE_PATIENT:
        raise AuthorizationError("Only patients can book appointments")
    return identity


def require_doctor(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != ROLE_DOCTOR:
        raise AuthorizationError("Only doctors can view an agenda")
    return identity


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
