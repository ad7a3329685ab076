from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tenant_scheduler.auth.identity import Identity
from tenant_scheduler.auth.jwt_handler import IdentityVerifier
from tenant_scheduler.core.config import Settings
from tenant_scheduler.core.errors import AuthenticationError
from tenant_scheduler.services.appointment_store import AppointmentStore

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> AppointmentStore:
    return request.app.state.store


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    if credentials is None:
        raise AuthenticationError("Authorization header is required")
    return verifier.verify(credentials.credentials)
