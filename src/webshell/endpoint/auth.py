"""Bearer-token authorization gate.

Every shell endpoint depends on ``require_caller``. It resolves the
bearer token to a caller identity and checks that the caller holds the
run-shell privilege before any command can be reached.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from webshell.config.settings import AuthConfig

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_caller(config: AuthConfig, token: str) -> str | None:
    """Map a bearer token to its caller, or None if unknown."""
    caller = None
    for known, name in config.tokens.items():
        if secrets.compare_digest(known.encode(), token.encode()):
            caller = name
    return caller


def may_run_shell(config: AuthConfig, caller: str) -> bool:
    if config.runshell_callers is None:
        return True
    return caller in config.runshell_callers


def require_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency returning the authorized caller identity."""
    config: AuthConfig = request.app.state.settings.auth
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    caller = resolve_caller(config, credentials.credentials)
    if caller is None:
        logger.warning("Rejected unknown bearer token from %s", request.client)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not may_run_shell(config, caller):
        logger.warning("Caller %s lacks the run-shell privilege", caller)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Caller may not run shell commands",
        )
    return caller
