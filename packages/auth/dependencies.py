"""
Authentication dependencies.

Tokens are verified by the upstream auth gateway, which forwards the resolved
principal as headers. This service only reads them.
"""

from typing import Annotated, Optional
from fastapi import Depends, HTTPException, status, Header

from common.core.constants import ACCOUNT_ID_MAX_LENGTH
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount

logger = get_logger(__name__)

ADMIN_ROLE = "admin"


@trace_span
async def get_current_account(
    x_account_id: Annotated[Optional[str], Header()] = None,
    x_account_roles: Annotated[Optional[str], Header()] = None,
) -> AuthenticatedAccount:
    """Get current authenticated account from gateway headers."""
    if not x_account_id or not x_account_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    if len(x_account_id.strip()) > ACCOUNT_ID_MAX_LENGTH:
        logger.warning("Rejected over-long account id from gateway")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid account id",
        )

    roles = {r.strip().lower() for r in (x_account_roles or "").split(",") if r.strip()}
    return AuthenticatedAccount(
        account_id=x_account_id.strip(), is_admin=ADMIN_ROLE in roles
    )


@trace_span
async def get_current_admin_account(
    current_account: AuthenticatedAccount = Depends(get_current_account),
) -> AuthenticatedAccount:
    """Get current admin account."""
    if not current_account.is_admin:
        logger.warning(
            f"Non-admin account {current_account.account_id} hit an admin endpoint"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_account
