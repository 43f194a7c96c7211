"""
Contrôle des rôles pour les décisions du workflow.

Seuls certains rôles (configurables via `APPROVER_ROLES`) peuvent approuver ou rejeter un
document en revue.
"""

from collections.abc import Iterable

from fastapi import HTTPException

from backend.core.http_constants import HTTP_FORBIDDEN
from backend.domain.auth import TokenData


def can_approve(user: TokenData, approver_roles: Iterable[str]) -> bool:
    return user.role.lower() in {r.lower() for r in approver_roles}


def require_approver(user: TokenData, approver_roles: Iterable[str]) -> None:
    """
    Vérifie que l'utilisateur a un rôle d'approbateur.

    Raises:
        HTTPException: 403 si le rôle n'est pas autorisé.
    """
    if not can_approve(user, approver_roles):
        raise HTTPException(status_code=HTTP_FORBIDDEN, detail=f"missing_role:{user.role}")
