"""Dépendances partagées pour les routes de l'API.

- `get_current_user`: décode le bearer token (claims `sub`, `email`, `company_id`, `role`).
- `get_company_id`: périmètre company de l'appelant, dérivé des claims uniquement.
- `workflow_scope`: une unité de travail (session + moteur) par requête; le commit a lieu
  en sortie du bloc, avant la réponse, et déclenche les actions post-commit.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Depends, Header, HTTPException

from backend.core.container import container
from backend.core.http_constants import HTTP_UNAUTHORIZED
from backend.domain.auth import TokenData, decode_token
from backend.domain.tenancy import company_scope
from backend.domain.workflow import DocumentWorkflowEngine
from backend.infra.repo.db import session_scope


def get_current_user(authorization: str = Header(None)) -> TokenData:
    """Extrait et valide l'utilisateur courant à partir du token d'autorisation."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=HTTP_UNAUTHORIZED, detail="missing_token")
    token = authorization.split(" ", 1)[1]
    data = decode_token(token, container.settings.JWT_SECRET, container.settings.JWT_ALG)
    if not data:
        raise HTTPException(status_code=HTTP_UNAUTHORIZED, detail="invalid_token")
    return data


current_user_dep = Depends(get_current_user)


def get_company_id(user: TokenData = current_user_dep) -> str:
    return company_scope(user)


@contextmanager
def workflow_scope() -> Iterator[DocumentWorkflowEngine]:
    with session_scope(container.session_factory) as session:
        yield container.workflow(session)
