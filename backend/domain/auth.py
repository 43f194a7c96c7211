"""
Module d'authentification: identité de l'appelant portée par un token JWT.

L'émission des tokens (login, mots de passe) relève du fournisseur d'identité; ce module ne
fait que signer des tokens de service/test et décoder ceux reçus par l'API. Les claims portent
l'identité (`sub`), la company (frontière de périmètre) et le rôle.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError
from pydantic import BaseModel, EmailStr, ValidationError


class TokenData(BaseModel):
    """Données contenues dans un token JWT."""

    sub: str
    email: EmailStr
    company_id: str | None = None
    role: str = "developer"
    full_name: str | None = None


def create_access_token(
    secret: str, alg: str, expires_min: int, payload: dict[str, Any]
) -> str:
    """Crée un token JWT d'accès avec expiration."""
    to_encode = payload.copy()
    expire = datetime.now(UTC) + timedelta(minutes=expires_min)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=alg)


def decode_token(token: str, secret: str, alg: str) -> TokenData | None:
    """Décode et valide un token JWT. None si signature, expiration ou claims invalides."""
    try:
        data = jwt.decode(token, secret, algorithms=[alg])
        return TokenData(**data)
    except (InvalidTokenError, ValidationError):
        return None
