"""Company scoping helpers.

Every document operation is bounded by a company (the tenant). The scope is derived from
authenticated claims; this module does not trust frontend headers for it.
"""

from __future__ import annotations

import re

from backend.domain.auth import TokenData
from backend.domain.errors import ValidationFailure

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def normalize_company_id(value: str | None) -> str | None:
    """Return the trimmed company id if it matches the safe pattern, else None."""
    if not value:
        return None
    c = value.strip()
    if _SAFE_ID_RE.match(c):
        return c
    return None


def company_scope(user: TokenData) -> str:
    """Return the caller's company id, or raise ValidationFailure when the claims carry none."""
    company_id = normalize_company_id(user.company_id)
    if company_id is None:
        raise ValidationFailure(
            "Authenticated user has no company scope", kind="missing_scope"
        )
    return company_id
