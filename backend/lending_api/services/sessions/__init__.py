"""
Refresh-token session lifecycle: issuance, rotation, revocation and expiry.

All services here depend only on the
:class:`~lending_api.services._shared.ports.RefreshTokenStore` port.
"""

from __future__ import annotations

from .dto import IssuedToken, RotationOut
from .expiry import ExpiryPolicy
from .issuer import TokenIssuer
from .revocation import RevocationManager
from .rotation import RotationCoordinator

__all__ = [
    "ExpiryPolicy",
    "IssuedToken",
    "RevocationManager",
    "RotationCoordinator",
    "RotationOut",
    "TokenIssuer",
]
