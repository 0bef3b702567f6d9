from lending_api.models.refresh_token import RefreshToken
from lending_api.models.user import User

__all__ = [
    "RefreshToken",
    "User",
]
