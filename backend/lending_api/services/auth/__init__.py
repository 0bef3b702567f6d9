from lending_api.services.auth.service import AuthService

__all__ = ["AuthService"]
