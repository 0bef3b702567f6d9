from lending_api.repositories.user import UserRepository

__all__ = ["UserRepository"]
