# lending_api/services/auth/service.py
from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError

from lending_api.models.user import User
from lending_api.services._shared.base import BaseService
from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.errors import (
    AuthenticationError,
    ConflictError,
    InvalidRefreshToken,
)
from lending_api.services._shared.ports import (
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
    TokenProvider,
)
from lending_api.services.auth.dto import (
    AuthResultOut,
    AuthTokenConfig,
    LoginIn,
    LogoutIn,
    RefreshIn,
    RefreshOut,
    RegisterIn,
    UserPublicOut,
)
from lending_api.services.sessions import (
    RevocationManager,
    RotationCoordinator,
    TokenIssuer,
)


class AuthService(BaseService):
    """
    Authentication lifecycle service (register / login / refresh / logout).

    Access tokens come from a pluggable :class:`TokenProvider`. Refresh
    credentials are opaque values whose lifecycle is delegated to the
    session services over a :class:`RefreshTokenStore`.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        refresh_store: RefreshTokenStore,
        token_cfg: AuthTokenConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        :param token_provider: Adapter for issuing access tokens.
        :param refresh_store: Engine holding refresh-token records.
        :param token_cfg: Access/refresh lifetime configuration.
        :param clock: Time source shared with the session services.
        """
        super().__init__(clock=clock)
        self.tokens = token_provider
        self.refresh_store = refresh_store
        self.cfg = token_cfg or AuthTokenConfig()
        self.issuer = TokenIssuer(store=refresh_store, ttl=self.cfg.refresh_expires, clock=clock)
        self.rotation = RotationCoordinator(store=refresh_store, issuer=self.issuer)
        self.revocations = RevocationManager(store=refresh_store, clock=clock)

    # ------------------------------------------------------------------ #
    # Register / Login
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn, metadata: TokenMetadata | None = None) -> AuthResultOut:
        """
        Create a user and open its first session.

        :raises ConflictError: If the email is already registered.
        """
        with self.ro_uow() as uow:
            taken = uow.users.exists_by_email(dto.email)
        if taken:
            raise ConflictError("User", "email already registered")

        try:
            with self.rw_uow() as uow:
                user = uow.users.create(
                    email=dto.email,
                    password=dto.password,
                    full_name=dto.full_name,
                    phone=dto.phone,
                )
                public = self._to_user_public(user)
                claims = self._claims(user)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration of the same email
            raise ConflictError("User", "email already registered") from exc

        self.log.info("auth.registered", extra={"event": "auth.registered", "user_id": str(public.id)})
        return self._open_session(public, claims, metadata)

    def login(self, dto: LoginIn, metadata: TokenMetadata | None = None) -> AuthResultOut:
        """
        Authenticate credentials and issue a fresh token pair.

        :raises AuthenticationError: If credentials are invalid or the user is disabled.
        """
        with self.ro_uow() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is not None and user.is_active:
                public = self._to_user_public(user)
                claims = self._claims(user)
            else:
                public = None
        if public is None:
            raise AuthenticationError()
        return self._open_session(public, claims, metadata)

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn, metadata: TokenMetadata | None = None) -> RefreshOut:
        """
        Rotate a refresh credential and mint a new access token.

        Security
        --------
        - The presented credential is retired before anything is issued.
        - Every failure, including an owner that no longer exists or was
          disabled, surfaces as :class:`InvalidRefreshToken`.
        """
        rotated = self.rotation.rotate(dto.refresh_token, metadata)

        claims = None
        user_pk = self._coerce_user_id(rotated.user_id)
        if user_pk is not None:
            with self.ro_uow() as uow:
                user = uow.users.get(user_pk)
                if user is not None and user.is_active:
                    claims = self._claims(user)
        if claims is None:
            # Owner vanished; do not leave a usable descendant behind
            self.revocations.revoke_record(rotated.record.id, RevocationReason.OTHER)
            raise InvalidRefreshToken()

        access = self.tokens.create_access_token(
            identity=rotated.user_id,
            additional_claims=claims,
            expires_delta=self.cfg.access_expires,
            fresh=False,  # access issued via refresh -> not fresh
        )
        return RefreshOut(
            access_token=access,
            refresh_token=rotated.credential,
            user_id=rotated.user_id,
        )

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn, metadata: TokenMetadata | None = None) -> int:
        """
        Revoke one session, or every session of the caller.

        :returns: Number of records revoked.
        :raises InvalidRefreshToken: If a supplied credential is not active.
        """
        if dto.refresh_token is None:
            return self.revocations.revoke_all_for_user(dto.user_id, RevocationReason.USER_LOGOUT_ALL)

        revoked = self.revocations.revoke(dto.refresh_token, RevocationReason.USER_LOGOUT, metadata)
        if revoked is None:
            raise InvalidRefreshToken()
        return 1

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _open_session(
        self,
        user: UserPublicOut,
        claims: dict[str, Any],
        metadata: TokenMetadata | None,
    ) -> AuthResultOut:
        issued = self.issuer.issue(user.id, metadata)
        access = self.tokens.create_access_token(
            identity=user.id,
            additional_claims=claims,
            expires_delta=self.cfg.access_expires,
            fresh=True,  # fresh after credential auth
        )
        return AuthResultOut(access_token=access, refresh_token=issued.credential, user=user)

    @staticmethod
    def _claims(user: User) -> dict[str, Any]:
        # Minimal, non-PII claims
        return {"uid": user.id, "role": user.role}

    @staticmethod
    def _to_user_public(user: User) -> UserPublicOut:
        return UserPublicOut(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            phone=user.phone,
        )

    @staticmethod
    def _coerce_user_id(subject: int | str) -> int | None:
        """Return the integer user id behind a stored owner id, if it is one."""
        if isinstance(subject, int):
            return subject
        if isinstance(subject, str) and subject.isdigit():
            return int(subject)
        return None
