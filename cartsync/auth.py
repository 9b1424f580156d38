"""Authentication collaborator.

Token issuance lives outside the engine. The engine only asks whether a
user is signed in and for the bearer token to send.
"""

from typing import Any, Optional


class AuthService:
    """Interface the host application implements."""

    def is_authenticated(self) -> bool:
        raise NotImplementedError

    def get_current_user(self) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    async def get_id_token(self) -> Optional[str]:
        raise NotImplementedError

    async def logout(self) -> None:
        raise NotImplementedError


class TokenAuthService(AuthService):
    """AuthService holding an already-issued token, for scripts and tests."""

    def __init__(self, token: Optional[str] = None, user: Optional[dict[str, Any]] = None) -> None:
        self._token = token
        self._user = user

    def login(self, token: str, user: Optional[dict[str, Any]] = None) -> None:
        self._token = token
        self._user = user or {}

    def is_authenticated(self) -> bool:
        return bool(self._token)

    def get_current_user(self) -> Optional[dict[str, Any]]:
        return self._user if self._token else None

    async def get_id_token(self) -> Optional[str]:
        return self._token

    async def logout(self) -> None:
        self._token = None
        self._user = None
