# app/core/auth.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from jose import jwt, JWTError

from app.core.config import get_settings
from app.core.errors import AuthenticationRequired

settings = get_settings()
logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Args:
        token: raw JWT handed over by the sign-in flow.

    Returns:
        Decoded JWT claims.

    Raises:
        AuthenticationRequired: if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise AuthenticationRequired("Invalid or expired token")


def owner_from_token(token: str) -> str:
    """
    Resolve the cart owner id (Supabase auth user id) from a token.

    Raises:
        AuthenticationRequired: if the token is invalid or has no 'sub'.
    """
    payload = decode_access_token(token)
    sub = payload.get("sub")
    if not sub:
        raise AuthenticationRequired("Token missing sub")
    return str(sub)


class AuthStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthState:
    status: AuthStatus = AuthStatus.ANONYMOUS
    owner_id: str | None = None
    access_token: str | None = None


ANONYMOUS = AuthState()

Listener = Callable[[AuthState, AuthState], None]


class SessionContext:
    """
    Authentication state for one storefront session.

    Passed explicitly to whoever needs the current owner. Every status
    call publishes (previous, new) to subscribers, even when the state
    did not actually change; listeners decide what counts as a real
    transition.
    """

    def __init__(self) -> None:
        self._state = ANONYMOUS
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def owner_id(self) -> str | None:
        if self._state.status is AuthStatus.AUTHENTICATED:
            return self._state.owner_id
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def begin_authentication(self) -> None:
        self._publish(AuthState(status=AuthStatus.AUTHENTICATING))

    def sign_in(self, owner_id: str, access_token: str | None = None) -> None:
        self._publish(
            AuthState(
                status=AuthStatus.AUTHENTICATED,
                owner_id=owner_id,
                access_token=access_token,
            )
        )

    def sign_in_with_token(self, token: str) -> str:
        """
        Full sign-in flow: Authenticating, verify the token, Authenticated.

        A bad token puts the session back where it was and re-raises.
        """
        previous = self._state
        self.begin_authentication()
        try:
            owner_id = owner_from_token(token)
        except AuthenticationRequired:
            logger.info("Sign-in rejected: invalid access token")
            self._publish(previous)
            raise
        self.sign_in(owner_id, access_token=token)
        return owner_id

    def sign_out(self) -> None:
        self._publish(ANONYMOUS)

    def _publish(self, new: AuthState) -> None:
        previous = self._state
        self._state = new
        for listener in list(self._listeners):
            listener(previous, new)
