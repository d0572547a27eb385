import logging
from typing import Callable, Optional

_LOGGER = logging.getLogger(__name__)

AuthListener = Callable[[bool], None]


class AuthSession:
    """Track the signed-in user and notify listeners on transitions."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self.user_id = user_id
        self._listeners: list[AuthListener] = []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must not be empty")
        changed = self.user_id != user_id
        self.user_id = user_id
        if changed:
            _LOGGER.info("Signed in as %s", user_id)
            self._fire(True)

    def sign_out(self) -> None:
        if self.user_id is None:
            return
        _LOGGER.info("Signed out %s", self.user_id)
        self.user_id = None
        self._fire(False)

    def _fire(self, authenticated: bool) -> None:
        for listener in list(self._listeners):
            listener(authenticated)
