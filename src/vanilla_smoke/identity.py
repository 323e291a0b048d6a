"""
Identity providers for impersonating forum users.

The forum authenticates browsers with an HMAC-signed identity cookie and
guards state-changing posts with a transient key. CookieIdentity produces
both from the site's cookie salt, so the harness can act as any user
without going through the sign-in form.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional
import hmac
import logging
import time

logger = logging.getLogger(__name__)

# Matches the forum's default persistent session length.
DEFAULT_COOKIE_LIFETIME = 30 * 24 * 60 * 60


def hash_hmac(method: str, data: str, key: str) -> str:
    """Hex HMAC digest, equivalent to PHP's ``hash_hmac``."""
    return hmac.new(key.encode("utf-8"), data.encode("utf-8"), digestmod=method).hexdigest()


class IdentityProvider(ABC):
    """Abstract base class for the acting identity of the HTTP client."""

    @abstractmethod
    def cookies(self) -> Dict[str, str]:
        """Cookies to send with every request."""
        ...

    @abstractmethod
    def transient_key(self) -> Optional[str]:
        """Anti-forgery token to add to state-changing posts."""
        ...

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Check if requests are made as a signed-in user."""
        ...


class AnonymousIdentity(IdentityProvider):
    """Requests as a guest."""

    def cookies(self) -> Dict[str, str]:
        return {}

    def transient_key(self) -> Optional[str]:
        return None

    def is_authenticated(self) -> bool:
        return False


class CookieIdentity(IdentityProvider):
    """
    Signed-cookie identity for one user.

    The identity cookie is ``key|keyhashhash|issued|user_id|expires`` where
    ``key`` is ``"{user_id}-{expires}"``. The signature is chained: the key
    is signed with the salt, then signed again with that first digest.
    """

    def __init__(
        self,
        user_id: int,
        tk: Optional[str] = None,
        *,
        salt: str,
        cookie_name: str = "Vanilla",
        hash_method: str = "md5",
        lifetime: int = DEFAULT_COOKIE_LIFETIME,
        clock: Callable[[], float] = time.time,
    ):
        self.user_id = int(user_id)
        self.tk = tk
        self._salt = salt
        self.cookie_name = cookie_name
        self.hash_method = hash_method
        self.lifetime = lifetime
        self._clock = clock
        if not salt:
            logger.warning("Signing identity cookie for user %s with an empty salt", self.user_id)

    def identity_cookie(self) -> str:
        now = int(self._clock())
        expires = now + self.lifetime
        key_data = f"{self.user_id}-{expires}"
        key_hash = hash_hmac(self.hash_method, key_data, self._salt)
        key_hash_hash = hash_hmac(self.hash_method, key_data, key_hash)
        return "|".join([key_data, key_hash_hash, str(now), str(self.user_id), str(expires)])

    def transient_key_cookie(self) -> Optional[str]:
        if not self.tk:
            return None
        now = int(self._clock())
        payload = f"{self.tk}:{self.user_id}:{now}"
        signature = hash_hmac(self.hash_method, payload, self._salt)
        return f"{payload}:{signature}"

    def cookies(self) -> Dict[str, str]:
        cookies = {self.cookie_name: self.identity_cookie()}
        tk_cookie = self.transient_key_cookie()
        if tk_cookie:
            cookies[f"{self.cookie_name}-tk"] = tk_cookie
        return cookies

    def transient_key(self) -> Optional[str]:
        return self.tk

    def is_authenticated(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"CookieIdentity(user_id={self.user_id}, cookie_name={self.cookie_name!r})"
