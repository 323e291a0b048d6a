"""
API test client.

This module provides the ApiTestClient class, the single object the smoke
cases talk to. It joins three channels to the forum under test:

- HTTP requests made as an impersonated user
- direct database reads for verification
- edits of the forum's config file

Example usage:
    ```python
    with ApiTestClient.from_settings(load_settings()) as api:
        api.set_user(api.query_system_user(required=True))
        profile = api.get("/profile.json", {"username": "frank"})["Profile"]
    ```
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import quote_plus
import logging

import httpx
from sqlalchemy.engine import Engine

from vanilla_smoke.config_file import ConfigFile
from vanilla_smoke.database import ForumDatabase
from vanilla_smoke.exceptions import ConfigWriteError
from vanilla_smoke.http import HTTPClient
from vanilla_smoke.identity import CookieIdentity, IdentityProvider
from vanilla_smoke.models import ApiResponse, ForumUser
from vanilla_smoke.settings import SmokeSettings

logger = logging.getLogger(__name__)

IdentityFactory = Callable[[ForumUser], IdentityProvider]

_NO_SNAPSHOT = object()


def build_query(data: Union[Mapping[str, Any], List[Any]], prefix: Optional[str] = None) -> str:
    """
    Encode data as a form body the way PHP's ``http_build_query`` does.

    Nested values become ``Key[0]=v`` pairs, booleans become 1/0 and None
    values are dropped. A top-level list uses its indices as keys.
    """
    pairs: List[tuple] = []
    _flatten_query(data, prefix, pairs)
    return "&".join(f"{quote_plus(name)}={quote_plus(value)}" for name, value in pairs)


def _flatten_query(data: Any, prefix: Optional[str], pairs: List[tuple]) -> None:
    items = data.items() if isinstance(data, Mapping) else enumerate(data)
    for key, value in items:
        name = f"{prefix}[{key}]" if prefix is not None else str(key)
        if value is None:
            continue
        if isinstance(value, (Mapping, list, tuple)):
            _flatten_query(value, name, pairs)
        elif isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        else:
            pairs.append((name, str(value)))


class ApiTestClient:
    """
    Client used by smoke cases to drive and inspect the forum.

    The acting user is switched with set_user(); every later request is
    signed as that user until it is switched again.
    """

    def __init__(
        self,
        http: HTTPClient,
        database: ForumDatabase,
        config: Optional[ConfigFile] = None,
        *,
        identity_factory: IdentityFactory,
    ):
        self._http = http
        self._db = database
        self._config = config
        self._identity_factory = identity_factory
        self._user: Optional[ForumUser] = None
        self._config_snapshot: Any = _NO_SNAPSHOT

    @classmethod
    def from_settings(
        cls,
        settings: SmokeSettings,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        engine: Optional[Engine] = None,
    ) -> "ApiTestClient":
        """Build the HTTP, database and config channels from settings."""
        http = HTTPClient(
            settings.base_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            transport=transport,
        )
        database = ForumDatabase(
            settings.database_url,
            table_prefix=settings.table_prefix,
            engine=engine,
        )
        config = ConfigFile(settings.config_path) if settings.config_path else None

        def identity_factory(user: ForumUser) -> IdentityProvider:
            return CookieIdentity(
                user.user_id,
                user.tk,
                salt=settings.cookie_salt,
                cookie_name=settings.cookie_name,
                hash_method=settings.cookie_hash_method,
            )

        return cls(http, database, config, identity_factory=identity_factory)

    @property
    def http(self) -> HTTPClient:
        return self._http

    @property
    def db(self) -> ForumDatabase:
        return self._db

    @property
    def config(self) -> Optional[ConfigFile]:
        return self._config

    @property
    def user(self) -> Optional[ForumUser]:
        """The user requests are currently made as, None for a guest."""
        return self._user

    def close(self) -> None:
        self._http.close()
        self._db.close()

    def __enter__(self) -> "ApiTestClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self._http.get(path, params=params)

    def post(
        self,
        path: str,
        body: Union[Mapping[str, Any], str, None] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ApiResponse:
        """
        Post to the forum.

        Mapping bodies are sent as JSON. A string body is taken as an
        already encoded form (see build_query) and sent as such.

        Raises:
            HttpError: On a non-2xx response
        """
        if isinstance(body, str):
            return self._http.post(path, content=body, params=params)
        return self._http.post(path, json_data=body if body is not None else {}, params=params)

    def post_form(
        self,
        path: str,
        data: Mapping[str, Any],
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ApiResponse:
        return self.post(path, build_query(data), params=params)

    def set_user(self, user: Union[ForumUser, Mapping[str, Any], None]) -> "ApiTestClient":
        """
        Act as ``user`` for subsequent requests, or as a guest when None.

        Mappings are read with the forum's keys (``UserID``, ``Name``, ``tk``).
        """
        if user is None:
            self._user = None
            self._http.set_identity(None)
            logger.info("Acting as guest")
            return self

        if not isinstance(user, ForumUser):
            user = ForumUser.model_validate(dict(user))
        self._user = user
        self._http.set_identity(self._identity_factory(user))
        logger.info("Acting as %s (UserID %s)", user.name or "unnamed user", user.user_id)
        return self

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------

    def query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._db.query(sql, params)

    def query_one(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        return self._db.query_one(sql, params)

    def query_user_key(self, key: Any, required: bool = False) -> Optional[ForumUser]:
        return self._db.query_user_key(key, required)

    def query_system_user(self, required: bool = False) -> Optional[ForumUser]:
        """Return the forum's system account with its transient key attached."""
        user = self._db.query_system_user(required)
        if user is None:
            return None
        return user.with_tk(self.get_tk(user.user_id))

    def get_tk(self, user_id: int) -> str:
        """Return the anti-forgery token the forum expects on posts by ``user_id``."""
        return self._db.get_transient_key(user_id)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def save_to_config(self, values: Mapping[str, Any]) -> None:
        """
        Write values into the forum's config file.

        The first call snapshots the file so restore_config() can undo every
        change made during the run.

        Raises:
            ConfigWriteError: If no config path is configured or the write fails
        """
        if self._config is None:
            raise ConfigWriteError(
                f"No forum config path configured; cannot save {', '.join(values)}"
            )
        if self._config_snapshot is _NO_SNAPSHOT:
            self._config_snapshot = self._config.snapshot()
        self._config.save(values)

    def restore_config(self) -> bool:
        """
        Undo every save_to_config() call of this client.

        Returns:
            True if there was something to restore
        """
        if self._config is None or self._config_snapshot is _NO_SNAPSHOT:
            return False
        self._config.restore(self._config_snapshot)
        self._config_snapshot = _NO_SNAPSHOT
        return True
