"""
Direct access to the forum database.

Verification reads bypass the HTTP layer so a caching API cannot produce
false positives. The only write is the transient key bootstrap in
get_transient_key, which the forum itself would do on first sign-in.
"""

import json
import logging
import secrets
import string
from typing import Any, Dict, List, Mapping, Optional, Tuple

import phpserialize
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from vanilla_smoke.exceptions import SmokeClientError, UserNotFoundError
from vanilla_smoke.models import ForumUser

logger = logging.getLogger(__name__)

# The forum's Admin column marks its internal system account with 2.
SYSTEM_USER_ADMIN_FLAG = 2

TRANSIENT_KEY_LENGTH = 16
_TK_ALPHABET = string.ascii_uppercase + string.digits


def _bind_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Accept both ``{"name": ...}`` and PDO style ``{":name": ...}`` keys."""
    if not params:
        return {}
    return {key.lstrip(":"): value for key, value in params.items()}


def decode_attributes(raw: Any) -> Tuple[Dict[Any, Any], str]:
    """
    Decode a user's Attributes column.

    Returns:
        The attributes mapping and the encoding it was stored in
        ("json" or "php"). Empty columns decode as PHP serialized.
    """
    if raw is None or raw == "" or raw == b"":
        return {}, "php"
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")

    stripped = raw.lstrip()
    if stripped.startswith("{") or stripped.startswith("["):
        value = json.loads(stripped)
        return (value if isinstance(value, dict) else {}), "json"

    value = phpserialize.loads(raw.encode("utf-8"), decode_strings=True)
    return (dict(value) if isinstance(value, dict) else {}), "php"


def encode_attributes(attributes: Mapping[Any, Any], encoding: str) -> str:
    if encoding == "json":
        return json.dumps(dict(attributes))
    return phpserialize.dumps(dict(attributes)).decode("utf-8")


class ForumDatabase:
    """Read access to the forum's tables, honouring the table prefix."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        table_prefix: str = "GDN_",
        engine: Optional[Engine] = None,
    ):
        if engine is None:
            if url is None:
                raise ValueError("Either url or engine is required")
            engine = create_engine(
                url,
                pool_pre_ping=True,    # the forum run can leave connections idle
                pool_recycle=1800,
                future=True,
            )
        self._engine = engine
        self.table_prefix = table_prefix

    @property
    def engine(self) -> Engine:
        return self._engine

    def table(self, name: str) -> str:
        """Return the prefixed table name, e.g. ``User`` -> ``GDN_User``."""
        return f"{self.table_prefix}{name}"

    def query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a parameterized read and return every row as a dict."""
        with self._engine.connect() as conn:
            result = conn.execute(text(sql), _bind_params(params))
            return [dict(row) for row in result.mappings()]

    def query_one(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Run a parameterized read and return the first row, if any."""
        with self._engine.connect() as conn:
            result = conn.execute(text(sql), _bind_params(params))
            row = result.mappings().first()
            return dict(row) if row is not None else None

    def query_user_key(self, key: Any, required: bool = False) -> Optional[ForumUser]:
        """
        Look up a user row by ID or name.

        Integers and all-digit strings match UserID, anything else matches
        Name.

        Raises:
            UserNotFoundError: If ``required`` and no such user exists
        """
        if isinstance(key, bool):
            raise TypeError("User key must be an ID or a name")

        if isinstance(key, int) or (isinstance(key, str) and key.isdigit()):
            row = self.query_one(
                f"select * from {self.table('User')} where UserID = :key",
                {"key": int(key)},
            )
        else:
            row = self.query_one(
                f"select * from {self.table('User')} where Name = :key",
                {"key": key},
            )

        if row is None:
            if required:
                raise UserNotFoundError(key)
            return None
        return ForumUser.model_validate(row)

    def query_system_user(self, required: bool = False) -> Optional[ForumUser]:
        row = self.query_one(
            f"select * from {self.table('User')} where Admin = :admin order by UserID",
            {"admin": SYSTEM_USER_ADMIN_FLAG},
        )
        if row is None:
            if required:
                raise UserNotFoundError(message="The forum has no system user")
            return None
        return ForumUser.model_validate(row)

    def get_transient_key(self, user_id: int) -> str:
        """
        Return the user's anti-forgery token, creating one if the user has none.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        users = self.table("User")
        row = self.query_one(
            f"select UserID, Attributes from {users} where UserID = :user_id",
            {"user_id": int(user_id)},
        )
        if row is None:
            raise UserNotFoundError(user_id)

        try:
            attributes, encoding = decode_attributes(row["Attributes"])
        except ValueError as e:
            raise SmokeClientError(f"Cannot decode Attributes of user {user_id}: {e}") from e

        tk = attributes.get("TransientKey")
        if tk:
            return str(tk)

        tk = "".join(secrets.choice(_TK_ALPHABET) for _ in range(TRANSIENT_KEY_LENGTH))
        attributes["TransientKey"] = tk
        with self._engine.begin() as conn:
            conn.execute(
                text(f"update {users} set Attributes = :attributes where UserID = :user_id"),
                {"attributes": encode_attributes(attributes, encoding), "user_id": int(user_id)},
            )
        logger.info("Created transient key for user %s", user_id)
        return tk

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        self._engine.dispose()
