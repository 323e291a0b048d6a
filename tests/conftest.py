"""Pytest configuration and fixtures for the smoke harness tests."""

from pathlib import Path

import phpserialize
import pytest
import respx
from sqlalchemy import create_engine, text

from vanilla_smoke.client import ApiTestClient
from vanilla_smoke.database import ForumDatabase
from vanilla_smoke.settings import SmokeSettings


BASE_URL = "http://forum.test"
COOKIE_SALT = "s3cr3tsalt"
SYSTEM_TK = "SYSTEMKEY0000000"

ROLES = [
    (8, "Member"),
    (16, "Administrator"),
    (32, "Moderator"),
]


# ============================================================================
# Database Fixtures
# ============================================================================


def create_forum_schema(engine) -> None:
    """Create the subset of the forum schema the harness reads."""
    with engine.begin() as conn:
        conn.execute(text(
            "create table GDN_User ("
            " UserID integer primary key autoincrement,"
            " Name varchar(50) not null,"
            " Email varchar(100),"
            " Gender varchar(1) default 'u',"
            " Photo varchar(255),"
            " Admin integer not null default 0,"
            " Attributes text)"
        ))
        conn.execute(text("create table GDN_Role (RoleID integer primary key, Name varchar(100) not null)"))
        conn.execute(text("create table GDN_UserRole (UserID integer not null, RoleID integer not null)"))

        for role_id, name in ROLES:
            conn.execute(text("insert into GDN_Role (RoleID, Name) values (:id, :name)"), {"id": role_id, "name": name})

        attributes = phpserialize.dumps({"TransientKey": SYSTEM_TK}).decode("utf-8")
        conn.execute(
            text("insert into GDN_User (UserID, Name, Email, Admin, Attributes) values (1, 'System', 'system@example.com', 2, :attr)"),
            {"attr": attributes},
        )


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'forum.db'}"


@pytest.fixture
def forum_engine(database_url):
    """SQLite database with the forum tables and the system user."""
    engine = create_engine(database_url, future=True)
    create_forum_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def forum_db(forum_engine) -> ForumDatabase:
    return ForumDatabase(engine=forum_engine)


# ============================================================================
# Settings and Client Fixtures
# ============================================================================


@pytest.fixture
def base_url():
    """Default base URL for testing."""
    return BASE_URL


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "conf" / "config.php"


@pytest.fixture
def settings(base_url, database_url, config_path) -> SmokeSettings:
    return SmokeSettings(
        base_url=base_url,
        database_url=database_url,
        config_path=config_path,
        cookie_salt=COOKIE_SALT,
        max_retries=2,
        timeout=5.0,
    )


@pytest.fixture
def forum_http(base_url):
    """respx router that intercepts every request to the test forum."""
    with respx.mock(base_url=base_url, assert_all_called=False) as router:
        yield router


@pytest.fixture
def api(settings, forum_engine, forum_http):
    """ApiTestClient wired to the SQLite forum and the respx router."""
    client = ApiTestClient.from_settings(settings, engine=forum_engine)
    yield client
    client.close()
