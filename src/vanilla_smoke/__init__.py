"""
Vanilla smoke tests.

End-to-end checks for a live forum installation: an API test client that
talks HTTP as any user, reads the database and edits the forum's config,
and a dependency-ordered runner for the smoke cases.

Example usage:
    ```python
    from vanilla_smoke import ApiTestClient, SuiteContext, load_settings
    from vanilla_smoke.cases import smoke

    with ApiTestClient.from_settings(load_settings()) as api:
        report = smoke.run(SuiteContext(api))
    print("\\n".join(report.summary_lines()))
    ```
"""

__version__ = "0.1.0"

from vanilla_smoke.client import ApiTestClient, build_query
from vanilla_smoke.config_file import ConfigFile
from vanilla_smoke.database import ForumDatabase
from vanilla_smoke.http import HTTPClient
from vanilla_smoke.identity import AnonymousIdentity, CookieIdentity, IdentityProvider
from vanilla_smoke.models import AdminUser, ApiResponse, Category, ForumUser
from vanilla_smoke.report import CaseResult, CaseStatus, SuiteReport
from vanilla_smoke.settings import SmokeSettings, load_settings
from vanilla_smoke.suite import ExpectedError, SmokeCase, SmokeSuite, SuiteContext

from vanilla_smoke.exceptions import (
    # Base exception
    SmokeClientError,
    # HTTP errors
    HttpError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    UserNotFoundError,
    ConflictError,
    RateLimitError,
    ServerError,
    ServiceUnavailableError,
    # Network errors
    NetworkError,
    TimeoutError,
    # Harness errors
    ConfigWriteError,
    SuiteDefinitionError,
    SuiteStateError,
    SmokeCaseError,
    # Utilities
    exception_from_response,
)

__all__ = [
    "__version__",
    "ApiTestClient",
    "build_query",
    "ConfigFile",
    "ForumDatabase",
    "HTTPClient",
    "AnonymousIdentity",
    "CookieIdentity",
    "IdentityProvider",
    "AdminUser",
    "ApiResponse",
    "Category",
    "ForumUser",
    "CaseResult",
    "CaseStatus",
    "SuiteReport",
    "SmokeSettings",
    "load_settings",
    "ExpectedError",
    "SmokeCase",
    "SmokeSuite",
    "SuiteContext",
    "SmokeClientError",
    "HttpError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "UserNotFoundError",
    "ConflictError",
    "RateLimitError",
    "ServerError",
    "ServiceUnavailableError",
    "NetworkError",
    "TimeoutError",
    "ConfigWriteError",
    "SuiteDefinitionError",
    "SuiteStateError",
    "SmokeCaseError",
    "exception_from_response",
]
