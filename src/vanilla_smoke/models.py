"""
Typed views of the forum records the smoke cases pass between each other.

Field aliases follow the forum's own column and JSON key names, so rows and
response bodies validate directly. Unknown keys are kept.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class ForumUser(BaseModel):
    """A forum user row or profile, plus the anti-forgery token once known."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_id: int = Field(alias="UserID")
    name: Optional[str] = Field(default=None, alias="Name")
    email: Optional[str] = Field(default=None, alias="Email")
    gender: Optional[str] = Field(default=None, alias="Gender")
    photo: Optional[str] = Field(default=None, alias="Photo")
    admin: int = Field(default=0, alias="Admin")
    tk: Optional[str] = None

    def with_tk(self, tk: str) -> "ForumUser":
        return self.model_copy(update={"tk": tk})


class AdminUser(ForumUser):
    """A user created through the admin add-user form with explicit roles."""

    role_ids: List[int] = Field(default_factory=list, alias="RoleID")


class Category(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    category_id: int = Field(alias="CategoryID")
    name: str = Field(alias="Name")
    url_code: Optional[str] = Field(default=None, alias="UrlCode")
    permissions: List[str] = Field(default_factory=list)


@dataclass
class ApiResponse:
    """
    A completed HTTP exchange with the forum.

    Indexing the response indexes its JSON body, so ``response["Profile"]``
    reads the same as ``response.body["Profile"]``.
    """

    status_code: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def __getitem__(self, key: Any) -> Any:
        return self.body[key]

    def get(self, key: Any, default: Any = None) -> Any:
        if isinstance(self.body, Mapping):
            return self.body.get(key, default)
        return default

    def json(self) -> Any:
        return self.body
