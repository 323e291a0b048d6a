"""
Smoke cases for a live forum installation.

These make sure nothing is horribly broken: registration, admin user
creation, category permissions, profile photos and posting. Every case runs
against the real site and verifies persisted state directly in the database
where it can.
"""

from email.utils import format_datetime
from datetime import datetime, timezone
import logging

from vanilla_smoke.assertions import assert_response_success, assert_subset, check
from vanilla_smoke.client import build_query
from vanilla_smoke.exceptions import HttpError, SmokeCaseError
from vanilla_smoke.models import AdminUser, Category, ForumUser
from vanilla_smoke.suite import ExpectedError, SmokeSuite, SuiteContext

logger = logging.getLogger(__name__)

smoke = SmokeSuite("forum-smoke")

TEST_USER = "test_user"
RESTRICTED_CATEGORY_ID = "restricted_category_id"

# Role 32 is the default moderator role.
MODERATOR_PERMISSIONS = [
    "Category/PermissionCategoryID/0/32//Vanilla.Comments.Add",
    "Category/PermissionCategoryID/0/32//Vanilla.Comments.Delete",
    "Category/PermissionCategoryID/0/32//Vanilla.Comments.Edit",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Add",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Announce",
    "Category/PermissionCategoryID/0/32//Vanilla.Comments.Add",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Close",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Delete",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Edit",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.Sink",
    "Category/PermissionCategoryID/0/32//Vanilla.Discussions.View",
]


def _now() -> str:
    return format_datetime(datetime.now(timezone.utc))


def _restricted_category_id(ctx: SuiteContext) -> int:
    category_id = ctx.recall(RESTRICTED_CATEGORY_ID)
    if not str(category_id).isdigit():
        raise SmokeCaseError("Invalid restricted category ID.")
    return int(category_id)


@smoke.case
def register_basic(ctx: SuiteContext) -> ForumUser:
    """Register a user with the basic registration method."""
    api = ctx.api
    api.save_to_config({
        "Garden.Registration.Method": "Basic",
        "Garden.Registration.ConfirmEmail": False,
        "Garden.Registration.SkipCaptcha": True,
    })

    user = {
        "Name": "frank",
        "Email": "frank@example.com",
        "Password": "frankwantsin",
        "PasswordMatch": "frankwantsin",
        "Gender": "m",
        "TermsOfService": True,
    }

    r = api.post("/entry/register.json", user)
    check(r.get("Method") == "Basic", f"Registered with method {r.get('Method')!r}")

    # Look for the user in the database.
    db_user = api.query_user_key(user["Name"], True)
    check(db_user.email == user["Email"], f"Stored email is {db_user.email!r}")
    check(db_user.gender == user["Gender"], f"Stored gender is {db_user.gender!r}")

    # Look up the user for confirmation.
    profile = api.get("/profile.json", {"username": user["Name"]})["Profile"]
    site_user = ForumUser.model_validate(profile)
    check(site_user.name == user["Name"], f"Profile name is {site_user.name!r}")

    site_user = site_user.with_tk(api.get_tk(site_user.user_id))
    logger.info("Registered %s as UserID %s", site_user.name, site_user.user_id)
    ctx.remember(TEST_USER, site_user)
    return site_user


@smoke.case
def add_admin_user(ctx: SuiteContext) -> AdminUser:
    """Add an administrator as the system user."""
    api = ctx.api
    api.set_user(api.query_system_user(True))

    admin = {
        "Name": "Admin",
        "Email": "admin@example.com",
        "Password": "adminsecure",
    }

    admin_role = api.query_one(
        f"select * from {api.db.table('Role')} where Name = :name",
        {"name": "Administrator"},
    )
    check(admin_role, "The Administrator role is missing")
    admin["RoleID"] = [admin_role["RoleID"]]

    api.save_to_config({"Garden.Email.Disabled": True})
    r = api.post_form("/user/add.json", admin)
    assert_response_success(r)

    db_user = api.query_user_key("Admin", True)

    user_roles = api.query(
        f"select * from {api.db.table('UserRole')} where UserID = :user_id",
        {"user_id": db_user.user_id},
    )
    role_ids = [row["RoleID"] for row in user_roles]
    check(role_ids == admin["RoleID"], f"Admin has roles {role_ids!r}")

    return AdminUser.model_validate({
        **db_user.model_dump(by_alias=True),
        "RoleID": admin["RoleID"],
        "tk": api.get_tk(db_user.user_id),
    })


@smoke.case
def create_restricted_category(ctx: SuiteContext) -> Category:
    """Create a category that only moderators may use."""
    api = ctx.api
    api.set_user(api.query_system_user(True))

    r = api.post("/vanilla/settings/addcategory.json", {
        "Name": "Moderators Only",
        "UrlCode": "moderators-only",
        "DisplayAs": "Discussions",
        "CustomPermissions": 1,
        "Permission": build_query(MODERATOR_PERMISSIONS),
    })

    category = r["Category"]
    check("CategoryID" in category, f"No CategoryID in {category!r}")

    ctx.remember(RESTRICTED_CATEGORY_ID, category["CategoryID"])
    return Category.model_validate({**category, "permissions": MODERATOR_PERMISSIONS})


@smoke.case(depends=["add_admin_user", "register_basic"])
def set_photo(ctx: SuiteContext, admin: AdminUser, user: ForumUser) -> None:
    """An admin can set another user's photo."""
    api = ctx.api
    api.set_user(admin)

    photo = "http://example.com/u.gif"
    api.post("/profile/edit.json", {"Photo": photo}, params={"userid": user.user_id})

    db_user = api.query_user_key(user.user_id, True)
    check(db_user.photo == photo, f"Photo is {db_user.photo!r}")


@smoke.case(
    depends=["add_admin_user", "register_basic"],
    expects=ExpectedError(HttpError, match=r"Invalid photo URL\."),
)
def set_invalid_photo(ctx: SuiteContext, admin: AdminUser, user: ForumUser) -> None:
    """A script URL is rejected as a photo and nothing is stored."""
    api = ctx.api
    api.set_user(admin)
    before = api.query_user_key(user.user_id, True)

    photo = 'javascript: alert("Xss");'
    try:
        api.post("/profile/edit.json", {"Photo": photo}, params={"userid": user.user_id})
    finally:
        after = api.query_user_key(user.user_id, True)
        check(after.photo == before.photo, f"Photo changed to {after.photo!r}")


@smoke.case(depends=["register_basic"])
def set_photo_permission(ctx: SuiteContext, user: ForumUser) -> None:
    """A regular user cannot point their photo at an external URL."""
    api = ctx.api
    api.set_user(user)

    db_user = api.query_user_key(user.user_id, True)

    photo = "http://foo.com/bar.png"
    api.post("/profile/edit.json", {"Photo": photo}, params={"userid": user.user_id})

    db_user2 = api.query_user_key(user.user_id, True)
    check(db_user2.photo != photo, f"External photo {photo!r} was stored")
    check(db_user2.photo == db_user.photo, f"Photo changed to {db_user2.photo!r}")


@smoke.case(depends=["register_basic"])
def set_photo_permission_local(ctx: SuiteContext, user: ForumUser) -> None:
    """A regular user can set their photo to an uploaded file."""
    api = ctx.api
    api.set_user(user)

    db_user = api.query_user_key(user.user_id, True)

    # This is a valid upload URL and should be allowed.
    photo = "userpics/679/FPNH7GFCMGBA.jpg"
    check(db_user.photo != photo, f"Photo is already {photo!r}")
    api.post("/profile/edit.json", {"Photo": photo}, params={"userid": user.user_id})

    db_user2 = api.query_user_key(user.user_id, True)
    check(db_user2.photo == photo, f"Photo is {db_user2.photo!r}")
    check(db_user2.photo != db_user.photo, "Photo did not change")


@smoke.case(depends=["register_basic"])
def user_cookie(ctx: SuiteContext, user: ForumUser) -> None:
    """The signed identity cookie is accepted by the forum."""
    api = ctx.api
    api.set_user(user)

    profile = api.get("/profile.json")["Profile"]
    check(int(profile["UserID"]) == user.user_id, f"Signed in as UserID {profile['UserID']}")


@smoke.case(depends=["register_basic"])
def post_discussion(ctx: SuiteContext, user: ForumUser) -> dict:
    """Post a discussion."""
    api = ctx.api
    api.set_user(user)

    discussion = {
        "CategoryID": 1,
        "Name": "SmokeTest::testPostDiscussion()",
        "Body": f"Test {_now()}",
    }

    posted = api.post("/post/discussion.json", discussion)["Discussion"]
    assert_subset(discussion, posted)
    return posted


@smoke.case(depends=["post_discussion", "register_basic"])
def post_comment(ctx: SuiteContext, discussion: dict, user: ForumUser) -> dict:
    """Post a comment on the newest discussion."""
    api = ctx.api
    api.set_user(user)

    discussions = api.get("/discussions.json").get("Discussions")
    if not discussions:
        raise SmokeCaseError("There are no discussions to post to.")
    target = discussions[0]

    comment = {
        "DiscussionID": target["DiscussionID"],
        "Body": f"SmokeTest->testPostComment() {_now()}",
    }

    posted = api.post("/post/comment.json", comment)["Comment"]
    assert_subset(comment, posted)
    return posted


@smoke.case(
    depends=["create_restricted_category", "register_basic"],
    expects=ExpectedError(HttpError, match=r"You do not have permission to post in this category\."),
)
def post_restricted_discussion(ctx: SuiteContext, _category: Category, _user: ForumUser) -> None:
    """A regular user cannot post in the moderators-only category."""
    category_id = _restricted_category_id(ctx)

    api = ctx.api
    api.set_user(ctx.recall(TEST_USER))

    api.post("/post/discussion.json", {
        "CategoryID": category_id,
        "Name": "SmokeTest::testPostRestrictedDiscussion()",
        "Body": f"Test {_now()}",
    })


@smoke.case(
    depends=["create_restricted_category", "register_basic"],
    expects=ExpectedError(HttpError, match=r"You don't have permission to do that\."),
)
def view_restricted_category(ctx: SuiteContext, _category: Category, _user: ForumUser) -> None:
    """A regular user cannot view the moderators-only category."""
    category_id = _restricted_category_id(ctx)

    api = ctx.api
    api.set_user(ctx.recall(TEST_USER))

    api.get(f"categories.json?CategoryIdentifier={category_id}")
