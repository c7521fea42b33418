"""Security layer — Role capabilities.

Four built-in roles (from least to most privileged):

    author      Writes and maintains their own articles; everything goes
                through review.
    journalist  Author rights plus reviewing and editing anyone's articles.
    editor      Publishes directly, manages breaking/featured flags,
                categories and comments.  No user or settings management.
    admin       Everything.

Each role is expressed as a frozenset of :class:`Capability` values.  The
mapping is static configuration: it is built once at import time and never
changes, so it needs no locking.

Usage::

    model = PermissionModel()
    model.has_permission(Role.EDITOR, Capability.PUBLISH_ARTICLES)   # True
    model.can_access_path(Role.AUTHOR, "/admin/users")               # False
    model.require(Role.AUTHOR, Capability.PUBLISH_ARTICLES, action="direct_publish")
"""

from __future__ import annotations

from enum import Enum

from newsdesk.exceptions import PermissionDeniedError
from newsdesk.logging import get_logger
from newsdesk.models import Role

log = get_logger(__name__)


class Capability(str, Enum):
    # -- Dashboard ----------------------------------------------------------
    VIEW_FULL_DASHBOARD = "view_full_dashboard"
    VIEW_OWN_STATS = "view_own_stats"

    # -- Articles -----------------------------------------------------------
    CREATE_ARTICLES = "create_articles"
    EDIT_OWN_ARTICLES = "edit_own_articles"
    EDIT_ALL_ARTICLES = "edit_all_articles"
    DELETE_OWN_ARTICLES = "delete_own_articles"
    DELETE_ALL_ARTICLES = "delete_all_articles"
    PUBLISH_ARTICLES = "publish_articles"
    REVIEW_ARTICLES = "review_articles"
    SET_BREAKING_NEWS = "set_breaking_news"
    SET_FEATURED = "set_featured"

    # -- Homepage & site structure -------------------------------------------
    MANAGE_FEATURED = "manage_featured"
    MANAGE_SECTIONS = "manage_sections"
    MANAGE_MENU = "manage_menu"
    MANAGE_EDITORIAL = "manage_editorial"
    MANAGE_CATEGORIES = "manage_categories"

    # -- Comments -----------------------------------------------------------
    VIEW_ALL_COMMENTS = "view_all_comments"
    MODERATE_COMMENTS = "moderate_comments"

    # -- Media --------------------------------------------------------------
    UPLOAD_MEDIA = "upload_media"
    VIEW_ALL_MEDIA = "view_all_media"
    DELETE_OWN_MEDIA = "delete_own_media"
    DELETE_ALL_MEDIA = "delete_all_media"

    # -- Administration -----------------------------------------------------
    MANAGE_CONTACT_INFO = "manage_contact_info"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_USERS = "manage_users"
    MANAGE_JOBS = "manage_jobs"


# ---------------------------------------------------------------------------
# Built-in role definitions
# ---------------------------------------------------------------------------

_AUTHOR_CAPABILITIES: frozenset[Capability] = frozenset(
    [
        Capability.VIEW_OWN_STATS,
        Capability.CREATE_ARTICLES,
        Capability.EDIT_OWN_ARTICLES,
        Capability.DELETE_OWN_ARTICLES,
        Capability.UPLOAD_MEDIA,
        Capability.DELETE_OWN_MEDIA,
    ]
)

_JOURNALIST_CAPABILITIES: frozenset[Capability] = _AUTHOR_CAPABILITIES | frozenset(
    [
        Capability.REVIEW_ARTICLES,
        Capability.EDIT_ALL_ARTICLES,
    ]
)

_EDITOR_CAPABILITIES: frozenset[Capability] = _JOURNALIST_CAPABILITIES | frozenset(
    [
        Capability.VIEW_FULL_DASHBOARD,
        Capability.PUBLISH_ARTICLES,
        Capability.SET_BREAKING_NEWS,
        Capability.SET_FEATURED,
        Capability.DELETE_ALL_ARTICLES,
        Capability.MANAGE_CATEGORIES,
        Capability.VIEW_ALL_COMMENTS,
        Capability.MODERATE_COMMENTS,
        Capability.VIEW_ALL_MEDIA,
    ]
)

_ADMIN_CAPABILITIES: frozenset[Capability] = frozenset(Capability)


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.EDITOR: _EDITOR_CAPABILITIES,
    Role.JOURNALIST: _JOURNALIST_CAPABILITIES,
    Role.AUTHOR: _AUTHOR_CAPABILITIES,
}

# Admin console paths and the capability each one requires.  Paths absent
# from this table are open to any authenticated role.
PATH_CAPABILITIES: dict[str, Capability] = {
    "/admin/featured": Capability.MANAGE_FEATURED,
    "/admin/sections": Capability.MANAGE_SECTIONS,
    "/admin/menu": Capability.MANAGE_MENU,
    "/admin/editorial": Capability.MANAGE_EDITORIAL,
    "/admin/comments": Capability.VIEW_ALL_COMMENTS,
    "/admin/contact-info": Capability.MANAGE_CONTACT_INFO,
    "/admin/categories": Capability.MANAGE_CATEGORIES,
    "/admin/media": Capability.UPLOAD_MEDIA,
    "/admin/users": Capability.MANAGE_USERS,
    "/admin/jobs": Capability.MANAGE_JOBS,
    "/admin/settings": Capability.MANAGE_SETTINGS,
    "/admin/activity": Capability.MANAGE_SETTINGS,
}


def _coerce(enum_cls: type[Enum], value: object) -> Enum | None:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            return None
    return None


class PermissionModel:
    """The single predicate every privileged operation goes through.

    ``has_permission`` is pure and total: an absent or unknown role or
    capability yields ``False``, never an exception.
    """

    def __init__(
        self,
        role_capabilities: dict[Role, frozenset[Capability]] | None = None,
        path_capabilities: dict[str, Capability] | None = None,
    ) -> None:
        self._roles = dict(role_capabilities or ROLE_CAPABILITIES)
        self._paths = dict(path_capabilities or PATH_CAPABILITIES)

    def has_permission(self, role: Role | str | None, capability: Capability | str) -> bool:
        """Return True if *role* holds *capability*."""
        resolved_role = _coerce(Role, role)
        resolved_cap = _coerce(Capability, capability)
        if resolved_role is None or resolved_cap is None:
            return False
        return resolved_cap in self._roles.get(resolved_role, frozenset())

    def capabilities_for(self, role: Role | str | None) -> frozenset[Capability]:
        resolved = _coerce(Role, role)
        if resolved is None:
            return frozenset()
        return self._roles.get(resolved, frozenset())

    def can_access_path(self, role: Role | str | None, path: str) -> bool:
        """Return True if *role* may open the admin console page at *path*."""
        if _coerce(Role, role) is None:
            return False
        normalized = path.rstrip("/") or "/"
        capability = self._paths.get(normalized)
        if capability is None:
            return True
        return self.has_permission(role, capability)

    def require(
        self,
        role: Role | str | None,
        capability: Capability,
        action: str = "",
    ) -> None:
        """Raise :class:`PermissionDeniedError` unless *role* holds *capability*."""
        if self.has_permission(role, capability):
            return
        role_value = role.value if isinstance(role, Role) else role
        log.info(
            "permission_denied",
            role=role_value,
            capability=capability.value,
            action=action,
        )
        raise PermissionDeniedError(
            action=action or capability.value,
            capability=capability.value,
            role=role_value,
        )
