"""Newsdesk — Canonical data models.

Users, articles and audit entries as they cross the boundary between the
core and its collaborators.  All records are frozen pydantic models: a change
is always a new object produced with ``model_copy(update=...)``, never an
in-place mutation.  Do not add business logic here — only data shapes.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    JOURNALIST = "journalist"
    AUTHOR = "author"


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    email: str
    role: Role = Role.AUTHOR
    status: UserStatus = UserStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"
    REJECTED = "rejected"
    SCHEDULED = "scheduled"


ARTICLE_STATUS_LABELS: dict[ArticleStatus, str] = {
    ArticleStatus.DRAFT: "Draft",
    ArticleStatus.PENDING_REVIEW: "Pending Review",
    ArticleStatus.PUBLISHED: "Published",
    ArticleStatus.REJECTED: "Rejected",
    ArticleStatus.SCHEDULED: "Scheduled",
}


class Article(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    title: str
    excerpt: str = ""
    content: str = ""
    category: str = ""
    tags: tuple[str, ...] = ()
    author_id: str
    # Who filed the article; differs from author_id when an editor files on
    # behalf of a byline author.
    submitted_by: str | None = None
    status: ArticleStatus = ArticleStatus.DRAFT
    reviewed_by: str | None = None
    review_note: str | None = None
    is_breaking: bool = False
    is_featured: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    published_at: datetime | None = None

    def is_owned_by(self, user_id: str) -> bool:
        return user_id in (self.author_id, self.submitted_by)


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    APPROVE = "approve"
    REJECT = "reject"
    SUBMIT = "submit"
    LOGIN = "login"
    LOGOUT = "logout"
    UPLOAD = "upload"
    BULK_DELETE = "bulk_delete"
    FLAG = "flag"


class AuditResource(str, Enum):
    ARTICLE = "article"
    COMMENT = "comment"
    MEDIA = "media"
    USER = "user"
    CATEGORY = "category"
    SETTING = "setting"
    SESSION = "session"


ACTION_LABELS: dict[AuditAction, str] = {
    AuditAction.CREATE: "Created",
    AuditAction.UPDATE: "Updated",
    AuditAction.DELETE: "Deleted",
    AuditAction.PUBLISH: "Published",
    AuditAction.APPROVE: "Approved",
    AuditAction.REJECT: "Rejected",
    AuditAction.SUBMIT: "Submitted for review",
    AuditAction.LOGIN: "Logged in",
    AuditAction.LOGOUT: "Logged out",
    AuditAction.UPLOAD: "Uploaded",
    AuditAction.BULK_DELETE: "Bulk deleted",
    AuditAction.FLAG: "Flagged",
}

RESOURCE_LABELS: dict[AuditResource, str] = {
    AuditResource.ARTICLE: "Article",
    AuditResource.COMMENT: "Comment",
    AuditResource.MEDIA: "Media",
    AuditResource.USER: "User",
    AuditResource.CATEGORY: "Category",
    AuditResource.SETTING: "Setting",
    AuditResource.SESSION: "Session",
}


class ActivityLogEntry(BaseModel):
    """One privileged action, written once and never edited."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"log-{new_id()}")
    user_id: str
    user_name: str
    user_role: str
    action: AuditAction
    resource: AuditResource
    resource_id: str | None = None
    resource_name: str | None = None
    details: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def action_label(self) -> str:
        return ACTION_LABELS[self.action]

    @property
    def resource_label(self) -> str:
        return RESOURCE_LABELS[self.resource]
