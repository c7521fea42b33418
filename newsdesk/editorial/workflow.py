"""Editorial layer — Article workflow engine.

States::

    draft ──submit_for_review──► pending_review ──approve──► published
      │  ▲                            │    │
      │  └──────revise─── rejected ◄──┘    └──direct_publish──► published
      ├──direct_publish──► published
      └──schedule──► scheduled ──(publish_due)──► published

Every operation follows the same check order, and a failure at any step
leaves the article untouched and writes no audit entry:

    1. session        the acting user is re-read from the identity provider
    2. load           the article is re-loaded from the repository
    3. capability     role capability, or ownership for own-scope actions
    4. source state   the action must be legal from the current status
    5. validation     required inputs (review note, future publish time, ...)

On success the change is saved, then audited, then logged.

Usage::

    engine = WorkflowEngine(permissions, sessions, repository, audit)
    article = await engine.create(title="Budget vote")
    await engine.submit_for_review(article.id)
    await engine.reject(article.id, note="needs sources")
    result = await engine.transition(article.id, WorkflowAction.APPROVE)
"""

from __future__ import annotations

import inspect
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from newsdesk.editorial.repository import ArticleRepository
from newsdesk.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
    WorkflowError,
)
from newsdesk.logging import get_logger
from newsdesk.models import Article, ArticleStatus, AuditAction, AuditResource, User, utcnow
from newsdesk.security.audit import AuditLog
from newsdesk.security.permissions import Capability, PermissionModel
from newsdesk.security.session import SessionManager

log = get_logger(__name__)


class WorkflowAction(str, Enum):
    CREATE = "create"
    SUBMIT_FOR_REVIEW = "submit_for_review"
    DIRECT_PUBLISH = "direct_publish"
    SCHEDULE = "schedule"
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    DELETE = "delete"
    REVISE = "revise"


@dataclass(frozen=True)
class Transition:
    # None means "from any status".
    sources: frozenset[ArticleStatus] | None
    # None means the status is unchanged (edit) or the article is removed (delete).
    target: ArticleStatus | None
    audit_action: AuditAction


TRANSITIONS: dict[WorkflowAction, Transition] = {
    WorkflowAction.CREATE: Transition(frozenset(), ArticleStatus.DRAFT, AuditAction.CREATE),
    WorkflowAction.SUBMIT_FOR_REVIEW: Transition(
        frozenset({ArticleStatus.DRAFT}), ArticleStatus.PENDING_REVIEW, AuditAction.SUBMIT
    ),
    WorkflowAction.DIRECT_PUBLISH: Transition(
        frozenset({ArticleStatus.DRAFT, ArticleStatus.PENDING_REVIEW}),
        ArticleStatus.PUBLISHED,
        AuditAction.PUBLISH,
    ),
    WorkflowAction.SCHEDULE: Transition(
        frozenset({ArticleStatus.DRAFT}), ArticleStatus.SCHEDULED, AuditAction.UPDATE
    ),
    WorkflowAction.APPROVE: Transition(
        frozenset({ArticleStatus.PENDING_REVIEW}), ArticleStatus.PUBLISHED, AuditAction.APPROVE
    ),
    WorkflowAction.REJECT: Transition(
        frozenset({ArticleStatus.PENDING_REVIEW}), ArticleStatus.REJECTED, AuditAction.REJECT
    ),
    WorkflowAction.EDIT: Transition(None, None, AuditAction.UPDATE),
    WorkflowAction.DELETE: Transition(None, None, AuditAction.DELETE),
    WorkflowAction.REVISE: Transition(
        frozenset({ArticleStatus.REJECTED}), ArticleStatus.DRAFT, AuditAction.UPDATE
    ),
}

# Target status chosen in an editing form -> workflow action that reaches it.
_TARGET_ACTIONS: dict[ArticleStatus, WorkflowAction] = {
    ArticleStatus.PENDING_REVIEW: WorkflowAction.SUBMIT_FOR_REVIEW,
    ArticleStatus.PUBLISHED: WorkflowAction.DIRECT_PUBLISH,
    ArticleStatus.SCHEDULED: WorkflowAction.SCHEDULE,
    ArticleStatus.REJECTED: WorkflowAction.REJECT,
    ArticleStatus.DRAFT: WorkflowAction.REVISE,
}

EDITABLE_FIELDS = frozenset(
    {"title", "excerpt", "content", "category", "tags", "is_breaking", "is_featured"}
)

_FLAG_CAPABILITIES: dict[str, Capability] = {
    "is_breaking": Capability.SET_BREAKING_NEWS,
    "is_featured": Capability.SET_FEATURED,
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of :meth:`WorkflowEngine.transition`."""

    ok: bool
    article: Article | None = None
    error: WorkflowError | None = None


class WorkflowEngine:
    """Applies workflow actions to articles on behalf of the session user."""

    def __init__(
        self,
        permissions: PermissionModel,
        sessions: SessionManager,
        repository: ArticleRepository,
        audit: AuditLog,
    ) -> None:
        self._permissions = permissions
        self._sessions = sessions
        self._repository = repository
        self._audit = audit

    @property
    def repository(self) -> ArticleRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def transition(
        self,
        article_id: str | None,
        action: WorkflowAction | str,
        **kwargs: Any,
    ) -> TransitionResult:
        """Run *action* and report the outcome instead of raising.

        ``article_id`` is ignored for ``create``; keyword arguments are
        passed to the matching method.
        """
        try:
            action = WorkflowAction(action)
        except ValueError:
            return TransitionResult(
                ok=False,
                error=ValidationError("action", f"Unknown workflow action: {action!r}"),
            )
        try:
            if action is WorkflowAction.CREATE:
                article = await self._call(action, **kwargs)
            else:
                article = await self._call(action, article_id, **kwargs)
        except WorkflowError as exc:
            return TransitionResult(ok=False, error=exc)
        return TransitionResult(ok=True, article=article)

    def offered_statuses(self, role: Any) -> list[ArticleStatus]:
        """Statuses an editing form should offer to *role*."""
        statuses = [ArticleStatus.DRAFT, ArticleStatus.PENDING_REVIEW]
        if self._permissions.has_permission(role, Capability.PUBLISH_ARTICLES):
            statuses += [ArticleStatus.PUBLISHED, ArticleStatus.SCHEDULED]
        return statuses

    async def move_to(self, article_id: str, target: ArticleStatus | str, **kwargs: Any) -> Article:
        """Move an article to a chosen *target* status via the matching action.

        The action's own checks still apply, so offering a status in a form
        never bypasses the runtime permission check.
        """
        try:
            status = ArticleStatus(target)
        except ValueError as exc:
            raise ValidationError("status", f"Unknown article status: {target!r}") from exc
        return await self._call(_TARGET_ACTIONS[status], article_id, **kwargs)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def create(
        self,
        title: str,
        excerpt: str = "",
        content: str = "",
        category: str = "",
        tags: Iterable[str] = (),
        author_id: str | None = None,
        is_breaking: bool = False,
        is_featured: bool = False,
    ) -> Article:
        action = WorkflowAction.CREATE
        actor = await self._actor(action)
        self._require(actor, Capability.CREATE_ARTICLES, action)
        if author_id is not None and author_id != actor.id:
            # Filing under someone else's byline.
            self._require(actor, Capability.EDIT_ALL_ARTICLES, action)
        requested = {"is_breaking": is_breaking, "is_featured": is_featured}
        self._check_flags(actor, action, [name for name, value in requested.items() if value])
        _validate_title(title)

        now = utcnow()
        article = Article(
            title=title.strip(),
            excerpt=excerpt,
            content=content,
            category=category,
            tags=tuple(tags),
            author_id=author_id or actor.id,
            submitted_by=actor.id,
            status=ArticleStatus.DRAFT,
            is_breaking=is_breaking,
            is_featured=is_featured,
            created_at=now,
            updated_at=now,
        )
        await self._repository.save(article)
        await self._record(action, article)
        log.info("article_created", article_id=article.id, author_id=article.author_id)
        return article

    async def submit_for_review(self, article_id: str) -> Article:
        action = WorkflowAction.SUBMIT_FOR_REVIEW
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require_owner_or(actor, article, Capability.EDIT_ALL_ARTICLES, action)
        self._check_source(article, action)
        return await self._apply(actor, article, action, {})

    async def direct_publish(self, article_id: str) -> Article:
        action = WorkflowAction.DIRECT_PUBLISH
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require(actor, Capability.PUBLISH_ARTICLES, action)
        self._check_source(article, action)
        return await self._apply(actor, article, action, {"published_at": utcnow()})

    async def schedule(self, article_id: str, publish_at: datetime | None = None) -> Article:
        action = WorkflowAction.SCHEDULE
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require(actor, Capability.PUBLISH_ARTICLES, action)
        self._check_source(article, action)
        if publish_at is None:
            raise ValidationError("publish_at", "scheduling requires a publish time")
        publish_at = publish_at.astimezone(timezone.utc)
        if publish_at <= utcnow():
            raise ValidationError("publish_at", "scheduled publish time must be in the future")
        return await self._apply(
            actor,
            article,
            action,
            {"published_at": publish_at},
            details=f"Scheduled for {publish_at.isoformat()}",
        )

    async def approve(self, article_id: str, note: str | None = None) -> Article:
        action = WorkflowAction.APPROVE
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require(actor, Capability.REVIEW_ARTICLES, action)
        self._check_source(article, action)
        note = note.strip() if note else None
        return await self._apply(
            actor,
            article,
            action,
            {"published_at": utcnow(), "reviewed_by": actor.id, "review_note": note},
            details=note,
        )

    async def reject(self, article_id: str, note: str | None = None) -> Article:
        action = WorkflowAction.REJECT
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require(actor, Capability.REVIEW_ARTICLES, action)
        self._check_source(article, action)
        if not note or not note.strip():
            raise ValidationError("note", "rejection requires a review note")
        note = note.strip()
        return await self._apply(
            actor,
            article,
            action,
            {"reviewed_by": actor.id, "review_note": note},
            details=note,
        )

    async def revise(self, article_id: str) -> Article:
        """Return a rejected article to draft so its owner can rework it."""
        action = WorkflowAction.REVISE
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        self._require_owner_or(actor, article, Capability.EDIT_ALL_ARTICLES, action)
        self._check_source(article, action)
        return await self._apply(actor, article, action, {}, details="Returned to draft")

    async def edit(self, article_id: str, **changes: Any) -> Article:
        """Change content fields; the status is never touched here."""
        action = WorkflowAction.EDIT
        actor = await self._actor(action)
        article = await self._repository.load(article_id)

        if not self._permissions.has_permission(actor.role, Capability.EDIT_ALL_ARTICLES):
            self._require(actor, Capability.EDIT_OWN_ARTICLES, action)
            if not article.is_owned_by(actor.id) or article.status is ArticleStatus.PUBLISHED:
                self._deny(actor, Capability.EDIT_ALL_ARTICLES, action)

        flipped = [
            name
            for name in _FLAG_CAPABILITIES
            if name in changes and bool(changes[name]) != getattr(article, name)
        ]
        self._check_flags(actor, action, flipped)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "changes", f"Fields cannot be edited: {', '.join(sorted(unknown))}"
            )
        for flag in _FLAG_CAPABILITIES:
            if flag in changes:
                changes[flag] = bool(changes[flag])
        if "title" in changes:
            _validate_title(changes["title"])
            changes["title"] = changes["title"].strip()
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"])

        return await self._apply(
            actor,
            article,
            action,
            changes,
            details=", ".join(sorted(changes)) or None,
        )

    async def delete(self, article_id: str) -> Article:
        """Remove an article; returns the last stored version."""
        action = WorkflowAction.DELETE
        actor = await self._actor(action)
        article = await self._repository.load(article_id)
        if not self._permissions.has_permission(actor.role, Capability.DELETE_ALL_ARTICLES):
            self._require(actor, Capability.DELETE_OWN_ARTICLES, action)
            if not article.is_owned_by(actor.id):
                self._deny(actor, Capability.DELETE_ALL_ARTICLES, action)

        await self._repository.delete(article.id)
        await self._record(action, article)
        log.info("article_deleted", article_id=article.id, user_id=actor.id)
        return article

    async def publish_due(self, now: datetime | None = None) -> list[Article]:
        """Publish every scheduled article whose publish time has passed."""
        actor = await self._sessions.require_user("publish_due")
        self._require(actor, Capability.PUBLISH_ARTICLES, "publish_due")
        now = (now or utcnow()).astimezone(timezone.utc)

        published: list[Article] = []
        for article in await self._repository.list(status=ArticleStatus.SCHEDULED):
            if article.published_at is None or article.published_at > now:
                continue
            updated = article.model_copy(
                update={"status": ArticleStatus.PUBLISHED, "updated_at": utcnow()}
            )
            await self._repository.save(updated)
            await self._audit.record(
                AuditAction.PUBLISH,
                AuditResource.ARTICLE,
                resource_id=updated.id,
                resource_name=updated.title,
                details="Scheduled publication",
            )
            published.append(updated)
        if published:
            log.info("scheduled_articles_published", count=len(published))
        return published

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, action: WorkflowAction, *args: Any, **kwargs: Any) -> Article:
        """Invoke the method for *action*, rejecting arguments it does not accept."""
        method = getattr(self, action.value)
        try:
            inspect.signature(method).bind(*args, **kwargs)
        except TypeError as exc:
            raise ValidationError("arguments", f"Invalid arguments for {action.value}: {exc}") from exc
        return await method(*args, **kwargs)

    async def _actor(self, action: WorkflowAction) -> User:
        return await self._sessions.require_user(action.value)

    def _require(self, actor: User, capability: Capability, action: WorkflowAction | str) -> None:
        name = action.value if isinstance(action, WorkflowAction) else action
        self._permissions.require(actor.role, capability, action=name)

    def _deny(self, actor: User, capability: Capability, action: WorkflowAction) -> None:
        log.info(
            "permission_denied",
            role=actor.role.value,
            capability=capability.value,
            action=action.value,
            reason="not_owner",
        )
        raise PermissionDeniedError(
            action=action.value, capability=capability.value, role=actor.role.value
        )

    def _require_owner_or(
        self,
        actor: User,
        article: Article,
        capability: Capability,
        action: WorkflowAction,
    ) -> None:
        if article.is_owned_by(actor.id):
            return
        if self._permissions.has_permission(actor.role, capability):
            return
        self._deny(actor, capability, action)

    def _check_flags(self, actor: User, action: WorkflowAction, changed: Iterable[str]) -> None:
        """Setting or clearing a homepage flag needs its capability."""
        for name in changed:
            self._require(actor, _FLAG_CAPABILITIES[name], action)

    @staticmethod
    def _check_source(article: Article, action: WorkflowAction) -> None:
        sources = TRANSITIONS[action].sources
        if sources is not None and article.status not in sources:
            raise InvalidTransitionError(action.value, article.status.value, article.id)

    async def _apply(
        self,
        actor: User,
        article: Article,
        action: WorkflowAction,
        updates: dict[str, Any],
        details: str | None = None,
    ) -> Article:
        transition = TRANSITIONS[action]
        update = dict(updates)
        if transition.target is not None:
            update["status"] = transition.target
        update["updated_at"] = utcnow()

        updated = article.model_copy(update=update)
        await self._repository.save(updated)
        await self._record(action, updated, details)
        log.info(
            "article_transition",
            article_id=updated.id,
            action=action.value,
            from_status=article.status.value,
            to_status=updated.status.value,
            user_id=actor.id,
        )
        return updated

    async def _record(
        self,
        action: WorkflowAction,
        article: Article,
        details: str | None = None,
    ) -> None:
        await self._audit.record(
            TRANSITIONS[action].audit_action,
            AuditResource.ARTICLE,
            resource_id=article.id,
            resource_name=article.title,
            details=details,
        )


def _validate_title(title: Any) -> None:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title", "an article needs a title")
