"""Security layer — User administration.

Admin-side account lifecycle:

    pending ──approve──► active ──suspend──► suspended
       │                   ▲                     │
       └──reject──► rejected└─────reactivate─────┘

Every operation requires ``manage_users``, refuses to act on the caller's
own account, and is recorded in the audit log with resource ``user``.
"""

from __future__ import annotations

from newsdesk.exceptions import InvalidTransitionError, UserNotFoundError, ValidationError
from newsdesk.logging import get_logger
from newsdesk.models import AuditAction, AuditResource, Role, User, UserStatus
from newsdesk.security.audit import AuditLog
from newsdesk.security.identity import IdentityProvider
from newsdesk.security.permissions import Capability, PermissionModel
from newsdesk.security.session import SessionManager

log = get_logger(__name__)

# action -> (allowed source statuses, target status, audit action)
_STATUS_MOVES: dict[str, tuple[frozenset[UserStatus], UserStatus, AuditAction]] = {
    "approve": (frozenset({UserStatus.PENDING}), UserStatus.ACTIVE, AuditAction.APPROVE),
    "reject": (frozenset({UserStatus.PENDING}), UserStatus.REJECTED, AuditAction.REJECT),
    "suspend": (frozenset({UserStatus.ACTIVE}), UserStatus.SUSPENDED, AuditAction.UPDATE),
    "reactivate": (frozenset({UserStatus.SUSPENDED}), UserStatus.ACTIVE, AuditAction.UPDATE),
}


class UserAdministration:
    def __init__(
        self,
        permissions: PermissionModel,
        sessions: SessionManager,
        identity: IdentityProvider,
        audit: AuditLog,
    ) -> None:
        self._permissions = permissions
        self._sessions = sessions
        self._identity = identity
        self._audit = audit

    async def list_users(self, status: UserStatus | None = None) -> list[User]:
        await self._authorize("list_users")
        users = await self._identity.list_users()
        if status is not None:
            users = [u for u in users if u.status is status]
        return users

    async def approve(self, user_id: str) -> User:
        return await self._move(user_id, "approve")

    async def reject(self, user_id: str) -> User:
        return await self._move(user_id, "reject")

    async def suspend(self, user_id: str) -> User:
        return await self._move(user_id, "suspend")

    async def reactivate(self, user_id: str) -> User:
        return await self._move(user_id, "reactivate")

    async def change_role(self, user_id: str, role: Role) -> User:
        actor = await self._authorize("change_role")
        target = await self._load_other(actor, user_id)
        if target.role is role:
            return target
        updated = target.model_copy(update={"role": role})
        await self._identity.update_user(updated)
        await self._audit.record(
            AuditAction.UPDATE,
            AuditResource.USER,
            resource_id=updated.id,
            resource_name=updated.name,
            details=f"Role changed from {target.role.value} to {role.value}",
        )
        log.info("user_role_changed", target_id=user_id, role=role.value)
        return updated

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _authorize(self, action: str) -> User:
        actor = await self._sessions.require_user(action)
        self._permissions.require(actor.role, Capability.MANAGE_USERS, action=action)
        return actor

    async def _load_other(self, actor: User, user_id: str) -> User:
        if actor.id == user_id:
            raise ValidationError("user_id", "You cannot change your own account")
        target = await self._identity.get_user(user_id)
        if target is None:
            raise UserNotFoundError(user_id)
        return target

    async def _move(self, user_id: str, action: str) -> User:
        sources, target_status, audit_action = _STATUS_MOVES[action]
        actor = await self._authorize(action)
        target = await self._load_other(actor, user_id)
        if target.status not in sources:
            raise InvalidTransitionError(action, target.status.value, subject="a user")

        updated = target.model_copy(update={"status": target_status})
        await self._identity.update_user(updated)
        await self._audit.record(
            audit_action,
            AuditResource.USER,
            resource_id=updated.id,
            resource_name=updated.name,
            details=f"Status changed from {target.status.value} to {target_status.value}",
        )
        log.info(
            "user_status_changed",
            target_id=user_id,
            from_status=target.status.value,
            to_status=target_status.value,
        )
        return updated
