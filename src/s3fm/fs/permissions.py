"""Permission flags, access policies, and the per-operation permission gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .exceptions import AuthorizationDenied
from .utils import ROOT, canonicalize, parent_of

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .types import UserContext

logger = logging.getLogger(__name__)


class Permission(IntFlag):
    """Effective permission bits for a (user, path) pair."""

    NONE = 0
    READ = 1 << 0
    WRITE = 1 << 1
    DELETE = 1 << 2
    UPLOAD = 1 << 3
    ALL = READ | WRITE | DELETE | UPLOAD


@dataclass(frozen=True)
class EffectivePermissions:
    """Permission flags resolved for one path."""

    flags: Permission = Permission.NONE

    @property
    def can_read(self) -> bool:
        return Permission.READ in self.flags

    @property
    def can_write(self) -> bool:
        return Permission.WRITE in self.flags

    @property
    def can_delete(self) -> bool:
        return Permission.DELETE in self.flags

    @property
    def can_upload(self) -> bool:
        return Permission.UPLOAD in self.flags


# =============================================================================
# Access policies
# =============================================================================


@runtime_checkable
class AccessPolicy(Protocol):
    """Resolves effective permissions.  Queried fresh for every operation."""

    async def get_permissions(self, user: UserContext, path: str) -> EffectivePermissions: ...


class AllowAllAccessPolicy:
    """Grants every permission on every path.

    Development stub only; it is never picked implicitly and must be
    selected in configuration.
    """

    async def get_permissions(self, user: UserContext, path: str) -> EffectivePermissions:
        return EffectivePermissions(Permission.ALL)


@dataclass(frozen=True)
class AccessRule:
    """Grant *permissions* on *path* and everything below it.

    A rule with no roles applies to every user; otherwise the user needs
    at least one of the listed roles.
    """

    path: str
    permissions: Permission
    roles: frozenset[str] = field(default_factory=frozenset)

    def applies_to(self, user: UserContext) -> bool:
        return not self.roles or bool(self.roles.intersection(user.roles))


class PrefixAccessPolicy:
    """Path-prefix rules; the nearest ancestor with applicable rules wins.

    Evaluation walks from the requested path up to ``/``.  At the first
    level that has rules applying to the user, the union of their flags is
    returned.  If no level matches, ``default`` applies.
    """

    def __init__(
        self,
        rules: Iterable[AccessRule],
        default: Permission = Permission.NONE,
    ) -> None:
        self._rules: dict[str, list[AccessRule]] = {}
        for rule in rules:
            key = canonicalize(rule.path).casefold()
            self._rules.setdefault(key, []).append(rule)
        self._default = default

    async def get_permissions(self, user: UserContext, path: str) -> EffectivePermissions:
        current = canonicalize(path)
        while True:
            applicable = [r for r in self._rules.get(current.casefold(), []) if r.applies_to(user)]
            if applicable:
                flags = Permission.NONE
                for rule in applicable:
                    flags |= rule.permissions
                return EffectivePermissions(flags)
            if current == ROOT:
                return EffectivePermissions(self._default)
            current = parent_of(current)


# =============================================================================
# Permission gate
# =============================================================================


class PermissionGate:
    """Per-operation authorization rules composed from permission flags.

    Every ``require_*`` check resolves permissions through the policy and
    raises ``AuthorizationDenied`` on the first unmet requirement.  Callers
    run these checks before issuing any storage call.
    """

    def __init__(self, policy: AccessPolicy) -> None:
        self._policy = policy

    async def evaluate(self, user: UserContext, path: str) -> EffectivePermissions:
        return await self._policy.get_permissions(user, canonicalize(path))

    async def require_read(self, user: UserContext, path: str) -> None:
        perms = await self.evaluate(user, path)
        if not perms.can_read:
            self._deny(user, path, Permission.READ)

    async def require_write_or_upload(self, user: UserContext, path: str) -> None:
        perms = await self.evaluate(user, path)
        if not (perms.can_write or perms.can_upload):
            self._deny(user, path, "WRITE or UPLOAD")

    async def require_delete(self, user: UserContext, path: str) -> None:
        perms = await self.evaluate(user, path)
        if not perms.can_delete:
            self._deny(user, path, Permission.DELETE)

    async def require_rename(self, user: UserContext, source: str, destination: str) -> None:
        """Write on source, Write on destination, Delete on source."""
        source_perms = await self.evaluate(user, source)
        dest_perms = await self.evaluate(user, destination)
        if not source_perms.can_write:
            self._deny(user, source, Permission.WRITE)
        if not dest_perms.can_write:
            self._deny(user, destination, Permission.WRITE)
        if not source_perms.can_delete:
            self._deny(user, source, Permission.DELETE)

    async def require_move(self, user: UserContext, source: str, destination: str) -> None:
        """Delete on source, Write or Upload on destination."""
        source_perms = await self.evaluate(user, source)
        dest_perms = await self.evaluate(user, destination)
        if not source_perms.can_delete:
            self._deny(user, source, Permission.DELETE)
        if not (dest_perms.can_write or dest_perms.can_upload):
            self._deny(user, destination, "WRITE or UPLOAD")

    @staticmethod
    def _deny(user: UserContext, path: str, required: Permission | str) -> None:
        logger.info("Denied user=%s path=%s required=%s", user.id, path, required)
        raise AuthorizationDenied(path, required)
