"""Value types: FileEntry, UserContext, ObjectInfo, ObjectListing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True)
class UserContext:
    """Authenticated caller, produced by an external authentication layer."""

    id: str
    roles: tuple[str, ...] = ()
    claims: dict[str, str] = field(default_factory=dict)

    @classmethod
    def anonymous(cls) -> UserContext:
        return cls(id="anonymous")


@dataclass
class FileEntry:
    """File/directory entry in the virtual hierarchy.

    ``path`` is canonical; directories carry a trailing slash (except root).
    """

    name: str
    path: str
    is_directory: bool
    size: int | None = None
    last_modified: datetime | None = None


@dataclass
class ObjectInfo:
    """A single object reported by the object store."""

    key: str
    size: int = 0
    last_modified: datetime | None = None


@dataclass
class ObjectListing:
    """Single-level listing of an object store prefix."""

    prefix: str
    common_prefixes: list[str] = field(default_factory=list)
    objects: list[ObjectInfo] = field(default_factory=list)
