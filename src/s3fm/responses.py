"""Response shaping for the file-browser widget."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from s3fm.fs.listing import merge_entries
from s3fm.fs.utils import (
    ROOT,
    canonicalize,
    ensure_folder,
    entry_parent,
    leaf_name,
    parent_of,
    strip_folder,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from s3fm.fs.types import FileEntry

DEFAULT_ROOT_ALIAS = "File Storage"


def to_item(entry: FileEntry) -> dict[str, Any]:
    """Map one entry to the widget's item shape."""
    stored = strip_folder(entry.path)
    ui_path = ensure_folder(stored) if entry.is_directory else stored
    parent_id = ensure_folder(entry_parent(stored))
    name = leaf_name(stored) or entry.name or "Unknown"
    modified = (entry.last_modified or datetime.now(UTC)).isoformat()
    return {
        "name": name,
        "isFile": not entry.is_directory,
        "size": entry.size or 0,
        "dateModified": modified,
        "dateCreated": modified,
        "hasChild": entry.is_directory,
        "type": "Directory" if entry.is_directory else PurePosixPath(name).suffix,
        "filterPath": parent_id,
        "path": ui_path,
        "id": ui_path,
        "parentId": parent_id,
    }


def to_cwd(path: str, entries: Iterable[FileEntry], root_alias: str = DEFAULT_ROOT_ALIAS) -> dict[str, Any]:
    """Describe the directory being listed."""
    canonical = canonicalize(path)
    ui_path = ensure_folder(canonical)
    filter_path = "" if canonical == ROOT else ensure_folder(parent_of(canonical))
    now = datetime.now(UTC).isoformat()
    return {
        "name": leaf_name(canonical) or root_alias,
        "isFile": False,
        "size": 0,
        "dateModified": now,
        "dateCreated": now,
        "hasChild": any(e.is_directory for e in entries),
        "type": "Folder",
        "filterPath": filter_path,
        "path": ui_path,
        "id": ui_path,
        "parentId": filter_path or None,
    }


def _ordered(path: str, entries: Iterable[FileEntry]) -> list[FileEntry]:
    merged = merge_entries(path, entries)
    return sorted(merged, key=lambda e: not e.is_directory)


def build_listing_response(
    path: str, entries: list[FileEntry], root_alias: str = DEFAULT_ROOT_ALIAS
) -> dict[str, Any]:
    """``{"cwd": ..., "files": [...]}``, directories first, self entry dropped."""
    files = _ordered(path, entries)
    return {
        "cwd": to_cwd(path, files, root_alias),
        "files": [to_item(e) for e in files],
    }


def build_details_response(
    path: str,
    entries: list[FileEntry],
    selected: list[FileEntry],
    root_alias: str = DEFAULT_ROOT_ALIAS,
) -> dict[str, Any]:
    return {
        "cwd": to_cwd(path, entries, root_alias),
        "details": [to_item(e) for e in _ordered(path, selected)],
    }


def error_response(message: str) -> dict[str, Any]:
    return {"error": message}
