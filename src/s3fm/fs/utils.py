"""Path canonicalization, object key mapping, and request path helpers."""

from __future__ import annotations

import mimetypes
import re
from urllib.parse import unquote_plus

from .exceptions import ValidationError

SEPARATOR = "/"
ROOT = "/"

_REPEATED_SLASHES = re.compile(r"/{2,}")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


# =============================================================================
# Path Canonicalizer
# =============================================================================


def _decode(value: str) -> str:
    """Apply percent/``+`` decoding until the string stops changing."""
    while True:
        decoded = unquote_plus(value)
        if decoded == value:
            return decoded
        value = decoded


def canonicalize(path: str | None) -> str:
    """Normalize a caller-supplied path into canonical absolute form.

    - Decodes percent and ``+`` escapes
    - Converts backslashes to forward slashes
    - Collapses repeated slashes and ensures a leading /
    - Removes the trailing slash (except for root)
    - Drops a final segment that repeats its parent (case-insensitive)

    Examples:
        canonicalize("foo%20bar") -> "/foo bar"
        canonicalize("\\\\docs\\\\a.txt") -> "/docs/a.txt"
        canonicalize("/x//y/") -> "/x/y"
        canonicalize("/farshad/farshad") -> "/farshad"
        canonicalize("") -> "/"
    """
    if path is None:
        raise ValidationError("Path is required")

    cleaned = _decode(path).replace("\\", SEPARATOR)
    if not cleaned.strip():
        return ROOT

    cleaned = _REPEATED_SLASHES.sub(SEPARATOR, SEPARATOR + cleaned)
    if cleaned != ROOT:
        cleaned = cleaned.rstrip(SEPARATOR) or ROOT

    # Some clients re-send the last folder segment twice (/a/b/b).
    segments = cleaned.strip(SEPARATOR).split(SEPARATOR)
    while len(segments) >= 2 and segments[-1].casefold() == segments[-2].casefold():
        segments.pop()
    if cleaned == ROOT:
        return ROOT
    return SEPARATOR + SEPARATOR.join(segments)


def is_directory_path(path: str) -> bool:
    """True when *path* carries the trailing-slash directory marker (or is root)."""
    return path.endswith(SEPARATOR)


def ensure_folder(path: str) -> str:
    """Return *path* with a trailing slash (root stays ``/``)."""
    if not path or path == ROOT:
        return ROOT
    return path if path.endswith(SEPARATOR) else path + SEPARATOR


def combine(base: str, name: str) -> str:
    """Join a directory path and a (possibly slash-prefixed) name."""
    return base.rstrip(SEPARATOR) + SEPARATOR + name.lstrip(SEPARATOR)


def leaf_name(path: str) -> str:
    """Return the last segment of *path*; ``""`` for root.

    Examples:
        leaf_name("/docs/a.txt") -> "a.txt"
        leaf_name("/docs/reports/") -> "reports"
        leaf_name("/") -> ""
    """
    stripped = path.rstrip(SEPARATOR)
    if not stripped:
        return ""
    return stripped.rsplit(SEPARATOR, 1)[-1]


def parent_of(path: str) -> str:
    """Canonical path of the nearest ancestor; the parent of root is root."""
    canonical = canonicalize(path)
    if canonical == ROOT:
        return ROOT
    parent = canonical.rsplit(SEPARATOR, 1)[0]
    return parent or ROOT


def strip_folder(path: str) -> str:
    """Drop the trailing slash of a stored entry path; root stays ``/``.

    Unlike ``canonicalize`` this never rewrites segments, so keys such as
    ``backup/backup`` keep their real shape.
    """
    return path.rstrip(SEPARATOR) or ROOT


def entry_parent(path: str) -> str:
    """Parent of a stored entry path, without the duplicate-segment rule."""
    stripped = strip_folder(path)
    if stripped == ROOT:
        return ROOT
    return stripped.rsplit(SEPARATOR, 1)[0] or ROOT


# =============================================================================
# Object Key Mapper
# =============================================================================


def path_to_key(path: str, is_directory: bool) -> str:
    """Map a canonical path to its flat storage key.

    Examples:
        path_to_key("/x/Reports", True) -> "x/Reports/"
        path_to_key("/x/a.txt", False) -> "x/a.txt"
        path_to_key("/", True) -> ""
    """
    key = path.lstrip(SEPARATOR)
    if is_directory and key:
        key = key.rstrip(SEPARATOR) + SEPARATOR
    return key


def key_to_path(key: str) -> str:
    """Map a storage key back to a path; folder keys keep their trailing slash."""
    return SEPARATOR + key.lstrip(SEPARATOR)


def is_folder_key(key: str) -> bool:
    """True for placeholder / prefix keys (``"a/b/"``)."""
    return key.endswith(SEPARATOR)


# =============================================================================
# Request path helpers
# =============================================================================


def resolve_item_path(current: str, name: str, is_directory: bool) -> str:
    """Resolve a selected item name against the current directory.

    Names are normally relative to *current*, but some clients send absolute
    paths (with a trailing slash for folders).  Directories get a trailing
    slash in the result.

    Examples:
        resolve_item_path("/babri", "/babri/zandi/", True) -> "/babri/zandi/"
        resolve_item_path("/babri", "zandi/", True) -> "/babri/zandi/"
        resolve_item_path("/babri", "zandi.txt", False) -> "/babri/zandi.txt"
    """
    if name.startswith(SEPARATOR):
        resolved = canonicalize(name)
    else:
        resolved = canonicalize(combine(canonicalize(current), name))
    return ensure_folder(resolved) if is_directory else resolved


def guess_content_type(filename: str) -> str:
    """Guess a MIME type from the file-name extension."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE
