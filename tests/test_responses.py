"""Tests for response shaping."""

from __future__ import annotations

from datetime import UTC, datetime

from s3fm.fs.types import FileEntry
from s3fm.responses import (
    build_details_response,
    build_listing_response,
    error_response,
    to_cwd,
    to_item,
)

STAMP = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


class TestToItem:
    def test_file(self):
        item = to_item(
            FileEntry(name="a.txt", path="/docs/a.txt", is_directory=False, size=5, last_modified=STAMP)
        )
        assert item == {
            "name": "a.txt",
            "isFile": True,
            "size": 5,
            "dateModified": STAMP.isoformat(),
            "dateCreated": STAMP.isoformat(),
            "hasChild": False,
            "type": ".txt",
            "filterPath": "/docs/",
            "path": "/docs/a.txt",
            "id": "/docs/a.txt",
            "parentId": "/docs/",
        }

    def test_directory(self):
        item = to_item(FileEntry(name="reports", path="/docs/reports/", is_directory=True))
        assert item["type"] == "Directory"
        assert item["path"] == "/docs/reports/"
        assert item["size"] == 0
        assert item["hasChild"] is True

    def test_folder_named_like_parent(self):
        item = to_item(FileEntry(name="Photos", path="/photos/Photos/", is_directory=True))
        assert item["name"] == "Photos"
        assert item["path"] == "/photos/Photos/"
        assert item["parentId"] == "/photos/"

    def test_top_level_parent_is_root(self):
        item = to_item(FileEntry(name="a", path="/a", is_directory=False))
        assert item["parentId"] == "/"
        assert item["type"] == ""


class TestToCwd:
    def test_root(self):
        cwd = to_cwd("/", [], "Shared")
        assert cwd["name"] == "Shared"
        assert cwd["filterPath"] == ""
        assert cwd["parentId"] is None
        assert cwd["hasChild"] is False

    def test_nested(self):
        entries = [FileEntry(name="s", path="/a/b/s/", is_directory=True)]
        cwd = to_cwd("/a/b", entries)
        assert cwd["name"] == "b"
        assert cwd["path"] == "/a/b/"
        assert cwd["filterPath"] == "/a/"
        assert cwd["hasChild"] is True


class TestBuildResponses:
    def test_listing_orders_and_deduplicates(self):
        entries = [
            FileEntry(name="z.txt", path="/z.txt", is_directory=False),
            FileEntry(name="d", path="/d", is_directory=False),
            FileEntry(name="d", path="/d/", is_directory=True),
            FileEntry(name="", path="/", is_directory=True),
        ]
        response = build_listing_response("/", entries)
        assert [(f["name"], f["isFile"]) for f in response["files"]] == [
            ("d", False),
            ("z.txt", True),
        ]
        assert response["cwd"]["name"] == "File Storage"

    def test_details(self):
        entries = [FileEntry(name="a", path="/x/a", is_directory=False)]
        response = build_details_response("/x", entries, entries)
        assert [d["name"] for d in response["details"]] == ["a"]
        assert response["cwd"]["path"] == "/x/"

    def test_error(self):
        assert error_response("Forbidden") == {"error": "Forbidden"}
