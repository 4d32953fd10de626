"""Tests for permission flags, access policies, and the PermissionGate."""

from __future__ import annotations

import pytest

from s3fm.fs.exceptions import AuthorizationDenied
from s3fm.fs.permissions import (
    AccessRule,
    AllowAllAccessPolicy,
    EffectivePermissions,
    Permission,
    PermissionGate,
    PrefixAccessPolicy,
)
from s3fm.fs.types import UserContext

ALICE = UserContext(id="alice", roles=("staff",))
BOB = UserContext(id="bob")

RW = Permission.READ | Permission.WRITE


class TestEffectivePermissions:
    def test_default_is_none(self):
        perms = EffectivePermissions()
        assert not (perms.can_read or perms.can_write or perms.can_delete or perms.can_upload)

    def test_all(self):
        perms = EffectivePermissions(Permission.ALL)
        assert perms.can_read and perms.can_write and perms.can_delete and perms.can_upload

    def test_combined_flags(self):
        perms = EffectivePermissions(Permission.READ | Permission.UPLOAD)
        assert perms.can_read
        assert perms.can_upload
        assert not perms.can_write


class TestPrefixAccessPolicy:
    async def test_nearest_ancestor_wins(self):
        policy = PrefixAccessPolicy(
            [
                AccessRule("/", Permission.ALL),
                AccessRule("/archive", Permission.READ),
            ]
        )
        perms = await policy.get_permissions(ALICE, "/archive/2023/q1.csv")
        assert perms.flags == Permission.READ
        assert (await policy.get_permissions(ALICE, "/docs/a.txt")).flags == Permission.ALL

    async def test_rules_at_same_level_union(self):
        policy = PrefixAccessPolicy(
            [
                AccessRule("/shared", Permission.READ),
                AccessRule("/shared", Permission.UPLOAD, roles=frozenset({"staff"})),
            ]
        )
        alice = await policy.get_permissions(ALICE, "/shared/x")
        bob = await policy.get_permissions(BOB, "/shared/x")
        assert alice.flags == Permission.READ | Permission.UPLOAD
        assert bob.flags == Permission.READ

    async def test_rule_for_other_role_skipped_to_ancestor(self):
        policy = PrefixAccessPolicy(
            [
                AccessRule("/", Permission.READ),
                AccessRule("/hr", Permission.ALL, roles=frozenset({"hr"})),
            ]
        )
        assert (await policy.get_permissions(ALICE, "/hr/pay.xlsx")).flags == Permission.READ

    async def test_default_when_nothing_matches(self):
        policy = PrefixAccessPolicy([AccessRule("/a", Permission.ALL)], default=Permission.READ)
        assert (await policy.get_permissions(ALICE, "/b")).flags == Permission.READ

    async def test_paths_compared_case_insensitively(self):
        policy = PrefixAccessPolicy([AccessRule("/Docs/", Permission.READ)])
        assert (await policy.get_permissions(ALICE, "/docs/a.txt")).can_read


class TestPermissionGate:
    async def test_allow_all(self):
        gate = PermissionGate(AllowAllAccessPolicy())
        await gate.require_read(ALICE, "/")
        await gate.require_delete(ALICE, "/x")
        await gate.require_rename(ALICE, "/x", "/y")
        await gate.require_move(ALICE, "/x", "/d/x")

    async def test_read_denied(self):
        gate = PermissionGate(PrefixAccessPolicy([]))
        with pytest.raises(AuthorizationDenied) as exc_info:
            await gate.require_read(ALICE, "/x")
        assert exc_info.value.path == "/x"
        assert exc_info.value.required == Permission.READ

    @pytest.mark.parametrize(
        "flags",
        [
            pytest.param(Permission.WRITE, id="write"),
            pytest.param(Permission.UPLOAD, id="upload"),
        ],
    )
    async def test_write_or_upload_accepts_either(self, flags: Permission):
        gate = PermissionGate(PrefixAccessPolicy([AccessRule("/", flags)]))
        await gate.require_write_or_upload(ALICE, "/inbox")

    async def test_write_or_upload_denied(self):
        gate = PermissionGate(PrefixAccessPolicy([AccessRule("/", Permission.READ)]))
        with pytest.raises(AuthorizationDenied):
            await gate.require_write_or_upload(ALICE, "/inbox")

    async def test_directory_and_file_forms_evaluate_alike(self):
        gate = PermissionGate(PrefixAccessPolicy([AccessRule("/a", Permission.DELETE)]))
        await gate.require_delete(ALICE, "/a/")
        await gate.require_delete(ALICE, "/a")

    async def test_rename_needs_delete_on_source(self):
        gate = PermissionGate(PrefixAccessPolicy([AccessRule("/", RW)]))
        with pytest.raises(AuthorizationDenied) as exc_info:
            await gate.require_rename(ALICE, "/a.txt", "/b.txt")
        assert exc_info.value.required == Permission.DELETE
        assert exc_info.value.path == "/a.txt"

    async def test_rename_needs_write_on_destination(self):
        policy = PrefixAccessPolicy(
            [
                AccessRule("/src", RW | Permission.DELETE),
                AccessRule("/dst", Permission.READ),
            ]
        )
        with pytest.raises(AuthorizationDenied) as exc_info:
            await PermissionGate(policy).require_rename(ALICE, "/src/a", "/dst/a")
        assert exc_info.value.path == "/dst/a"

    async def test_move_rules(self):
        policy = PrefixAccessPolicy(
            [
                AccessRule("/src", Permission.DELETE),
                AccessRule("/dst", Permission.UPLOAD),
                AccessRule("/ro", Permission.READ),
            ]
        )
        gate = PermissionGate(policy)
        await gate.require_move(ALICE, "/src/a", "/dst/a")
        with pytest.raises(AuthorizationDenied):
            await gate.require_move(ALICE, "/src/a", "/ro/a")
        with pytest.raises(AuthorizationDenied):
            await gate.require_move(ALICE, "/ro/a", "/dst/a")

    def test_denial_message_names_requirement(self):
        err = AuthorizationDenied("/x", Permission.DELETE)
        assert "DELETE" in str(err)
        assert "/x" in str(err)
