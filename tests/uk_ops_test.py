# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for unifykit.ops: planning and applying workspace operations."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit
from unifykit.context import WorkspaceContext, load_context
from unifykit.errors import E, UnifyKitError
from unifykit.ops import AddEdge, AddWorkspaceMember, ManageEdges, NewPackage, OperationSet, RemoveEdge

from tests._fakes import FakeCargo, has_edge, write_workspace

EXCLUDE_C = """\
unification-package = "hack"
omitted-packages = [
    { name = "pkg-c", version = "0.1.0", workspace-path = "crates/pkg-c" },
]
"""


async def _context(root: Path) -> WorkspaceContext:
    return await load_context(FakeCargo(root))


def _summarize(ops: OperationSet) -> list[tuple[str, str]]:
    return [(type(op).__name__, op.package.name) for op in ops]  # type: ignore[union-attr]


class TestManageDepOps:
    """Tests for OperationPlanner.manage_dep_ops()."""

    @pytest.mark.asyncio
    async def test_adds_missing_and_removes_excluded(self, tmp_path: Path) -> None:
        """pkg-b gains the edge, excluded pkg-c loses it, pkg-a is left alone."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b', 'pkg-c'], linked=['pkg-a', 'pkg-c'], config=EXCLUDE_C)
        ctx = await _context(root)
        ops = ctx.planner().manage_dep_ops(ctx.selection())
        assert _summarize(ops) == [('AddEdge', 'pkg-b'), ('RemoveEdge', 'pkg-c')]

    @pytest.mark.asyncio
    async def test_idempotent_after_apply(self, tmp_path: Path) -> None:
        """Applying the plan and reloading yields an empty plan."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b', 'pkg-c'], linked=['pkg-a', 'pkg-c'], config=EXCLUDE_C)
        ctx = await _context(root)
        await ctx.planner().manage_dep_ops(ctx.selection()).apply()

        assert has_edge(root, 'pkg-b')
        assert not has_edge(root, 'pkg-c')
        reloaded = await _context(root)
        assert reloaded.planner().manage_dep_ops(reloaded.selection()).is_empty()

    @pytest.mark.asyncio
    async def test_excluded_removed_even_if_not_selected(self, tmp_path: Path) -> None:
        """Excluded members lose the edge whatever the selection."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-c'], linked=['pkg-c'], config=EXCLUDE_C)
        ctx = await _context(root)
        ops = ctx.planner().manage_dep_ops(ctx.selection(['pkg-a']))
        assert _summarize(ops) == [('AddEdge', 'pkg-a'), ('RemoveEdge', 'pkg-c')]

    @pytest.mark.asyncio
    async def test_manage_edges_op_expands_on_apply(self, tmp_path: Path) -> None:
        """A ManageEdges op is planned and applied through the planner."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'])
        ctx = await _context(root)
        planner = ctx.planner()
        await OperationSet(root, [ManageEdges(tuple(ctx.selection()))], planner).apply()
        assert has_edge(root, 'pkg-a')
        assert has_edge(root, 'pkg-b')

    @pytest.mark.asyncio
    async def test_manage_edges_without_planner(self, tmp_path: Path) -> None:
        """ManageEdges needs a planner."""
        root = write_workspace(tmp_path, ['pkg-a'])
        ctx = await _context(root)
        with pytest.raises(UnifyKitError) as exc_info:
            await OperationSet(root, [ManageEdges(tuple(ctx.selection()))]).apply()
        assert exc_info.value.code is E.CONFIG_MISSING_REQUIRED


class TestAddRemove:
    """Tests for add_dep_ops() and remove_dep_ops()."""

    @pytest.mark.asyncio
    async def test_add_skips_linked_and_hack(self, tmp_path: Path) -> None:
        """Members that already have the edge, and the hack itself, are skipped."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'], linked=['pkg-a'])
        ctx = await _context(root)
        assert _summarize(ctx.planner().add_dep_ops(ctx.selection())) == [('AddEdge', 'pkg-b')]

    @pytest.mark.asyncio
    async def test_force_ignores_snapshot(self, tmp_path: Path) -> None:
        """With force, every selected member gets an AddEdge."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'], linked=['pkg-a'])
        ctx = await _context(root)
        ops = ctx.planner().add_dep_ops(ctx.selection(), force=True)
        assert _summarize(ops) == [('AddEdge', 'pkg-a'), ('AddEdge', 'pkg-b')]

    @pytest.mark.asyncio
    async def test_remove_only_linked(self, tmp_path: Path) -> None:
        """Only members with the edge get a RemoveEdge."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'], linked=['pkg-b'])
        ctx = await _context(root)
        assert _summarize(ctx.planner().remove_dep_ops(ctx.selection())) == [('RemoveEdge', 'pkg-b')]

    @pytest.mark.asyncio
    async def test_add_edge_writes_inline_table(self, tmp_path: Path) -> None:
        """The edge is a version plus a relative path, and other deps survive."""
        root = write_workspace(tmp_path, ['pkg-a'])
        ctx = await _context(root)
        await ctx.planner().add_dep_ops(ctx.selection()).apply()
        doc = tomlkit.parse((root / 'crates/pkg-a/Cargo.toml').read_text()).unwrap()
        assert doc['dependencies']['hack'] == {'version': '0.1.0', 'path': '../../hack'}
        assert doc['dependencies']['serde'] == '1'

    @pytest.mark.asyncio
    async def test_remove_from_every_table(self, tmp_path: Path) -> None:
        """Renamed, dev and target-specific entries are all removed."""
        root = write_workspace(tmp_path, ['pkg-a'], linked=['pkg-a'])
        manifest = root / 'crates/pkg-a/Cargo.toml'
        manifest.write_text(
            manifest.read_text()
            + '\n[dev-dependencies]\nhack-renamed = { package = "hack", path = "../../hack" }\n'
            + "\n[target.'cfg(unix)'.dependencies]\nhack = { path = \"../../hack\" }\nlibc = \"0.2\"\n"
        )
        ctx = await _context(root)
        await ctx.planner().remove_dep_ops(ctx.selection()).apply()
        text = manifest.read_text()
        assert 'hack' not in text
        assert 'libc = "0.2"' in text
        assert 'serde = "1"' in text

    @pytest.mark.asyncio
    async def test_remove_missing_edge_leaves_file(self, tmp_path: Path) -> None:
        """A forced remove on a manifest without the edge does not rewrite it."""
        root = write_workspace(tmp_path, ['pkg-a'])
        manifest = root / 'crates/pkg-a/Cargo.toml'
        before = manifest.read_text()
        ctx = await _context(root)
        await ctx.planner().remove_dep_ops(ctx.selection(), force=True).apply()
        assert manifest.read_text() == before


class TestOperationSet:
    """Tests for OperationSet display and the package-creation ops."""

    @pytest.mark.asyncio
    async def test_display_lines(self, tmp_path: Path) -> None:
        """Each operation previews as one bullet line."""
        root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'], linked=['pkg-b'])
        ctx = await _context(root)
        pkg_a = ctx.graph.workspace.member_by_name('pkg-a')
        pkg_b = ctx.graph.workspace.member_by_name('pkg-b')
        ops = OperationSet(root, [AddEdge(pkg_a, ctx.unification), RemoveEdge(pkg_b, ctx.unification)])
        assert ops.display_lines() == [
            '* add or update dependency pkg-a → hack (path ../../hack)',
            '* remove dependency pkg-b → hack',
        ]
        assert len(ops) == 2
        assert not ops.is_empty()

    def test_empty(self) -> None:
        """An empty set reports itself as empty."""
        ops = OperationSet(Path('/ws'))
        assert ops.is_empty()
        assert ops.display_lines() == []

    @pytest.mark.asyncio
    async def test_new_package_and_member(self, tmp_path: Path) -> None:
        """NewPackage writes files; AddWorkspaceMember appends once."""
        (tmp_path / 'Cargo.toml').write_text('[workspace]\nmembers = ["a"]\n')
        ops = OperationSet(
            tmp_path,
            [
                NewPackage('tools/hack', {'Cargo.toml': 'x', 'src/lib.rs': ''}, {'.config/unifykit.toml': 'y'}),
                AddWorkspaceMember('tools/hack'),
                AddWorkspaceMember('tools/hack'),
            ],
        )
        await ops.apply()
        assert (tmp_path / 'tools/hack/Cargo.toml').read_text() == 'x'
        assert (tmp_path / 'tools/hack/src/lib.rs').exists()
        assert (tmp_path / '.config/unifykit.toml').read_text() == 'y'
        members = tomlkit.parse((tmp_path / 'Cargo.toml').read_text()).unwrap()['workspace']['members']
        assert members == ['a', 'tools/hack']

    @pytest.mark.asyncio
    async def test_member_without_workspace_table(self, tmp_path: Path) -> None:
        """A root manifest without [workspace] cannot gain members."""
        (tmp_path / 'Cargo.toml').write_text('[package]\nname = "solo"\n')
        with pytest.raises(UnifyKitError) as exc_info:
            await OperationSet(tmp_path, [AddWorkspaceMember('hack')]).apply()
        assert exc_info.value.code is E.WORKSPACE_NOT_FOUND

    def test_describe_new_package(self) -> None:
        """NewPackage lists its files in the preview."""
        op = NewPackage('hack', {'b.rs': '', 'Cargo.toml': ''}, {'.config/unifykit.toml': ''})
        assert op.describe() == 'create package at hack (Cargo.toml, b.rs, .config/unifykit.toml)'
