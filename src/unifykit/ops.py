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

"""Workspace operations and the planner that computes them.

An :class:`OperationSet` is the difference between what the manifests
say now and what they should say. An empty set means the workspace is
already consistent, and callers treat that as a distinct outcome.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ AddEdge             │ Add ``hack = { version, path }`` to a member's │
    │                     │ ``[dependencies]``.                            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ RemoveEdge          │ Delete the hack dependency from every          │
    │                     │ dependency table of a member.                  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ManageEdges         │ "Make it right": add where missing, remove     │
    │                     │ from excluded members. Expanded at apply time. │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ NewPackage          │ Write the files of a brand-new package.        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ AddWorkspaceMember  │ Append a path to ``[workspace] members``.      │
    └─────────────────────┴────────────────────────────────────────────────┘

Operations are applied strictly in order. The package graph is not
refreshed between operations, so a planner used after an apply sees the
old edges; pass ``force=True`` to plan without consulting them.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Union

import tomlkit
from tomlkit.toml_document import TOMLDocument

from unifykit.backends._io import read_toml, write_file, write_toml
from unifykit.errors import E, UnifyKitError
from unifykit.graph import PackageGraph, PackageMetadata
from unifykit.logging import get_logger

logger = get_logger(__name__)

_DEP_TABLES = ('dependencies', 'dev-dependencies', 'build-dependencies')


@dataclass(frozen=True)
class AddEdge:
    """Make ``package`` depend on the unification package."""

    package: PackageMetadata
    unification: PackageMetadata

    def describe(self) -> str:
        """One-line preview text."""
        path = _relative_posix(self.unification.directory, self.package.directory)
        return f'add or update dependency {self.package.name} → {self.unification.name} (path {path})'


@dataclass(frozen=True)
class RemoveEdge:
    """Drop the unification package from ``package``'s dependencies."""

    package: PackageMetadata
    unification: PackageMetadata

    def describe(self) -> str:
        """One-line preview text."""
        return f'remove dependency {self.package.name} → {self.unification.name}'


@dataclass(frozen=True)
class ManageEdges:
    """Reconcile edges for ``selection`` when applied."""

    selection: tuple[PackageMetadata, ...]

    def describe(self) -> str:
        """One-line preview text."""
        names = ', '.join(p.name for p in self.selection)
        return f'manage workspace-hack dependencies for {names}'


@dataclass(frozen=True)
class NewPackage:
    """Create a package directory and write its files.

    Attributes:
        path: Workspace-relative POSIX path of the new package.
        files: Contents keyed by path relative to the package.
        root_files: Contents keyed by path relative to the workspace root.
    """

    path: str
    files: Mapping[str, str] = field(default_factory=dict)
    root_files: Mapping[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        """One-line preview text."""
        extra = ''.join(f', {name}' for name in sorted(self.root_files))
        return f'create package at {self.path} ({", ".join(sorted(self.files))}{extra})'


@dataclass(frozen=True)
class AddWorkspaceMember:
    """Add ``path`` to the root manifest's ``[workspace] members`` list."""

    path: str

    def describe(self) -> str:
        """One-line preview text."""
        return f'add {self.path} to workspace members'


WorkspaceOp = Union[AddEdge, RemoveEdge, ManageEdges, NewPackage, AddWorkspaceMember]


class OperationSet:
    """An ordered list of workspace operations.

    Args:
        root: Absolute path to the workspace root.
        ops: The operations, in the order they must be applied.
        planner: Planner used to expand :class:`ManageEdges`.
    """

    def __init__(
        self,
        root: Path,
        ops: Iterable[WorkspaceOp] = (),
        planner: OperationPlanner | None = None,
    ) -> None:
        """Store the operations in order."""
        self.root = root
        self.planner = planner
        self._ops: list[WorkspaceOp] = list(ops)

    def __len__(self) -> int:
        """Return the number of operations."""
        return len(self._ops)

    def __iter__(self) -> Iterator[WorkspaceOp]:
        """Iterate over operations in apply order."""
        return iter(self._ops)

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f'OperationSet({self._ops!r})'

    def is_empty(self) -> bool:
        """Whether there is nothing to do."""
        return not self._ops

    def display_lines(self) -> list[str]:
        """Return one preview line per operation."""
        return [f'* {op.describe()}' for op in self._ops]

    async def apply(self) -> None:
        """Apply every operation in order.

        The first failure stops the run; operations before it stay applied.

        Raises:
            UnifyKitError: If a manifest cannot be read, parsed or written.
        """
        for op in self._ops:
            await self._apply_one(op)

    async def _apply_one(self, op: WorkspaceOp) -> None:
        if isinstance(op, AddEdge):
            await _add_edge(op)
        elif isinstance(op, RemoveEdge):
            await _remove_edge(op)
        elif isinstance(op, ManageEdges):
            if self.planner is None:
                raise UnifyKitError(
                    E.CONFIG_MISSING_REQUIRED,
                    'Cannot manage dependencies without a workspace-hack package.',
                    hint="Set 'unification-package' in .config/unifykit.toml.",
                )
            await self.planner.manage_dep_ops(op.selection).apply()
        elif isinstance(op, NewPackage):
            await _new_package(self.root, op)
        elif isinstance(op, AddWorkspaceMember):
            await _add_workspace_member(self.root, op)
        else:
            raise TypeError(f'unknown workspace operation: {op!r}')


class OperationPlanner:
    """Computes operation sets for one unification package.

    Args:
        graph: The package graph snapshot.
        unification: The workspace-hack package.
        excluded: IDs of workspace members that must not depend on it.
    """

    def __init__(
        self,
        graph: PackageGraph,
        unification: PackageMetadata,
        excluded: Iterable[str] = (),
    ) -> None:
        """Store the graph snapshot and exclusions."""
        self.graph = graph
        self.unification = unification
        self.excluded = frozenset(excluded)

    def has_edge(self, package: PackageMetadata) -> bool:
        """Whether ``package`` depends on the unification package in the snapshot."""
        return self.graph.depends_on(package.id, self.unification.id)

    def add_dep_ops(self, selection: Iterable[PackageMetadata], force: bool = False) -> OperationSet:
        """Plan adding the edge to every selected package that lacks it.

        With ``force``, every selected package gets an :class:`AddEdge`
        regardless of what the snapshot says.
        """
        ops = [
            AddEdge(package, self.unification)
            for package in _by_name(selection)
            if package.id != self.unification.id and (force or not self.has_edge(package))
        ]
        return OperationSet(self.graph.workspace.root, ops, self)

    def remove_dep_ops(self, selection: Iterable[PackageMetadata], force: bool = False) -> OperationSet:
        """Plan removing the edge from every selected package that has it."""
        ops = [
            RemoveEdge(package, self.unification)
            for package in _by_name(selection)
            if package.id != self.unification.id and (force or self.has_edge(package))
        ]
        return OperationSet(self.graph.workspace.root, ops, self)

    def manage_dep_ops(self, selection: Iterable[PackageMetadata]) -> OperationSet:
        """Plan the operations that make the edges match the exclusions.

        Selected members that are not excluded gain the edge. Excluded
        members anywhere in the workspace lose it, whether selected or not.
        """
        included = [p for p in selection if p.id not in self.excluded]
        excluded = [p for p in self.graph.workspace.members() if p.id in self.excluded]
        adds = self.add_dep_ops(included)
        removes = self.remove_dep_ops(excluded)
        return OperationSet(self.graph.workspace.root, [*adds, *removes], self)


def _by_name(selection: Iterable[PackageMetadata]) -> list[PackageMetadata]:
    unique = {p.id: p for p in selection}
    return sorted(unique.values(), key=lambda p: p.name)


def _relative_posix(target: Path, start: Path) -> str:
    return Path(os.path.relpath(target, start)).as_posix()


async def _add_edge(op: AddEdge) -> None:
    manifest = op.package.manifest_path
    doc = await read_toml(manifest)
    deps = doc.get('dependencies')
    if deps is None:
        deps = tomlkit.table()
        doc['dependencies'] = deps
    entry = tomlkit.inline_table()
    entry['version'] = str(op.unification.version)
    entry['path'] = _relative_posix(op.unification.directory, op.package.directory)
    deps[op.unification.name] = entry
    await write_toml(manifest, doc)
    logger.info('edge_added', package=op.package.name, unification=op.unification.name)


def _dependency_tables(doc: TOMLDocument) -> Iterator[dict]:
    for key in _DEP_TABLES:
        table = doc.get(key)
        if isinstance(table, dict):
            yield table
    target = doc.get('target')
    if isinstance(target, dict):
        for target_table in target.values():
            if isinstance(target_table, dict):
                for key in _DEP_TABLES:
                    sub = target_table.get(key)
                    if isinstance(sub, dict):
                        yield sub


def _refers_to(key: str, value: object, name: str) -> bool:
    if isinstance(value, dict) and 'package' in value:
        return value['package'] == name
    return key == name


async def _remove_edge(op: RemoveEdge) -> None:
    manifest = op.package.manifest_path
    doc = await read_toml(manifest)
    removed = 0
    for table in _dependency_tables(doc):
        for key in [k for k, v in table.items() if _refers_to(k, v, op.unification.name)]:
            del table[key]
            removed += 1
    if removed:
        await write_toml(manifest, doc)
    logger.info('edge_removed', package=op.package.name, unification=op.unification.name, entries=removed)


async def _new_package(root: Path, op: NewPackage) -> None:
    package_dir = root / PurePosixPath(op.path)
    for name, contents in sorted(op.files.items()):
        await write_file(package_dir / name, contents)
    for name, contents in sorted(op.root_files.items()):
        await write_file(root / name, contents)
    logger.info('package_created', path=op.path, files=len(op.files) + len(op.root_files))


async def _add_workspace_member(root: Path, op: AddWorkspaceMember) -> None:
    manifest = root / 'Cargo.toml'
    doc = await read_toml(manifest)
    workspace = doc.get('workspace')
    if not isinstance(workspace, dict):
        raise UnifyKitError(
            E.WORKSPACE_NOT_FOUND,
            f'{manifest} has no [workspace] table.',
            hint='Run unifykit from the root of a Cargo workspace.',
        )
    members = workspace.get('members')
    if members is None:
        members = tomlkit.array()
        workspace['members'] = members
    if op.path not in members:
        members.append(op.path)
        await write_toml(manifest, doc)
    logger.info('workspace_member_added', path=op.path)


__all__ = [
    'AddEdge',
    'AddWorkspaceMember',
    'ManageEdges',
    'NewPackage',
    'OperationPlanner',
    'OperationSet',
    'RemoveEdge',
    'WorkspaceOp',
]
