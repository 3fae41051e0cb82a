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

"""Live package graph built from ``cargo metadata`` output.

The graph is a read-only snapshot of the workspace taken once per
invocation. Applying an operation set edits manifests on disk but does
not update the snapshot, so anything derived from it (edge presence,
direct-dependency sets) is stale after an apply.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ PackageMetadata         │ One package Cargo knows about: a workspace  │
    │                         │ member, a local path crate, or a crate      │
    │                         │ from a registry or git repository.          │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ PackageSource           │ Where a package's code lives. Workspace     │
    │                         │ members carry a path relative to the root.  │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ DependencyLink          │ An arrow "A depends on B", tagged with the  │
    │                         │ kinds (normal, dev, build) it was declared  │
    │                         │ as.                                         │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Workspace               │ The members, looked up by name or by path.  │
    └─────────────────────────┴─────────────────────────────────────────────┘

Edge direction::

    my-cli ──→ my-core ──→ serde
    links_from["my-cli"] = [my-cli → my-core]

Usage::

    from unifykit.graph import PackageGraph

    graph = PackageGraph.from_metadata(await cargo.metadata())
    hack = graph.workspace.member_by_name('workspace-hack')
"""

from __future__ import annotations

import os
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, ClassVar

import semantic_version

from unifykit.errors import E, UnifyKitError
from unifykit.logging import get_logger

logger = get_logger(__name__)

# Dependency kinds as reported by ``cargo metadata`` (``null`` is normal).
NORMAL = 'normal'
DEV = 'dev'
BUILD = 'build'


@dataclass(frozen=True)
class PackageSource:
    """Where a live package's source code comes from.

    Attributes:
        kind: ``"workspace"``, ``"path"``, or ``"external"``.
        value: Workspace-relative path for workspace members, a path for
            local crates, or the raw source string for external crates.
    """

    CRATES_IO_REGISTRY: ClassVar[str] = 'registry+https://github.com/rust-lang/crates.io-index'

    kind: str
    value: str

    @classmethod
    def workspace(cls, path: str) -> PackageSource:
        """A workspace member at ``path`` relative to the workspace root."""
        return cls('workspace', path)

    @classmethod
    def path(cls, path: str) -> PackageSource:
        """A non-member crate on the local filesystem."""
        return cls('path', path)

    @classmethod
    def external(cls, source: str) -> PackageSource:
        """A crate from a registry or git repository."""
        return cls('external', source)

    @property
    def is_workspace(self) -> bool:
        """Whether this package is a workspace member."""
        return self.kind == 'workspace'

    @property
    def is_crates_io(self) -> bool:
        """Whether this package comes from the public crates.io registry."""
        return self.kind == 'external' and self.value == self.CRATES_IO_REGISTRY


@dataclass(frozen=True)
class PackageMetadata:
    """A single package in the graph.

    Attributes:
        id: Opaque cargo package ID.
        name: The package name.
        version: The package's semantic version.
        source: Where the package comes from.
        manifest_path: Absolute path to the package's ``Cargo.toml``.
    """

    id: str
    name: str
    version: semantic_version.Version
    source: PackageSource
    manifest_path: Path

    @property
    def in_workspace(self) -> bool:
        """Whether this package is a workspace member."""
        return self.source.is_workspace

    @property
    def directory(self) -> Path:
        """Absolute path to the directory holding the manifest."""
        return self.manifest_path.parent

    @property
    def workspace_path(self) -> str | None:
        """Workspace-relative path for members, ``None`` otherwise."""
        return self.source.value if self.in_workspace else None


@dataclass(frozen=True)
class DependencyLink:
    """A direct dependency edge between two packages.

    Attributes:
        from_id: The dependent package.
        to_id: The dependency.
        name: The name the dependency is declared under (renames included).
        kinds: Subset of ``{"normal", "dev", "build"}``.
    """

    from_id: str
    to_id: str
    name: str
    kinds: frozenset[str] = field(default_factory=lambda: frozenset({NORMAL}))


@dataclass(frozen=True)
class FeatureList:
    """A package together with the features a resolution run enabled on it."""

    package: PackageMetadata
    features: frozenset[str] = frozenset()


class Workspace:
    """The workspace members of a :class:`PackageGraph`.

    Args:
        root: Absolute path to the workspace root.
        members: The member packages.
    """

    def __init__(self, root: Path, members: Iterable[PackageMetadata]) -> None:
        """Index members by name and by workspace path."""
        self.root = root
        self._by_name: dict[str, PackageMetadata] = {}
        self._by_path: dict[str, PackageMetadata] = {}
        for member in members:
            self._by_name[member.name] = member
            self._by_path[member.source.value] = member

    def __len__(self) -> int:
        """Return the number of members."""
        return len(self._by_name)

    def members(self) -> list[PackageMetadata]:
        """Return all members sorted by name."""
        return [self._by_name[name] for name in sorted(self._by_name)]

    def member_by_name(self, name: str) -> PackageMetadata:
        """Look up a member by package name.

        Raises:
            UnifyKitError: If no member has that name.
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise UnifyKitError(
                E.WORKSPACE_MEMBER_NOT_FOUND,
                f'No workspace member named {name!r}.',
                hint=f'Known members: {", ".join(sorted(self._by_name))}',
            ) from None

    def member_by_path(self, path: str) -> PackageMetadata:
        """Look up a member by its workspace-relative path.

        Raises:
            UnifyKitError: If no member lives at that path.
        """
        key = PurePosixPath(path).as_posix()
        try:
            return self._by_path[key]
        except KeyError:
            raise UnifyKitError(
                E.WORKSPACE_MEMBER_NOT_FOUND,
                f'No workspace member at path {path!r}.',
                hint='Workspace paths are relative to the workspace root.',
            ) from None


class PackageGraph:
    """A snapshot of every package and direct dependency in a workspace.

    Args:
        root: Absolute path to the workspace root.
        packages: All packages, workspace members included.
        links: Direct dependency edges.
        features: Resolved feature names per package ID.
    """

    def __init__(
        self,
        root: Path,
        packages: Iterable[PackageMetadata],
        links: Iterable[DependencyLink] = (),
        features: dict[str, frozenset[str]] | None = None,
    ) -> None:
        """Index packages and edges."""
        self._packages: dict[str, PackageMetadata] = {p.id: p for p in packages}
        self._links_from: dict[str, list[DependencyLink]] = {pid: [] for pid in self._packages}
        for link in links:
            self._links_from.setdefault(link.from_id, []).append(link)
        self._features = features or {}
        self.workspace = Workspace(root, (p for p in self._packages.values() if p.in_workspace))

    def __len__(self) -> int:
        """Return the number of packages in the graph."""
        return len(self._packages)

    def packages(self) -> Iterator[PackageMetadata]:
        """Iterate over all packages sorted by (name, version)."""
        return iter(sorted(self._packages.values(), key=lambda p: (p.name, p.version, p.id)))

    def metadata(self, package_id: str) -> PackageMetadata:
        """Return the package with ``package_id``.

        Raises:
            UnifyKitError: If the ID is not part of this graph.
        """
        try:
            return self._packages[package_id]
        except KeyError:
            raise UnifyKitError(
                E.GRAPH_PACKAGE_NOT_FOUND,
                f'Package ID {package_id!r} is not in the package graph.',
            ) from None

    def direct_links(self, package_id: str) -> list[DependencyLink]:
        """Return the direct dependency edges of a package."""
        return list(self._links_from.get(package_id, []))

    def depends_on(self, from_id: str, to_id: str) -> bool:
        """Return whether ``from_id`` directly depends on ``to_id`` (any kind)."""
        return any(link.to_id == to_id for link in self._links_from.get(from_id, []))

    def resolved_features(self, package_id: str) -> frozenset[str]:
        """Return the features cargo resolved for a package."""
        return self._features.get(package_id, frozenset())

    def workspace_dependencies(self, package_id: str) -> list[PackageMetadata]:
        """Return the workspace members ``package_id`` transitively depends on."""
        visited: set[str] = set()
        queue: deque[str] = deque([package_id])
        while queue:
            current = queue.popleft()
            for link in self._links_from.get(current, []):
                dep = self._packages.get(link.to_id)
                if dep is None or not dep.in_workspace or dep.id in visited or dep.id == package_id:
                    continue
                visited.add(dep.id)
                queue.append(dep.id)
        return sorted((self._packages[pid] for pid in visited), key=lambda p: p.name)

    def resolve_workspace(self) -> list[PackageMetadata]:
        """Return every workspace member (the default selection)."""
        return self.workspace.members()

    def resolve_workspace_names(self, names: Iterable[str]) -> list[PackageMetadata]:
        """Resolve member names to packages, failing on the first unknown name."""
        selected = {member.id: member for member in map(self.workspace.member_by_name, names)}
        return sorted(selected.values(), key=lambda p: p.name)

    @classmethod
    def from_metadata(cls, data: dict[str, Any]) -> PackageGraph:
        """Build a graph from a ``cargo metadata --format-version 1`` document.

        Edges come from ``resolve.nodes`` when cargo resolved the graph.
        Without a resolve section (``--no-deps``), only path dependencies
        between known packages become edges.

        Raises:
            UnifyKitError: If the document is missing required fields.
        """
        try:
            root = Path(data['workspace_root'])
            members = set(data['workspace_members'])
            packages = [_parse_package(raw, root, members) for raw in data['packages']]
            resolve = data.get('resolve')
            if resolve:
                links, features = _parse_resolve(resolve)
            else:
                links, features = _path_links(data['packages'], packages), {}
        except (KeyError, TypeError, ValueError) as exc:
            raise UnifyKitError(
                E.GRAPH_METADATA_INVALID,
                f'cargo metadata output is missing or has malformed fields: {exc!r}',
                hint='unifykit expects `cargo metadata --format-version 1` output.',
            ) from exc

        graph = cls(root, packages, links, features)
        logger.debug(
            'built_package_graph',
            packages=len(graph),
            members=len(graph.workspace),
            edges=sum(len(v) for v in graph._links_from.values()),
        )
        return graph


def _relative_posix(path: Path, root: Path) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


def _parse_package(raw: dict[str, Any], root: Path, members: set[str]) -> PackageMetadata:
    manifest_path = Path(raw['manifest_path'])
    if raw['id'] in members:
        source = PackageSource.workspace(_relative_posix(manifest_path.parent, root))
    elif raw.get('source') is None:
        directory = manifest_path.parent
        inside = directory == root or root in directory.parents
        source = PackageSource.path(_relative_posix(directory, root) if inside else directory.as_posix())
    else:
        source = PackageSource.external(raw['source'])
    return PackageMetadata(
        id=raw['id'],
        name=raw['name'],
        version=semantic_version.Version(raw['version']),
        source=source,
        manifest_path=manifest_path,
    )


def _parse_resolve(resolve: dict[str, Any]) -> tuple[list[DependencyLink], dict[str, frozenset[str]]]:
    links: list[DependencyLink] = []
    features: dict[str, frozenset[str]] = {}
    for node in resolve['nodes']:
        features[node['id']] = frozenset(node.get('features', []))
        for dep in node.get('deps', []):
            kinds = frozenset(kind.get('kind') or NORMAL for kind in dep.get('dep_kinds', [])) or frozenset({NORMAL})
            links.append(DependencyLink(node['id'], dep['pkg'], dep['name'], kinds))
    return links, features


def _path_links(raw_packages: list[dict[str, Any]], packages: list[PackageMetadata]) -> list[DependencyLink]:
    by_dir = {p.directory: p for p in packages}
    links: dict[tuple[str, str], DependencyLink] = {}
    for raw in raw_packages:
        for dep in raw.get('dependencies', []):
            if not dep.get('path'):
                continue
            target = by_dir.get(Path(dep['path']))
            if target is None:
                continue
            key = (raw['id'], target.id)
            kind = dep.get('kind') or NORMAL
            previous = links.get(key)
            kinds = previous.kinds | {kind} if previous else frozenset({kind})
            links[key] = DependencyLink(raw['id'], target.id, dep.get('rename') or dep['name'], kinds)
    return list(links.values())


__all__ = [
    'BUILD',
    'DEV',
    'NORMAL',
    'DependencyLink',
    'FeatureList',
    'PackageGraph',
    'PackageMetadata',
    'PackageSource',
    'Workspace',
]
