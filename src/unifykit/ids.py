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

"""Canonical package identities for build summaries.

A :class:`SummaryId` names a package independently of any live graph, so
summaries written today can be compared with summaries written next
month.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ SummaryId           │ name + version + where it came from. Two IDs   │
    │                     │ are equal only when all three match.           │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ WorkspaceSource     │ A workspace member, by its path from the root. │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PathSource          │ A local crate outside the workspace members.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CratesIoSource      │ The public crates.io registry.                 │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ExternalSource      │ Any other registry or git URL, kept verbatim.  │
    └─────────────────────┴────────────────────────────────────────────────┘

Ordering::

    (name, version, source)
    sources: workspace < path < crates-io < external, then by path/URL
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, ClassVar, Union

import semantic_version

from unifykit.errors import E, UnifyKitError
from unifykit.graph import PackageGraph, PackageMetadata, PackageSource


@dataclass(frozen=True)
class WorkspaceSource:
    """A workspace member at a POSIX path relative to the workspace root."""

    RANK: ClassVar[int] = 0

    path: str

    def sort_key(self) -> tuple[int, str]:
        """Return the key used to order sources."""
        return (self.RANK, self.path)

    def to_dict(self) -> dict[str, Any]:
        """Return the TOML source key."""
        return {'workspace-path': self.path}

    def __str__(self) -> str:
        """Describe the source for messages."""
        return f'workspace path {self.path!r}'


@dataclass(frozen=True)
class PathSource:
    """A non-member crate on the local filesystem."""

    RANK: ClassVar[int] = 1

    path: str

    def sort_key(self) -> tuple[int, str]:
        """Return the key used to order sources."""
        return (self.RANK, self.path)

    def to_dict(self) -> dict[str, Any]:
        """Return the TOML source key."""
        return {'path': self.path}

    def __str__(self) -> str:
        """Describe the source for messages."""
        return f'local path {self.path!r}'


@dataclass(frozen=True)
class CratesIoSource:
    """The public crates.io registry."""

    RANK: ClassVar[int] = 2

    def sort_key(self) -> tuple[int, str]:
        """Return the key used to order sources."""
        return (self.RANK, '')

    def to_dict(self) -> dict[str, Any]:
        """Return the TOML source key."""
        return {'crates-io': True}

    def __str__(self) -> str:
        """Describe the source for messages."""
        return 'crates.io'


@dataclass(frozen=True)
class ExternalSource:
    """Any other registry or git source, stored exactly as cargo reports it."""

    RANK: ClassVar[int] = 3

    source: str

    def sort_key(self) -> tuple[int, str]:
        """Return the key used to order sources."""
        return (self.RANK, self.source)

    def to_dict(self) -> dict[str, Any]:
        """Return the TOML source key."""
        return {'source': self.source}

    def __str__(self) -> str:
        """Describe the source for messages."""
        return f'external source {self.source!r}'


SummarySource = Union[WorkspaceSource, PathSource, CratesIoSource, ExternalSource]

_SOURCE_KEYS = ('workspace-path', 'path', 'crates-io', 'source')


def to_summary_source(source: PackageSource) -> SummarySource:
    """Classify a live package source.

    Only the exact crates.io registry string becomes
    :class:`CratesIoSource`. Every other external string is preserved
    as-is, so mirrors of crates.io stay distinct.
    """
    if source.is_workspace:
        return WorkspaceSource(source.value)
    if source.kind == 'path':
        return PathSource(source.value)
    if source.is_crates_io:
        return CratesIoSource()
    return ExternalSource(source.value)


def source_from_dict(data: dict[str, Any]) -> SummarySource:
    """Read the source key of a serialized package identity.

    Raises:
        UnifyKitError: If zero or several source keys are present, or a
            value has the wrong type.
    """
    present = [key for key in _SOURCE_KEYS if key in data]
    if len(present) != 1:
        raise UnifyKitError(
            E.SUMMARY_PARSE_ERROR,
            f'Expected exactly one of {", ".join(_SOURCE_KEYS)} in {dict(data)!r}, found {len(present)}.',
        )
    key = present[0]
    value = data[key]
    if key == 'crates-io':
        if value is not True:
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'crates-io must be true, got {value!r}.')
        return CratesIoSource()
    if not isinstance(value, str):
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key} must be a string, got {value!r}.')
    if key == 'workspace-path':
        return WorkspaceSource(value)
    if key == 'path':
        return PathSource(value)
    return ExternalSource(value)


@functools.total_ordering
@dataclass(frozen=True, eq=True)
class SummaryId:
    """A package identity that does not depend on a live graph.

    Attributes:
        name: The package name.
        version: The package version.
        source: Where the package comes from.
    """

    name: str
    version: semantic_version.Version
    source: SummarySource

    def sort_key(self) -> tuple[Any, ...]:
        """Return the total-order key.

        Versions that differ only in build metadata have equal
        precedence, so the version string breaks the tie.
        """
        return (self.name, self.version.precedence_key, str(self.version), self.source.sort_key())

    def __lt__(self, other: object) -> bool:
        """Order by (name, version, source)."""
        if not isinstance(other, SummaryId):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        """Return ``name version (source)``."""
        return f'{self.name} {self.version} ({self.source})'

    def to_dict(self) -> dict[str, Any]:
        """Return the kebab-case mapping written to TOML."""
        return {'name': self.name, 'version': str(self.version), **self.source.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> SummaryId:  # noqa: ANN401 - untrusted TOML value
        """Read an identity written by :meth:`to_dict`.

        Raises:
            UnifyKitError: If the mapping is malformed.
        """
        if not isinstance(data, dict):
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'Expected a package table, got {data!r}.')
        name = data.get('name')
        version = data.get('version')
        if not isinstance(name, str) or not isinstance(version, str):
            raise UnifyKitError(
                E.SUMMARY_PARSE_ERROR,
                f'Package entries need string name and version, got {dict(data)!r}.',
            )
        try:
            parsed = semantic_version.Version(version)
        except ValueError as exc:
            raise UnifyKitError(
                E.SUMMARY_PARSE_ERROR,
                f'Invalid version {version!r} for package {name!r}: {exc}',
            ) from exc
        return cls(name=name, version=parsed, source=source_from_dict(data))

    def to_live_package(self, graph: PackageGraph) -> PackageMetadata:
        """Find the live package this identity refers to.

        Only workspace identities can be converted; a registry or path
        identity could match several live packages, or none.

        Raises:
            UnifyKitError: If the source is not a workspace path, or no
                member lives at that path.
        """
        if isinstance(self.source, WorkspaceSource):
            return graph.workspace.member_by_path(self.source.path)
        raise UnifyKitError(
            E.SUMMARY_UNSUPPORTED_SOURCE,
            f'Cannot convert {self.name} {self.version} with {self.source} into a live package.',
            hint='Only workspace members can be referenced from a summary.',
        )


def to_summary_id(metadata: PackageMetadata) -> SummaryId:
    """Return the identity of a live package."""
    return SummaryId(name=metadata.name, version=metadata.version, source=to_summary_source(metadata.source))


__all__ = [
    'CratesIoSource',
    'ExternalSource',
    'PathSource',
    'SummaryId',
    'SummarySource',
    'WorkspaceSource',
    'source_from_dict',
    'to_summary_id',
    'to_summary_source',
]
