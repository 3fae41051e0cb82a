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

"""Build summaries: which packages a resolution run picked, and why.

A build summary is written once per resolution run and then only read
or diffed. It has two package maps, one for the target platform and one
for the host platform, and the options the run used.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PackageStatus       │ Why a package is in the build. Checked in      │
    │                     │ order: initial, workspace, direct, transitive. │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ResolvedSet         │ What the feature resolver handed back: the     │
    │                     │ packages and features per platform.            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ classify()          │ Tags every resolved package with its status.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ BuildSummary        │ Options + target map + host map, as TOML.      │
    └─────────────────────┴────────────────────────────────────────────────┘

TOML layout::

    [metadata]
    version = "v2"
    include-dev = false
    proc-macros-on-target = false

    [[target-package]]
    name = "my-core"
    version = "0.1.0"
    workspace-path = "crates/my-core"
    status = "workspace"
    features = ["default"]

Entries are always written in identity order, so two summaries with the
same content are byte-identical.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import tomlkit
import tomlkit.exceptions

from unifykit.errors import E, UnifyKitError
from unifykit.graph import FeatureList, PackageGraph
from unifykit.ids import SummaryId, to_summary_id
from unifykit.logging import get_logger
from unifykit.options import ResolutionOptions, ResolutionOptionsSummary

logger = get_logger(__name__)


class PackageStatus(str, Enum):
    """Why a package is part of a build, highest priority first."""

    INITIAL = 'initial'
    WORKSPACE = 'workspace'
    DIRECT = 'direct'
    TRANSITIVE = 'transitive'


@dataclass(frozen=True)
class PackageInfo:
    """The status and enabled features of one package in a build."""

    status: PackageStatus
    features: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        """Return ``status`` and the sorted ``features``."""
        return {'status': self.status.value, 'features': sorted(self.features)}


PackageMap = dict[SummaryId, PackageInfo]


@dataclass(frozen=True)
class ResolvedSet:
    """Output of the feature resolver for one run.

    Attributes:
        initials: Package IDs the run was asked to build.
        features_only: Packages whose features were resolved without
            building the packages themselves.
        target_features: Packages and features built for the target, in
            resolver traversal order.
        host_features: Packages and features built for the host.
        target_direct_deps: Package IDs the initials depend on directly
            on the target platform.
        host_direct_deps: The same, for the host platform.
    """

    initials: frozenset[str] = frozenset()
    features_only: tuple[FeatureList, ...] = ()
    target_features: tuple[FeatureList, ...] = ()
    host_features: tuple[FeatureList, ...] = ()
    target_direct_deps: frozenset[str] = frozenset()
    host_direct_deps: frozenset[str] = frozenset()


def classify(
    selection: Iterable[FeatureList],
    initials: frozenset[str] | set[str],
    direct_deps: frozenset[str] | set[str],
) -> PackageMap:
    """Assign a :class:`PackageStatus` to every package in ``selection``.

    The first matching rule wins: an initial package is ``initial`` even
    if it is also a workspace member, and a workspace member is
    ``workspace`` even if an initial depends on it directly.

    Raises:
        UnifyKitError: If a package appears twice in ``selection``.
    """
    packages: PackageMap = {}
    for entry in selection:
        package = entry.package
        if package.id in initials:
            status = PackageStatus.INITIAL
        elif package.in_workspace:
            status = PackageStatus.WORKSPACE
        elif package.id in direct_deps:
            status = PackageStatus.DIRECT
        else:
            status = PackageStatus.TRANSITIVE

        summary_id = to_summary_id(package)
        if summary_id in packages:
            raise UnifyKitError(
                E.GRAPH_DUPLICATE_PACKAGE,
                f'{summary_id} appears more than once in the resolved package set.',
                hint='The feature resolver must report each package once per platform.',
            )
        packages[summary_id] = PackageInfo(status=status, features=frozenset(entry.features))
    return packages


@dataclass(frozen=True)
class BuildSummary:
    """A serializable record of one resolution run.

    Attributes:
        metadata: The options the run used, if known.
        target_packages: Packages built for the target platform.
        host_packages: Packages built for the host platform.
    """

    metadata: ResolutionOptionsSummary | None = None
    target_packages: Mapping[SummaryId, PackageInfo] = field(default_factory=dict)
    host_packages: Mapping[SummaryId, PackageInfo] = field(default_factory=dict)

    @classmethod
    def from_resolved(
        cls,
        resolved: ResolvedSet,
        graph: PackageGraph,
        options: ResolutionOptions | None = None,
    ) -> BuildSummary:
        """Classify a resolver result and record the options it used.

        Raises:
            UnifyKitError: If the options reference packages not in the
                graph, a platform cannot be summarized, or the resolver
                reported a package twice.
        """
        metadata = None
        if options is not None:
            metadata = ResolutionOptionsSummary.build(graph, resolved.features_only, options)
        summary = cls(
            metadata=metadata,
            target_packages=classify(resolved.target_features, resolved.initials, resolved.target_direct_deps),
            host_packages=classify(resolved.host_features, resolved.initials, resolved.host_direct_deps),
        )
        logger.debug(
            'build_summary_created',
            target_packages=len(summary.target_packages),
            host_packages=len(summary.host_packages),
        )
        return summary

    def to_dict(self) -> dict[str, Any]:
        """Return the summary as plain data, with every list in canonical order."""
        data: dict[str, Any] = {}
        if self.metadata is not None:
            data['metadata'] = self.metadata.to_dict()
        if self.target_packages:
            data['target-package'] = _map_to_list(self.target_packages)
        if self.host_packages:
            data['host-package'] = _map_to_list(self.host_packages)
        return data

    def to_toml(self) -> str:
        """Serialize to TOML text."""
        return tomlkit.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> BuildSummary:  # noqa: ANN401 - untrusted TOML value
        """Read a summary written by :meth:`to_dict`.

        Raises:
            UnifyKitError: If the data is malformed or lists a package twice.
        """
        if not isinstance(data, dict):
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'Expected a summary table, got {data!r}.')
        metadata = None
        if 'metadata' in data:
            metadata = ResolutionOptionsSummary.from_dict(data['metadata'])
        return cls(
            metadata=metadata,
            target_packages=_list_to_map(data.get('target-package', []), 'target-package'),
            host_packages=_list_to_map(data.get('host-package', []), 'host-package'),
        )

    @classmethod
    def from_toml(cls, text: str) -> BuildSummary:
        """Parse TOML text written by :meth:`to_toml`.

        Raises:
            UnifyKitError: If the text is not valid TOML or not a summary.
        """
        try:
            data = tomlkit.parse(text).unwrap()
        except tomlkit.exceptions.TOMLKitError as exc:
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'Invalid summary TOML: {exc}') from exc
        return cls.from_dict(data)


def _map_to_list(packages: Mapping[SummaryId, PackageInfo]) -> list[dict[str, Any]]:
    return [{**summary_id.to_dict(), **packages[summary_id].to_dict()} for summary_id in sorted(packages)]


def _list_to_map(entries: Any, key: str) -> PackageMap:  # noqa: ANN401 - untrusted TOML value
    if not isinstance(entries, list):
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key} must be an array of tables, got {entries!r}.')
    packages: PackageMap = {}
    for entry in entries:
        summary_id = SummaryId.from_dict(entry)
        if summary_id in packages:
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{summary_id} is listed twice in {key}.')
        try:
            status = PackageStatus(entry.get('status'))
        except ValueError:
            raise UnifyKitError(
                E.SUMMARY_PARSE_ERROR,
                f'Unknown status {entry.get("status")!r} for {summary_id} in {key}.',
            ) from None
        features = entry.get('features', [])
        if not isinstance(features, list) or not all(isinstance(f, str) for f in features):
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'features of {summary_id} must be a list of strings.')
        packages[summary_id] = PackageInfo(status=status, features=frozenset(features))
    return packages


__all__ = [
    'BuildSummary',
    'PackageInfo',
    'PackageMap',
    'PackageStatus',
    'ResolvedSet',
    'classify',
]
