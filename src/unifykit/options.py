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

"""Resolution options and their canonical summary.

:class:`ResolutionOptions` is what a resolution run is configured with:
package IDs and :class:`~unifykit.platforms.Platform` objects that only
make sense against one live graph. :class:`ResolutionOptionsSummary` is
the same information keyed by :class:`~unifykit.ids.SummaryId`, so it
can be written to the ``[metadata]`` table of a summary or to the config
file and read back later.

Round trip::

    options ──build()──→ summary ──to_dict()──→ TOML
       ↑                    │
       └──to_live_options()─┘   (features-only is not reconstructed)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from unifykit.errors import E, UnifyKitError
from unifykit.graph import FeatureList, PackageGraph
from unifykit.ids import SummaryId, to_summary_id
from unifykit.platforms import Platform, PlatformError, PlatformSummary


class ResolverVersion(str, Enum):
    """Cargo feature resolver versions."""

    V1 = 'v1'
    V1_INSTALL = 'v1-install'
    V2 = 'v2'


@dataclass(frozen=True)
class ResolutionOptions:
    """Live options for a resolution run.

    Attributes:
        version: The feature resolver to emulate.
        include_dev: Whether dev-dependencies of workspace members count.
        proc_macros_on_target: Whether proc macros build for the target
            platform instead of the host.
        host_platform: Platform build scripts and proc macros run on, or
            ``None`` for any platform.
        target_platform: Platform being built for, or ``None`` for any.
        omitted_packages: Package IDs to leave out of the resolution.
    """

    version: ResolverVersion = ResolverVersion.V1
    include_dev: bool = False
    proc_macros_on_target: bool = False
    host_platform: Platform | None = None
    target_platform: Platform | None = None
    omitted_packages: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FeaturesOnlySummary:
    """A package whose features, but not the package itself, are resolved."""

    id: SummaryId
    features: tuple[str, ...] = ()

    def sort_key(self) -> tuple[Any, ...]:
        """Order by identity, then by the sorted feature list."""
        return (self.id.sort_key(), self.features)

    def to_dict(self) -> dict[str, Any]:
        """Return the identity keys plus ``features``."""
        return {**self.id.to_dict(), 'features': list(self.features)}

    @classmethod
    def from_dict(cls, data: Any) -> FeaturesOnlySummary:  # noqa: ANN401 - untrusted TOML value
        """Read an entry written by :meth:`to_dict`."""
        summary_id = SummaryId.from_dict(data)
        return cls(id=summary_id, features=_string_list(data.get('features', []), 'features'))


@dataclass(frozen=True)
class ResolutionOptionsSummary:
    """Serializable summary of every option that influenced a run.

    ``omitted_packages`` is sorted and unique; ``features_only`` is sorted
    by identity and then by feature list. Both normalizations happen in
    :meth:`build` and :meth:`from_dict`, so equal options always
    serialize identically.
    """

    version: ResolverVersion = ResolverVersion.V1
    include_dev: bool = False
    proc_macros_on_target: bool = False
    host_platform: PlatformSummary | None = None
    target_platform: PlatformSummary | None = None
    omitted_packages: tuple[SummaryId, ...] = ()
    features_only: tuple[FeaturesOnlySummary, ...] = field(default=())

    @classmethod
    def build(
        cls,
        graph: PackageGraph,
        features_only: Iterable[FeatureList],
        options: ResolutionOptions,
    ) -> ResolutionOptionsSummary:
        """Summarize live options against the graph they were used with.

        Raises:
            UnifyKitError: If an omitted package is not in ``graph``, or a
                platform cannot be summarized.
        """
        omitted = sorted({to_summary_id(graph.metadata(package_id)) for package_id in options.omitted_packages})
        features = sorted(
            (
                FeaturesOnlySummary(id=to_summary_id(entry.package), features=tuple(sorted(entry.features)))
                for entry in features_only
            ),
            key=FeaturesOnlySummary.sort_key,
        )
        return cls(
            version=options.version,
            include_dev=options.include_dev,
            proc_macros_on_target=options.proc_macros_on_target,
            host_platform=_serialize_platform(options.host_platform, 'host'),
            target_platform=_serialize_platform(options.target_platform, 'target'),
            omitted_packages=tuple(omitted),
            features_only=tuple(features),
        )

    def to_live_options(self, graph: PackageGraph) -> ResolutionOptions:
        """Rebuild live options for ``graph``.

        The features-only list is not reconstructed; callers that need it
        must resolve it separately.

        Raises:
            UnifyKitError: If an omitted package is not a workspace member
                of ``graph``, or a platform cannot be parsed.
        """
        return ResolutionOptions(
            version=self.version,
            include_dev=self.include_dev,
            proc_macros_on_target=self.proc_macros_on_target,
            host_platform=_parse_platform(self.host_platform, 'host'),
            target_platform=_parse_platform(self.target_platform, 'target'),
            omitted_packages=frozenset(summary_id.to_live_package(graph).id for summary_id in self.omitted_packages),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the kebab-case ``[metadata]`` table.

        Platforms are omitted when unset, and the two package lists when
        empty.
        """
        data: dict[str, Any] = {
            'version': self.version.value,
            'include-dev': self.include_dev,
            'proc-macros-on-target': self.proc_macros_on_target,
        }
        if self.host_platform is not None:
            data['host-platform'] = self.host_platform.to_dict()
        if self.target_platform is not None:
            data['target-platform'] = self.target_platform.to_dict()
        if self.omitted_packages:
            data['omitted-packages'] = [summary_id.to_dict() for summary_id in self.omitted_packages]
        if self.features_only:
            data['features-only'] = [entry.to_dict() for entry in self.features_only]
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ResolutionOptionsSummary:  # noqa: ANN401 - untrusted TOML value
        """Read a table written by :meth:`to_dict`. Missing keys take defaults.

        Raises:
            UnifyKitError: If a value has the wrong type or shape.
        """
        if not isinstance(data, dict):
            raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'Expected a metadata table, got {data!r}.')
        raw_version = data.get('version', ResolverVersion.V1.value)
        try:
            version = ResolverVersion(raw_version)
        except ValueError:
            choices = ', '.join(v.value for v in ResolverVersion)
            raise UnifyKitError(
                E.SUMMARY_PARSE_ERROR,
                f'Unknown resolver version {raw_version!r}; expected one of {choices}.',
            ) from None
        omitted = {SummaryId.from_dict(entry) for entry in _table_list(data.get('omitted-packages', []), 'omitted-packages')}
        features = [FeaturesOnlySummary.from_dict(entry) for entry in _table_list(data.get('features-only', []), 'features-only')]
        return cls(
            version=version,
            include_dev=_bool(data, 'include-dev'),
            proc_macros_on_target=_bool(data, 'proc-macros-on-target'),
            host_platform=_platform_from_dict(data, 'host-platform'),
            target_platform=_platform_from_dict(data, 'target-platform'),
            omitted_packages=tuple(sorted(omitted)),
            features_only=tuple(sorted(features, key=FeaturesOnlySummary.sort_key)),
        )


def _serialize_platform(platform: Platform | None, which: str) -> PlatformSummary | None:
    if platform is None:
        return None
    try:
        return PlatformSummary.from_platform(platform)
    except PlatformError as exc:
        raise UnifyKitError(
            E.PLATFORM_SERIALIZE_FAILED,
            f'while serializing {which} platform: {exc}',
        ) from exc


def _parse_platform(summary: PlatformSummary | None, which: str) -> Platform | None:
    if summary is None:
        return None
    try:
        return summary.to_platform()
    except PlatformError as exc:
        raise UnifyKitError(
            E.PLATFORM_PARSE_FAILED,
            f'parsing {which} platform: {exc}',
        ) from exc


def _platform_from_dict(data: dict[str, Any], key: str) -> PlatformSummary | None:
    if key not in data:
        return None
    try:
        return PlatformSummary.from_dict(data[key])
    except PlatformError as exc:
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key}: {exc}') from exc


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key} must be true or false, got {value!r}.')
    return value


def _table_list(value: Any, key: str) -> list[Any]:  # noqa: ANN401 - untrusted TOML value
    if not isinstance(value, list):
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key} must be an array of tables, got {value!r}.')
    return value


def _string_list(value: Any, key: str) -> tuple[str, ...]:  # noqa: ANN401 - untrusted TOML value
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise UnifyKitError(E.SUMMARY_PARSE_ERROR, f'{key} must be a list of strings, got {value!r}.')
    return tuple(sorted(set(value)))


__all__ = [
    'FeaturesOnlySummary',
    'ResolutionOptions',
    'ResolutionOptionsSummary',
    'ResolverVersion',
]
