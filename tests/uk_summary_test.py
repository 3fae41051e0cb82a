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

"""Tests for unifykit.summary."""

from __future__ import annotations

import pytest
from unifykit.errors import E, UnifyKitError
from unifykit.graph import FeatureList, PackageGraph, PackageMetadata
from unifykit.ids import to_summary_id
from unifykit.options import ResolutionOptions, ResolverVersion
from unifykit.platforms import Platform
from unifykit.summary import BuildSummary, PackageInfo, PackageStatus, ResolvedSet, classify

from tests._fakes import dep, metadata, package


def _graph() -> PackageGraph:
    app = package('app', path='crates/app')
    core = package('core', path='crates/core')
    serde = package('serde', '1.0.200')
    itoa = package('itoa', '1.0.11')
    cc = package('cc', '1.0.90')
    return PackageGraph.from_metadata(
        metadata(
            [app, core, serde, itoa, cc],
            [app, core],
            {
                app['id']: ([dep(core), dep(serde), dep(cc, 'build')], []),
                core['id']: ([dep(serde)], []),
                serde['id']: ([dep(itoa)], ['default', 'std']),
            },
        )
    )


def _pkg(graph: PackageGraph, name: str) -> PackageMetadata:
    return next(p for p in graph.packages() if p.name == name)


def _status(packages: dict, name: str) -> PackageStatus:
    return next(info.status for sid, info in packages.items() if sid.name == name)


class TestClassify:
    """Tests for classify()."""

    def test_each_status(self) -> None:
        """Packages fall into the first matching status."""
        graph = _graph()
        app, core, serde, itoa = (_pkg(graph, n) for n in ('app', 'core', 'serde', 'itoa'))
        packages = classify(
            [FeatureList(p) for p in (app, core, serde, itoa)],
            initials={app.id},
            direct_deps={core.id, serde.id},
        )
        assert _status(packages, 'app') is PackageStatus.INITIAL
        assert _status(packages, 'core') is PackageStatus.WORKSPACE
        assert _status(packages, 'serde') is PackageStatus.DIRECT
        assert _status(packages, 'itoa') is PackageStatus.TRANSITIVE

    def test_initial_beats_workspace(self) -> None:
        """A workspace member that is also initial is initial."""
        graph = _graph()
        core = _pkg(graph, 'core')
        packages = classify([FeatureList(core)], initials={core.id}, direct_deps={core.id})
        assert _status(packages, 'core') is PackageStatus.INITIAL

    def test_workspace_beats_direct(self) -> None:
        """A direct dependency that is a workspace member is workspace."""
        graph = _graph()
        core = _pkg(graph, 'core')
        packages = classify([FeatureList(core)], initials=set(), direct_deps={core.id})
        assert _status(packages, 'core') is PackageStatus.WORKSPACE

    def test_features_recorded(self) -> None:
        """Features are carried into PackageInfo."""
        graph = _graph()
        serde = _pkg(graph, 'serde')
        packages = classify([FeatureList(serde, frozenset({'std'}))], set(), set())
        assert packages[to_summary_id(serde)] == PackageInfo(PackageStatus.TRANSITIVE, frozenset({'std'}))

    def test_duplicate_rejected(self) -> None:
        """The same package twice is an error."""
        graph = _graph()
        serde = _pkg(graph, 'serde')
        with pytest.raises(UnifyKitError) as exc_info:
            classify([FeatureList(serde), FeatureList(serde)], set(), set())
        assert exc_info.value.code is E.GRAPH_DUPLICATE_PACKAGE


class TestBuildSummary:
    """Tests for BuildSummary."""

    def _resolved(self, graph: PackageGraph, order: list[str]) -> ResolvedSet:
        return ResolvedSet(
            initials=frozenset({_pkg(graph, 'app').id}),
            target_features=tuple(FeatureList(_pkg(graph, n), graph.resolved_features(_pkg(graph, n).id)) for n in order),
            host_features=(FeatureList(_pkg(graph, 'cc')),),
            target_direct_deps=frozenset({_pkg(graph, 'serde').id}),
            host_direct_deps=frozenset({_pkg(graph, 'cc').id}),
        )

    def test_from_resolved(self) -> None:
        """Target and host maps are classified separately."""
        graph = _graph()
        summary = BuildSummary.from_resolved(self._resolved(graph, ['app', 'core', 'serde', 'itoa']), graph)
        assert summary.metadata is None
        assert _status(summary.target_packages, 'serde') is PackageStatus.DIRECT
        assert _status(summary.host_packages, 'cc') is PackageStatus.DIRECT
        assert len(summary.target_packages) == 4

    def test_output_independent_of_traversal_order(self) -> None:
        """Two runs that visit packages in different orders serialize identically."""
        graph = _graph()
        options = ResolutionOptions(version=ResolverVersion.V2, target_platform=Platform.parse('x86_64-unknown-linux-gnu'))
        first = BuildSummary.from_resolved(self._resolved(graph, ['app', 'core', 'serde', 'itoa']), graph, options)
        second = BuildSummary.from_resolved(self._resolved(graph, ['itoa', 'serde', 'core', 'app']), graph, options)
        assert first.to_toml() == second.to_toml()

    def test_entries_sorted_by_identity(self) -> None:
        """Package tables are written in identity order."""
        graph = _graph()
        summary = BuildSummary.from_resolved(self._resolved(graph, ['serde', 'itoa', 'core', 'app']), graph)
        names = [entry['name'] for entry in summary.to_dict()['target-package']]
        assert names == ['app', 'core', 'itoa', 'serde']

    def test_toml_layout(self) -> None:
        """The TOML has a metadata table and arrays of package tables."""
        graph = _graph()
        options = ResolutionOptions(version=ResolverVersion.V2)
        text = BuildSummary.from_resolved(self._resolved(graph, ['app']), graph, options).to_toml()
        assert '[metadata]' in text
        assert 'version = "v2"' in text
        assert '[[target-package]]' in text
        assert '[[host-package]]' in text
        assert 'workspace-path = "crates/app"' in text
        assert 'status = "initial"' in text

    def test_toml_round_trip(self) -> None:
        """from_toml reads back what to_toml wrote."""
        graph = _graph()
        options = ResolutionOptions(
            include_dev=True,
            omitted_packages=frozenset({_pkg(graph, 'core').id}),
        )
        summary = BuildSummary.from_resolved(self._resolved(graph, ['app', 'serde', 'itoa']), graph, options)
        assert BuildSummary.from_toml(summary.to_toml()) == summary

    def test_empty_summary(self) -> None:
        """An empty summary writes no tables."""
        assert BuildSummary().to_dict() == {}
        assert BuildSummary.from_toml('') == BuildSummary()

    def test_invalid_toml(self) -> None:
        """Broken TOML is a summary parse error."""
        with pytest.raises(UnifyKitError) as exc_info:
            BuildSummary.from_toml('[metadata')
        assert exc_info.value.code is E.SUMMARY_PARSE_ERROR

    @pytest.mark.parametrize(
        'text',
        [
            '[[target-package]]\nname = "a"\nversion = "1.0.0"\ncrates-io = true\nstatus = "bogus"\n',
            '[[host-package]]\nname = "a"\nversion = "1.0.0"\ncrates-io = true\nstatus = "direct"\nfeatures = 1\n',
            '[[target-package]]\nname = "a"\nversion = "1.0.0"\ncrates-io = true\nstatus = "direct"\n'
            '[[target-package]]\nname = "a"\nversion = "1.0.0"\ncrates-io = true\nstatus = "direct"\n',
            'target-package = "a"\n',
        ],
    )
    def test_malformed_entries(self, text: str) -> None:
        """Bad statuses, bad features, duplicates and non-arrays are rejected."""
        with pytest.raises(UnifyKitError) as exc_info:
            BuildSummary.from_toml(text)
        assert exc_info.value.code is E.SUMMARY_PARSE_ERROR
