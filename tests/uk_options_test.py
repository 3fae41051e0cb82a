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

"""Tests for unifykit.options."""

from __future__ import annotations

import pytest
from unifykit.errors import E, UnifyKitError
from unifykit.graph import FeatureList, PackageGraph
from unifykit.ids import CratesIoSource, WorkspaceSource
from unifykit.options import FeaturesOnlySummary, ResolutionOptions, ResolutionOptionsSummary, ResolverVersion
from unifykit.platforms import Platform, PlatformSummary

from tests._fakes import metadata, package

LINUX = 'x86_64-unknown-linux-gnu'


def _graph() -> PackageGraph:
    a = package('a', path='crates/a')
    b = package('b', path='crates/b')
    xtask = package('xtask', path='xtask')
    serde = package('serde', '1.0.200')
    return PackageGraph.from_metadata(metadata([a, b, xtask, serde], [a, b, xtask], {}))


def _id(graph: PackageGraph, name: str) -> str:
    return next(p.id for p in graph.packages() if p.name == name)


class TestBuild:
    """Tests for ResolutionOptionsSummary.build()."""

    def test_defaults(self) -> None:
        """Default options produce the default summary."""
        assert ResolutionOptionsSummary.build(_graph(), [], ResolutionOptions()) == ResolutionOptionsSummary()

    def test_omitted_sorted_and_unique(self) -> None:
        """Omitted packages are sorted by identity."""
        graph = _graph()
        options = ResolutionOptions(omitted_packages=frozenset({_id(graph, 'xtask'), _id(graph, 'b')}))
        summary = ResolutionOptionsSummary.build(graph, [], options)
        assert [s.name for s in summary.omitted_packages] == ['b', 'xtask']
        assert summary.omitted_packages[0].source == WorkspaceSource('crates/b')

    def test_features_only_sorted(self) -> None:
        """Features-only entries are sorted by identity with sorted features."""
        graph = _graph()
        serde = graph.metadata(_id(graph, 'serde'))
        a = graph.metadata(_id(graph, 'a'))
        summary = ResolutionOptionsSummary.build(
            graph,
            [FeatureList(serde, frozenset({'std', 'derive'})), FeatureList(a, frozenset())],
            ResolutionOptions(),
        )
        assert [(f.id.name, f.features) for f in summary.features_only] == [('a', ()), ('serde', ('derive', 'std'))]
        assert summary.features_only[1].id.source == CratesIoSource()

    def test_unknown_omitted_id(self) -> None:
        """Omitting an ID that is not in the graph fails."""
        options = ResolutionOptions(omitted_packages=frozenset({'nope'}))
        with pytest.raises(UnifyKitError) as exc_info:
            ResolutionOptionsSummary.build(_graph(), [], options)
        assert exc_info.value.code is E.GRAPH_PACKAGE_NOT_FOUND

    def test_custom_target_platform(self) -> None:
        """A custom platform cannot be serialized and says which one failed."""
        options = ResolutionOptions(target_platform=Platform('my-target', custom_spec='{}'))
        with pytest.raises(UnifyKitError) as exc_info:
            ResolutionOptionsSummary.build(_graph(), [], options)
        assert exc_info.value.code is E.PLATFORM_SERIALIZE_FAILED
        assert 'while serializing target platform' in exc_info.value.message

    def test_custom_host_platform(self) -> None:
        """Host platform failures name the host."""
        options = ResolutionOptions(host_platform=Platform('my-host', custom_spec='{}'))
        with pytest.raises(UnifyKitError) as exc_info:
            ResolutionOptionsSummary.build(_graph(), [], options)
        assert 'while serializing host platform' in exc_info.value.message


class TestToLiveOptions:
    """Tests for ResolutionOptionsSummary.to_live_options()."""

    def test_round_trip(self) -> None:
        """Options survive build() then to_live_options() except features-only."""
        graph = _graph()
        options = ResolutionOptions(
            version=ResolverVersion.V2,
            include_dev=True,
            proc_macros_on_target=True,
            host_platform=Platform.parse(LINUX, ['sse2']),
            target_platform=Platform.parse('wasm32-unknown-unknown'),
            omitted_packages=frozenset({_id(graph, 'xtask')}),
        )
        summary = ResolutionOptionsSummary.build(graph, [], options)
        assert summary.to_live_options(graph) == options

    def test_bad_target_triple(self) -> None:
        """An unparseable platform is a tagged parse failure."""
        summary = ResolutionOptionsSummary(target_platform=PlatformSummary('garbage'))
        with pytest.raises(UnifyKitError) as exc_info:
            summary.to_live_options(_graph())
        assert exc_info.value.code is E.PLATFORM_PARSE_FAILED
        assert exc_info.value.message.startswith('parsing target platform')

    def test_bad_host_triple(self) -> None:
        """Host platform failures name the host."""
        summary = ResolutionOptionsSummary(host_platform=PlatformSummary('garbage'))
        with pytest.raises(UnifyKitError) as exc_info:
            summary.to_live_options(_graph())
        assert exc_info.value.message.startswith('parsing host platform')

    def test_non_workspace_omitted(self) -> None:
        """Omitted packages must be workspace members."""
        graph = _graph()
        summary = ResolutionOptionsSummary.build(
            graph,
            [],
            ResolutionOptions(omitted_packages=frozenset({_id(graph, 'serde')})),
        )
        with pytest.raises(UnifyKitError) as exc_info:
            summary.to_live_options(graph)
        assert exc_info.value.code is E.SUMMARY_UNSUPPORTED_SOURCE


class TestDict:
    """Tests for to_dict / from_dict."""

    def test_to_dict_omits_empty(self) -> None:
        """Unset platforms and empty lists are left out."""
        assert ResolutionOptionsSummary().to_dict() == {
            'version': 'v1',
            'include-dev': False,
            'proc-macros-on-target': False,
        }

    def test_from_dict_defaults(self) -> None:
        """An empty table is the default summary."""
        assert ResolutionOptionsSummary.from_dict({}) == ResolutionOptionsSummary()

    def test_round_trip(self) -> None:
        """A full summary reads back equal."""
        graph = _graph()
        serde = graph.metadata(_id(graph, 'serde'))
        summary = ResolutionOptionsSummary.build(
            graph,
            [FeatureList(serde, frozenset({'derive'}))],
            ResolutionOptions(
                version=ResolverVersion.V1_INSTALL,
                target_platform=Platform.parse(LINUX, flags=['foo']),
                omitted_packages=frozenset({_id(graph, 'xtask'), _id(graph, 'a')}),
            ),
        )
        assert ResolutionOptionsSummary.from_dict(summary.to_dict()) == summary

    def test_from_dict_sorts(self) -> None:
        """Out-of-order input is normalized on read."""
        data = {
            'omitted-packages': [
                {'name': 'z', 'version': '0.1.0', 'workspace-path': 'z'},
                {'name': 'a', 'version': '0.1.0', 'workspace-path': 'a'},
            ],
            'features-only': [{'name': 'serde', 'version': '1.0.0', 'crates-io': True, 'features': ['std', 'alloc']}],
        }
        summary = ResolutionOptionsSummary.from_dict(data)
        assert [s.name for s in summary.omitted_packages] == ['a', 'z']
        assert summary.features_only == (
            FeaturesOnlySummary(summary.features_only[0].id, ('alloc', 'std')),
        )

    @pytest.mark.parametrize(
        'data',
        [
            [],
            {'version': 'v3'},
            {'include-dev': 'yes'},
            {'omitted-packages': 'xtask'},
            {'features-only': [{'name': 'a', 'version': '1.0.0', 'crates-io': True, 'features': 'std'}]},
            {'host-platform': {'triple': LINUX, 'target-features': 5}},
        ],
    )
    def test_from_dict_rejects(self, data: object) -> None:
        """Malformed tables are tagged parse errors."""
        with pytest.raises(UnifyKitError) as exc_info:
            ResolutionOptionsSummary.from_dict(data)
        assert exc_info.value.code is E.SUMMARY_PARSE_ERROR
