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

"""Per-invocation workspace context.

One :class:`WorkspaceContext` is built per CLI invocation and passed to
every command. The graph inside it is a snapshot: after any operation set
is applied, edge lookups on it describe the manifests as they were
before.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from unifykit.backends import BuildTool
from unifykit.config import UnifyConfig, load_config
from unifykit.graph import PackageGraph, PackageMetadata
from unifykit.logging import get_logger
from unifykit.ops import OperationPlanner

logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkspaceContext:
    """Everything a command needs about the workspace.

    Attributes:
        graph: The package graph snapshot.
        config: The loaded config.
        build_tool: Runs cargo.
        unification: The workspace-hack package.
        excluded: IDs of members that must not depend on it.
    """

    graph: PackageGraph
    config: UnifyConfig
    build_tool: BuildTool
    unification: PackageMetadata
    excluded: frozenset[str]

    @property
    def root(self) -> Path:
        """The workspace root."""
        return self.graph.workspace.root

    def planner(self) -> OperationPlanner:
        """Return a planner for the workspace-hack package."""
        return OperationPlanner(self.graph, self.unification, self.excluded)

    def selection(self, names: Sequence[str] = ()) -> list[PackageMetadata]:
        """Resolve ``-p`` names, or the whole workspace when none are given."""
        if names:
            return self.graph.resolve_workspace_names(names)
        return self.graph.resolve_workspace()


async def load_graph(build_tool: BuildTool) -> PackageGraph:
    """Build the package graph from ``cargo metadata``."""
    return PackageGraph.from_metadata(await build_tool.metadata())


async def load_context(build_tool: BuildTool, graph: PackageGraph | None = None) -> WorkspaceContext:
    """Load the graph and config and resolve the workspace-hack package.

    Raises:
        UnifyKitError: If the config is missing or invalid, the
            workspace-hack package is not a member, or an omitted
            package is not a workspace member.
    """
    if graph is None:
        graph = await load_graph(build_tool)
    config = load_config(graph.workspace.root)
    unification = graph.workspace.member_by_name(config.unification_package)
    live = config.options.to_live_options(graph)
    logger.debug(
        'context_loaded',
        root=str(graph.workspace.root),
        unification=unification.name,
        excluded=len(live.omitted_packages),
    )
    return WorkspaceContext(
        graph=graph,
        config=config,
        build_tool=build_tool,
        unification=unification,
        excluded=live.omitted_packages,
    )


__all__ = [
    'WorkspaceContext',
    'load_context',
    'load_graph',
]
