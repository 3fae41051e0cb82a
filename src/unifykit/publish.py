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

"""Publish a package without its workspace-hack dependency.

The workspace-hack package is never published, so a package that
depends on it cannot be uploaded as-is. :func:`publish_package` removes
the edge, runs ``cargo publish``, and puts the edge back.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ edge_checked_out    │ Borrow the manifest without the hack line.     │
    │                     │ It always goes back, even if publish fails.    │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PublishReport       │ Which states the workflow passed through.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ --allow-dirty       │ Always passed: the manifest was just edited.   │
    └─────────────────────┴────────────────────────────────────────────────┘

State trail::

    start → edge-checked-out → publishing → publish-succeeded | publish-failed
          → restored | not-restored → done

Only the manifests whose edge was actually removed are put back, and
they get their saved text rather than a fresh dependency line. A
member that had the edge under `[dev-dependencies]`, under a
`[target.*]` table or under another key keeps it there.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum

from unifykit.backends import BuildTool, CommandResult
from unifykit.backends._io import read_file, write_file
from unifykit.errors import E, UnifyKitError
from unifykit.graph import PackageMetadata
from unifykit.logging import get_logger
from unifykit.ops import OperationPlanner
from unifykit.reconcile import regenerate_lockfile

logger = get_logger(__name__)


class PublishState(str, Enum):
    """States of the publish workflow."""

    START = 'start'
    EDGE_CHECKED_OUT = 'edge-checked-out'
    PUBLISHING = 'publishing'
    PUBLISH_SUCCEEDED = 'publish-succeeded'
    PUBLISH_FAILED = 'publish-failed'
    RESTORED = 'restored'
    NOT_RESTORED = 'not-restored'
    DONE = 'done'


@dataclass
class PublishReport:
    """What happened during one publish.

    Attributes:
        package: Name of the published package.
        removed: Names of packages whose edge was removed and restored.
        result: The ``cargo publish`` result, once it ran.
        states: Every state the workflow entered, in order.
    """

    package: str
    removed: list[str] = field(default_factory=list)
    result: CommandResult | None = None
    states: list[PublishState] = field(default_factory=list)

    def record(self, state: PublishState) -> None:
        """Append ``state`` to the trail."""
        self.states.append(state)
        logger.debug('publish_state', package=self.package, state=state.value)


class PublishError(UnifyKitError):
    """``cargo publish`` failed; the edge was restored before raising.

    Args:
        report: The workflow report, ending in ``done``.
    """

    def __init__(self, report: PublishReport) -> None:
        """Build the message from the captured command result."""
        result = report.result
        detail = f'`{result.command_str}` failed: {result.diagnostics}' if result else 'cargo publish did not run'
        super().__init__(
            E.PUBLISH_FAILED,
            detail,
            hint='The workspace-hack dependency was restored. Fix the error and re-run.',
        )
        self.report = report


@asynccontextmanager
async def edge_checked_out(
    planner: OperationPlanner,
    selection: Sequence[PackageMetadata],
    build_tool: BuildTool,
    report: PublishReport,
) -> AsyncIterator[PublishReport]:
    """Remove the workspace-hack edge from ``selection`` for the duration.

    On exit, by any path, the manifests that lost the edge are written
    back byte-for-byte and the lock file is regenerated.
    """
    remove_ops = planner.remove_dep_ops(selection)
    removed = [op.package for op in remove_ops]
    report.removed = [p.name for p in removed]
    # Saved before any edit so a partial removal is undone too.
    saved = {p.manifest_path: await read_file(p.manifest_path) for p in removed}
    try:
        if removed:
            logger.info('removing_edge', packages=report.removed, unification=planner.unification.name)
            await remove_ops.apply()
        else:
            logger.info('edge_not_present', packages=[p.name for p in selection], unification=planner.unification.name)
        report.record(PublishState.EDGE_CHECKED_OUT)
        yield report
    finally:
        if removed:
            logger.info('restoring_edge', packages=report.removed, unification=planner.unification.name)
            for path, text in saved.items():
                await write_file(path, text)
                logger.debug('manifest_restored', path=str(path))
            await regenerate_lockfile(build_tool)
            report.record(PublishState.RESTORED)
        else:
            report.record(PublishState.NOT_RESTORED)


async def publish_package(
    planner: OperationPlanner,
    package: PackageMetadata,
    build_tool: BuildTool,
    pass_through: Sequence[str] = (),
    restrict_to_selection: bool = True,
) -> PublishReport:
    """Publish ``package`` with the workspace-hack edge temporarily removed.

    Args:
        planner: Planner for the workspace-hack package.
        package: The workspace member to publish.
        build_tool: Runs ``cargo publish`` and lock regeneration.
        pass_through: Extra arguments for ``cargo publish``.
        restrict_to_selection: Only touch ``package`` itself. When
            ``False``, the workspace members it depends on transitively
            lose the edge too.

    Returns:
        The report of a successful publish.

    Raises:
        PublishError: If ``cargo publish`` failed. The edge has already
            been restored.
        UnifyKitError: If a manifest edit or lock regeneration failed.
    """
    report = PublishReport(package=package.name)
    report.record(PublishState.START)
    selection = [package]
    if not restrict_to_selection:
        selection.extend(planner.graph.workspace_dependencies(package.id))

    async with edge_checked_out(planner, selection, build_tool, report):
        report.record(PublishState.PUBLISHING)
        report.result = await build_tool.publish(package.directory, [*pass_through, '--allow-dirty'])
        if report.result.ok:
            report.record(PublishState.PUBLISH_SUCCEEDED)
        else:
            logger.error('publish_failed', package=package.name, rolling_back=bool(report.removed))
            report.record(PublishState.PUBLISH_FAILED)
    report.record(PublishState.DONE)

    if not report.result.ok:
        raise PublishError(report)
    logger.info('published', package=package.name)
    return report


__all__ = [
    'PublishError',
    'PublishReport',
    'PublishState',
    'edge_checked_out',
    'publish_package',
]
