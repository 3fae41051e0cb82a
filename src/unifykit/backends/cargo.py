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

"""Cargo CLI backend for unifykit.

The :class:`CargoCli` implements the
:class:`~unifykit.backends.BuildTool` protocol via the ``cargo`` CLI:

- ``cargo metadata --format-version 1`` feeds the package graph.
- ``cargo publish`` is the external publish action.
- ``cargo tree`` regenerates ``Cargo.lock`` after manifest edits. It is
  cheaper than ``cargo update -p <hack>``, which can trigger index
  updates.

All methods are async. Blocking subprocess calls are dispatched to
``asyncio.to_thread()`` and awaited one at a time.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from unifykit.backends._run import CommandResult, run_command
from unifykit.errors import E, UnifyKitError
from unifykit.logging import get_logger

log = get_logger('unifykit.backends.cargo')


class CargoCli:
    """Cargo :class:`~unifykit.backends.BuildTool` implementation.

    Args:
        workspace_root: Directory containing the workspace ``Cargo.toml``.
        color: Value for cargo's ``--color`` flag.
    """

    def __init__(self, workspace_root: Path, *, color: str = 'auto') -> None:
        """Initialize with the workspace root and color preference."""
        self._root = workspace_root
        self._color = color
        # Honor the cargo binary that invoked us as a cargo subcommand.
        self._cargo = os.environ.get('CARGO', 'cargo')

    def command(self, subcommand: str, *args: str) -> list[str]:
        """Build a cargo command line with the shared global flags."""
        return [self._cargo, subcommand, '--color', self._color, *args]

    async def metadata(self) -> dict[str, Any]:
        """Run ``cargo metadata`` and return the parsed JSON document.

        Raises:
            UnifyKitError: If cargo fails or prints invalid JSON.
        """
        cmd = self.command('metadata', '--format-version', '1')
        result = await asyncio.to_thread(run_command, cmd, cwd=self._root)
        if not result.ok:
            raise UnifyKitError(
                E.METADATA_FAILED,
                f'`{result.command_str}` failed: {result.diagnostics}',
                hint='Check that the workspace builds with `cargo check`.',
            )
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise UnifyKitError(
                E.GRAPH_METADATA_INVALID,
                f'`{result.command_str}` printed invalid JSON: {exc}',
            ) from exc

    async def publish(self, package_dir: Path, args: Sequence[str]) -> CommandResult:
        """Run ``cargo publish`` from ``package_dir`` with pass-through args."""
        cmd = self.command('publish', *args)
        log.info('publish', package_dir=str(package_dir), cmd=' '.join(cmd))
        return await asyncio.to_thread(run_command, cmd, cwd=package_dir)

    async def regenerate_lockfile(self) -> CommandResult:
        """Refresh ``Cargo.lock`` by running ``cargo tree``."""
        cmd = self.command('tree')
        log.debug('regenerate_lockfile', root=str(self._root))
        return await asyncio.to_thread(run_command, cmd, cwd=self._root)


__all__ = [
    'CargoCli',
]
