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

"""Write generated manifest contents only when they changed.

Outcomes::

    diff_only=True    IDENTICAL (exit 0) | DIFFERS (exit 1, diff text)
    diff_only=False   UNCHANGED          | UPDATED (written, lock regenerated)

A stale ``Cargo.lock`` is never left behind silently: if regeneration
fails after a write, the failure is the reconciler's failure.
"""

from __future__ import annotations

import difflib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from unifykit.backends import BuildTool
from unifykit.backends._io import write_file
from unifykit.errors import E, UnifyKitError
from unifykit.logging import get_logger

logger = get_logger(__name__)


class ReconcileOutcome(str, Enum):
    """What :func:`reconcile` found or did."""

    IDENTICAL = 'identical'
    DIFFERS = 'differs'
    UNCHANGED = 'unchanged'
    UPDATED = 'updated'

    @property
    def exit_code(self) -> int:
        """Process exit status for this outcome."""
        return 1 if self is ReconcileOutcome.DIFFERS else 0


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome plus the unified diff (empty unless contents differ)."""

    outcome: ReconcileOutcome
    diff: str = ''


def unified_diff(existing: str, generated: str, path: Path | str) -> str:
    """Return a unified diff from ``existing`` to ``generated``."""
    return ''.join(
        difflib.unified_diff(
            existing.splitlines(keepends=True),
            generated.splitlines(keepends=True),
            fromfile=f'a/{path}',
            tofile=f'b/{path}',
        )
    )


async def regenerate_lockfile(build_tool: BuildTool) -> None:
    """Bring ``Cargo.lock`` up to date after manifest edits.

    Raises:
        UnifyKitError: If the build tool reports failure.
    """
    result = await build_tool.regenerate_lockfile()
    if not result.ok:
        raise UnifyKitError(
            E.LOCK_REGENERATION_FAILED,
            f'updating Cargo.lock failed: {result.diagnostics}',
            hint="Run 'cargo tree' manually to see the error.",
        )
    logger.info('lockfile_regenerated')


async def reconcile(
    path: Path,
    existing: str,
    generated: str,
    *,
    diff_only: bool,
    regenerate_lock: Callable[[], Awaitable[None]],
) -> ReconcileResult:
    """Compare generated contents with what is on disk.

    Args:
        path: The file the contents belong to.
        existing: Current contents of ``path``.
        generated: Freshly generated contents.
        diff_only: Only report differences; never write.
        regenerate_lock: Awaited after a write.

    Raises:
        UnifyKitError: If writing or lock regeneration fails.
    """
    if diff_only:
        diff = unified_diff(existing, generated, path.name)
        if not diff:
            return ReconcileResult(ReconcileOutcome.IDENTICAL)
        return ReconcileResult(ReconcileOutcome.DIFFERS, diff)

    if existing == generated:
        logger.info('no_changes_detected', path=str(path))
        return ReconcileResult(ReconcileOutcome.UNCHANGED)

    await write_file(path, generated)
    logger.info('contents_updated', path=str(path))
    await regenerate_lock()
    return ReconcileResult(ReconcileOutcome.UPDATED)


__all__ = [
    'ReconcileOutcome',
    'ReconcileResult',
    'reconcile',
    'regenerate_lockfile',
    'unified_diff',
]
