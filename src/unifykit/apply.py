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

"""Preview, confirm, and apply an operation set.

Flow::

    ops ──preview──→ DRY_RUN ─────────────→ PENDING (exit 1)
                 ├─→ INTERACTIVE ─declined─→ PENDING (exit 1)
                 │              └─approved─┐
                 └─→ AUTO_CONFIRM ─────────┴→ apply all → after() → APPLIED

Applying is not atomic. If ``after`` fails (usually lock
regeneration), the manifests have already been written and the error
propagates as-is.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from enum import Enum

from rich.console import Console
from rich.markup import escape

from unifykit.errors import E, UnifyKitError
from unifykit.logging import get_logger
from unifykit.ops import OperationSet

logger = get_logger(__name__)


class ApplyMode(str, Enum):
    """How to handle a non-empty operation set."""

    DRY_RUN = 'dry-run'
    AUTO_CONFIRM = 'auto-confirm'
    INTERACTIVE = 'interactive'


class ApplyOutcome(str, Enum):
    """Result of :func:`apply_on_dialog`."""

    NO_CHANGES = 'no-changes'
    PENDING = 'pending'
    APPLIED = 'applied'

    @property
    def exit_code(self) -> int:
        """Process exit status for this outcome."""
        return 1 if self is ApplyOutcome.PENDING else 0


def mode_from_flags(*, dry_run: bool, yes: bool) -> ApplyMode:
    """Map ``--dry-run`` / ``--yes`` to a mode."""
    if dry_run:
        return ApplyMode.DRY_RUN
    if yes:
        return ApplyMode.AUTO_CONFIRM
    return ApplyMode.INTERACTIVE


async def _ask(prompt: Callable[[str], str] | None) -> bool:
    if prompt is None:
        if not sys.stdin.isatty():
            raise UnifyKitError(
                E.INPUT_FAILED,
                'Cannot ask for confirmation: stdin is not a terminal.',
                hint='Pass --yes to apply or --dry-run to only preview.',
            )
        prompt = input
    try:
        answer = await asyncio.to_thread(prompt, 'proceed? [Y/n] ')
    except EOFError as exc:
        raise UnifyKitError(E.INPUT_FAILED, f'Error reading input: {exc!r}') from exc
    return answer.strip().lower() in {'', 'y', 'yes'}


async def apply_on_dialog(
    ops: OperationSet,
    mode: ApplyMode,
    after: Callable[[], Awaitable[None]] | None = None,
    *,
    console: Console | None = None,
    prompt: Callable[[str], str] | None = None,
) -> ApplyOutcome:
    """Preview ``ops`` and apply them if ``mode`` allows it.

    Args:
        ops: The operations to apply.
        mode: Dry run, auto-confirm, or interactive.
        after: Awaited once after every operation was applied.
        console: Where the preview goes (default: stdout).
        prompt: Reads the confirmation answer in interactive mode. When
            ``None``, ``input()`` is used and stdin must be a terminal.

    Returns:
        ``NO_CHANGES`` for an empty set, ``PENDING`` when nothing was
        applied, ``APPLIED`` otherwise.

    Raises:
        UnifyKitError: If an operation or ``after`` fails, or the
            confirmation cannot be read.
    """
    if ops.is_empty():
        logger.info('no_operations_to_perform')
        return ApplyOutcome.NO_CHANGES

    out = console or Console(highlight=False)
    out.print('[bold]operations to perform:[/bold]\n')
    for line in ops.display_lines():
        out.print(escape(line))
    out.print()

    if mode is ApplyMode.DRY_RUN:
        logger.info('dry_run', operations=len(ops))
        return ApplyOutcome.PENDING

    if mode is ApplyMode.INTERACTIVE and not await _ask(prompt):
        logger.info('operations_declined', operations=len(ops))
        return ApplyOutcome.PENDING

    await ops.apply()
    if after is not None:
        await after()
    logger.info('operations_applied', operations=len(ops))
    return ApplyOutcome.APPLIED


__all__ = [
    'ApplyMode',
    'ApplyOutcome',
    'apply_on_dialog',
    'mode_from_flags',
]
