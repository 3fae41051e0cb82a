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

"""Structured error system for unifykit.

Every error has a unique ``UK-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorCode           │ A unique named ID like "UK-CONFIG-NOT-FOUND"   │
    │                     │ for each error. Readable at a glance.          │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorInfo           │ A bundle of code + message + hint. Like an     │
    │                     │ error card with a fix suggestion stapled on.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ UnifyKitError       │ An exception you can raise. Carries the        │
    │                     │ error card so renderers can display it.        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ explain()           │ Looks up an error code and prints details.     │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    UK-CONFIG-*       Configuration errors
    UK-WORKSPACE-*    Workspace membership errors
    UK-GRAPH-*        Package graph errors
    UK-SUMMARY-*      Build summary conversion errors
    UK-PLATFORM-*     Platform spec serialization / parsing errors
    UK-IO-*           Manifest and config file I/O errors
    UK-PUBLISH-*      Publish errors
    UK-LOCK-*         Lock file regeneration errors

Usage::

    from unifykit.errors import UnifyKitError, E

    raise UnifyKitError(
        code=E.CONFIG_NOT_FOUND,
        message='No config found at .config/unifykit.toml',
        hint="Run 'unifykit init' to create one.",
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all unifykit diagnostic codes."""

    # Configuration
    CONFIG_NOT_FOUND = 'UK-CONFIG-NOT-FOUND'
    CONFIG_PARSE_ERROR = 'UK-CONFIG-PARSE-ERROR'
    CONFIG_INVALID_KEY = 'UK-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'UK-CONFIG-INVALID-VALUE'
    CONFIG_MISSING_REQUIRED = 'UK-CONFIG-MISSING-REQUIRED'

    # Workspace
    WORKSPACE_NOT_FOUND = 'UK-WORKSPACE-NOT-FOUND'
    WORKSPACE_MEMBER_NOT_FOUND = 'UK-WORKSPACE-MEMBER-NOT-FOUND'
    WORKSPACE_PATH_OUTSIDE = 'UK-WORKSPACE-PATH-OUTSIDE'
    WORKSPACE_PATH_EXISTS = 'UK-WORKSPACE-PATH-EXISTS'

    # Package graph
    GRAPH_PACKAGE_NOT_FOUND = 'UK-GRAPH-PACKAGE-NOT-FOUND'
    GRAPH_DUPLICATE_PACKAGE = 'UK-GRAPH-DUPLICATE-PACKAGE'
    GRAPH_METADATA_INVALID = 'UK-GRAPH-METADATA-INVALID'
    METADATA_FAILED = 'UK-METADATA-FAILED'

    # Summaries
    SUMMARY_UNSUPPORTED_SOURCE = 'UK-SUMMARY-UNSUPPORTED-SOURCE'
    SUMMARY_PARSE_ERROR = 'UK-SUMMARY-PARSE-ERROR'

    # Platforms
    PLATFORM_SERIALIZE_FAILED = 'UK-PLATFORM-SERIALIZE-FAILED'
    PLATFORM_PARSE_FAILED = 'UK-PLATFORM-PARSE-FAILED'

    # I/O
    IO_READ_FAILED = 'UK-IO-READ-FAILED'
    IO_WRITE_FAILED = 'UK-IO-WRITE-FAILED'
    MANIFEST_PARSE_ERROR = 'UK-MANIFEST-PARSE-ERROR'

    # External actions
    PUBLISH_FAILED = 'UK-PUBLISH-FAILED'
    LOCK_REGENERATION_FAILED = 'UK-LOCK-REGENERATION-FAILED'
    INPUT_FAILED = 'UK-INPUT-FAILED'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``UK-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class UnifyKitError(Exception):
    """Base exception for all unifykit errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """The human-readable message."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_NOT_FOUND: ErrorInfo(
        code=E.CONFIG_NOT_FOUND,
        message='No unifykit config found at .config/unifykit.toml in the workspace root.',
        hint="Run 'unifykit init <path>' to create a workspace-hack package and config.",
    ),
    E.CONFIG_MISSING_REQUIRED: ErrorInfo(
        code=E.CONFIG_MISSING_REQUIRED,
        message='The config does not name the workspace-hack package.',
        hint="Set 'unification-package' in .config/unifykit.toml.",
    ),
    E.SUMMARY_UNSUPPORTED_SOURCE: ErrorInfo(
        code=E.SUMMARY_UNSUPPORTED_SOURCE,
        message='Only workspace packages can be converted back into live package references.',
        hint='Omitted packages in the config must be workspace members.',
    ),
    E.PUBLISH_FAILED: ErrorInfo(
        code=E.PUBLISH_FAILED,
        message='cargo publish failed; the workspace-hack dependency was restored before reporting.',
        hint='Fix the publish error and re-run the command.',
    ),
    E.LOCK_REGENERATION_FAILED: ErrorInfo(
        code=E.LOCK_REGENERATION_FAILED,
        message='Cargo.lock could not be regenerated after editing manifests.',
        hint="Run 'cargo tree' manually to see the error.",
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"UK-CONFIG-NOT-FOUND"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: UnifyKitError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style with color.

    Output format::

        error[UK-CONFIG-NOT-FOUND]: No unifykit config found.
          |
          = hint: Run 'unifykit init <path>' to create one.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'UnifyKitError',
    'explain',
    'render_error',
]
