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

"""Configuration loading for unifykit.

The config lives at ``.config/unifykit.toml`` under the workspace root.
Every command except ``init`` and ``explain`` needs it.

Example::

    unification-package = "workspace-hack"

    version = "v2"
    include-dev = false
    omitted-packages = [
        { name = "xtask", version = "0.1.0", workspace-path = "xtask" },
    ]

    [host-platform]
    triple = "x86_64-unknown-linux-gnu"
    target-features = "unknown"

    [output]
    exact-versions = false
    absolute-paths = false

The resolution keys are the same as the ``[metadata]`` table of a build
summary and are read by
:meth:`~unifykit.options.ResolutionOptionsSummary.from_dict`.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from unifykit.errors import E, UnifyKitError
from unifykit.logging import get_logger
from unifykit.options import ResolutionOptionsSummary

logger = get_logger(__name__)

CONFIG_PATH = '.config/unifykit.toml'

CONFIG_COMMENT = """\
# This file contains settings for `unifykit`.
# Run `unifykit explain UK-CONFIG-INVALID-KEY` if a key is rejected.
"""

_OPTION_KEYS = frozenset({
    'version',
    'include-dev',
    'proc-macros-on-target',
    'host-platform',
    'target-platform',
    'omitted-packages',
    'features-only',
})

VALID_KEYS: frozenset[str] = frozenset({'unification-package', 'output'}) | _OPTION_KEYS

VALID_OUTPUT_KEYS: frozenset[str] = frozenset({'exact-versions', 'absolute-paths'})


@dataclass(frozen=True)
class OutputOptions:
    """How generated dependency lines are written.

    Attributes:
        exact_versions: Write ``=1.2.3`` instead of ``1.2``.
        absolute_paths: Write absolute paths for path dependencies.
    """

    exact_versions: bool = False
    absolute_paths: bool = False


@dataclass(frozen=True)
class UnifyConfig:
    """Validated contents of ``.config/unifykit.toml``.

    Attributes:
        path: Where the config was read from.
        unification_package: Name of the workspace-hack package.
        options: Resolution options, as a summary.
        output: Output formatting options.
    """

    path: Path
    unification_package: str
    options: ResolutionOptionsSummary = field(default_factory=ResolutionOptionsSummary)
    output: OutputOptions = field(default_factory=OutputOptions)


def _unknown_key_error(key: str, valid: frozenset[str], context: str) -> UnifyKitError:
    suggestion = difflib.get_close_matches(key, sorted(valid), n=1, cutoff=0.6)
    hint = f"Did you mean '{suggestion[0]}'?" if suggestion else f'Valid keys: {", ".join(sorted(valid))}.'
    return UnifyKitError(
        code=E.CONFIG_INVALID_KEY,
        message=f"Unknown key '{key}' in {context}",
        hint=hint,
    )


def _parse_output(raw: Any, path: Path) -> OutputOptions:  # noqa: ANN401 - dynamic config
    if not isinstance(raw, dict):
        raise UnifyKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'[output] must be a table, got {type(raw).__name__}',
            hint=f'Check {path}.',
        )
    for key, value in raw.items():
        if key not in VALID_OUTPUT_KEYS:
            raise _unknown_key_error(key, VALID_OUTPUT_KEYS, f'[output] of {path}')
        if not isinstance(value, bool):
            raise UnifyKitError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'output.{key}' must be bool, got {type(value).__name__}",
                hint=f'Check the value of {key} in {path}.',
            )
    return OutputOptions(
        exact_versions=raw.get('exact-versions', False),
        absolute_paths=raw.get('absolute-paths', False),
    )


def load_config(workspace_root: Path) -> UnifyConfig:
    """Load and validate ``.config/unifykit.toml``.

    Args:
        workspace_root: The workspace root directory.

    Returns:
        A validated :class:`UnifyConfig`.

    Raises:
        UnifyKitError: If the file is missing, unreadable, not TOML, or
            contains unknown keys or invalid values.
    """
    config_path = workspace_root / CONFIG_PATH

    if not config_path.is_file():
        raise UnifyKitError(
            code=E.CONFIG_NOT_FOUND,
            message=f'No unifykit config found at {config_path}',
            hint="Run 'unifykit init <path>' to create a workspace-hack package and config.",
        )

    try:
        text = config_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise UnifyKitError(
            code=E.IO_READ_FAILED,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        raw: dict[str, Any] = tomlkit.parse(text).unwrap()  # noqa: ANN401
    except tomlkit.exceptions.TOMLKitError as exc:
        raise UnifyKitError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to parse {config_path}: {exc}',
            hint=f'Check that {config_path} contains valid TOML.',
        ) from exc

    for key in raw:
        if key not in VALID_KEYS:
            raise _unknown_key_error(key, VALID_KEYS, str(config_path))

    package = raw.get('unification-package')
    if package is None:
        raise UnifyKitError(
            code=E.CONFIG_MISSING_REQUIRED,
            message=f"'unification-package' is not set in {config_path}",
            hint="Set 'unification-package' to the name of the workspace-hack package.",
        )
    if not isinstance(package, str) or not package:
        raise UnifyKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'unification-package' must be a non-empty string, got {package!r}",
        )

    try:
        options = ResolutionOptionsSummary.from_dict({k: v for k, v in raw.items() if k in _OPTION_KEYS})
    except UnifyKitError as exc:
        raise UnifyKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Invalid resolution option in {config_path}: {exc.message}',
            hint=exc.hint,
        ) from exc

    output = _parse_output(raw.get('output', {}), config_path)
    logger.debug('config_loaded', path=str(config_path), unification_package=package)
    return UnifyConfig(path=config_path, unification_package=package, options=options, output=output)


def default_config_text(unification_package: str) -> str:
    """Return the stub config written by ``unifykit init``."""
    doc = tomlkit.document()
    doc.add('unification-package', unification_package)
    doc.add(tomlkit.nl())
    doc.add(tomlkit.comment('Resolver version to emulate: "v1", "v1-install" or "v2".'))
    doc.add('version', 'v2')
    doc.add('include-dev', False)
    doc.add(tomlkit.nl())
    output = tomlkit.table()
    output.add('exact-versions', False)
    output.add('absolute-paths', False)
    doc.add('output', output)
    return CONFIG_COMMENT + '\n' + tomlkit.dumps(doc)


__all__ = [
    'CONFIG_COMMENT',
    'CONFIG_PATH',
    'OutputOptions',
    'UnifyConfig',
    'VALID_KEYS',
    'VALID_OUTPUT_KEYS',
    'default_config_text',
    'load_config',
]
