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

"""Async manifest I/O helpers.

Manifest edits, generated contents, and config files are all read and
written through these helpers so every I/O failure surfaces as a
:class:`~unifykit.errors.UnifyKitError` naming the offending path.
"""

from __future__ import annotations

from pathlib import Path

import aiofiles
import aiofiles.os
import tomlkit
import tomlkit.exceptions
from tomlkit.toml_document import TOMLDocument

from unifykit.errors import E, UnifyKitError


async def read_file(path: Path) -> str:
    """Read a UTF-8 text file asynchronously via aiofiles."""
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            return await f.read()
    except OSError as exc:
        raise UnifyKitError(
            code=E.IO_READ_FAILED,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc


async def write_file(path: Path, content: str) -> None:
    """Write a UTF-8 text file asynchronously, creating parent directories."""
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, mode='w', encoding='utf-8') as f:
            await f.write(content)
    except OSError as exc:
        raise UnifyKitError(
            code=E.IO_WRITE_FAILED,
            message=f'Failed to write {path}: {exc}',
            hint=f'Check file permissions for {path}.',
        ) from exc


async def read_toml(path: Path) -> TOMLDocument:
    """Read and parse a TOML manifest, preserving formatting for rewrites."""
    text = await read_file(path)
    try:
        return tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise UnifyKitError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'Cannot parse {path}: {exc}',
            hint=f'Check that {path} contains valid TOML.',
        ) from exc


async def write_toml(path: Path, doc: TOMLDocument) -> None:
    """Serialize a TOML document back to disk."""
    await write_file(path, tomlkit.dumps(doc))


__all__ = [
    'read_file',
    'read_toml',
    'write_file',
    'write_toml',
]
