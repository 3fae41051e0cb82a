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

"""Tests for unifykit.backends: run_command and the cargo CLI backend."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from unifykit.backends import BuildTool, CargoCli
from unifykit.backends._run import CommandResult, run_command
from unifykit.errors import E, UnifyKitError
from unifykit.logging import configure_logging

configure_logging(quiet=True)


class _Recorder:
    """Stands in for run_command and remembers every call."""

    def __init__(self, result: CommandResult | None = None) -> None:
        self.calls: list[tuple[list[str], Any]] = []
        self.result = result

    def __call__(self, cmd: list[str], *, cwd: Any = None) -> CommandResult:  # noqa: ANN401 - matches run_command
        self.calls.append((cmd, cwd))
        return self.result or CommandResult(command=cmd, return_code=0)


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self) -> None:
        """ok follows the return code."""
        assert CommandResult(command=['cargo'], return_code=0).ok
        assert not CommandResult(command=['cargo'], return_code=101).ok

    def test_diagnostics_prefers_stderr(self) -> None:
        """stderr is shown when present, stdout otherwise."""
        assert CommandResult(['cargo'], 101, stdout='out', stderr=' err\n').diagnostics == 'err'
        assert CommandResult(['cargo'], 101, stdout='out\n').diagnostics == 'out'

    def test_command_str(self) -> None:
        """command_str joins the arguments."""
        assert CommandResult(['cargo', 'tree'], 0).command_str == 'cargo tree'


class TestRunCommand:
    """Tests for run_command()."""

    def test_captures_stdout(self) -> None:
        """A successful command's output is captured."""
        result = run_command(['echo', 'hello'])
        assert result.ok
        assert result.stdout.strip() == 'hello'

    def test_failure_is_returned(self) -> None:
        """A non-zero exit is returned, not raised."""
        result = run_command(['false'])
        assert not result.ok

    def test_cwd(self, tmp_path: Path) -> None:
        """The command runs in cwd."""
        result = run_command(['pwd'], cwd=tmp_path)
        assert str(tmp_path) in result.stdout


class TestCargoCli:
    """Tests for CargoCli with run_command replaced."""

    def test_implements_protocol(self, tmp_path: Path) -> None:
        """CargoCli satisfies BuildTool."""
        assert isinstance(CargoCli(tmp_path), BuildTool)

    def test_cargo_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """$CARGO picks the binary, as when run as a cargo subcommand."""
        monkeypatch.setenv('CARGO', '/opt/rust/bin/cargo')
        assert CargoCli(tmp_path, color='never').command('tree') == ['/opt/rust/bin/cargo', 'tree', '--color', 'never']

    @pytest.mark.asyncio
    async def test_metadata(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """metadata runs from the root and parses JSON."""
        monkeypatch.delenv('CARGO', raising=False)
        fake = _Recorder(CommandResult(['cargo'], 0, stdout='{"packages": []}'))
        with patch('unifykit.backends.cargo.run_command', side_effect=fake):
            doc = await CargoCli(tmp_path).metadata()
        assert doc == {'packages': []}
        assert fake.calls == [(['cargo', 'metadata', '--color', 'auto', '--format-version', '1'], tmp_path)]

    @pytest.mark.asyncio
    async def test_metadata_failure(self, tmp_path: Path) -> None:
        """A failing cargo metadata carries cargo's stderr."""
        fake = _Recorder(CommandResult(['cargo', 'metadata'], 101, stderr='error: no Cargo.toml'))
        with patch('unifykit.backends.cargo.run_command', side_effect=fake):
            with pytest.raises(UnifyKitError) as exc_info:
                await CargoCli(tmp_path).metadata()
        assert exc_info.value.code is E.METADATA_FAILED
        assert 'no Cargo.toml' in exc_info.value.message

    @pytest.mark.asyncio
    async def test_metadata_invalid_json(self, tmp_path: Path) -> None:
        """Unparseable output is a metadata error."""
        fake = _Recorder(CommandResult(['cargo', 'metadata'], 0, stdout='not json'))
        with patch('unifykit.backends.cargo.run_command', side_effect=fake):
            with pytest.raises(UnifyKitError) as exc_info:
                await CargoCli(tmp_path).metadata()
        assert exc_info.value.code is E.GRAPH_METADATA_INVALID

    @pytest.mark.asyncio
    async def test_publish(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """publish runs from the package directory with the given args."""
        monkeypatch.delenv('CARGO', raising=False)
        fake = _Recorder()
        package_dir = tmp_path / 'crates' / 'pkg-a'
        with patch('unifykit.backends.cargo.run_command', side_effect=fake):
            result = await CargoCli(tmp_path).publish(package_dir, ['--no-verify', '--allow-dirty'])
        assert result.ok
        assert fake.calls == [(['cargo', 'publish', '--color', 'auto', '--no-verify', '--allow-dirty'], package_dir)]

    @pytest.mark.asyncio
    async def test_regenerate_lockfile(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Lock regeneration runs cargo tree from the root."""
        monkeypatch.delenv('CARGO', raising=False)
        fake = _Recorder()
        with patch('unifykit.backends.cargo.run_command', side_effect=fake):
            await CargoCli(tmp_path, color='always').regenerate_lockfile()
        assert fake.calls == [(['cargo', 'tree', '--color', 'always'], tmp_path)]
