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

"""Build tool protocol for unifykit.

The :class:`BuildTool` protocol is the only way unifykit talks to the
host build tool. Implementations:

- :class:`~unifykit.backends.cargo.CargoCli`: the ``cargo`` CLI
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from unifykit.backends._run import CommandResult
from unifykit.backends.cargo import CargoCli as CargoCli

__all__ = [
    'BuildTool',
    'CargoCli',
    'CommandResult',
]


@runtime_checkable
class BuildTool(Protocol):
    """Protocol for the external actions unifykit depends on.

    Every method blocks until the underlying process exits; none of them
    enforces a timeout.
    """

    async def metadata(self) -> dict[str, Any]:
        """Return the workspace metadata document used to build the graph."""
        ...

    async def publish(self, package_dir: Path, args: Sequence[str]) -> CommandResult:
        """Publish the package in ``package_dir``.

        Args:
            package_dir: Absolute path to the package being published.
            args: Extra command-line arguments, passed through verbatim.
        """
        ...

    async def regenerate_lockfile(self) -> CommandResult:
        """Bring the lock file in line with the manifests on disk."""
        ...
