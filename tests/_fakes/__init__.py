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

"""Shared test fakes for unifykit.

Usage::

    from tests._fakes import FakeCargo, write_workspace

    root = write_workspace(tmp_path, ['pkg-a', 'pkg-b'], linked=['pkg-a'])
    cargo = FakeCargo(root)
    graph = PackageGraph.from_metadata(await cargo.metadata())
"""

from tests._fakes._cargo import OK as OK, FakeCargo as FakeCargo, read_workspace_metadata as read_workspace_metadata
from tests._fakes._workspace import (
    CRATES_IO as CRATES_IO,
    dep as dep,
    has_edge as has_edge,
    metadata as metadata,
    package as package,
    write_workspace as write_workspace,
)

__all__ = [
    'CRATES_IO',
    'OK',
    'FakeCargo',
    'dep',
    'has_edge',
    'metadata',
    'package',
    'read_workspace_metadata',
    'write_workspace',
]
