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

"""Platform specs and their serializable summaries.

A :class:`Platform` is a target triple plus the target features and
custom ``cfg`` flags known to be enabled on it. A
:class:`PlatformSummary` is the same information in a form that can be
written to TOML and parsed back.

Two conversions can fail, and both raise :class:`PlatformError`:

- ``PlatformSummary.from_platform`` rejects custom platforms (defined by
  a target JSON spec), which have no triple-only representation.
- ``PlatformSummary.to_platform`` rejects triples it cannot parse.
"""

from __future__ import annotations

import platform as _host
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

UNKNOWN_FEATURES = 'unknown'

_ARCH_RE = re.compile(
    r'^(x86_64h?|i[3-6]86|aarch64(_be)?|arm64(e|_32)?|arm\w*|thumbv\w+|riscv(32|64)\w*|wasm(32|64)'
    r'|powerpc(64)?(le)?|s390x|mips\w*|sparc(v9|64)?|loongarch64|nvptx64|avr|msp430|hexagon'
    r'|bpf(eb|el)|m68k|csky|xtensa)$'
)
_COMPONENT_RE = re.compile(r'^[a-z0-9_.]+$')

_HOST_ARCH = {
    'amd64': 'x86_64',
    'x86_64': 'x86_64',
    'arm64': 'aarch64',
    'aarch64': 'aarch64',
    'i386': 'i686',
    'i686': 'i686',
}


class PlatformError(ValueError):
    """A platform could not be summarized or parsed."""


def parse_triple(triple: str) -> str:
    """Validate a target triple and return it unchanged.

    Raises:
        PlatformError: If the triple has the wrong shape or an unknown
            architecture.
    """
    parts = triple.split('-')
    if not 2 <= len(parts) <= 4 or not all(_COMPONENT_RE.match(part) for part in parts):
        raise PlatformError(f'invalid target triple {triple!r}')
    if not _ARCH_RE.match(parts[0]):
        raise PlatformError(f'unknown architecture {parts[0]!r} in target triple {triple!r}')
    return triple


@dataclass(frozen=True)
class Platform:
    """A platform to resolve dependencies for.

    Attributes:
        triple: The target triple, e.g. ``x86_64-unknown-linux-gnu``.
        target_features: Enabled target features, or ``None`` if unknown.
        flags: Custom ``cfg`` flags set for this platform.
        custom_spec: Contents of a custom target JSON spec, if any.
    """

    triple: str
    target_features: frozenset[str] | None = None
    flags: frozenset[str] = frozenset()
    custom_spec: str | None = None

    @classmethod
    def parse(
        cls,
        triple: str,
        target_features: Iterable[str] | None = None,
        flags: Iterable[str] = (),
    ) -> Platform:
        """Build a platform from a triple, validating it."""
        return cls(
            triple=parse_triple(triple),
            target_features=None if target_features is None else frozenset(target_features),
            flags=frozenset(flags),
        )

    @classmethod
    def current(cls) -> Platform:
        """Best-effort platform for the machine unifykit runs on."""
        machine = _host.machine().lower()
        arch = _HOST_ARCH.get(machine, machine)
        system = _host.system()
        if system == 'Linux':
            triple = f'{arch}-unknown-linux-gnu'
        elif system == 'Darwin':
            triple = f'{arch}-apple-darwin'
        elif system == 'Windows':
            triple = f'{arch}-pc-windows-msvc'
        else:
            triple = f'{arch}-unknown-{system.lower()}'
        return cls(triple=triple)

    @property
    def is_custom(self) -> bool:
        """Whether this platform comes from a custom target spec."""
        return self.custom_spec is not None


@dataclass(frozen=True)
class PlatformSummary:
    """Serializable form of a :class:`Platform`.

    Attributes:
        triple: The target triple.
        target_features: Sorted target features, or ``None`` for unknown.
        flags: Sorted custom ``cfg`` flags.
    """

    triple: str
    target_features: tuple[str, ...] | None = None
    flags: tuple[str, ...] = ()

    @classmethod
    def from_platform(cls, platform: Platform) -> PlatformSummary:
        """Summarize a platform.

        Raises:
            PlatformError: If the platform is a custom target.
        """
        if platform.is_custom:
            raise PlatformError(f'custom platform {platform.triple!r} cannot be summarized')
        return cls(
            triple=platform.triple,
            target_features=None if platform.target_features is None else tuple(sorted(platform.target_features)),
            flags=tuple(sorted(platform.flags)),
        )

    def to_platform(self) -> Platform:
        """Parse this summary back into a platform.

        Raises:
            PlatformError: If the triple cannot be parsed.
        """
        return Platform.parse(self.triple, self.target_features, self.flags)

    def to_dict(self) -> dict[str, Any]:
        """Return the kebab-case mapping written to TOML."""
        data: dict[str, Any] = {
            'triple': self.triple,
            'target-features': UNKNOWN_FEATURES if self.target_features is None else list(self.target_features),
        }
        if self.flags:
            data['flags'] = list(self.flags)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> PlatformSummary:  # noqa: ANN401 - untrusted TOML value
        """Read a summary written by :meth:`to_dict`.

        Raises:
            PlatformError: If the mapping has the wrong shape.
        """
        if not isinstance(data, dict) or not isinstance(data.get('triple'), str):
            raise PlatformError(f'expected a table with a string triple, got {data!r}')
        features = data.get('target-features', UNKNOWN_FEATURES)
        if features == UNKNOWN_FEATURES:
            target_features = None
        elif isinstance(features, list) and all(isinstance(f, str) for f in features):
            target_features = tuple(sorted(features))
        else:
            raise PlatformError(f"target-features must be 'unknown' or a list of strings, got {features!r}")
        flags = data.get('flags', [])
        if not isinstance(flags, list) or not all(isinstance(f, str) for f in flags):
            raise PlatformError(f'flags must be a list of strings, got {flags!r}')
        return cls(triple=data['triple'], target_features=target_features, flags=tuple(sorted(flags)))


__all__ = [
    'UNKNOWN_FEATURES',
    'Platform',
    'PlatformError',
    'PlatformSummary',
    'parse_triple',
]
