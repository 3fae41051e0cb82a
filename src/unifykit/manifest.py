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

"""The workspace-hack package's ``Cargo.toml`` and its generated section.

Layout of a generated manifest::

    # This file is generated by `unifykit`.        ← CARGO_TOML_COMMENT
    [package]
    name = "workspace-hack"
    ...
    ### BEGIN UNIFYKIT SECTION
    [dependencies]
    serde = { version = "1", features = ["derive"] }
    ### END UNIFYKIT SECTION

Only the text between the markers is ever rewritten. ``disable`` swaps
it for :data:`DISABLE_MESSAGE`.

This module also scaffolds a new workspace-hack package for ``init``
and checks that an existing one does its job (``verify``).
"""

from __future__ import annotations

import os
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import tomlkit
from tomlkit.items import InlineTable

from unifykit.backends._io import read_file
from unifykit.config import CONFIG_PATH, OutputOptions
from unifykit.errors import E, UnifyKitError
from unifykit.graph import BUILD, DEV, NORMAL, DependencyLink, PackageGraph, PackageMetadata
from unifykit.logging import get_logger
from unifykit.ops import AddWorkspaceMember, NewPackage, OperationSet

logger = get_logger(__name__)

BEGIN_MARKER = '### BEGIN UNIFYKIT SECTION'
END_MARKER = '### END UNIFYKIT SECTION'

CARGO_TOML_COMMENT = """\
# This file is generated by `unifykit`.
# To regenerate, run:
#     unifykit generate
"""

DISABLE_MESSAGE = """
# Disabled by running `unifykit disable`.
# To re-enable, run:
#     unifykit generate
"""

_GITATTRIBUTES = """\
# Avoid putting conflict markers in the generated Cargo.toml file, since their presence breaks
# Cargo. Also do not check out the file as CRLF on Windows.
Cargo.toml merge=binary -crlf
"""

_LIB_RS = '// This is a stub lib.rs.\n'

_BUILD_RS = '// A build script is required for cargo to consider build dependencies.\nfn main() {}\n'


@dataclass(frozen=True)
class HackManifest:
    """The on-disk text of the workspace-hack ``Cargo.toml``."""

    path: Path
    contents: str

    @classmethod
    async def read(cls, package: PackageMetadata) -> HackManifest:
        """Read the manifest of the workspace-hack package."""
        return cls(package.manifest_path, await read_file(package.manifest_path))

    def _marker_span(self) -> tuple[int, int]:
        begin = self.contents.find(BEGIN_MARKER)
        end = self.contents.find(END_MARKER)
        if begin < 0 or end < begin:
            raise UnifyKitError(
                E.MANIFEST_PARSE_ERROR,
                f'{self.path} does not contain the {BEGIN_MARKER!r} and {END_MARKER!r} markers in order.',
                hint="Re-create the package with 'unifykit init', or add the markers by hand.",
            )
        start = begin + len(BEGIN_MARKER)
        if self.contents.startswith('\n', start):
            start += 1
        return start, end

    def with_section(self, body: str) -> str:
        """Return the full contents with the section replaced by ``body``."""
        start, end = self._marker_span()
        prefix = self.contents[:start]
        if not prefix.endswith('\n'):
            prefix += '\n'
        if body and not body.endswith('\n'):
            body += '\n'
        return prefix + body + self.contents[end:]


def new_cargo_toml(package_name: str) -> str:
    """Return the initial ``Cargo.toml`` of a workspace-hack package."""
    return (
        f'{CARGO_TOML_COMMENT}\n'
        '[package]\n'
        f'name = "{package_name}"\n'
        'version = "0.1.0"\n'
        'edition = "2021"\n'
        'description = "workspace-hack package, managed by unifykit"\n'
        'publish = false\n'
        '\n'
        '# The parts of the file between the BEGIN UNIFYKIT SECTION and END UNIFYKIT SECTION comments\n'
        '# are managed by unifykit.\n'
        '\n'
        f'{BEGIN_MARKER}\n'
        f'{END_MARKER}\n'
    )


def plan_init(
    graph: PackageGraph,
    package_name: str,
    path: Path,
    config_text: str | None = None,
) -> OperationSet:
    """Plan the creation of a workspace-hack package.

    Args:
        graph: The workspace graph.
        package_name: Name of the new package.
        path: Where to create it; relative paths are taken from the
            current directory.
        config_text: Contents for ``.config/unifykit.toml``, or ``None``
            to leave the config alone.

    Raises:
        UnifyKitError: If ``path`` is outside the workspace or exists.
    """
    root = graph.workspace.root
    abs_path = Path(os.path.abspath(path))
    if abs_path != root and root not in abs_path.parents:
        raise UnifyKitError(
            E.WORKSPACE_PATH_OUTSIDE,
            f'Path {abs_path} is not inside workspace root {root}.',
        )
    if abs_path.exists():
        raise UnifyKitError(
            E.WORKSPACE_PATH_EXISTS,
            f'{abs_path} already exists.',
            hint='Pick a path that does not exist yet.',
        )
    workspace_path = abs_path.relative_to(root).as_posix()
    files = {
        'Cargo.toml': new_cargo_toml(package_name),
        'src/lib.rs': _LIB_RS,
        'build.rs': _BUILD_RS,
        '.gitattributes': _GITATTRIBUTES,
    }
    root_files = {CONFIG_PATH: config_text} if config_text is not None else {}
    ops = [NewPackage(workspace_path, files, root_files), AddWorkspaceMember(workspace_path)]
    return OperationSet(root, ops)


@dataclass(frozen=True)
class UnifiedDependency:
    """One line of the generated section."""

    package: PackageMetadata
    features: frozenset[str]
    build: bool = False


def _counted_kinds(link: DependencyLink, include_dev: bool) -> set[str]:
    kinds = set(link.kinds)
    if not include_dev:
        kinds.discard(DEV)
    return kinds


def _third_party_links(
    graph: PackageGraph,
    unification: PackageMetadata,
    excluded: frozenset[str],
    include_dev: bool,
) -> Iterable[tuple[PackageMetadata, DependencyLink, set[str]]]:
    for member in graph.workspace.members():
        if member.id == unification.id or member.id in excluded:
            continue
        for link in graph.direct_links(member.id):
            dep = graph.metadata(link.to_id)
            kinds = _counted_kinds(link, include_dev)
            if dep.in_workspace or not kinds:
                continue
            yield member, link, kinds


def unified_dependencies(
    graph: PackageGraph,
    unification: PackageMetadata,
    excluded: Iterable[str] = (),
    include_dev: bool = False,
) -> list[UnifiedDependency]:
    """List the third-party packages the workspace-hack should depend on.

    Every third-party package that a non-excluded member depends on
    directly is listed once with its resolved features. Dev-only edges
    count only with ``include_dev``.
    """
    excluded = frozenset(excluded)
    normal: dict[str, PackageMetadata] = {}
    build: dict[str, PackageMetadata] = {}
    for _member, link, kinds in _third_party_links(graph, unification, excluded, include_dev):
        dep = graph.metadata(link.to_id)
        if kinds & {NORMAL, DEV}:
            normal[dep.id] = dep
        if BUILD in kinds:
            build[dep.id] = dep
    deps = [UnifiedDependency(p, graph.resolved_features(p.id)) for p in normal.values()]
    deps += [UnifiedDependency(p, graph.resolved_features(p.id), build=True) for p in build.values()]
    return sorted(deps, key=lambda d: (d.build, d.package.name, d.package.version, d.package.id))


def _version_req(package: PackageMetadata, exact: bool) -> str:
    version = package.version
    if exact:
        return f'={version}'
    if version.major:
        return str(version.major)
    if version.minor:
        return f'0.{version.minor}'
    return f'0.0.{version.patch}'


def _dep_key(package: PackageMetadata, duplicated: bool) -> str:
    if not duplicated:
        return package.name
    version = package.version
    if version.major:
        return f'{package.name}-{version.major}'
    if version.minor:
        return f'{package.name}-0-{version.minor}'
    return f'{package.name}-0-0-{version.patch}'


def _git_parts(source: str) -> tuple[str, str | None]:
    url = source.removeprefix('git+')
    url, _, commit = url.partition('#')
    url = url.split('?', 1)[0]
    return url, commit or None


def _dep_table(dep: UnifiedDependency, key: str, hack_dir: Path, output: OutputOptions) -> InlineTable | None:
    package = dep.package
    table = tomlkit.inline_table()
    source = package.source
    if source.kind == 'path':
        table['version'] = _version_req(package, output.exact_versions)
        directory = package.directory
        table['path'] = directory.as_posix() if output.absolute_paths else Path(os.path.relpath(directory, hack_dir)).as_posix()
    elif source.is_crates_io:
        table['version'] = _version_req(package, output.exact_versions)
    elif source.value.startswith('git+'):
        url, commit = _git_parts(source.value)
        table['git'] = url
        if commit:
            table['rev'] = commit
    else:
        logger.warning('unsupported_registry_skipped', package=package.name, source=source.value)
        return None
    if key != package.name:
        table['package'] = package.name
    if 'default' not in dep.features:
        table['default-features'] = False
    features = sorted(dep.features - {'default'})
    if features:
        table['features'] = features
    return table


def render_section(
    deps: Iterable[UnifiedDependency],
    hack_dir: Path,
    output: OutputOptions,
) -> str:
    """Render the generated section for ``deps``."""
    deps = list(deps)
    doc = tomlkit.document()
    for build, header in ((False, 'dependencies'), (True, 'build-dependencies')):
        group = sorted(
            (d for d in deps if d.build == build),
            key=lambda d: (d.package.name, d.package.version, d.package.id),
        )
        versions_by_name: dict[str, set[str]] = defaultdict(set)
        for dep in group:
            versions_by_name[dep.package.name].add(str(dep.package.version))
        table = tomlkit.table()
        for dep in group:
            key = _dep_key(dep.package, len(versions_by_name[dep.package.name]) > 1)
            entry = _dep_table(dep, key, hack_dir, output)
            if entry is not None:
                table[key] = entry
        if table:
            doc[header] = table
    return tomlkit.dumps(doc)


@dataclass
class VerifyReport:
    """Problems found by :func:`verify_unification`."""

    unification: str
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether the workspace-hack package unifies everything."""
        return not self.problems


def verify_unification(
    graph: PackageGraph,
    unification: PackageMetadata,
    excluded: Iterable[str] = (),
    include_dev: bool = False,
) -> VerifyReport:
    """Check that the workspace-hack package does its job.

    Every third-party package a non-excluded member depends on directly
    must also be a direct dependency of the workspace-hack package, and
    only one version of each such package may be in use.
    """
    excluded = frozenset(excluded)
    report = VerifyReport(unification.name)
    versions: dict[str, set[str]] = defaultdict(set)
    missing: dict[str, set[str]] = defaultdict(set)
    for member, link, _kinds in _third_party_links(graph, unification, excluded, include_dev):
        dep = graph.metadata(link.to_id)
        versions[dep.name].add(str(dep.version))
        if not graph.depends_on(unification.id, dep.id):
            missing[f'{dep.name} {dep.version}'].add(member.name)
    for name in sorted(versions):
        if len(versions[name]) > 1:
            report.problems.append(f'multiple versions of {name}: {", ".join(sorted(versions[name]))}')
    for dep in sorted(missing):
        report.problems.append(
            f'{dep} is used by {", ".join(sorted(missing[dep]))} but is not a dependency of {unification.name}'
        )
    logger.debug('verify_finished', unification=unification.name, problems=len(report.problems))
    return report


__all__ = [
    'BEGIN_MARKER',
    'CARGO_TOML_COMMENT',
    'DISABLE_MESSAGE',
    'END_MARKER',
    'HackManifest',
    'UnifiedDependency',
    'VerifyReport',
    'new_cargo_toml',
    'plan_init',
    'render_section',
    'unified_dependencies',
    'verify_unification',
]
