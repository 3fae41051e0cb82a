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

"""CLI entry point for unifykit.

Subcommands::

    unifykit init PATH      Create a workspace-hack package and config
    unifykit generate       Write the generated section of the workspace-hack
    unifykit verify         Check that the workspace-hack unifies everything
    unifykit manage-deps    Add/remove workspace-hack dependencies
    unifykit remove-deps    Remove workspace-hack dependencies
    unifykit publish        Publish a package without its workspace-hack dependency
    unifykit disable        Replace the generated section with a disabled notice
    unifykit explain        Explain an error code

Exit codes: 0 on success or no differences, 1 when operations are
pending, a diff was found, verification failed or an error occurred, and
130 on Ctrl-C.

Usage::

    # Preview which manifests would change:
    unifykit manage-deps --dry-run

    # Publish, passing flags through to cargo:
    unifykit publish -p my-crate -- --no-verify
"""

from __future__ import annotations

import argparse
import asyncio
import functools
import sys
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.syntax import Syntax
from rich_argparse import RichHelpFormatter

from unifykit import __version__
from unifykit.apply import apply_on_dialog, mode_from_flags
from unifykit.backends import BuildTool, CargoCli
from unifykit.config import CONFIG_PATH, default_config_text
from unifykit.context import WorkspaceContext, load_context, load_graph
from unifykit.errors import UnifyKitError, explain, render_error
from unifykit.logging import COLOR_CHOICES, command_context, configure_logging, get_logger, resolve_color
from unifykit.manifest import (
    DISABLE_MESSAGE,
    HackManifest,
    plan_init,
    render_section,
    unified_dependencies,
    verify_unification,
)
from unifykit.publish import publish_package
from unifykit.reconcile import reconcile, regenerate_lockfile

logger = get_logger(__name__)


def _make_build_tool(args: argparse.Namespace) -> BuildTool:
    """Create the cargo backend for this invocation."""
    return CargoCli(Path.cwd(), color=args.color)


def _make_console(args: argparse.Namespace) -> Console:
    """Console for previews and diffs on stdout."""
    colors = resolve_color(args.color, sys.stdout)
    return Console(force_terminal=colors, no_color=not colors, highlight=False)


async def _write_section(args: argparse.Namespace, ctx: WorkspaceContext, body: str) -> int:
    """Reconcile the workspace-hack manifest with a new section body."""
    manifest = await HackManifest.read(ctx.unification)
    result = await reconcile(
        manifest.path,
        manifest.contents,
        manifest.with_section(body),
        diff_only=args.diff,
        regenerate_lock=functools.partial(regenerate_lockfile, ctx.build_tool),
    )
    if result.diff:
        _make_console(args).print(Syntax(result.diff, 'diff', theme='ansi_dark'))
    return result.outcome.exit_code


async def _cmd_init(args: argparse.Namespace) -> int:
    """Handle the ``init`` subcommand."""
    build_tool = _make_build_tool(args)
    graph = await load_graph(build_tool)
    path = Path(args.path)
    package_name = args.package_name or path.name
    config_text = None if args.skip_config else default_config_text(package_name)
    ops = plan_init(graph, package_name, path, config_text)

    async def next_steps() -> None:
        logger.info(
            'next_steps',
            configure=CONFIG_PATH,
            generate='unifykit generate',
            add_dependencies='unifykit manage-deps',
        )

    outcome = await apply_on_dialog(
        ops,
        mode_from_flags(dry_run=args.dry_run, yes=args.yes),
        next_steps,
        console=_make_console(args),
    )
    return outcome.exit_code


async def _cmd_generate(args: argparse.Namespace) -> int:
    """Handle the ``generate`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    deps = unified_dependencies(ctx.graph, ctx.unification, ctx.excluded, ctx.config.options.include_dev)
    body = render_section(deps, ctx.unification.directory, ctx.config.output)
    return await _write_section(args, ctx, body)


async def _cmd_verify(args: argparse.Namespace) -> int:
    """Handle the ``verify`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    report = verify_unification(ctx.graph, ctx.unification, ctx.excluded, ctx.config.options.include_dev)
    if report.ok:
        logger.info('verify_passed', unification=report.unification)
        return 0
    console = _make_console(args)
    console.print(f'workspace-hack package {report.unification} did not work correctly:')
    for problem in report.problems:
        console.print(f'  * {problem}', markup=False)
    return 1


async def _cmd_manage_deps(args: argparse.Namespace) -> int:
    """Handle the ``manage-deps`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    ops = ctx.planner().manage_dep_ops(ctx.selection(args.packages))
    outcome = await apply_on_dialog(
        ops,
        mode_from_flags(dry_run=args.dry_run, yes=args.yes),
        functools.partial(regenerate_lockfile, ctx.build_tool),
        console=_make_console(args),
    )
    return outcome.exit_code


async def _cmd_remove_deps(args: argparse.Namespace) -> int:
    """Handle the ``remove-deps`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    ops = ctx.planner().remove_dep_ops(ctx.selection(args.packages))
    outcome = await apply_on_dialog(
        ops,
        mode_from_flags(dry_run=args.dry_run, yes=args.yes),
        functools.partial(regenerate_lockfile, ctx.build_tool),
        console=_make_console(args),
    )
    return outcome.exit_code


async def _cmd_publish(args: argparse.Namespace) -> int:
    """Handle the ``publish`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    package = ctx.graph.workspace.member_by_name(args.package)
    pass_through = list(args.pass_through)
    # argparse.REMAINDER keeps the leading '--' on some Python versions only.
    if pass_through[:1] == ['--']:
        pass_through = pass_through[1:]
    await publish_package(ctx.planner(), package, ctx.build_tool, pass_through)
    return 0


async def _cmd_disable(args: argparse.Namespace) -> int:
    """Handle the ``disable`` subcommand."""
    ctx = await load_context(_make_build_tool(args))
    return await _write_section(args, ctx, DISABLE_MESSAGE)


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def _add_apply_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        '--dry-run',
        '-n',
        action='store_true',
        help='Print the operations to perform without performing them. Exits with 1 if there are any.',
    )
    group.add_argument(
        '--yes',
        '-y',
        action='store_true',
        help='Proceed without prompting for confirmation.',
    )


def _add_package_selection(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--package',
        '-p',
        dest='packages',
        metavar='NAME',
        action='append',
        default=[],
        help='Package to operate on (repeatable; default: entire workspace).',
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='unifykit',
        description='Set up and manage workspace-hack packages for Cargo workspaces.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('--verbose', '-v', action='store_true', help='Show debug logs.')
    verbosity.add_argument('--quiet', '-q', action='store_true', help='Only show warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Write logs as JSON lines.')
    parser.add_argument(
        '--color',
        choices=COLOR_CHOICES,
        default='auto',
        help='Colorize output (default: auto).',
    )

    subparsers = parser.add_subparsers(dest='command')

    init_parser = subparsers.add_parser(
        'init',
        help='Initialize a workspace-hack package and a unifykit config.',
    )
    init_parser.add_argument('path', help='Where to create the package, relative to the current directory.')
    init_parser.add_argument(
        '--package-name',
        default=None,
        help='Name of the package (default: derived from the path).',
    )
    init_parser.add_argument(
        '--skip-config',
        action='store_true',
        help=f'Do not write a stub config to {CONFIG_PATH}.',
    )
    _add_apply_flags(init_parser)

    generate_parser = subparsers.add_parser(
        'generate',
        help='Generate or update the contents of the workspace-hack package.',
    )
    generate_parser.add_argument(
        '--diff',
        action='store_true',
        help='Print a diff instead of writing. Exits with 1 if the contents differ.',
    )

    subparsers.add_parser(
        'verify',
        help='Check that the workspace-hack package unifies every third-party dependency.',
    )

    manage_parser = subparsers.add_parser(
        'manage-deps',
        help='Add the dependency to non-excluded members, remove it from excluded ones.',
    )
    _add_package_selection(manage_parser)
    _add_apply_flags(manage_parser)

    remove_parser = subparsers.add_parser(
        'remove-deps',
        help='Remove the workspace-hack dependency from workspace members.',
    )
    _add_package_selection(remove_parser)
    _add_apply_flags(remove_parser)

    publish_parser = subparsers.add_parser(
        'publish',
        help='Publish a package after removing its workspace-hack dependency.',
    )
    publish_parser.add_argument('--package', '-p', required=True, help='The package to publish.')
    publish_parser.add_argument(
        'pass_through',
        nargs=argparse.REMAINDER,
        help='Arguments passed through to cargo publish (after --).',
    )

    disable_parser = subparsers.add_parser(
        'disable',
        help='Remove the generated contents from the workspace-hack package.',
    )
    disable_parser.add_argument(
        '--diff',
        action='store_true',
        help='Print a diff instead of writing. Exits with 1 if the contents differ.',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
    )
    explain_parser.add_argument('code', help='Error code, e.g. UK-CONFIG-NOT-FOUND.')

    return parser


_ASYNC_COMMANDS = {
    'init': _cmd_init,
    'generate': _cmd_generate,
    'verify': _cmd_verify,
    'manage-deps': _cmd_manage_deps,
    'remove-deps': _cmd_remove_deps,
    'publish': _cmd_publish,
    'disable': _cmd_disable,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(
        verbose=args.verbose,
        quiet=args.quiet,
        json_log=args.json_log,
        color=args.color,
    )

    try:
        if args.command == 'explain':
            return _cmd_explain(args)
        handler = _ASYNC_COMMANDS.get(args.command)
        if handler is not None:
            with command_context(args.command):
                return asyncio.run(handler(args))

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except UnifyKitError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
