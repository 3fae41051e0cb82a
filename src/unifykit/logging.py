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

"""Structured logging for unifykit.

unifykit writes two streams. Operation previews and diffs go to stdout
so they can be piped (``unifykit generate --diff > hack.patch``);
everything logged through `structlog <https://www.structlog.org/>`_
goes to stderr, either as console lines or, with ``--json-log``, as one
JSON object per line.

Color follows cargo's rules, so unifykit's output and the output of the
cargo commands it runs agree::

    --color always|never    wins
    --color auto            CARGO_TERM_COLOR, if set to always|never
                            otherwise: is the stream a terminal?

JSON logs are never colored, and exceptions in them are rendered as
structured tracebacks instead of text.

Every event logged while a command runs carries the command name::

    with command_context('publish'):
        log.info('edge_removed', package='my-crate')
    # ... [info] edge_removed  command=publish package=my-crate
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractContextManager
from typing import Any, TextIO

import structlog

COLOR_CHOICES = ('auto', 'always', 'never')


def resolve_color(choice: str = 'auto', stream: TextIO | None = None) -> bool:
    """Decide whether output to ``stream`` should be colored.

    Args:
        choice: The ``--color`` value.
        stream: Stream the output goes to; defaults to stderr.

    Raises:
        ValueError: If ``choice`` is not one of :data:`COLOR_CHOICES`.
    """
    if choice not in COLOR_CHOICES:
        raise ValueError(f'invalid color choice: {choice!r}')
    if choice == 'auto':
        # Unknown values are ignored, as cargo does.
        env = os.environ.get('CARGO_TERM_COLOR', '').strip().lower()
        choice = env if env in ('always', 'never') else 'auto'
    if choice == 'auto':
        return (stream or sys.stderr).isatty()
    return choice == 'always'


def _level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
    color: str = 'auto',
) -> None:
    """Route structlog events to stderr.

    Call once at startup. Calling again replaces the previous setup.

    Args:
        verbose: Show debug events.
        quiet: Show only warnings and errors.
        json_log: Write JSON lines instead of console lines.
        color: ``--color`` value; ignored for JSON.
    """
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=_level(verbose, quiet), force=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
    ]
    renderer: structlog.types.Processor
    if json_log:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=resolve_color(color, sys.stderr))

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def command_context(command: str, **bindings: Any) -> AbstractContextManager[Any]:
    """Bind ``command`` and ``bindings`` to every event logged inside the block."""
    return structlog.contextvars.bound_contextvars(command=command, **bindings)


def get_logger(name: str = 'unifykit') -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'COLOR_CHOICES',
    'command_context',
    'configure_logging',
    'get_logger',
    'resolve_color',
]
