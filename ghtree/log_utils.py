# log_utils.py -- Logging utilities for ghtree
# Copyright (C) 2026 The ghtree contributors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# ghtree is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Logging utilities for ghtree.

ghtree is mostly used as a library embedded in an editor, so by default it
must not print anything. A null handler is attached to the ``ghtree`` logger
at import time; applications that want output call
:func:`default_logging_config` or configure :mod:`logging` themselves.

Debug output of every remote call is switched on with ``[core] trace`` in the
configuration, or ``GHTREE_TRACE`` in the environment, which wins. A boolean
true value traces to stderr; anything else names a file to append to.
"""

__all__ = [
    "TRACE_ENVIRONMENT_VARIABLE",
    "TRACE_TO_STDERR",
    "default_logging_config",
    "get_trace_target",
    "getLogger",
    "remove_null_handler",
]

import logging
import os
import sys
from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import ConfigDict, StackedConfig

getLogger = logging.getLogger

TRACE_ENVIRONMENT_VARIABLE = "GHTREE_TRACE"
TRACE_TO_STDERR = "-"

_TRACE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_GHTREE_LOGGER = getLogger("ghtree")
_GHTREE_LOGGER.addHandler(_NULL_HANDLER)


def get_trace_target(
    config: "ConfigDict | StackedConfig | None" = None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Find out where trace output should go.

    Args:
      config: Configuration to read ``[core] trace`` from
      environ: Environment to read GHTREE_TRACE from; defaults to os.environ

    Returns:
      None when tracing is off, TRACE_TO_STDERR, or the name of a file
    """
    if environ is None:
        environ = os.environ
    value = environ.get(TRACE_ENVIRONMENT_VARIABLE)
    if value is None and config is not None:
        try:
            value = config.get("core", "trace")
        except KeyError:
            pass
    if not value or value.lower() in ("0", "false", "no", "off"):
        return None
    if value.lower() in ("1", "true", "yes", "on"):
        return TRACE_TO_STDERR
    return os.path.expanduser(value)


def default_logging_config(trace: str | None = None) -> None:
    """Set up the default ghtree loggers.

    Args:
      trace: Result of :func:`get_trace_target`. When set, everything down
        to DEBUG is logged there; otherwise INFO and above go to stderr.
    """
    remove_null_handler()

    if trace is not None and trace != TRACE_TO_STDERR:
        try:
            logging.basicConfig(
                level=logging.DEBUG, filename=trace, filemode="a", format=_TRACE_FORMAT
            )
        except OSError as e:
            sys.stderr.write(f"Warning: Failed to open trace file {trace}: {e}\n")
        else:
            return

    if trace == TRACE_TO_STDERR:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=_TRACE_FORMAT)
    else:
        logging.basicConfig(
            level=logging.INFO,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s: %(message)s",
        )


def remove_null_handler() -> None:
    """Remove the null handler from the ghtree loggers.

    If a caller wants to set up logging using something other than
    default_logging_config, calling this function first is a minor optimization
    to avoid the overhead of using the _NullHandler.
    """
    _GHTREE_LOGGER.removeHandler(_NULL_HANDLER)
