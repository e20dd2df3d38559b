# __init__.py -- The tests for ghtree
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

"""Tests for ghtree."""

__all__ = [
    "AsyncTestCase",
    "SkipTest",
    "TestCase",
    "expectedFailure",
    "skipIf",
]

import os
import unittest
from unittest import (
    IsolatedAsyncioTestCase as _IsolatedAsyncioTestCase,
    SkipTest,
    expectedFailure,
    skipIf,
)


class _HomeOverride:
    # Keep the user's real configuration files out of the tests.

    def _override_home(self) -> None:
        self._old_home = os.environ.get("HOME")
        os.environ["HOME"] = "/nonexistent"
        self._old_xdg = os.environ.pop("XDG_CONFIG_HOME", None)

    def _restore_home(self) -> None:
        if self._old_home:
            os.environ["HOME"] = self._old_home
        else:
            del os.environ["HOME"]
        if self._old_xdg is not None:
            os.environ["XDG_CONFIG_HOME"] = self._old_xdg


class TestCase(_HomeOverride, unittest.TestCase):
    """Base class for ghtree tests."""

    def setUp(self) -> None:
        super().setUp()
        self._override_home()
        self.addCleanup(self._restore_home)


class AsyncTestCase(_HomeOverride, _IsolatedAsyncioTestCase):
    """Base class for tests of coroutines."""

    def setUp(self) -> None:
        super().setUp()
        self._override_home()
        self.addCleanup(self._restore_home)
