# utils.py -- Test utilities for ghtree
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

"""Utility functions common to ghtree tests."""

import asyncio
from collections.abc import Mapping

from ghtree.errors import RemoteServiceError
from ghtree.memory import MemoryObjectService
from ghtree.workspace import Workspace


class FlakyObjectService(MemoryObjectService):
    """In-memory service whose calls can be made to fail on demand.

    Attributes:
      fail_blobs: Contents for which create_blob raises.
      fail_tree: Whether create_tree raises.
      fail_commit: Whether create_commit raises.
    """

    def __init__(self) -> None:
        super().__init__(clock=lambda: 1700000000)
        self.fail_blobs: set[bytes] = set()
        self.fail_tree = False
        self.fail_commit = False
        self.in_flight = 0
        self.max_in_flight = 0
        # While set and not yet triggered, get_blob waits for it.
        self.blob_gate: asyncio.Event | None = None

    async def get_blob(self, object_id: str) -> bytes:
        if self.blob_gate is not None:
            await self.blob_gate.wait()
        return await super().get_blob(object_id)

    async def create_blob(self, content: bytes) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if content in self.fail_blobs:
                self.calls.append(("create_blob_failed", content))
                raise RemoteServiceError("server error", 502)
            return await super().create_blob(content)
        finally:
            self.in_flight -= 1

    async def create_tree(self, items):
        if self.fail_tree:
            raise RemoteServiceError("server error", 502)
        return await super().create_tree(items)

    async def create_commit(self, tree_id, parent_commit_id, message):
        if self.fail_commit:
            raise RemoteServiceError("server error", 502)
        return await super().create_commit(tree_id, parent_commit_id, message)

    def operations(self, *names: str) -> list[str]:
        """Return the names of logged calls, optionally only some of them."""
        return [op for op, _ in self.calls if not names or op in names]


async def make_workspace(
    files: Mapping[str, bytes], branch: str = "main", concurrency: int | None = None
) -> tuple[FlakyObjectService, Workspace]:
    """Seed a service with files and load a workspace on top of it."""
    service = FlakyObjectService()
    service.seed(files, branch=branch)
    workspace = Workspace(service, branch, concurrency=concurrency)
    await workspace.load()
    service.calls.clear()
    return service, workspace
