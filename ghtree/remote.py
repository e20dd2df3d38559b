# remote.py -- Interface to the remote object service
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

"""Interface to a service that stores Git objects remotely.

Publishing needs only a handful of low-level calls: read a recursive tree
listing, read a blob, create blob, tree and commit objects, and move a branch.
Every call is a coroutine; implementations decide how the request reaches the
remote.
"""

__all__ = [
    "CommitRef",
    "RemoteObjectService",
    "TreeItem",
]

from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple


class TreeItem(NamedTuple):
    """One path in a flat tree listing.

    ``size`` is only filled in for blobs in listings read from the remote.
    """

    path: str
    mode: str
    type: str
    sha: str | None
    size: int | None = None

    def as_json(self) -> dict[str, str | None]:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


@dataclass(frozen=True)
class CommitRef:
    """Known tip of the branch being edited."""

    branch: str
    head_commit_id: str
    head_tree_id: str


class RemoteObjectService:
    """Asynchronous access to the objects and refs of one repository."""

    async def get_tree(self, treeish: str) -> list[TreeItem]:
        """Return the recursive, flat listing of a tree.

        Args:
          treeish: Branch name, commit id or tree id
        """
        raise NotImplementedError(self.get_tree)

    async def get_blob(self, object_id: str) -> bytes:
        """Return the raw bytes of a blob."""
        raise NotImplementedError(self.get_blob)

    async def create_blob(self, content: bytes) -> str:
        """Store content and return its blob id."""
        raise NotImplementedError(self.create_blob)

    async def create_tree(self, items: Sequence[TreeItem]) -> str:
        """Store a complete flat listing and return the new tree id."""
        raise NotImplementedError(self.create_tree)

    async def create_commit(
        self, tree_id: str, parent_commit_id: str | None, message: str
    ) -> str:
        """Create a commit object and return its id."""
        raise NotImplementedError(self.create_commit)

    async def update_ref(self, branch: str, commit_id: str) -> bool:
        """Fast-forward a branch to commit_id.

        Returns:
          True on success, False when the branch has moved and the update
          would not be a fast forward
        """
        raise NotImplementedError(self.update_ref)

    async def list_commits(self, branch: str, limit: int = 1) -> list[tuple[str, str]]:
        """Return (commit id, tree id) pairs, newest first."""
        raise NotImplementedError(self.list_commits)

    async def list_branches(self) -> list[str]:
        raise NotImplementedError(self.list_branches)

    async def close(self) -> None:
        """Release any connections held by the service."""

    async def __aenter__(self) -> "RemoteObjectService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
