# memory.py -- Remote object service that keeps everything in memory
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

"""Remote object service that keeps all objects in memory.

Objects are serialized the way git serializes them, so blob, tree and commit
ids match what a real Git host would return for the same input. This makes
the service usable for dry runs and as a faithful stand-in in tests.
"""

__all__ = [
    "MemoryObjectService",
    "serialize_tree",
    "sorted_tree_items",
]

import binascii
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

from .errors import RemoteNotFound, RemoteServiceError
from .hashing import hash_object
from .log_utils import getLogger
from .remote import RemoteObjectService, TreeItem
from .tree import BLOB, COMMIT, MODE_FILE, MODE_TREE, TREE, pathjoin, pathsplit

logger = getLogger(__name__)

DEFAULT_IDENTITY = "ghtree <ghtree@localhost>"


def _tree_mode(mode: str) -> str:
    # Trees store modes without leading zeros ("40000", not "040000").
    return f"{int(mode, 8):o}"


def sorted_tree_items(
    entries: Mapping[str, tuple[str, str]],
) -> Iterator[tuple[str, str, str]]:
    """Iterate over tree entries in the order git serializes them.

    Folders sort as if their name ended in a slash.

    Args:
      entries: Dictionary mapping names to (mode, sha) tuples
    Returns: Iterator over (name, mode, sha)
    """

    def key(item: tuple[str, tuple[str, str]]) -> bytes:
        name, (mode, _) = item
        encoded = name.encode("utf-8")
        if _tree_mode(mode) == "40000":
            encoded += b"/"
        return encoded

    for name, (mode, sha) in sorted(entries.items(), key=key):
        yield name, mode, sha


def serialize_tree(items: Iterator[tuple[str, str, str]]) -> bytes:
    """Serialize sorted (name, mode, sha) tuples to git's binary tree format."""
    return b"".join(
        _tree_mode(mode).encode("ascii")
        + b" "
        + name.encode("utf-8")
        + b"\0"
        + binascii.unhexlify(sha)
        for name, mode, sha in items
    )


class MemoryObjectService(RemoteObjectService):
    """Object service holding one repository in memory.

    Attributes:
      calls: Log of (operation, argument) tuples, in the order the calls
        were made.
    """

    def __init__(
        self,
        identity: str = DEFAULT_IDENTITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.identity = identity
        self.clock = clock
        self.calls: list[tuple[str, Any]] = []
        self._blobs: dict[str, bytes] = {}
        # tree id -> list of (name, mode, sha) in serialization order
        self._trees: dict[str, list[tuple[str, str, str]]] = {}
        # commit id -> (tree id, parent ids, message)
        self._commits: dict[str, tuple[str, list[str], str]] = {}
        self._refs: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {len(self._refs)} branches>"

    # Synchronous helpers, for seeding the repository.

    def add_blob(self, content: bytes) -> str:
        object_id = hash_object("blob", content)
        self._blobs[object_id] = bytes(content)
        return object_id

    def add_tree(self, items: Sequence[TreeItem]) -> str:
        """Store a flat listing as nested tree objects; return the root id."""
        trees: dict[str, dict[str, Any]] = {"": {}}

        def add_folder(path: str) -> dict[str, Any]:
            if path in trees:
                return trees[path]
            dirname, basename = pathsplit(path)
            parent = add_folder(dirname)
            if basename in parent and not isinstance(parent[basename], dict):
                raise RemoteServiceError(f"{path} is both a file and a folder", 422)
            folder: dict[str, Any] = {}
            parent[basename] = folder
            trees[path] = folder
            return folder

        for item in self._expand(items):
            if item.sha is None:
                raise RemoteServiceError(f"no object id for {item.path}", 422)
            if item.type == BLOB and item.sha not in self._blobs:
                raise RemoteServiceError(f"blob {item.sha} for {item.path} is missing", 422)
            dirname, basename = pathsplit(item.path)
            folder = add_folder(dirname)
            if isinstance(folder.get(basename), dict):
                raise RemoteServiceError(f"{item.path} is both a file and a folder", 422)
            folder[basename] = (item.mode, item.sha)

        def write(path: str) -> str:
            entries = {}
            for name, value in trees[path].items():
                if isinstance(value, dict):
                    entries[name] = (MODE_TREE, write(pathjoin(path, name)))
                else:
                    entries[name] = value
            tree_items = list(sorted_tree_items(entries))
            tree_id = hash_object("tree", serialize_tree(iter(tree_items)))
            self._trees[tree_id] = tree_items
            return tree_id

        return write("")

    def _expand(self, items: Sequence[TreeItem]) -> Iterator[TreeItem]:
        for item in items:
            if item.type == TREE:
                if item.sha not in self._trees:
                    raise RemoteServiceError(f"tree {item.sha} is missing", 422)
                for sub in self._list_tree(item.sha, item.path):
                    if sub.type != TREE:
                        yield sub
            else:
                yield item

    def add_commit(
        self,
        tree_id: str,
        parents: Sequence[str],
        message: str,
    ) -> str:
        if tree_id not in self._trees:
            raise RemoteServiceError(f"tree {tree_id} is missing", 422)
        for parent in parents:
            if parent not in self._commits:
                raise RemoteServiceError(f"parent {parent} is missing", 422)
        timestamp = int(self.clock())
        lines = [f"tree {tree_id}"]
        lines.extend(f"parent {parent}" for parent in parents)
        lines.append(f"author {self.identity} {timestamp} +0000")
        lines.append(f"committer {self.identity} {timestamp} +0000")
        raw = ("\n".join(lines) + "\n\n" + message).encode("utf-8")
        commit_id = hash_object("commit", raw)
        self._commits[commit_id] = (tree_id, list(parents), message)
        return commit_id

    def set_ref(self, branch: str, commit_id: str) -> None:
        """Point a branch at a commit, fast forward or not."""
        if commit_id not in self._commits:
            raise RemoteNotFound(commit_id)
        self._refs[branch] = commit_id

    def delete_ref(self, branch: str) -> None:
        del self._refs[branch]

    def seed(
        self,
        files: Mapping[str, bytes],
        branch: str = "main",
        message: str = "Initial commit",
    ) -> str:
        """Create a commit holding files on top of branch; return its id."""
        items = [
            TreeItem(path, MODE_FILE, BLOB, self.add_blob(content))
            for path, content in files.items()
        ]
        parent = self._refs.get(branch)
        commit_id = self.add_commit(
            self.add_tree(items), [parent] if parent else [], message
        )
        self._refs[branch] = commit_id
        return commit_id

    def head(self, branch: str) -> str:
        return self._refs[branch]

    def commit_parents(self, commit_id: str) -> list[str]:
        return list(self._commits[commit_id][1])

    def commit_message(self, commit_id: str) -> str:
        return self._commits[commit_id][2]

    def commit_tree(self, commit_id: str) -> str:
        return self._commits[commit_id][0]

    def read_tree(self, treeish: str) -> dict[str, bytes]:
        """Return the content of every blob in a tree, by path."""
        return {
            item.path: self._blobs[item.sha]
            for item in self._list_tree(self._resolve_tree(treeish))
            if item.type == BLOB and item.sha is not None
        }

    def _resolve_tree(self, treeish: str) -> str:
        commit_id = self._refs.get(treeish, treeish)
        if commit_id in self._commits:
            return self._commits[commit_id][0]
        if treeish in self._trees:
            return treeish
        raise RemoteNotFound(treeish)

    def _list_tree(self, tree_id: str, prefix: str = "") -> Iterator[TreeItem]:
        for name, mode, sha in self._trees[tree_id]:
            path = pathjoin(prefix, name)
            if sha in self._trees and _tree_mode(mode) == "40000":
                yield TreeItem(path, MODE_TREE, TREE, sha)
                yield from self._list_tree(sha, path)
            elif _tree_mode(mode) == "160000":
                yield TreeItem(path, mode, COMMIT, sha)
            else:
                yield TreeItem(path, mode, BLOB, sha, len(self._blobs[sha]))

    def _is_ancestor(self, ancestor: str, commit_id: str) -> bool:
        todo = [commit_id]
        seen = set()
        while todo:
            current = todo.pop()
            if current == ancestor:
                return True
            if current in seen:
                continue
            seen.add(current)
            todo.extend(self._commits[current][1])
        return False

    # RemoteObjectService

    async def get_tree(self, treeish: str) -> list[TreeItem]:
        self.calls.append(("get_tree", treeish))
        return list(self._list_tree(self._resolve_tree(treeish)))

    async def get_blob(self, object_id: str) -> bytes:
        self.calls.append(("get_blob", object_id))
        try:
            return self._blobs[object_id]
        except KeyError:
            raise RemoteNotFound(object_id)

    async def create_blob(self, content: bytes) -> str:
        self.calls.append(("create_blob", content))
        return self.add_blob(content)

    async def create_tree(self, items: Sequence[TreeItem]) -> str:
        self.calls.append(("create_tree", list(items)))
        return self.add_tree(items)

    async def create_commit(
        self, tree_id: str, parent_commit_id: str | None, message: str
    ) -> str:
        self.calls.append(("create_commit", tree_id))
        parents = [parent_commit_id] if parent_commit_id else []
        return self.add_commit(tree_id, parents, message)

    async def update_ref(self, branch: str, commit_id: str) -> bool:
        self.calls.append(("update_ref", commit_id))
        if commit_id not in self._commits:
            raise RemoteServiceError(f"commit {commit_id} is missing", 422)
        current = self._refs.get(branch)
        if current is None:
            raise RemoteServiceError(
                f"refs/heads/{branch} does not exist", 422, reason="Reference does not exist"
            )
        if not self._is_ancestor(current, commit_id):
            logger.debug("refusing to move %s from %s to %s", branch, current, commit_id)
            return False
        self._refs[branch] = commit_id
        return True

    async def list_commits(self, branch: str, limit: int = 1) -> list[tuple[str, str]]:
        self.calls.append(("list_commits", branch))
        try:
            commit_id: str | None = self._refs[branch]
        except KeyError:
            raise RemoteNotFound(branch)
        ret = []
        while commit_id is not None and len(ret) < limit:
            tree_id, parents, _ = self._commits[commit_id]
            ret.append((commit_id, tree_id))
            commit_id = parents[0] if parents else None
        return ret

    async def list_branches(self) -> list[str]:
        self.calls.append(("list_branches", None))
        return sorted(self._refs)
