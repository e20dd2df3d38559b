# tree.py -- In-memory mirror of a remote repository tree
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

"""In-memory mirror of a remote repository's directory structure.

The remote describes a snapshot as a flat list of paths; editors want a
forest of folders they can expand, rename and delete. :class:`VirtualTree`
owns that forest. It is the only object that adds entries to or removes them
from a ``children`` list, and it keeps every ``path`` consistent with the
names of the folders above it.
"""

__all__ = [
    "BLOB",
    "COMMIT",
    "MODE_EXECUTABLE",
    "MODE_FILE",
    "MODE_GITLINK",
    "MODE_SYMLINK",
    "MODE_TREE",
    "TREE",
    "TreeEntry",
    "VirtualTree",
    "check_name",
    "pathjoin",
    "pathsplit",
]

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import EntryNotFoundError, ParentNotFoundError, ValidationError
from .log_utils import getLogger

if TYPE_CHECKING:
    from .remote import TreeItem

logger = getLogger(__name__)

TREE = "tree"
BLOB = "blob"
COMMIT = "commit"

MODE_FILE = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_TREE = "040000"
MODE_GITLINK = "160000"

_DEFAULT_MODES = {TREE: MODE_TREE, BLOB: MODE_FILE, COMMIT: MODE_GITLINK}


def pathsplit(path: str) -> tuple[str, str]:
    """Split a /-delimited path into a directory part and a basename.

    Args:
      path: The path to split.

    Returns:
      Tuple with directory name and basename
    """
    try:
        (dirname, basename) = path.rsplit("/", 1)
    except ValueError:
        return ("", path)
    else:
        return (dirname, basename)


def pathjoin(*args: str) -> str:
    """Join a /-delimited path."""
    return "/".join([p for p in args if p])


def check_name(name: str) -> None:
    """Check that a name can be used for a single path segment.

    Raises:
      ValidationError: if the name is empty, contains a separator or is
        otherwise not acceptable to git
    """
    if not name:
        raise ValidationError(name, "name is empty")
    if "/" in name:
        raise ValidationError(name, "name contains a path separator")
    if "\0" in name:
        raise ValidationError(name, "name contains a NUL character")
    if name in (".", ".."):
        raise ValidationError(name, "name is reserved")


@dataclass(eq=False)
class TreeEntry:
    """A folder, file or submodule link in the virtual tree.

    Attributes:
      path: Full path, without a leading separator.
      name: Last segment of ``path``.
      mode: Git file mode as an octal string (e.g. "100644").
      type: "tree", "blob" or "commit".
      remote_id: Last object id known to exist remotely, None if the entry
        was created locally and never published.
      children: Entries inside a folder; None for anything but folders.
    """

    path: str
    name: str
    mode: str
    type: str
    remote_id: str | None = None
    children: list["TreeEntry"] | None = None

    @property
    def is_tree(self) -> bool:
        return self.type == TREE

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.type} {self.path!r}>"


class VirtualTree:
    """A forest of :class:`TreeEntry` objects with unique paths."""

    def __init__(self) -> None:
        self.roots: list[TreeEntry] = []
        self._index: dict[str, TreeEntry] = {}

    @classmethod
    def from_listing(cls, items: Iterable["TreeItem"]) -> "VirtualTree":
        """Build a tree from a flat, recursive remote listing.

        Folders that only show up as part of a longer path are created on
        the fly.
        """
        tree = cls()
        for item in sorted(items, key=lambda i: i.path.split("/")):
            tree.materialize(item.path)
            entry = tree.find_by_path(item.path)
            if entry is None:
                parent_path, name = pathsplit(item.path)
                entry = tree.insert(parent_path, name, item.type, item.mode)
            elif entry.type != item.type:
                raise ValidationError(entry.name, f"listed both as {entry.type} and {item.type}")
            entry.mode = item.mode
            entry.remote_id = item.sha
        logger.debug("loaded tree with %d entries", len(tree))
        return tree

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, path: object) -> bool:
        return path in self._index

    def __iter__(self) -> Iterator[TreeEntry]:
        return self.walk()

    def walk(self) -> Iterator[TreeEntry]:
        """Iterate over all entries, every folder before its contents."""
        todo = list(reversed(self.roots))
        while todo:
            entry = todo.pop()
            yield entry
            if entry.children:
                todo.extend(reversed(entry.children))

    def blobs(self) -> Iterator[TreeEntry]:
        return (entry for entry in self.walk() if entry.type == BLOB)

    def find_by_path(self, path: str) -> TreeEntry | None:
        return self._index.get(path.strip("/"))

    def parent_of(self, entry: TreeEntry) -> TreeEntry | None:
        """Return the folder holding entry, or None for top-level entries."""
        parent_path, _ = pathsplit(entry.path)
        if not parent_path:
            return None
        return self._index[parent_path]

    def _siblings(self, entry: TreeEntry) -> list[TreeEntry]:
        if self._index.get(entry.path) is not entry:
            raise EntryNotFoundError(entry.path)
        parent = self.parent_of(entry)
        if parent is None:
            return self.roots
        assert parent.children is not None
        return parent.children

    def subtree(self, entry: TreeEntry) -> Iterator[TreeEntry]:
        """Iterate over entry and everything beneath it, pre-order."""
        yield entry
        for child in entry.children or []:
            yield from self.subtree(child)

    def insert(
        self, parent_path: str, name: str, type: str, mode: str | None = None
    ) -> TreeEntry:
        """Create a new, unpublished entry inside a folder.

        Args:
          parent_path: Path of the containing folder; "" for the root.
          name: Name of the new entry.
          type: "tree", "blob" or "commit".
          mode: Git mode; defaults to a plain file or folder mode.

        Raises:
          ParentNotFoundError: if there is no folder at parent_path
          ValidationError: if the name is invalid or already taken
        """
        if type not in _DEFAULT_MODES:
            raise ValueError(f"unknown entry type {type!r}")
        check_name(name)
        parent_path = parent_path.strip("/")
        if parent_path:
            parent = self._index.get(parent_path)
            if parent is None or parent.children is None:
                raise ParentNotFoundError(parent_path)
            siblings = parent.children
        else:
            siblings = self.roots
        path = pathjoin(parent_path, name)
        if path in self._index:
            raise ValidationError(name, f"{path} already exists")
        entry = TreeEntry(
            path=path,
            name=name,
            mode=mode or _DEFAULT_MODES[type],
            type=type,
            children=[] if type == TREE else None,
        )
        siblings.append(entry)
        self._index[path] = entry
        return entry

    def rename(self, entry: TreeEntry, new_name: str) -> None:
        """Give an entry a new name, moving everything beneath it along.

        Raises:
          ValidationError: if the name is invalid or taken by a sibling
        """
        check_name(new_name)
        self._siblings(entry)
        if new_name == entry.name:
            return
        parent_path, _ = pathsplit(entry.path)
        new_path = pathjoin(parent_path, new_name)
        if new_path in self._index:
            raise ValidationError(new_name, f"{new_path} already exists")
        old_path = entry.path
        moved = list(self.subtree(entry))
        for e in moved:
            del self._index[e.path]
        entry.name = new_name
        self._relocate(entry, parent_path)
        for e in moved:
            self._index[e.path] = e
        logger.debug("renamed %s to %s (%d entries)", old_path, new_path, len(moved))

    def _relocate(self, entry: TreeEntry, parent_path: str) -> None:
        entry.path = pathjoin(parent_path, entry.name)
        for child in entry.children or []:
            self._relocate(child, entry.path)

    def remove(self, entry: TreeEntry) -> list[str]:
        """Detach an entry, and anything beneath it, from the tree.

        File records are not touched; the caller drops those for every
        returned path.

        Returns:
          Paths of all removed entries
        """
        siblings = self._siblings(entry)
        siblings.remove(entry)
        removed = [e.path for e in self.subtree(entry)]
        for path in removed:
            del self._index[path]
        return removed

    def materialize(self, path: str) -> TreeEntry | None:
        """Make sure every folder leading up to path exists.

        The last segment of path itself is not created.

        Returns:
          The folder that would contain path, or None for top-level paths

        Raises:
          ValidationError: if one of the leading segments is not a folder
        """
        parent_path, _ = pathsplit(path.strip("/"))
        folder = None
        current = ""
        for segment in parent_path.split("/") if parent_path else []:
            current = pathjoin(current, segment)
            existing = self._index.get(current)
            if existing is None:
                existing = self.insert(pathsplit(current)[0], segment, TREE)
            elif existing.children is None:
                raise ValidationError(segment, f"{current} is not a folder")
            folder = existing
        return folder
