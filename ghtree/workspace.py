# workspace.py -- Editing session on one branch of a remote repository
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

"""Editing session on one branch of a remote repository.

A :class:`Workspace` ties the pieces together: the virtual tree holds the
structure, the record store tracks content and changes, the tree builder and
commit publisher turn pending edits into a new commit. Local edits are plain
method calls; everything that talks to the remote is a coroutine.

Example::

    async with Urllib3GitHubService("owner", "site", token=token) as service:
        workspace = Workspace(service, "main")
        await workspace.load()
        workspace.write_file("posts/hello.md", b"# Hello\\n")
        await workspace.publish("Add hello post")
"""

__all__ = [
    "Workspace",
]

from .builder import BuildResult, TreeBuilder
from .config import DEFAULT_BRANCH
from .errors import (
    ChecksumMismatch,
    EntryNotFoundError,
    PendingChangesError,
    PublishError,
    PublishInProgressError,
    RemoteNotFound,
    ValidationError,
)
from .hashing import hash_blob
from .log_utils import getLogger
from .publisher import CommitPublisher, PublishState
from .records import FileRecord, FileRecordStore
from .remote import CommitRef, RemoteObjectService
from .tree import BLOB, TREE, TreeEntry, VirtualTree, pathsplit

logger = getLogger(__name__)


class Workspace:
    """Tree, records and publishing for one branch.

    Attributes:
      head: Branch tip the workspace was loaded from or last published,
        None before :meth:`load`.
    """

    def __init__(
        self,
        service: RemoteObjectService,
        branch: str = DEFAULT_BRANCH,
        concurrency: int | None = None,
    ) -> None:
        self.service = service
        self.branch = branch
        self.tree = VirtualTree()
        self.records = FileRecordStore()
        self.builder = TreeBuilder(service, self.records, concurrency)
        self.publisher = CommitPublisher(service)
        self.head: CommitRef | None = None
        # path -> object id of every leaf in the head tree
        self._published: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.branch} at {self.head and self.head.head_commit_id}>"

    async def load(self, branch: str | None = None) -> CommitRef:
        """Read the tip of a branch and mirror its tree.

        Anything loaded earlier, including unpublished edits, is replaced.

        Args:
          branch: Branch to load; defaults to the current branch

        Raises:
          RemoteNotFound: if the branch does not exist or has no commits
        """
        if branch is None:
            branch = self.branch
        commits = await self.service.list_commits(branch, 1)
        if not commits:
            raise RemoteNotFound(branch)
        commit_id, tree_id = commits[0]
        items = await self.service.get_tree(tree_id)
        tree = VirtualTree.from_listing(items)
        self.records.clear()
        for entry in tree.blobs():
            self.records.seed(entry.path, entry.remote_id)
        self.tree = tree
        self.branch = branch
        self.head = CommitRef(branch, commit_id, tree_id)
        self._published = self._leaf_ids()
        logger.info("loaded %s at %s (%d entries)", branch, commit_id, len(tree))
        return self.head

    async def checkout(self, branch: str, discard: bool = False) -> CommitRef:
        """Switch to another branch.

        Raises:
          PendingChangesError: if there are unpublished changes and discard
            is not set
          PublishInProgressError: if a publish cycle is running or failed
            without being acknowledged
        """
        if self.has_changes() and not discard:
            raise PendingChangesError(self.changed_paths() + self.deleted_paths())
        if self.publisher.state is not PublishState.IDLE:
            raise PublishInProgressError(self.publisher.state)
        return await self.load(branch)

    async def branches(self) -> list[str]:
        return await self.service.list_branches()

    def _get(self, path: str) -> TreeEntry:
        entry = self.tree.find_by_path(path)
        if entry is None:
            raise EntryNotFoundError(path.strip("/"))
        return entry

    def _get_file(self, path: str) -> TreeEntry:
        entry = self._get(path)
        if entry.type != BLOB:
            raise ValidationError(entry.name, f"{entry.path} is not a file")
        return entry

    def _get_folder(self, path: str) -> TreeEntry | None:
        if not path.strip("/"):
            return None
        entry = self._get(path)
        if entry.type != TREE:
            raise ValidationError(entry.name, f"{entry.path} is not a folder")
        return entry

    async def read_file(self, path: str) -> bytes:
        """Return the current content of a file, fetching it if needed.

        Raises:
          EntryNotFoundError: if there is no file at path
        """
        entry = self._get_file(path)
        record = self.records.seed(entry.path, entry.remote_id)
        if record.content is not None:
            return record.content
        if record.remote_hash is None:
            return b""
        remote_hash = record.remote_hash
        content = await self.service.get_blob(remote_hash)
        # The file may have been written, renamed or deleted meanwhile.
        if record.content is not None:
            return record.content
        if (
            self.tree.find_by_path(entry.path) is not entry
            or entry.path not in self.records
            or self.records.get(entry.path) is not record
        ):
            return content
        actual = hash_blob(content)
        if actual != remote_hash:
            logger.warning("%s", ChecksumMismatch(remote_hash, actual, entry.path))
        self.records.record_remote(entry.path, content, remote_hash)
        return content

    def write_file(self, path: str, content: bytes) -> FileRecord:
        """Store new content for a file, creating it and its folders if needed.

        Raises:
          ValidationError: if a segment of path is not a valid name, or path
            names a folder
        """
        path = path.strip("/")
        self.tree.materialize(path)
        entry = self.tree.find_by_path(path)
        if entry is None:
            parent_path, name = pathsplit(path)
            entry = self.tree.insert(parent_path, name, BLOB)
        elif entry.type != BLOB:
            raise ValidationError(entry.name, f"{path} is not a file")
        self.records.seed(path, entry.remote_id)
        record = self.records.update_content(path, content)
        if not record.changed:
            # Drop any id left behind by a failed publish of other content.
            entry.remote_id = record.remote_hash
        return record

    def create_file(self, parent_path: str, name: str, content: bytes = b"") -> TreeEntry:
        """Create a new file in an existing folder.

        Raises:
          ParentNotFoundError: if parent_path is not a folder
          ValidationError: if the name is invalid or already taken
        """
        entry = self.tree.insert(parent_path, name, BLOB)
        self.records.update_content(entry.path, content)
        return entry

    def create_folder(self, parent_path: str, name: str) -> TreeEntry:
        """Create a new, empty folder.

        Git does not store empty folders; one only shows up remotely once a
        file is published inside it.
        """
        return self.tree.insert(parent_path, name, TREE)

    def rename(self, path: str, new_name: str) -> TreeEntry:
        """Rename a file or folder, keeping its records attached."""
        entry = self._get(path)
        old_path = entry.path
        self.tree.rename(entry, new_name)
        if entry.path != old_path:
            self.records.rename_prefix(old_path, entry.path)
        return entry

    def delete(self, path: str) -> list[str]:
        """Delete a file or a folder with everything in it.

        Returns:
          Paths of all removed entries
        """
        entry = self._get(path)
        removed = self.tree.remove(entry)
        self.records.remove_prefix(entry.path)
        logger.debug("deleted %s (%d entries)", entry.path, len(removed))
        return removed

    def clear_folder(self, path: str) -> list[str]:
        """Delete everything inside a folder, but not the folder itself.

        An empty path clears the whole tree.
        """
        folder = self._get_folder(path)
        children = self.tree.roots if folder is None else folder.children
        assert children is not None
        removed: list[str] = []
        for child in list(children):
            removed.extend(self.delete(child.path))
        return removed

    def is_changed(self, path: str) -> bool:
        return self.records.is_changed(path.strip("/"))

    def changed_paths(self) -> list[str]:
        return self.records.changed_paths()

    def _leaf_ids(self) -> dict[str, str]:
        return {
            entry.path: entry.remote_id
            for entry in self.tree.walk()
            if entry.children is None
            and entry.remote_id is not None
            and not self.records.is_changed(entry.path)
        }

    def deleted_paths(self) -> list[str]:
        """Return published paths that are no longer in the tree.

        Files that were renamed show up under their old path.
        """
        current = {entry.path for entry in self.tree.walk() if entry.children is None}
        return sorted(path for path in self._published if path not in current)

    def has_changes(self) -> bool:
        """Check whether publishing would change anything.

        Besides edited files this covers deletions and renames of files
        that exist remotely.
        """
        return bool(self.records.changed_paths()) or self._leaf_ids() != self._published

    def acknowledge_failure(self) -> BaseException | None:
        """Allow publishing again after a failed cycle."""
        return self.publisher.acknowledge()

    def _settle_records(self, result: BuildResult) -> None:
        for path, object_id in result.changed.items():
            if path not in self.records:
                continue
            record = self.records.get(path)
            if record.pending_hash == result.content_hashes[path]:
                self.records.mark_published(path, object_id)
            else:
                # Edited again while the cycle was running.
                record.remote_hash = object_id
                if record.content is not None:
                    self.records.update_content(path, record.content)

    async def publish(self, message: str) -> CommitRef:
        """Publish every pending change as one commit on the branch.

        Does nothing when there is nothing to publish. On failure all edits
        are kept and the publisher stays FAILED until
        :meth:`acknowledge_failure` is called.

        Raises:
          NonFastForwardError: if the branch moved since it was loaded
          PublishError: if creating an object or updating the branch failed
          PublishInProgressError: if another cycle is running or failed
        """
        if self.head is None:
            raise PublishError(f"{self.branch} has not been loaded")
        if self.publisher.state is not PublishState.IDLE:
            raise PublishInProgressError(self.publisher.state)
        if not self.has_changes():
            logger.info("nothing to publish on %s", self.branch)
            return self.head
        self.publisher.begin()
        try:
            result = await self.builder.build_tree(self.tree.roots)
        except BaseException as e:
            self.publisher.fail(e)
            raise
        head = await self.publisher.publish(result.tree_id, message, self.head)
        self._settle_records(result)
        self.head = head
        self._published = {
            item.path: item.sha for item in result.items if item.sha is not None
        }
        return head

    def folder_contents(self, path: str) -> list[TreeEntry]:
        """Return the entries directly inside a folder; "" is the root."""
        folder = self._get_folder(path)
        return list(self.tree.roots if folder is None else folder.children or [])
