# builder.py -- Turn the virtual tree into a remote tree object
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

"""Turn the virtual tree into a remote tree object.

Building happens in three steps:

1. :meth:`TreeBuilder.plan` walks the forest children-first and produces the
   flat listing the remote expects. Unchanged files reuse their remote id;
   changed files leave a hole to be filled by an upload. No I/O happens here.
2. All uploads run concurrently; the builder waits for every one of them.
3. The new blob ids are written back onto their entries and a single
   create-tree call is made with the completed listing.
"""

__all__ = [
    "BuildPlan",
    "BuildResult",
    "PendingUpload",
    "TreeBuilder",
]

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .errors import ChecksumMismatch, PublishError
from .log_utils import getLogger
from .records import FileRecord, FileRecordStore
from .remote import RemoteObjectService, TreeItem
from .tree import BLOB, COMMIT, TreeEntry

logger = getLogger(__name__)


@dataclass
class PendingUpload:
    """A changed file whose bytes still have to be stored remotely.

    ``index`` is the position of the file in :attr:`BuildPlan.items`;
    ``content_hash`` is the local blob id of the content being uploaded.
    """

    index: int
    entry: TreeEntry
    record: FileRecord
    content_hash: str


@dataclass
class BuildPlan:
    """Flat listing of a tree, with holes for blobs not yet uploaded."""

    items: list[TreeItem] = field(default_factory=list)
    uploads: list[PendingUpload] = field(default_factory=list)
    # Changed files whose blob already exists remotely, by path.
    reused: dict[str, str] = field(default_factory=dict)

    def assemble(self, object_ids: Sequence[str]) -> list[TreeItem]:
        """Fill the holes left by uploads, in the order of ``uploads``."""
        if len(object_ids) != len(self.uploads):
            raise ValueError(
                f"expected {len(self.uploads)} object ids, got {len(object_ids)}"
            )
        items = list(self.items)
        for upload, object_id in zip(self.uploads, object_ids):
            items[upload.index] = items[upload.index]._replace(sha=object_id)
        return items


@dataclass
class BuildResult:
    """Outcome of a successful build.

    Attributes:
      tree_id: Id of the newly created remote tree.
      items: The flat listing the tree was created from.
      changed: Blob id of every changed file, by path.
      content_hashes: Local hash of the content published for each
        changed file, by path.
    """

    tree_id: str
    items: list[TreeItem]
    changed: dict[str, str]
    content_hashes: dict[str, str] = field(default_factory=dict)


class TreeBuilder:
    """Creates remote tree objects from a virtual tree."""

    def __init__(
        self,
        service: RemoteObjectService,
        records: FileRecordStore,
        concurrency: int | None = None,
    ) -> None:
        """Create a tree builder.

        Args:
          service: Service to create blobs and trees with.
          records: Change tracking for the files in the tree.
          concurrency: Maximum number of blob uploads in flight; unlimited
            if None.
        """
        self.service = service
        self.records = records
        self.concurrency = concurrency

    def plan(self, roots: Iterable[TreeEntry]) -> BuildPlan:
        """Compute the flat listing for a forest without touching the remote."""
        plan = BuildPlan()
        self._plan_entries(roots, plan)
        return plan

    def _plan_entries(self, entries: Iterable[TreeEntry], plan: BuildPlan) -> None:
        for entry in entries:
            if entry.children is not None:
                self._plan_entries(entry.children, plan)
            elif entry.type == COMMIT:
                plan.items.append(TreeItem(entry.path, entry.mode, COMMIT, entry.remote_id))
            else:
                self._plan_blob(entry, plan)

    def _plan_blob(self, entry: TreeEntry, plan: BuildPlan) -> None:
        record = self.records.get(entry.path) if entry.path in self.records else None
        if record is not None and record.changed:
            if entry.remote_id is not None and entry.remote_id == record.pending_hash:
                # Uploaded by an earlier cycle that failed later on.
                plan.reused[entry.path] = entry.remote_id
                plan.items.append(TreeItem(entry.path, entry.mode, BLOB, entry.remote_id))
            else:
                assert record.pending_hash is not None
                plan.uploads.append(PendingUpload(len(plan.items), entry, record, record.pending_hash))
                plan.items.append(TreeItem(entry.path, entry.mode, BLOB, None))
        elif entry.remote_id is None:
            logger.debug("leaving out empty unpublished file %s", entry.path)
        else:
            plan.items.append(TreeItem(entry.path, entry.mode, BLOB, entry.remote_id))

    async def _create_blob(
        self, upload: PendingUpload, semaphore: asyncio.Semaphore | None
    ) -> str:
        assert upload.record.content is not None
        if semaphore is None:
            object_id = await self.service.create_blob(upload.record.content)
        else:
            async with semaphore:
                object_id = await self.service.create_blob(upload.record.content)
        logger.debug("created blob %s for %s", object_id, upload.entry.path)
        if object_id != upload.content_hash:
            logger.warning(
                "%s", ChecksumMismatch(upload.content_hash, object_id, upload.entry.path)
            )
        return object_id

    async def upload(self, uploads: Sequence[PendingUpload]) -> list[str]:
        """Upload every pending blob concurrently.

        All uploads are awaited, even when some fail, so that the ids of the
        ones that did succeed can be kept.

        Raises:
          PublishError: if any upload failed
        """
        semaphore = asyncio.Semaphore(self.concurrency) if self.concurrency else None
        results = await asyncio.gather(
            *(self._create_blob(upload, semaphore) for upload in uploads),
            return_exceptions=True,
        )
        succeeded: list[PendingUpload] = []
        object_ids: list[str] = []
        failures: list[tuple[PendingUpload, BaseException]] = []
        for upload, result in zip(uploads, results):
            if isinstance(result, BaseException):
                failures.append((upload, result))
            else:
                succeeded.append(upload)
                object_ids.append(result)
        self.record_ids(succeeded, object_ids)
        for upload, error in failures:
            if not isinstance(error, Exception):
                raise error
        if failures:
            upload, error = failures[0]
            raise PublishError(
                f"creating blob for {upload.entry.path} failed"
                + (f" (and {len(failures) - 1} more)" if len(failures) > 1 else "")
            ) from error
        return object_ids

    def record_ids(self, uploads: Sequence[PendingUpload], object_ids: Sequence[str]) -> None:
        """Remember which remote blob now holds the content of each entry."""
        for upload, object_id in zip(uploads, object_ids):
            upload.entry.remote_id = object_id

    async def build_tree(self, roots: Iterable[TreeEntry]) -> BuildResult:
        """Upload changed files and create a remote tree for the forest.

        Raises:
          PublishError: if a blob or the tree could not be created
        """
        plan = self.plan(roots)
        logger.info(
            "building tree: %d entries, %d uploads", len(plan.items), len(plan.uploads)
        )
        object_ids = await self.upload(plan.uploads)
        items = plan.assemble(object_ids)
        try:
            tree_id = await self.service.create_tree(items)
        except Exception as e:
            raise PublishError("creating tree failed") from e
        logger.debug("created tree %s", tree_id)
        changed = dict(plan.reused)
        content_hashes = dict(plan.reused)
        for upload, object_id in zip(plan.uploads, object_ids):
            changed[upload.entry.path] = object_id
            content_hashes[upload.entry.path] = upload.content_hash
        return BuildResult(tree_id, items, changed, content_hashes)

    async def build(self, roots: Iterable[TreeEntry]) -> str:
        """Upload changed files and return the id of the new remote tree."""
        return (await self.build_tree(roots)).tree_id
