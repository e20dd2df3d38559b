# records.py -- Per-file change tracking
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

"""Per-file content and change tracking.

Every file the editor has touched gets a :class:`FileRecord`. A record knows
the blob id last confirmed on the remote and, when the current content hashes
to something else, the *pending* hash. The pending hash is the single source
of truth for "this file has unpublished edits".
"""

__all__ = [
    "FIRST_FEW_BYTES",
    "FileRecord",
    "FileRecordStore",
    "is_binary",
]

from collections.abc import Iterator
from dataclasses import dataclass

from .hashing import hash_blob
from .log_utils import getLogger

logger = getLogger(__name__)

# Same window git uses when sniffing for binary content.
FIRST_FEW_BYTES = 8000


def is_binary(content: bytes) -> bool:
    """See if the first few bytes contain any null characters.

    Args:
      content: Bytestring to check for binary content
    """
    return b"\0" in content[:FIRST_FEW_BYTES]


def _is_below(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


@dataclass
class FileRecord:
    """Content and remote state of a single file.

    Attributes:
      path: Path of the file relative to the repository root.
      content: Current bytes, or None while they have not been fetched.
      remote_hash: Blob id last confirmed to exist on the remote.
      pending_hash: Blob id of ``content`` when it differs from the remote.
    """

    path: str
    content: bytes | None = None
    remote_hash: str | None = None
    pending_hash: str | None = None

    @property
    def changed(self) -> bool:
        return self.pending_hash is not None

    @property
    def size(self) -> int | None:
        if self.content is None:
            return None
        return len(self.content)

    @property
    def binary(self) -> bool | None:
        if self.content is None:
            return None
        return is_binary(self.content)


class FileRecordStore:
    """All file records of an editing session, keyed by path."""

    def __init__(self) -> None:
        self._records: dict[str, FileRecord] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {len(self._records)} files>"

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(list(self._records.values()))

    def get(self, path: str) -> FileRecord:
        """Return the record for a path.

        Raises:
          KeyError: if nothing is known about the path
        """
        return self._records[path]

    def record_remote(self, path: str, content: bytes, remote_hash: str) -> FileRecord:
        """Record content as it was just fetched from the remote."""
        record = self._records.get(path)
        if record is None:
            record = self._records[path] = FileRecord(path)
        record.content = bytes(content)
        record.remote_hash = remote_hash
        record.pending_hash = None
        return record

    def seed(self, path: str, remote_hash: str | None) -> FileRecord:
        """Register a file whose remote blob id is known but not its bytes.

        Existing records are left alone.
        """
        record = self._records.get(path)
        if record is None:
            record = self._records[path] = FileRecord(path, remote_hash=remote_hash)
        return record

    def update_content(self, path: str, content: bytes) -> FileRecord:
        """Store edited content and recompute whether the file changed.

        A file that never existed on the remote only counts as changed once it
        has content; an empty placeholder is not a pending edit.
        """
        record = self._records.get(path)
        if record is None:
            record = self._records[path] = FileRecord(path)
        record.content = bytes(content)
        new_hash = hash_blob(record.content)
        if record.remote_hash is None:
            unchanged = not record.content
        else:
            unchanged = new_hash == record.remote_hash
        if unchanged:
            record.pending_hash = None
        else:
            record.pending_hash = new_hash
        logger.debug(
            "content of %s is now %s (%s)",
            path,
            new_hash,
            "changed" if record.changed else "unchanged",
        )
        return record

    def is_changed(self, path: str) -> bool:
        record = self._records.get(path)
        return record is not None and record.changed

    def changed_paths(self) -> list[str]:
        """Return the sorted paths of all files with a pending hash."""
        return sorted(path for path, record in self._records.items() if record.changed)

    def mark_published(self, path: str, object_id: str) -> None:
        """Note that the current content now exists remotely as object_id."""
        record = self._records[path]
        record.remote_hash = object_id
        record.pending_hash = None

    def remove(self, path: str) -> FileRecord | None:
        return self._records.pop(path, None)

    def remove_prefix(self, prefix: str) -> list[str]:
        """Forget a file, or a folder and every file beneath it.

        Returns:
          The removed paths
        """
        removed = [path for path in self._records if _is_below(path, prefix)]
        for path in removed:
            del self._records[path]
        return sorted(removed)

    def rename_prefix(self, old: str, new: str) -> None:
        """Move the records of a renamed file or folder to their new paths."""
        moved = [record for path, record in self._records.items() if _is_below(path, old)]
        for record in moved:
            del self._records[record.path]
        for record in moved:
            record.path = new + record.path[len(old) :]
            self._records[record.path] = record

    def clear(self) -> None:
        self._records.clear()
