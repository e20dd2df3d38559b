# errors.py -- errors for ghtree
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

"""ghtree-related exception classes."""

__all__ = [
    "ChecksumMismatch",
    "EntryNotFoundError",
    "GhtreeError",
    "HTTPUnauthorized",
    "NonFastForwardError",
    "ParentNotFoundError",
    "PendingChangesError",
    "PublishError",
    "PublishInProgressError",
    "RemoteNotFound",
    "RemoteServiceError",
    "TruncatedTreeError",
    "ValidationError",
]

from collections.abc import Sequence


class GhtreeError(Exception):
    """Base class for all errors raised by ghtree."""


class ParentNotFoundError(GhtreeError):
    """A tree mutation referenced a folder that does not exist."""

    def __init__(self, path: str) -> None:
        """Initialize a ParentNotFoundError.

        Args:
            path: The folder path that could not be found.
        """
        self.path = path
        GhtreeError.__init__(self, f"no folder at {path!r}")


class ValidationError(GhtreeError):
    """A file or folder name is not acceptable."""

    def __init__(self, name: str, reason: str) -> None:
        """Initialize a ValidationError.

        Args:
            name: The rejected name.
            reason: Human readable explanation.
        """
        self.name = name
        self.reason = reason
        GhtreeError.__init__(self, f"invalid name {name!r}: {reason}")


class EntryNotFoundError(GhtreeError, KeyError):
    """No file or folder exists at the requested path."""

    def __init__(self, path: str) -> None:
        self.path = path
        GhtreeError.__init__(self, f"no entry at {path!r}")

    def __str__(self) -> str:
        return f"no entry at {self.path!r}"


class PublishError(GhtreeError):
    """Creating the objects for a new commit failed.

    The underlying exception, if any, is available as ``__cause__``.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        GhtreeError.__init__(self, message)


class NonFastForwardError(PublishError):
    """The branch moved on the remote since the publish cycle started."""

    def __init__(self, branch: str, commit_id: str) -> None:
        """Initialize a NonFastForwardError.

        Args:
            branch: Name of the branch whose update was rejected.
            commit_id: The commit that could not be made the branch tip.
        """
        self.branch = branch
        self.commit_id = commit_id
        PublishError.__init__(
            self,
            f"updating {branch} to {commit_id} is not a fast forward; "
            "reload the branch and publish again",
        )


class PublishInProgressError(GhtreeError):
    """A publish cycle was requested while the publisher was not idle."""

    def __init__(self, state: object) -> None:
        self.state = state
        GhtreeError.__init__(self, f"publisher is {state}, not idle")


class PendingChangesError(GhtreeError):
    """An operation would throw away unpublished edits."""

    def __init__(self, paths: Sequence[str]) -> None:
        self.paths = list(paths)
        GhtreeError.__init__(
            self, f"{len(self.paths)} unpublished change(s): {', '.join(self.paths)}"
        )


class RemoteServiceError(GhtreeError):
    """The remote object service reported an error or could not be reached.

    Attributes:
      status: HTTP status, None when the remote was not reached.
      reason: Error message as given by the remote, if any.
    """

    def __init__(
        self, message: str, status: int | None = None, reason: str | None = None
    ) -> None:
        self.status = status
        self.reason = reason
        GhtreeError.__init__(self, message)


class HTTPUnauthorized(RemoteServiceError):
    """Raised when authentication fails."""

    def __init__(self, url: str) -> None:
        """Initialize HTTPUnauthorized exception.

        Args:
            url: URL that requires authentication
        """
        self.url = url
        RemoteServiceError.__init__(self, "No valid credentials provided", 401)


class RemoteNotFound(RemoteServiceError):
    """The requested repository, ref or object does not exist remotely."""

    def __init__(self, url: str) -> None:
        self.url = url
        RemoteServiceError.__init__(self, f"{url} not found", 404)


class TruncatedTreeError(RemoteServiceError):
    """The remote truncated a recursive tree listing.

    Publishing from a partial listing would silently delete files, so such
    listings are refused.
    """

    def __init__(self, sha: str) -> None:
        self.sha = sha
        RemoteServiceError.__init__(self, f"listing of tree {sha} was truncated")


class ChecksumMismatch(GhtreeError):
    """A checksum didn't match the expected contents."""

    def __init__(self, expected: str, got: str, extra: str | None = None) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
            expected: The expected object id.
            got: The object id that was actually returned.
            extra: Optional additional error information.
        """
        self.expected = expected
        self.got = got
        self.extra = extra
        message = f"Checksum mismatch: Expected {expected}, got {got}"
        if extra is not None:
            message += f"; {extra}"
        GhtreeError.__init__(self, message)
