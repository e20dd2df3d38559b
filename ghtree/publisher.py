# publisher.py -- Create commits and advance branches
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

"""Create commits and advance branches.

A publish cycle moves through a small state machine::

    IDLE -> BUILDING -> COMMITTING -> IDLE
                 \\           \\
                  +-> FAILED <-+

Once FAILED, the publisher stays there until the error is acknowledged, so a
second cycle can never start on top of a half-finished one.
"""

__all__ = [
    "CommitPublisher",
    "PublishState",
]

import enum

from .errors import NonFastForwardError, PublishError, PublishInProgressError
from .log_utils import getLogger
from .remote import CommitRef, RemoteObjectService

logger = getLogger(__name__)


class PublishState(enum.Enum):
    """Stage of the current publish cycle."""

    IDLE = "idle"
    BUILDING = "building"
    COMMITTING = "committing"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class CommitPublisher:
    """Turns a tree id into a new branch tip."""

    def __init__(self, service: RemoteObjectService) -> None:
        self.service = service
        self.state = PublishState.IDLE
        self.last_error: BaseException | None = None

    def begin(self) -> None:
        """Start a publish cycle.

        Raises:
          PublishInProgressError: if a cycle is running or an earlier failure
            has not been acknowledged
        """
        if self.state is not PublishState.IDLE:
            raise PublishInProgressError(self.state)
        self.state = PublishState.BUILDING

    def fail(self, error: BaseException) -> None:
        """Record that the current cycle failed."""
        logger.info("publish failed: %s", error)
        self.last_error = error
        self.state = PublishState.FAILED

    def acknowledge(self) -> BaseException | None:
        """Clear a failure so that the next cycle may start.

        Returns:
          The error that was acknowledged, if any
        """
        error = self.last_error
        if self.state is PublishState.FAILED:
            self.state = PublishState.IDLE
            self.last_error = None
        return error

    async def publish(self, tree_id: str, message: str, parent: CommitRef) -> CommitRef:
        """Commit tree_id on top of parent and move the branch to it.

        May be called directly from IDLE or at the end of a cycle started
        with :meth:`begin`.

        Raises:
          NonFastForwardError: if the branch moved since parent was read
          PublishError: if creating the commit or updating the ref failed
          PublishInProgressError: if another cycle is committing or failed
        """
        if self.state is PublishState.IDLE:
            self.begin()
        elif self.state is not PublishState.BUILDING:
            raise PublishInProgressError(self.state)
        self.state = PublishState.COMMITTING
        try:
            try:
                commit_id = await self.service.create_commit(
                    tree_id, parent.head_commit_id, message
                )
            except Exception as e:
                raise PublishError("creating commit failed") from e
            logger.debug("created commit %s for tree %s", commit_id, tree_id)
            try:
                updated = await self.service.update_ref(parent.branch, commit_id)
            except Exception as e:
                raise PublishError(f"updating {parent.branch} failed") from e
            if not updated:
                raise NonFastForwardError(parent.branch, commit_id)
        except BaseException as e:
            self.fail(e)
            raise
        self.state = PublishState.IDLE
        logger.info("published %s as %s", parent.branch, commit_id)
        return CommitRef(parent.branch, commit_id, tree_id)
