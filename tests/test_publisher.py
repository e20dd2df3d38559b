# test_publisher.py -- Tests for publisher.py
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

"""Tests for ghtree.publisher."""

from ghtree.errors import (
    NonFastForwardError,
    PublishError,
    PublishInProgressError,
    RemoteServiceError,
)
from ghtree.publisher import CommitPublisher, PublishState
from ghtree.remote import CommitRef

from . import AsyncTestCase, TestCase
from .utils import FlakyObjectService


class PublishStateTests(TestCase):
    def test_begin(self) -> None:
        publisher = CommitPublisher(FlakyObjectService())
        self.assertIs(PublishState.IDLE, publisher.state)
        publisher.begin()
        self.assertIs(PublishState.BUILDING, publisher.state)
        with self.assertRaises(PublishInProgressError) as cm:
            publisher.begin()
        self.assertIs(PublishState.BUILDING, cm.exception.state)

    def test_fail_and_acknowledge(self) -> None:
        publisher = CommitPublisher(FlakyObjectService())
        publisher.begin()
        error = PublishError("boom")
        publisher.fail(error)
        self.assertIs(PublishState.FAILED, publisher.state)
        self.assertIs(error, publisher.last_error)
        self.assertRaises(PublishInProgressError, publisher.begin)
        self.assertIs(error, publisher.acknowledge())
        self.assertIs(PublishState.IDLE, publisher.state)
        self.assertIsNone(publisher.last_error)

    def test_acknowledge_when_idle(self) -> None:
        publisher = CommitPublisher(FlakyObjectService())
        self.assertIsNone(publisher.acknowledge())
        self.assertIs(PublishState.IDLE, publisher.state)

    def test_str(self) -> None:
        self.assertEqual("committing", str(PublishState.COMMITTING))


class CommitPublisherTests(AsyncTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.service = FlakyObjectService()
        self.root = self.service.seed({"a.md": b"a"})
        self.tree_id = self.service.add_tree([])
        self.parent = CommitRef("main", self.root, self.service.commit_tree(self.root))
        self.publisher = CommitPublisher(self.service)

    async def test_publish(self) -> None:
        head = await self.publisher.publish(self.tree_id, "Empty the site", self.parent)
        self.assertEqual("main", head.branch)
        self.assertEqual(self.tree_id, head.head_tree_id)
        self.assertEqual(head.head_commit_id, self.service.head("main"))
        self.assertEqual([self.root], self.service.commit_parents(head.head_commit_id))
        self.assertEqual("Empty the site", self.service.commit_message(head.head_commit_id))
        self.assertEqual(["create_commit", "update_ref"], self.service.operations())
        self.assertIs(PublishState.IDLE, self.publisher.state)

    async def test_publish_after_begin(self) -> None:
        self.publisher.begin()
        await self.publisher.publish(self.tree_id, "msg", self.parent)
        self.assertIs(PublishState.IDLE, self.publisher.state)

    async def test_non_fast_forward(self) -> None:
        theirs = self.service.seed({"b.md": b"b"})
        with self.assertRaises(NonFastForwardError) as cm:
            await self.publisher.publish(self.tree_id, "msg", self.parent)
        self.assertIsInstance(cm.exception, PublishError)
        self.assertEqual("main", cm.exception.branch)
        self.assertEqual(theirs, self.service.head("main"))
        self.assertIs(PublishState.FAILED, self.publisher.state)
        self.assertIs(cm.exception, self.publisher.last_error)
        # Never retried on its own.
        self.assertEqual(1, self.service.operations().count("update_ref"))

    async def test_missing_branch(self) -> None:
        self.service.delete_ref("main")
        with self.assertRaises(PublishError) as cm:
            await self.publisher.publish(self.tree_id, "msg", self.parent)
        self.assertNotIsInstance(cm.exception, NonFastForwardError)
        self.assertIsInstance(cm.exception.__cause__, RemoteServiceError)
        self.assertIs(PublishState.FAILED, self.publisher.state)

    async def test_create_commit_failure(self) -> None:
        self.service.fail_commit = True
        with self.assertRaises(PublishError) as cm:
            await self.publisher.publish(self.tree_id, "msg", self.parent)
        self.assertIsInstance(cm.exception.__cause__, RemoteServiceError)
        self.assertNotIn("update_ref", self.service.operations())
        self.assertIs(PublishState.FAILED, self.publisher.state)

    async def test_refuses_while_failed(self) -> None:
        self.publisher.fail(PublishError("earlier"))
        with self.assertRaises(PublishInProgressError):
            await self.publisher.publish(self.tree_id, "msg", self.parent)
        self.assertEqual([], self.service.operations())
