# test_workspace.py -- Tests for workspace.py
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

"""Tests for ghtree.workspace."""

import asyncio

from ghtree.errors import (
    EntryNotFoundError,
    NonFastForwardError,
    ParentNotFoundError,
    PendingChangesError,
    PublishError,
    PublishInProgressError,
    RemoteNotFound,
    ValidationError,
)
from ghtree.hashing import hash_blob
from ghtree.publisher import PublishState
from ghtree.tree import TREE
from ghtree.workspace import Workspace

from . import AsyncTestCase
from .utils import FlakyObjectService, make_workspace


class LineEndingObjectService(FlakyObjectService):
    """Stores text with LF line endings, whatever was sent."""

    async def create_blob(self, content: bytes) -> str:
        return await super().create_blob(content.replace(b"\r\n", b"\n"))


class LoadTests(AsyncTestCase):
    async def test_load(self) -> None:
        service = FlakyObjectService()
        commit_id = service.seed({"posts/a.md": b"a", "index.md": b"home"})
        workspace = Workspace(service)
        head = await workspace.load()
        self.assertEqual(commit_id, head.head_commit_id)
        self.assertEqual(service.commit_tree(commit_id), head.head_tree_id)
        self.assertEqual(["list_commits", "get_tree"], service.operations())
        self.assertEqual(("get_tree", head.head_tree_id), service.calls[-1])
        self.assertEqual(
            ["index.md", "posts", "posts/a.md"],
            [entry.path for entry in workspace.tree.walk()],
        )
        self.assertFalse(workspace.has_changes())

    async def test_load_missing_branch(self) -> None:
        service = FlakyObjectService()
        service.seed({"a.md": b"a"})
        with self.assertRaises(RemoteNotFound):
            await Workspace(service, "gh-pages").load()

    async def test_read_file_is_lazy(self) -> None:
        service, workspace = await make_workspace({"a.md": b"content"})
        self.assertEqual([], service.operations())
        self.assertEqual(b"content", await workspace.read_file("a.md"))
        self.assertEqual(b"content", await workspace.read_file("/a.md"))
        self.assertEqual(["get_blob"], service.operations())

    async def test_read_missing(self) -> None:
        _, workspace = await make_workspace({"posts/a.md": b"a"})
        with self.assertRaises(EntryNotFoundError):
            await workspace.read_file("b.md")
        with self.assertRaises(ValidationError):
            await workspace.read_file("posts")

    async def test_read_new_file(self) -> None:
        service, workspace = await make_workspace({"a.md": b"a"})
        workspace.create_file("", "b.md")
        self.assertEqual(b"", await workspace.read_file("b.md"))
        self.assertEqual([], service.operations())


    async def test_delete_while_reading(self) -> None:
        service, workspace = await make_workspace({"a.md": b"content"})
        service.blob_gate = asyncio.Event()
        read = asyncio.ensure_future(workspace.read_file("a.md"))
        await asyncio.sleep(0)
        workspace.delete("a.md")
        workspace.create_file("", "a.md")
        service.blob_gate.set()
        self.assertEqual(b"content", await read)
        self.assertEqual([], workspace.changed_paths())
        self.assertEqual(b"", await workspace.read_file("a.md"))

    async def test_rename_while_reading(self) -> None:
        service, workspace = await make_workspace({"a.md": b"content"})
        service.blob_gate = asyncio.Event()
        read = asyncio.ensure_future(workspace.read_file("a.md"))
        await asyncio.sleep(0)
        workspace.rename("a.md", "b.md")
        service.blob_gate.set()
        self.assertEqual(b"content", await read)
        self.assertEqual(b"content", workspace.records.get("b.md").content)
        self.assertEqual([], workspace.changed_paths())


class EditTests(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.service, self.workspace = await make_workspace(
            {"a.md": b"original", "posts/x.md": b"x", "posts/y.md": b"y"}
        )

    def test_write_unread_file(self) -> None:
        self.workspace.write_file("a.md", b"original")
        self.assertEqual([], self.workspace.changed_paths())
        self.workspace.write_file("a.md", b"edited")
        self.assertEqual(["a.md"], self.workspace.changed_paths())
        self.assertTrue(self.workspace.is_changed("a.md"))
        self.assertEqual([], self.service.operations())

    def test_write_materializes_folders(self) -> None:
        record = self.workspace.write_file("posts/2024/05/new.md", b"new")
        self.assertTrue(record.changed)
        folder = self.workspace.tree.find_by_path("posts/2024")
        assert folder is not None
        self.assertEqual(TREE, folder.type)

    def test_write_through_file(self) -> None:
        self.assertRaises(ValidationError, self.workspace.write_file, "a.md/b.md", b"")

    def test_write_folder(self) -> None:
        self.assertRaises(ValidationError, self.workspace.write_file, "posts", b"")

    def test_create(self) -> None:
        self.workspace.create_folder("posts", "drafts")
        self.workspace.create_file("posts/drafts", "idea.md")
        self.assertFalse(self.workspace.has_changes())
        self.assertRaises(ParentNotFoundError, self.workspace.create_file, "nope", "a.md")
        self.assertRaises(ValidationError, self.workspace.create_folder, "", "posts")

    def test_rename_moves_records(self) -> None:
        self.workspace.write_file("posts/x.md", b"edited x")
        self.workspace.rename("posts", "articles")
        self.assertEqual(["articles/x.md"], self.workspace.changed_paths())
        self.assertIn("articles/y.md", self.workspace.records)
        self.assertNotIn("posts/y.md", self.workspace.records)
        self.assertIsNotNone(self.workspace.tree.find_by_path("articles/y.md"))

    def test_rename_missing(self) -> None:
        self.assertRaises(EntryNotFoundError, self.workspace.rename, "nope", "b")

    def test_delete_cascades(self) -> None:
        self.workspace.write_file("posts/x.md", b"edited x")
        self.assertEqual(
            ["posts", "posts/x.md", "posts/y.md"], self.workspace.delete("posts")
        )
        self.assertEqual([], self.workspace.changed_paths())
        self.assertNotIn("posts/y.md", self.workspace.records)
        self.assertEqual(["posts/x.md", "posts/y.md"], self.workspace.deleted_paths())
        self.assertTrue(self.workspace.has_changes())

    def test_clear_folder(self) -> None:
        self.workspace.clear_folder("posts")
        posts = self.workspace.tree.find_by_path("posts")
        assert posts is not None
        self.assertEqual([], posts.children)
        self.assertEqual([], self.workspace.folder_contents("posts"))

    def test_clear_root(self) -> None:
        self.workspace.clear_folder("")
        self.assertEqual([], self.workspace.tree.roots)

    def test_rename_back_is_no_change(self) -> None:
        self.workspace.rename("a.md", "b.md")
        self.assertTrue(self.workspace.has_changes())
        self.workspace.rename("b.md", "a.md")
        self.assertFalse(self.workspace.has_changes())


class PublishTests(AsyncTestCase):
    async def test_edit_and_publish(self) -> None:
        service, workspace = await make_workspace({"a.md": b"old"})
        workspace.write_file("a.md", b"new")
        self.assertEqual(["a.md"], workspace.changed_paths())
        head = await workspace.publish("Update a")
        self.assertEqual([], workspace.changed_paths())
        self.assertEqual(hash_blob(b"new"), workspace.records.get("a.md").remote_hash)
        self.assertEqual(head, workspace.head)
        self.assertEqual(head.head_commit_id, service.head("main"))
        self.assertEqual({"a.md": b"new"}, service.read_tree("main"))
        self.assertEqual(
            ["create_blob", "create_tree", "create_commit", "update_ref"],
            service.operations(),
        )
        self.assertFalse(workspace.has_changes())

    async def test_nothing_to_publish(self) -> None:
        service, workspace = await make_workspace({"a.md": b"old"})
        head = workspace.head
        self.assertEqual(head, await workspace.publish("Nothing"))
        self.assertEqual([], service.operations())

    async def test_publish_before_load(self) -> None:
        with self.assertRaises(PublishError):
            await Workspace(FlakyObjectService()).publish("msg")

    async def test_publish_deletion(self) -> None:
        service, workspace = await make_workspace({"a.md": b"a", "b.md": b"b"})
        workspace.delete("b.md")
        await workspace.publish("Remove b")
        self.assertEqual({"a.md": b"a"}, service.read_tree("main"))
        self.assertNotIn("create_blob", service.operations())
        self.assertFalse(workspace.has_changes())

    async def test_publish_folder_rename(self) -> None:
        service, workspace = await make_workspace(
            {"posts/a.md": b"a", "posts/b.md": b"b"}
        )
        workspace.rename("posts", "articles")
        folder = workspace.tree.find_by_path("articles")
        assert folder is not None
        self.assertEqual(
            ["articles/a.md", "articles/b.md"],
            [child.path for child in folder.children or []],
        )
        self.assertEqual(b"a", await workspace.read_file("articles/a.md"))
        self.assertIsNotNone(workspace.records.get("articles/b.md"))
        await workspace.publish("Rename posts")
        self.assertEqual(
            {"articles/a.md": b"a", "articles/b.md": b"b"}, service.read_tree("main")
        )
        self.assertNotIn("create_blob", service.operations())

    async def test_new_file_in_new_folder(self) -> None:
        service, workspace = await make_workspace({"index.md": b"home"})
        workspace.write_file("posts/hello.md", b"# Hello\n")
        workspace.create_folder("", "empty")
        await workspace.publish("Add hello")
        self.assertEqual(
            {"index.md": b"home", "posts/hello.md": b"# Hello\n"},
            service.read_tree("main"),
        )
        entry = workspace.tree.find_by_path("posts/hello.md")
        assert entry is not None
        self.assertEqual(hash_blob(b"# Hello\n"), entry.remote_id)

    async def test_successive_publishes(self) -> None:
        service, workspace = await make_workspace({"a.md": b"1"})
        workspace.write_file("a.md", b"2")
        first = await workspace.publish("Two")
        workspace.write_file("a.md", b"3")
        second = await workspace.publish("Three")
        self.assertEqual([first.head_commit_id], service.commit_parents(second.head_commit_id))
        self.assertEqual({"a.md": b"3"}, service.read_tree("main"))

    async def test_remote_changes_blob_id(self) -> None:
        service = LineEndingObjectService()
        service.seed({"a.md": b"a\n"})
        workspace = Workspace(service)
        await workspace.load()
        workspace.write_file("a.md", b"edited\r\n")
        with self.assertLogs("ghtree", level="WARNING"):
            head = await workspace.publish("Edit")
        self.assertEqual({"a.md": b"edited\n"}, service.read_tree("main"))
        self.assertEqual([], workspace.changed_paths())
        self.assertFalse(workspace.has_changes())
        service.calls.clear()
        self.assertEqual(head, await workspace.publish("Again"))
        self.assertEqual([], service.operations())

    async def test_non_fast_forward_keeps_edits(self) -> None:
        service, workspace = await make_workspace({"a.md": b"old"})
        workspace.write_file("a.md", b"mine")
        theirs = service.seed({"a.md": b"theirs"})
        with self.assertRaises(NonFastForwardError):
            await workspace.publish("Mine")
        self.assertEqual(["a.md"], workspace.changed_paths())
        self.assertEqual(hash_blob(b"mine"), workspace.records.get("a.md").pending_hash)
        self.assertEqual(theirs, service.head("main"))
        self.assertIs(PublishState.FAILED, workspace.publisher.state)

        with self.assertRaises(PublishInProgressError):
            await workspace.publish("Mine")
        self.assertIsInstance(workspace.acknowledge_failure(), NonFastForwardError)

        # The blob made it the first time; a retry does not upload it again.
        service.calls.clear()
        with self.assertRaises(NonFastForwardError):
            await workspace.publish("Mine")
        self.assertNotIn("create_blob", service.operations())

    async def test_failed_upload_keeps_edits(self) -> None:
        service, workspace = await make_workspace({"a.md": b"a", "b.md": b"b"})
        workspace.write_file("a.md", b"new a")
        workspace.write_file("b.md", b"new b")
        service.fail_blobs.add(b"new b")
        with self.assertRaises(PublishError):
            await workspace.publish("Both")
        self.assertEqual(["a.md", "b.md"], workspace.changed_paths())
        self.assertIs(PublishState.FAILED, workspace.publisher.state)
        self.assertEqual({"a.md": b"a", "b.md": b"b"}, service.read_tree("main"))

        workspace.acknowledge_failure()
        service.fail_blobs.clear()
        service.calls.clear()
        await workspace.publish("Both")
        self.assertEqual([("create_blob", b"new b")], service.calls[:1])
        self.assertEqual({"a.md": b"new a", "b.md": b"new b"}, service.read_tree("main"))
        self.assertEqual([], workspace.changed_paths())

    async def test_revert_after_failed_upload(self) -> None:
        service, workspace = await make_workspace({"a.md": b"a"})
        workspace.write_file("a.md", b"new a")
        service.fail_tree = True
        with self.assertRaises(PublishError):
            await workspace.publish("Edit")
        workspace.acknowledge_failure()
        workspace.write_file("a.md", b"a")
        entry = workspace.tree.find_by_path("a.md")
        assert entry is not None
        self.assertEqual(hash_blob(b"a"), entry.remote_id)
        self.assertFalse(workspace.has_changes())


class CheckoutTests(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.service, self.workspace = await make_workspace({"a.md": b"main"})
        self.service.seed({"a.md": b"draft"}, branch="drafts")

    async def test_checkout(self) -> None:
        head = await self.workspace.checkout("drafts")
        self.assertEqual("drafts", head.branch)
        self.assertEqual("drafts", self.workspace.branch)
        self.assertEqual(b"draft", await self.workspace.read_file("a.md"))

    async def test_pending_changes(self) -> None:
        self.workspace.write_file("a.md", b"edited")
        with self.assertRaises(PendingChangesError) as cm:
            await self.workspace.checkout("drafts")
        self.assertEqual(["a.md"], cm.exception.paths)
        self.assertEqual("main", self.workspace.branch)
        await self.workspace.checkout("drafts", discard=True)
        self.assertEqual([], self.workspace.changed_paths())

    async def test_pending_deletion(self) -> None:
        self.workspace.delete("a.md")
        with self.assertRaises(PendingChangesError):
            await self.workspace.checkout("drafts")

    async def test_missing_branch_keeps_session(self) -> None:
        with self.assertRaises(RemoteNotFound):
            await self.workspace.checkout("nope")
        self.assertEqual("main", self.workspace.branch)
        self.assertIsNotNone(self.workspace.tree.find_by_path("a.md"))

    async def test_branches(self) -> None:
        self.assertEqual(["drafts", "main"], await self.workspace.branches())
