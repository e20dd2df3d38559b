# cli.py -- Command line interface to ghtree
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

"""Simple command-line interface to ghtree.

Every command that talks to GitHub loads the configured branch first, so a
single invocation reads or publishes against the current branch tip.
"""

__all__ = [
    "Command",
    "RemoteCommand",
    "commands",
    "main",
    "signal_int",
    "signal_quit",
]

import argparse
import asyncio
import logging
import os
import signal
import sys
import types
from collections.abc import Sequence
from typing import ClassVar

from .config import StackedConfig, Settings
from .errors import GhtreeError
from .github import get_service
from .hashing import hash_blob
from .log_utils import default_logging_config, get_trace_target, getLogger
from .tree import BLOB, COMMIT, TREE
from .workspace import Workspace

logger = getLogger(__name__)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting."""
    sys.exit(1)


def signal_quit(signal: int, frame: types.FrameType | None) -> None:
    """Handle quit signal by entering debugger."""
    import pdb

    pdb.set_trace()


def _write_line(line: str) -> None:
    sys.stdout.write(line + "\n")


class Command:
    """A ghtree subcommand."""

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_hash_object(Command):
    """Compute the blob id of local files."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="ghtree hash-object")
        parser.add_argument("files", nargs="+", help="Files to hash")
        parsed_args = parser.parse_args(args)
        for path in parsed_args.files:
            with open(path, "rb") as f:
                _write_line(hash_blob(f.read()))
        return 0


class RemoteCommand(Command):
    """A subcommand that works on the configured GitHub branch.

    Subclasses add their own arguments in :meth:`add_arguments` and do their
    work in :meth:`run_workspace`.
    """

    publishes: ClassVar[bool] = False

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        pass

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        raise NotImplementedError(self.run_workspace)

    def run(self, args: Sequence[str]) -> int:
        name = type(self).__name__[len("cmd_") :].replace("_", "-")
        parser = argparse.ArgumentParser(prog=f"ghtree {name}")
        parser.add_argument("--branch", "-b", help="Branch to work on")
        parser.add_argument(
            "--repo", help="Repository as OWNER/NAME, instead of the configured one"
        )
        if self.publishes:
            parser.add_argument(
                "-m", "--message", required=True, help="Commit message"
            )
        self.add_arguments(parser)
        parsed_args = parser.parse_args(args)

        try:
            config = StackedConfig.default()
        except ValueError as e:
            logger.error("%s", e)
            return 1
        environ = dict(os.environ)
        if parsed_args.repo:
            owner, sep, repo = parsed_args.repo.partition("/")
            if not sep or not owner or not repo:
                parser.error(f"invalid repository {parsed_args.repo!r}")
            environ["GHTREE_OWNER"] = owner
            environ["GHTREE_REPO"] = repo
        if parsed_args.branch:
            environ["GHTREE_BRANCH"] = parsed_args.branch
        try:
            settings = Settings.from_config(config, environ)
        except ValueError as e:
            logger.error("%s", e)
            return 1
        return asyncio.run(self._run(settings, config, parsed_args))

    async def _run(
        self, settings: Settings, config: StackedConfig, args: argparse.Namespace
    ) -> int:
        try:
            service = get_service(settings, config)
        except ValueError as e:
            logger.error("%s", e)
            return 1
        try:
            async with service:
                workspace = Workspace(service, settings.branch)
                await workspace.load()
                return await self.run_workspace(workspace, args)
        except (GhtreeError, OSError) as e:
            logger.error("%s", e)
            if e.__cause__ is not None:
                logger.error("caused by: %s", e.__cause__)
            return 1


class cmd_ls_tree(RemoteCommand):
    """List the files and folders of the branch."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-r",
            "--recursive",
            action="store_true",
            help="Recursively list tree contents.",
        )
        parser.add_argument(
            "--name-only", action="store_true", help="Only display name."
        )
        parser.add_argument("path", nargs="?", default="", help="Folder to list")

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        entries = workspace.folder_contents(args.path)
        todo = list(reversed(entries))
        while todo:
            entry = todo.pop()
            if args.name_only:
                _write_line(entry.path)
            else:
                _write_line(f"{entry.mode} {entry.type} {entry.remote_id}\t{entry.path}")
            if args.recursive and entry.children:
                todo.extend(reversed(entry.children))
        return 0


class cmd_cat(RemoteCommand):
    """Print the content of a file."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("path", help="Path of the file in the repository")

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        content = await workspace.read_file(args.path)
        sys.stdout.flush()
        sys.stdout.buffer.write(content)
        sys.stdout.buffer.flush()
        return 0


class cmd_status(RemoteCommand):
    """Show the tip of the branch."""

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        assert workspace.head is not None
        counts = {TREE: 0, BLOB: 0, COMMIT: 0}
        for entry in workspace.tree.walk():
            counts[entry.type] += 1
        _write_line(f"On branch {workspace.head.branch}")
        _write_line(f"commit {workspace.head.head_commit_id}")
        _write_line(f"tree {workspace.head.head_tree_id}")
        _write_line(f"{counts[BLOB]} files in {counts[TREE]} folders")
        if counts[COMMIT]:
            _write_line(f"{counts[COMMIT]} submodules")
        return 0


class cmd_branches(RemoteCommand):
    """List the branches of the repository."""

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        current = workspace.branch
        for branch in await workspace.branches():
            _write_line(("* " if branch == current else "  ") + branch)
        return 0


class PublishingCommand(RemoteCommand):
    """A subcommand that edits the branch and publishes one commit."""

    publishes = True

    def edit(self, workspace: Workspace, args: argparse.Namespace) -> None:
        raise NotImplementedError(self.edit)

    async def run_workspace(self, workspace: Workspace, args: argparse.Namespace) -> int:
        self.edit(workspace, args)
        if not workspace.has_changes():
            logger.info("nothing to publish")
            return 0
        head = await workspace.publish(args.message)
        _write_line(f"[{head.branch} {head.head_commit_id[:7]}] {args.message}")
        return 0


class cmd_put(PublishingCommand):
    """Upload a local file to a path in the repository."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("path", help="Path of the file in the repository")
        parser.add_argument("file", help="Local file to upload")

    def edit(self, workspace: Workspace, args: argparse.Namespace) -> None:
        with open(args.file, "rb") as f:
            workspace.write_file(args.path, f.read())


class cmd_rm(PublishingCommand):
    """Delete a file or folder."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("path", help="File or folder to delete")

    def edit(self, workspace: Workspace, args: argparse.Namespace) -> None:
        workspace.delete(args.path)


class cmd_mv(PublishingCommand):
    """Rename a file or folder."""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("path", help="File or folder to rename")
        parser.add_argument("new_name", help="New name, without any folders")

    def edit(self, workspace: Workspace, args: argparse.Namespace) -> None:
        workspace.rename(args.path, args.new_name)


class cmd_help(Command):
    """Show help for ghtree commands."""

    def run(self, args: Sequence[str]) -> int:
        parser = argparse.ArgumentParser(prog="ghtree help")
        parser.add_argument("command", nargs="?")
        parsed_args = parser.parse_args(args)
        if parsed_args.command:
            try:
                cmd_kls = commands[parsed_args.command]
            except KeyError:
                logger.error("No such subcommand: %s", parsed_args.command)
                return 1
            return cmd_kls().run(["--help"]) or 0
        _write_line("The ghtree command line tool.")
        _write_line("")
        _write_line("Available commands:")
        for name in sorted(commands):
            _write_line(f"  {name:<12} {commands[name].__doc__}")
        return 0


commands: dict[str, type[Command]] = {
    "branches": cmd_branches,
    "cat": cmd_cat,
    "hash-object": cmd_hash_object,
    "help": cmd_help,
    "ls-tree": cmd_ls_tree,
    "mv": cmd_mv,
    "put": cmd_put,
    "rm": cmd_rm,
    "status": cmd_status,
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the ghtree CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        return commands["help"]().run([]) or 1

    try:
        trace = get_trace_target(StackedConfig.default())
    except ValueError:
        # Broken configuration files are reported by the commands reading them.
        trace = get_trace_target()
    default_logging_config(trace)

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logging.fatal("No such subcommand: %s", cmd)
        return 1
    return cmd_kls().run(argv[1:])


def _main() -> None:
    if "GHTREE_PDB" in os.environ and getattr(signal, "SIGQUIT", None):
        signal.signal(signal.SIGQUIT, signal_quit)  # type: ignore[attr-defined,unused-ignore]
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
