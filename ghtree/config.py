# config.py -- Reading ghtree configuration files
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

"""Reading ghtree configuration files.

Settings live in files using git-config syntax::

    [github]
        owner = example
        repo = website
        branch = main
        token = "ghp_..."

Files are read from ``~/.ghtreeconfig`` and ``$XDG_CONFIG_HOME/ghtree/config``
(the former wins), or from the file named by ``GHTREE_CONFIG``. A handful of
environment variables override whatever the files say.
"""

__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_BRANCH",
    "ConfigDict",
    "ConfigFile",
    "Settings",
    "StackedConfig",
    "get_xdg_config_home_path",
]

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import IO

from .log_utils import getLogger

logger = getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"

Section = tuple[str, ...]

_ESCAPE_TABLE = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "t": "\t",
    "b": "\b",
}
_COMMENT_CHARS = "#;"
_WHITESPACE_CHARS = " \t"


def _parse_string(value: str) -> str:
    value = value.strip()
    ret: list[str] = []
    whitespace: list[str] = []
    in_quotes = False
    i = 0
    while i < len(value):
        c = value[i]
        if c == "\\":
            i += 1
            if i >= len(value):
                ret.extend(whitespace)
                whitespace = []
                ret.append("\\")
            else:
                ret.extend(whitespace)
                whitespace = []
                try:
                    ret.append(_ESCAPE_TABLE[value[i]])
                except KeyError:
                    # Unknown escape: keep the backslash, reprocess the character.
                    ret.append("\\")
                    i -= 1
        elif c == '"':
            in_quotes = not in_quotes
        elif c in _COMMENT_CHARS and not in_quotes:
            break
        elif c in _WHITESPACE_CHARS and not in_quotes:
            whitespace.append(c)
        else:
            ret.extend(whitespace)
            whitespace = []
            ret.append(c)
        i += 1
    if in_quotes:
        raise ValueError("missing end quote")
    return "".join(ret)


def _strip_comments(line: str) -> str:
    string_open = False
    for i, character in enumerate(line):
        if character == '"':
            string_open = not string_open
        elif not string_open and character in _COMMENT_CHARS:
            return line[:i]
    return line


def _check_variable_name(name: str) -> bool:
    return bool(name) and all(c.isalnum() or c == "-" for c in name)


def _check_section_name(name: str) -> bool:
    return bool(name) and all(c.isalnum() or c in "-." for c in name)


def _is_line_continuation(value: str) -> bool:
    content = value.rstrip("\r\n")
    if content == value or not content.endswith("\\"):
        return False
    backslashes = len(content) - len(content.rstrip("\\"))
    return backslashes % 2 == 1


def _parse_section_header_line(line: str) -> tuple[Section, str]:
    line = _strip_comments(line).rstrip()
    in_quotes = False
    escaped = False
    for i, c in enumerate(line):
        if escaped:
            escaped = False
            continue
        if c == '"':
            in_quotes = not in_quotes
        elif c == "\\":
            escaped = True
        elif c == "]" and not in_quotes:
            last = i
            break
    else:
        raise ValueError("expected trailing ]")
    pts = line[1:last].split(" ", 1)
    rest = line[last + 1 :]
    if not _check_section_name(pts[0]):
        raise ValueError(f"invalid section name {pts[0]!r}")
    if len(pts) == 2:
        subsection = pts[1].strip()
        if subsection[:1] != '"' or subsection[-1:] != '"' or len(subsection) < 2:
            raise ValueError(f"Invalid subsection {pts[1]!r}")
        return (pts[0].lower(), subsection[1:-1]), rest
    name, dot, subsection = pts[0].partition(".")
    if dot:
        return (name.lower(), subsection), rest
    return (name.lower(),), rest


class ConfigDict:
    """Configuration values held in memory, keyed by section and name.

    Section and variable names are case-insensitive; subsection names are
    not. When a name is set more than once the last value wins.
    """

    def __init__(self, values: Mapping[Section, Mapping[str, str]] | None = None) -> None:
        self._values: dict[Section, dict[str, str]] = {}
        for section, names in (values or {}).items():
            for name, value in names.items():
                self.set(section, name, value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._values!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, self.__class__) and other._values == self._values

    @staticmethod
    def _normalize_section(section: str | Section) -> Section:
        if not isinstance(section, tuple):
            section = (section,)
        return (section[0].lower(), *section[1:])

    def sections(self) -> Iterator[Section]:
        return iter(list(self._values))

    def has_section(self, section: str | Section) -> bool:
        return self._normalize_section(section) in self._values

    def get(self, section: str | Section, name: str) -> str:
        """Retrieve the contents of a configuration setting.

        Args:
          section: Section name, or tuple with section and subsection name
          name: Variable name

        Returns:
          Contents of the setting

        Raises:
          KeyError: if the value is not set
        """
        return self._values[self._normalize_section(section)][name.lower()]

    def get_boolean(
        self, section: str | Section, name: str, default: bool | None = None
    ) -> bool | None:
        """Retrieve a configuration setting as boolean.

        Raises:
          ValueError: if the value is set but is not a boolean
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        if value.lower() in ("true", "yes", "on", "1"):
            return True
        elif value.lower() in ("false", "no", "off", "0", ""):
            return False
        raise ValueError(f"not a valid boolean string: {value!r}")

    def set(self, section: str | Section, name: str, value: str | bool) -> None:
        if isinstance(value, bool):
            value = "true" if value else "false"
        section = self._normalize_section(section)
        self._values.setdefault(section, {})[name.lower()] = value

    def items(self, section: str | Section) -> Iterator[tuple[str, str]]:
        return iter(list(self._values.get(self._normalize_section(section), {}).items()))


class ConfigFile(ConfigDict):
    """A ghtree configuration file."""

    def __init__(self, values: Mapping[Section, Mapping[str, str]] | None = None) -> None:
        super().__init__(values)
        self.path: str | None = None

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: if the file is not valid configuration syntax
        """
        ret = cls()
        section: Section | None = None
        setting: str | None = None
        continuation = ""
        for lineno, raw in enumerate(f.readlines()):
            if lineno == 0 and raw.startswith(b"\xef\xbb\xbf"):
                raw = raw[3:]
            line = raw.decode("utf-8")
            if setting is not None:
                if _is_line_continuation(line):
                    continuation += line.rstrip("\r\n")[:-1]
                    continue
                ret.set(section, setting, _parse_string(continuation + line))  # type: ignore[arg-type]
                setting = None
                continue
            line = line.lstrip()
            if line[:1] == "[":
                section, line = _parse_section_header_line(line)
                ret._values.setdefault(section, {})
            if _strip_comments(line).strip() == "":
                continue
            if section is None:
                raise ValueError(f"setting {line!r} without section")
            name, eq, value = line.partition("=")
            name = name.strip()
            if not eq:
                name = _strip_comments(name).strip()
                value = "true"
            if not _check_variable_name(name):
                raise ValueError(f"invalid variable name {name!r}")
            if _is_line_continuation(value):
                setting = name
                continuation = value.rstrip("\r\n")[:-1]
            else:
                ret.set(section, name, _parse_string(value))
        if setting is not None:
            assert section is not None
            ret.set(section, setting, _parse_string(continuation))
        return ret

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        with open(path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = os.fspath(path)
        return ret


def get_xdg_config_home_path(*path_segments: str) -> str:
    """Get a path in the XDG config home directory.

    Args:
      *path_segments: Path segments to join to the XDG config home

    Returns:
      Full path in XDG config home directory
    """
    xdg_config_home = os.environ.get(
        "XDG_CONFIG_HOME",
        os.path.expanduser("~/.config/"),
    )
    return os.path.join(xdg_config_home, *path_segments)


class StackedConfig:
    """Configuration which reads from multiple config files."""

    def __init__(self, backends: list[ConfigDict]) -> None:
        """Initialize a StackedConfig.

        Args:
          backends: List of config files to read from (in order of precedence)
        """
        self.backends = backends

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.backends!r}>"

    @classmethod
    def default(cls) -> "StackedConfig":
        return cls(cls.default_backends())

    @classmethod
    def default_backends(cls) -> list[ConfigDict]:
        """Load the user's configuration files that exist."""
        try:
            paths = [os.environ["GHTREE_CONFIG"]]
        except KeyError:
            paths = [
                os.path.expanduser("~/.ghtreeconfig"),
                get_xdg_config_home_path("ghtree", "config"),
            ]
        logger.debug("Loading config from paths: %s", paths)
        backends: list[ConfigDict] = []
        for path in paths:
            try:
                cf = ConfigFile.from_path(path)
            except FileNotFoundError:
                logger.debug("Config file not found: %s", path)
                continue
            backends.append(cf)
        return backends

    def get(self, section: str | Section, name: str) -> str:
        for backend in self.backends:
            try:
                return backend.get(section, name)
            except KeyError:
                pass
        raise KeyError(name)

    def get_boolean(
        self, section: str | Section, name: str, default: bool | None = None
    ) -> bool | None:
        for backend in self.backends:
            value = backend.get_boolean(section, name)
            if value is not None:
                return value
        return default


@dataclass
class Settings:
    """Everything needed to talk to one GitHub repository."""

    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    token: str | None = None
    url: str = DEFAULT_API_URL
    timeout: float | None = None
    transport: str = "urllib3"
    verify_ssl: bool = True

    @classmethod
    def from_config(
        cls,
        config: ConfigDict | StackedConfig,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Combine configuration file values with environment overrides.

        Args:
          config: Configuration to read the ``[github]`` section from
          environ: Environment to consult; defaults to ``os.environ``

        Raises:
          ValueError: if the repository owner or name is not configured, or
            a value has the wrong format
        """
        if environ is None:
            environ = os.environ

        def lookup(name: str, variable: str | None = None) -> str | None:
            if variable is not None and environ.get(variable):
                return environ[variable]
            try:
                return config.get("github", name)
            except KeyError:
                return None

        owner = lookup("owner", "GHTREE_OWNER")
        repo = lookup("repo", "GHTREE_REPO")
        if not owner or not repo:
            raise ValueError(
                "repository not configured; set github.owner and github.repo "
                "or GHTREE_OWNER and GHTREE_REPO"
            )
        timeout = lookup("timeout")
        try:
            timeout_value = float(timeout) if timeout else None
        except ValueError:
            raise ValueError(f"github.timeout is not a number: {timeout!r}")
        verify_ssl = config.get_boolean("http", "sslVerify", True)
        return cls(
            owner=owner,
            repo=repo,
            branch=lookup("branch", "GHTREE_BRANCH") or DEFAULT_BRANCH,
            token=lookup("token", "GITHUB_TOKEN"),
            url=(lookup("url") or DEFAULT_API_URL).rstrip("/"),
            timeout=timeout_value,
            transport=lookup("transport") or "urllib3",
            verify_ssl=True if verify_ssl is None else verify_ssl,
        )
