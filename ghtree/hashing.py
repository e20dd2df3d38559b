# hashing.py -- Content addressing of Git objects
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

"""Content addressing of Git objects.

Git names every object after a SHA-1 hash of a short header followed by the
raw object bytes. The remote computes blob ids exactly this way, so hashing
edited content locally tells a real change apart from content that was saved
again with the same bytes.
"""

__all__ = [
    "EMPTY_BLOB_ID",
    "EMPTY_TREE_ID",
    "HEX_LENGTH",
    "hash_blob",
    "hash_object",
    "object_header",
    "valid_hexsha",
]

import binascii
from hashlib import sha1

# GitHub only serves SHA-1 repositories.
HEX_LENGTH = 40

EMPTY_BLOB_ID = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
EMPTY_TREE_ID = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def object_header(type_name: str, length: int) -> bytes:
    """Return the header Git prepends to an object before hashing it.

    Args:
        type_name: Object type ("blob", "tree" or "commit")
        length: Length of the object body in bytes
    """
    return f"{type_name} {length}\0".encode("ascii")


def hash_object(type_name: str, content: bytes) -> str:
    """Compute the id Git gives an object of the given type.

    Returns:
        Lowercase hexadecimal object id
    """
    h = sha1(object_header(type_name, len(content)))
    h.update(content)
    return h.hexdigest()


def hash_blob(content: bytes) -> str:
    """Compute the Git blob id of a byte string.

    This never fails; the empty byte string hashes to ``EMPTY_BLOB_ID``.
    """
    return hash_object("blob", bytes(content))


def valid_hexsha(value: object) -> bool:
    """Check whether a value is a hexadecimal object id.

    Used on ids coming back from the remote before they are stored.
    """
    if not isinstance(value, str) or len(value) != HEX_LENGTH:
        return False
    try:
        binascii.unhexlify(value)
    except ValueError:
        return False
    else:
        return True
