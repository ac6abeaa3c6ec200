#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# Zipr - Embedded resource collections for executables
# Copyright (C) 2025-2026 Zipr contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Trailer format for collections appended to an executable.

Every appended collection is one block:

    [ name bytes ][0x00][ archive bytes ]["ZIPR"][ int32 BE nameStart ]

nameStart is the offset of the block's own name field, i.e. the file length before
the block was written. Since each block starts at the previous end-of-file, the 8
bytes in front of nameStart are the previous block's trailer, or executable bytes
that don't spell "ZIPR" which ends the chain.
"""

import os
import struct

from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

from zipr.Kernel import getLogger

logger = getLogger(__name__)

TRAILER_TAG = b'ZIPR'
TRAILER_FORMAT = '>4si' # tag + big-endian signed int32
TRAILER_SIZE = struct.calcsize(TRAILER_FORMAT) # 8
NAME_TERMINATOR = b'\x00'

MAX_NAME_START = 2**31 - 1
MAX_NAME_LENGTH = 4096


class TrailerError(Exception):
    """Raised when a trailer cannot be encoded"""
    pass


class ConfigurationError(ValueError):
    """Invalid input detected before anything is written: bad names, missing paths..."""
    pass


def validateCollectionName(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ConfigurationError("Collection name must be a non-empty string")

    if '\x00' in name:
        raise ConfigurationError(f"Collection name {name!r} must not contain NUL")

    if any(c.isspace() for c in name):
        raise ConfigurationError(f"Collection name {name!r} must not contain whitespace")


def encodeName(name: str) -> bytes:
    """Name field as stored on disk, which is also the lookup key."""
    validateCollectionName(name)
    return name.encode('utf-8') + NAME_TERMINATOR


def packTrailer(nameStart: int) -> bytes:
    if not 0 <= nameStart <= MAX_NAME_START:
        raise TrailerError(f"Block offset {nameStart} does not fit in a signed 32-bit trailer")
    return struct.pack(TRAILER_FORMAT, TRAILER_TAG, nameStart)


def unpackTrailer(data: bytes) -> Tuple[bytes, int]:
    return struct.unpack(TRAILER_FORMAT, data)


@dataclass(frozen=True)
class TrailerBlock:
    """One appended block. end is the offset of the block's own trailer."""
    nameStart: int
    end: int

    def payloadStart(self, keyLength: int) -> int:
        return self.nameStart + keyLength

    @property
    def trailerEnd(self) -> int:
        return self.end + TRAILER_SIZE


class TrailerChain:
    """
    Walks appended blocks from end-of-file backwards, newest first.

    Works on any seekable binary stream, so the walk can be exercised with io.BytesIO.
    Stops on the first 8 bytes that aren't a trailer, or on an offset that doesn't
    point strictly backwards (which would otherwise loop forever on a corrupt file).
    """

    def __init__(self, stream: BinaryIO, size: Optional[int] = None):
        self.stream = stream
        if size is None:
            size = stream.seek(0, os.SEEK_END)
        self.size = size
        self._cursor = size - TRAILER_SIZE
        self._exhausted = False

    def __iter__(self):
        return self

    def __next__(self) -> TrailerBlock:
        block = self.next()
        if block is None:
            raise StopIteration
        return block

    def next(self) -> Optional[TrailerBlock]:
        if self._exhausted:
            return None

        block = self._readBlock(self._cursor)
        if block is None:
            self._exhausted = True
            return None

        self._cursor = block.nameStart - TRAILER_SIZE
        return block

    def _readBlock(self, position: int) -> Optional[TrailerBlock]:
        if position < 0:
            return None

        self.stream.seek(position)
        data = self.stream.read(TRAILER_SIZE)
        if len(data) < TRAILER_SIZE:
            return None

        tag, nameStart = unpackTrailer(data)
        if tag != TRAILER_TAG:
            return None

        if nameStart < 0 or nameStart >= position:
            logger.debug(f"Corrupt trailer at {position}: nameStart={nameStart}")
            return None

        return TrailerBlock(nameStart=nameStart, end=position)

    def readKey(self, block: TrailerBlock, length: int) -> bytes:
        self.stream.seek(block.nameStart)
        return self.stream.read(length)

    def readName(self, block: TrailerBlock) -> Optional[str]:
        """Decode a block's name, or None if no terminator is found in the name field."""
        self.stream.seek(block.nameStart)
        data = self.stream.read(min(MAX_NAME_LENGTH + 1, block.end - block.nameStart))

        name, sep, _ = data.partition(NAME_TERMINATOR)
        if not sep:
            return None
        return name.decode('utf-8', errors='replace')


def hasTrailer(path: str) -> bool:
    """
    Whether an executable was already processed: the tag sits where the last append
    puts it (8 bytes before EOF), or the file simply ends with the tag.
    """
    try:
        with open(path, 'rb') as f:
            size = f.seek(0, os.SEEK_END)
            if size < len(TRAILER_TAG):
                return False

            f.seek(size - len(TRAILER_TAG))
            if f.read(len(TRAILER_TAG)) == TRAILER_TAG:
                return True

            if size >= TRAILER_SIZE:
                f.seek(size - TRAILER_SIZE)
                return f.read(len(TRAILER_TAG)) == TRAILER_TAG

            return False
    except OSError as e:
        logger.debug(f"Unable to inspect {path} for trailer: {e}")
        return False
