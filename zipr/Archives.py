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
Archive capability used by the trailer writer and locator.

The trailer logic only needs three things from an archive format: write entries to a
forward-only stream, enumerate entries from a seekable stream, and open one entry for
sequential reading. ZipArchiveCodec provides them on top of zipfile; tests swap in
other codecs to check offset bookkeeping without ZIP in the way.
"""

import errno
import io
import os
import shutil
import stat as _stat
import struct
import time
import zipfile

from dataclasses import dataclass
from typing import BinaryIO, List, Protocol, Sequence

from zipr.Kernel import getLogger

logger = getLogger(__name__)

COMPRESSIONS = {
    'store': zipfile.ZIP_STORED,
    'deflate': zipfile.ZIP_DEFLATED,
}

DEFAULT_CHUNK_SIZE = 256 * 1024

# DOS timestamps cover 1980-2107
MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
MAX_DATE_TIME = (2107, 12, 31, 23, 59, 58)

# Extended timestamp extra field (0x5455) keeps the exact second DOS time rounds away
EXTENDED_TIMESTAMP_ID = 0x5455
EXTENDED_TIMESTAMP_MTIME = 0x01


@dataclass(frozen=True)
class EntryInfo:
    """Per-entry metadata preserved at append time"""
    name: str
    size: int
    mode: int
    mtime: float


class ArchiveWriter(Protocol):

    def addEntry(self, info: EntryInfo, source: BinaryIO) -> None:
        ...

    def close(self) -> None:
        ... # Finalize (central directory, index...)


class ArchiveReader(Protocol):

    def entries(self) -> Sequence[EntryInfo]:
        ...

    def open(self, name: str) -> BinaryIO:
        ...

    def close(self) -> None:
        ...


class ArchiveCodec(Protocol):

    def createWriter(self, stream: BinaryIO) -> ArchiveWriter:
        ... # stream is append-only: write() and tell() only

    def createReader(self, stream: BinaryIO) -> ArchiveReader:
        ... # stream is seekable, offset 0 is the first archive byte


class AppendOnlyStream(io.RawIOBase):
    """
    Write-only stream whose positions count from where it was created.

    Seeking is unsupported on purpose: zipfile then streams entries with data
    descriptors instead of rewriting local headers, and all offsets it records
    are relative to the first archive byte.
    """

    def __init__(self, raw: BinaryIO):
        super().__init__()
        self.raw = raw
        self._written = 0

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def write(self, b) -> int:
        n = self.raw.write(b)
        if n is None:
            n = len(b)
        self._written += n
        return n

    def tell(self) -> int:
        return self._written

    def flush(self) -> None:
        if not self.closed:
            self.raw.flush()


class SectionReader(io.RawIOBase):
    """
    Read-only window [start, end) over a seekable stream, re-based so that
    start is offset 0. SEEK_END is relative to end.
    """

    def __init__(self, raw: BinaryIO, start: int, end: int, ownsStream: bool = True):
        super().__init__()
        if start < 0 or end < start:
            raise ValueError(f"Invalid section [{start}, {end})")

        self.raw = raw
        self.start = start
        self.end = end
        self.ownsStream = ownsStream
        self._pos = 0

    @property
    def size(self) -> int:
        return self.end - self.start

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            pos = offset
        elif whence == os.SEEK_CUR:
            pos = self._pos + offset
        elif whence == os.SEEK_END:
            pos = self.size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")

        if pos < 0:
            raise OSError(errno.EINVAL, f"Negative seek position {pos}")

        self._pos = pos
        return pos

    def tell(self) -> int:
        return self._pos

    def readinto(self, b) -> int:
        remaining = self.size - self._pos
        if remaining <= 0:
            return 0

        self.raw.seek(self.start + self._pos)
        data = self.raw.read(min(len(b), remaining))
        n = len(data)
        b[:n] = data
        self._pos += n
        return n

    def close(self) -> None:
        if not self.closed and self.ownsStream:
            self.raw.close()
        super().close()


def toDateTime(mtime: float):
    dateTime = time.localtime(mtime)[:6]
    if dateTime < MIN_DATE_TIME:
        return MIN_DATE_TIME
    if dateTime > MAX_DATE_TIME:
        return MAX_DATE_TIME
    return dateTime


def packExtendedTimestamp(mtime: float) -> bytes:
    seconds = int(mtime)
    if not -2**31 <= seconds < 2**31:
        return b''
    return struct.pack('<HHBi', EXTENDED_TIMESTAMP_ID, 5, EXTENDED_TIMESTAMP_MTIME, seconds)


def unpackExtendedTimestamp(extra: bytes):
    """Return the mtime stored in a 0x5455 extra field, or None"""
    offset = 0
    while offset + 4 <= len(extra):
        headerId, length = struct.unpack_from('<HH', extra, offset)
        data = extra[offset + 4:offset + 4 + length]
        offset += 4 + length

        if headerId != EXTENDED_TIMESTAMP_ID:
            continue
        if len(data) >= 5 and data[0] & EXTENDED_TIMESTAMP_MTIME:
            return float(struct.unpack_from('<i', data, 1)[0])
        return None

    return None


class ZipArchiveWriter:

    def __init__(self, stream: BinaryIO, compression: int = zipfile.ZIP_STORED, chunkSize: int = DEFAULT_CHUNK_SIZE):
        self.compression = compression
        self.chunkSize = chunkSize
        self._zip = zipfile.ZipFile(stream, mode='w', compression=compression, allowZip64=True)

    def addEntry(self, info: EntryInfo, source: BinaryIO) -> None:
        zinfo = zipfile.ZipInfo(info.name, date_time=toDateTime(info.mtime))
        zinfo.external_attr = (info.mode & 0xFFFF) << 16
        zinfo.file_size = info.size
        zinfo.compress_type = self.compression
        zinfo.extra = packExtendedTimestamp(info.mtime)

        with self._zip.open(zinfo, mode='w') as dest:
            shutil.copyfileobj(source, dest, self.chunkSize)

    def close(self) -> None:
        self._zip.close()


class ZipArchiveReader:

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self._zip = zipfile.ZipFile(stream, mode='r')
        self._entries = [self._toEntry(info) for info in self._zip.infolist() if not info.is_dir()]

        logger.debug(f"Zip archive opened: {len(self._entries)} entries")

    @staticmethod
    def _toEntry(info: zipfile.ZipInfo) -> EntryInfo:
        mode = info.external_attr >> 16
        if not mode:
            # No unix permissions recorded (e.g. created on Windows), derive from the DOS read-only bit
            mode = _stat.S_IFREG | (0o444 if info.external_attr & 0x01 else 0o666)

        mtime = unpackExtendedTimestamp(info.extra)
        if mtime is None:
            mtime = time.mktime(info.date_time + (0, 0, -1))
        return EntryInfo(name=info.filename, size=info.file_size, mode=mode, mtime=mtime)

    def entries(self) -> List[EntryInfo]:
        return list(self._entries)

    def open(self, name: str) -> BinaryIO:
        return self._zip.open(name, mode='r')

    def close(self) -> None:
        self._zip.close()
        self.stream.close()


class ZipArchiveCodec:

    def __init__(self, compression: str = 'store', chunkSize: int = DEFAULT_CHUNK_SIZE):
        if compression not in COMPRESSIONS:
            raise ValueError(f"Invalid compression: {compression}")

        self.compression = compression
        self.chunkSize = chunkSize

    def createWriter(self, stream: BinaryIO) -> ZipArchiveWriter:
        return ZipArchiveWriter(stream, compression=COMPRESSIONS[self.compression], chunkSize=self.chunkSize)

    def createReader(self, stream: BinaryIO) -> ZipArchiveReader:
        return ZipArchiveReader(stream)
