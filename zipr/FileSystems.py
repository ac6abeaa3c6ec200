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
FileSystem abstraction for collections

Provides one interface for opening files of a collection from different sources:
- ArchiveFileSystem: collection appended to the executable
- DirectoryFileSystem: plain directory on disk (development)
- GatewayFileSystem: picks one of the above on first use and sticks with it

Paths are slash-separated and may start with "/", the way HTTP servers pass them.
"""

import errno
import io
import os
import posixpath
import stat as _stat
import threading

from dataclasses import dataclass
from typing import List, Optional, Protocol

from zipr.Kernel import getLogger, ZiprEvent
from zipr.Settings import SettingsGetter
from zipr.Archives import ArchiveCodec, ArchiveReader, EntryInfo
from zipr.Locator import locate
from zipr.Trailer import validateCollectionName

logger = getLogger(__name__)


@dataclass
class Stat:
    """File/directory metadata"""
    name: str
    size: int
    mode: int
    mtime: Optional[float]
    isDir: bool


def _statFromOS(name: str, st: os.stat_result) -> Stat:
    return Stat(
        name=name, size=int(st.st_size), mode=st.st_mode, mtime=float(st.st_mtime), isDir=_stat.S_ISDIR(st.st_mode)
    )


class FileHandle(Protocol):
    """What FileOpener.open() returns"""

    def read(self, size: int = -1) -> bytes:
        ...

    def close(self) -> None:
        ...

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        ...

    def readdir(self, count: int = 0) -> List[Stat]:
        ...

    def stat(self) -> Stat:
        ...


class FileOpener(Protocol):

    def open(self, path: str) -> FileHandle:
        ...


class CollectionFileNotFoundError(FileNotFoundError):
    """Raised when a path is not part of an embedded collection"""
    pass


class ArchiveFile(io.RawIOBase):
    """
    Sequential reader over one archive entry.

    The entry stream is opened on first read. seek() is accepted but does nothing and
    always reports 0: embedded files only support reading from start to end.
    """

    def __init__(self, reader: ArchiveReader, entry: EntryInfo):
        super().__init__()
        self.reader = reader
        self.entry = entry
        self._stream = None

    @property
    def name(self) -> str:
        return self.entry.name

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")

        if self._stream is None:
            self._stream = self.reader.open(self.entry.name)

        data = self._stream.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return 0

    def readdir(self, count: int = 0) -> List[Stat]:
        return []

    def stat(self) -> Stat:
        return Stat(name=self.entry.name, size=self.entry.size, mode=self.entry.mode, mtime=self.entry.mtime, isDir=False)

    def close(self) -> None:
        if self._stream is not None:
            stream = self._stream
            self._stream = None
            stream.close()
        super().close()


class LocalFile(io.FileIO):
    """Disk file with the same stat()/readdir() surface as ArchiveFile"""

    def __init__(self, path: str):
        super().__init__(path, 'r')

    def stat(self) -> Stat:
        return _statFromOS(os.path.basename(self.name), os.fstat(self.fileno()))

    def readdir(self, count: int = 0) -> List[Stat]:
        raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), self.name)


class LocalDirectory:
    """Disk directory handle. readdir() pages through entries in name order; read() fails."""

    def __init__(self, path: str):
        self.path = path
        self.closed = False
        self._stat = _statFromOS(os.path.basename(path.rstrip(os.sep)) or path, os.stat(path))
        self._offset = 0

    def read(self, size: int = -1) -> bytes:
        raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self.path)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if offset == 0 and whence == os.SEEK_SET:
            self._offset = 0
        return 0

    def readdir(self, count: int = 0) -> List[Stat]:
        with os.scandir(self.path) as it:
            entries = sorted(it, key=lambda entry: entry.name)

        if count > 0:
            batch = entries[self._offset:self._offset + count]
        else:
            batch = entries[self._offset:]
        self._offset += len(batch)

        return [_statFromOS(entry.name, entry.stat()) for entry in batch]

    def stat(self) -> Stat:
        return self._stat

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ArchiveFileSystem:
    """Serves files out of an embedded collection"""

    def __init__(self, reader: ArchiveReader):
        self.reader = reader

    def open(self, path: str) -> ArchiveFile:
        name = path[1:] if path.startswith('/') else path

        for entry in self.reader.entries():
            if entry.name == name:
                return ArchiveFile(self.reader, entry)

        raise CollectionFileNotFoundError(errno.ENOENT, 'File not found', path)

    def close(self) -> None:
        self.reader.close()


class DirectoryFileSystem:
    """
    Serves files from a directory on disk.

    Request paths are cleaned as if rooted at "/", so ".." never leaves the root.
    Errors are whatever the OS reports.
    """

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

        logger.debug(f"DirectoryFileSystem initialized: {self.root}")

    def resolve(self, path: str) -> str:
        if os.sep != '/' and os.sep in path:
            raise FileNotFoundError(errno.ENOENT, 'Invalid character in file path', path)

        relPath = posixpath.normpath('/' + path).lstrip('/')
        if not relPath:
            return self.root
        return os.path.join(self.root, *relPath.split('/'))

    def open(self, path: str):
        fullPath = self.resolve(path)
        if os.path.isdir(fullPath):
            return LocalDirectory(fullPath)
        return LocalFile(fullPath)

    def close(self) -> None:
        pass


class GatewayFileSystem:
    """
    Opens files of collection `name`: from the executable when the collection was
    appended to it, otherwise from fallbackDir. The choice is made once, on first use.
    """

    def __init__(
        self, name: str, fallbackDir: str, exePath: Optional[str] = None, codec: Optional[ArchiveCodec] = None
    ):
        self.name = name
        self.fallbackDir = fallbackDir
        self.exePath = exePath
        self.codec = codec

        self._backend = None
        self._lock = threading.Lock()

    @property
    def backend(self):
        if self._backend is None:
            with self._lock:
                if self._backend is None:
                    self._backend = self._selectBackend()
        return self._backend

    @property
    def isEmbedded(self) -> bool:
        return isinstance(self.backend, ArchiveFileSystem)

    def _selectBackend(self):
        exePath = self.exePath or SettingsGetter.getInstance().currentExecutable

        reader = locate(exePath, self.name, codec=self.codec)
        if reader is None:
            backend = DirectoryFileSystem(self.fallbackDir)
            logger.debug(f"Collection {self.name} served from directory {backend.root}")
        else:
            backend = ArchiveFileSystem(reader)
            logger.debug(f"Collection {self.name} served from {exePath}")

        ZiprEvent.collectionBackendCreate.trigger(
            collectionName=self.name, embedded=reader is not None, backend=backend
        )
        return backend

    def open(self, path: str) -> FileHandle:
        return self.backend.open(path)

    def close(self) -> None:
        with self._lock:
            if self._backend is not None:
                self._backend.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def openCollection(
    name: str, fallbackDir: str, exePath: Optional[str] = None, codec: Optional[ArchiveCodec] = None
) -> GatewayFileSystem:
    """
    File opener for collection `name`.

    Args:
        name: Collection name used when the collection was appended
        fallbackDir: Directory to serve when the collection isn't embedded
        exePath: Executable to search (default: SettingsGetter.currentExecutable)
        codec: Archive codec (default: from settings)
    """
    validateCollectionName(name)
    return GatewayFileSystem(name, fallbackDir, exePath=exePath, codec=codec)
