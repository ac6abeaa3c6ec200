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

import os

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from zipr.Kernel import getLogger, ZiprEvent
from zipr.Settings import SettingsGetter
from zipr.Archives import AppendOnlyStream, ArchiveCodec, EntryInfo
from zipr.Directives import isExcluded
from zipr.Trailer import ConfigurationError, TrailerError, encodeName, hasTrailer, packTrailer

logger = getLogger(__name__)


class AlreadyProcessedError(ConfigurationError):
    """Raised when the executable already ends with a trailer"""
    pass


class AppendError(RuntimeError):
    """
    Raised when appending a collection fails half-way. Bytes already written are not
    rolled back, so the executable must be rebuilt before appending again.
    """

    def __init__(self, message, exePath=None, collectionName=None):
        super().__init__(message)
        self.exePath = exePath
        self.collectionName = collectionName


@dataclass
class AppendedCollection:
    """Where a collection landed: [nameStart, archiveStart) name, [archiveStart, end) archive."""
    name: str
    nameStart: int
    archiveStart: int
    end: int
    entries: List[str] = field(default_factory=list)


def detectBinaryFormat(filePath: str) -> str:
    """Detect binary format from file signature, for logging only"""
    with open(filePath, "rb") as f:
        signature = f.read(4)

    if signature.startswith(b"\x7fELF"):
        return "ELF"
    elif signature[:2] == b"MZ":
        return "PE"
    elif signature in (b"\xcf\xfa\xed\xfe", b"\xce\xfa\xed\xfe", b"\xca\xfe\xba\xbe"):
        return "Mach-O"
    else:
        return "UNKNOWN"


def toRelativePath(path: str, root: str) -> str:
    relPath = os.path.relpath(path, root)
    return relPath.replace(os.sep, '/').lstrip('/')


def walkFiles(directory: str) -> Iterator[str]:
    """Regular files under directory, depth-first in lexical order. Symlinked directories are not followed."""
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from walkFiles(entry.path)
        elif entry.is_file():
            yield entry.path
        else:
            logger.debug(f"Skipping non-regular file {entry.path}")


def collectFiles(sourceDir: str, excludes: Iterable[str] = ()) -> Iterator[Tuple[str, str]]:
    """Yields (absolute path, archive path) for every file to embed."""
    excludes = list(excludes)
    for path in walkFiles(sourceDir):
        relPath = toRelativePath(path, sourceDir)
        if isExcluded(relPath, excludes):
            logger.debug(f"Excluded {relPath}")
            continue
        yield path, relPath


class TrailerWriter:
    """Appends named collections onto an executable"""

    def __init__(self, codec: Optional[ArchiveCodec] = None, verbose: bool = False):
        self.codec = codec or SettingsGetter.getInstance().getArchiveCodec()
        self.verbose = verbose

    def log(self, message):
        if self.verbose:
            logger.info(message)
        else:
            logger.debug(message)

    def append(self, exePath: str, collectionName: str, sourceDir: str, excludes: Iterable[str] = ()):
        """
        Append one collection block to exePath.

        Returns:
            AppendedCollection describing where the block was written

        Raises:
            ConfigurationError: invalid name, missing executable or source directory (nothing written)
            TrailerError: executable too large for the trailer offset (nothing written)
            AppendError: I/O or encoding failure after writing started
        """
        key = encodeName(collectionName)

        if not os.path.isfile(exePath):
            raise ConfigurationError(f'Executable file "{exePath}" does not exist')

        sourceDir = os.path.abspath(sourceDir)
        if not os.path.isdir(sourceDir):
            raise ConfigurationError(f'{sourceDir} does not exist')

        excludes = [e for e in (excludes or []) if e]

        self.log(f"Format: {detectBinaryFormat(exePath)}")
        self.log(f"Collection: {collectionName} <- {sourceDir}")
        if excludes:
            self.log(f"Excludes: {', '.join(excludes)}")

        try:
            with open(exePath, 'ab') as f:
                nameStart = f.tell()
                trailer = packTrailer(nameStart)

                f.write(key)
                archiveStart = f.tell()

                entries = self._writeArchive(f, collectionName, sourceDir, excludes)

                end = f.tell()
                f.write(trailer)

        except (TrailerError, ConfigurationError):
            raise
        except Exception as e:
            logger.error(f"Appending {collectionName} to {exePath} failed: {e}")
            raise AppendError(
                f"{e} (the executable must be rebuilt before appending again)",
                exePath=exePath,
                collectionName=collectionName
            ) from e

        self.log(f"Entries: {len(entries)}")
        self.log(f"Block: [{nameStart}, {end + len(trailer)}) (+{end + len(trailer) - nameStart} bytes)")

        return AppendedCollection(
            name=collectionName, nameStart=nameStart, archiveStart=archiveStart, end=end, entries=entries
        )

    def _writeArchive(self, f, collectionName: str, sourceDir: str, excludes: List[str]) -> List[str]:
        stream = AppendOnlyStream(f)
        archive = self.codec.createWriter(stream)
        entries = []

        try:
            for path, relPath in collectFiles(sourceDir, excludes):
                st = os.stat(path)
                info = EntryInfo(name=relPath, size=st.st_size, mode=st.st_mode, mtime=st.st_mtime)

                ZiprEvent.collectionEntryCreate.trigger(collectionName=collectionName, path=relPath, size=st.st_size)

                with open(path, 'rb') as source:
                    archive.addEntry(info, source)
                entries.append(relPath)
        except Exception:
            # Finalize whatever was written; no trailer follows it
            try:
                archive.close()
            except Exception as closeError:
                logger.debug(f"Closing archive after failure: {closeError}")
            raise

        archive.close()
        stream.flush()
        return entries


def appendCollections(
    exePath: str,
    collections: Sequence[Tuple[str, str, Iterable[str]]],
    writer: Optional[TrailerWriter] = None
) -> List[AppendedCollection]:
    """
    Append every (name, directory, excludes) to exePath, refusing executables that were
    already processed. The guard runs once for the whole batch.
    """
    if not os.path.isfile(exePath):
        raise ConfigurationError(f'Executable file "{exePath}" does not exist')

    if hasTrailer(exePath):
        raise AlreadyProcessedError(f'Executable file "{exePath}" already has zipped resource data appended')

    writer = writer or TrailerWriter()
    return [writer.append(exePath, name, directory, excludes) for name, directory, excludes in collections]
