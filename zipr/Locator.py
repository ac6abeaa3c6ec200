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
Finds collections appended by the trailer writer.

A missing collection is the normal case during development, so nothing here raises
for it: lookups return None and callers fall back to the on-disk directory.
"""

import zipfile

from typing import BinaryIO, List, Optional

from zipr.Kernel import getLogger
from zipr.Settings import SettingsGetter
from zipr.Archives import ArchiveCodec, ArchiveReader, SectionReader
from zipr.Trailer import TrailerBlock, TrailerChain, encodeName

logger = getLogger(__name__)


def findBlock(stream: BinaryIO, collectionName: str) -> Optional[TrailerBlock]:
    """Newest block whose name field equals collectionName, or None."""
    key = encodeName(collectionName)

    chain = TrailerChain(stream)
    for block in chain:
        if block.end - block.nameStart >= len(key) and chain.readKey(block, len(key)) == key:
            return block

    return None


def locate(exePath: str, collectionName: str, codec: Optional[ArchiveCodec] = None) -> Optional[ArchiveReader]:
    """
    Open collectionName from exePath's trailer chain.

    Returns:
        ArchiveReader addressing the block's archive from offset 0, or None when the
        collection is absent or unreadable. The reader owns the open file.
    """
    codec = codec or SettingsGetter.getInstance().getArchiveCodec()
    key = encodeName(collectionName)

    try:
        f = open(exePath, 'rb')
    except OSError as e:
        logger.debug(f"Unable to open {exePath}: {e}")
        return None

    try:
        block = findBlock(f, collectionName)
        if block is None:
            logger.debug(f"Collection {collectionName} not found in {exePath}")
            f.close()
            return None

        section = SectionReader(f, block.payloadStart(len(key)), block.end)
        reader = codec.createReader(section)

        logger.debug(f"Collection {collectionName} found in {exePath} at [{section.start}, {section.end})")
        return reader

    except (OSError, ValueError, EOFError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        logger.debug(f"Unable to read collection {collectionName} from {exePath}: {e}")
        f.close()
        return None


def listCollections(exePath: str) -> List[str]:
    """Names of all appended blocks, newest first."""
    with open(exePath, 'rb') as f:
        chain = TrailerChain(f)
        names = []
        for block in chain:
            name = chain.readName(block)
            if name is not None:
                names.append(name)
        return names
