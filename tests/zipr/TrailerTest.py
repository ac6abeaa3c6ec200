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

import io
import os
import struct
import tempfile
import unittest

from zipr.Trailer import (
    TRAILER_SIZE, ConfigurationError, TrailerBlock, TrailerChain, TrailerError, encodeName, hasTrailer, packTrailer,
    unpackTrailer
)


def buildBlock(data, name, payload):
    """Append one block to data the way the writer does, returns the new bytes"""
    nameStart = len(data)
    return data + encodeName(name) + payload + packTrailer(nameStart)


class TrailerFormatTest(unittest.TestCase):

    def testPackTrailer(self):
        self.assertEqual(packTrailer(1234), b'ZIPR\x00\x00\x04\xd2')
        self.assertEqual(len(packTrailer(0)), TRAILER_SIZE)
        self.assertEqual(unpackTrailer(packTrailer(2**31 - 1)), (b'ZIPR', 2**31 - 1))

    def testPackTrailerOutOfRange(self):
        with self.assertRaises(TrailerError):
            packTrailer(2**31)
        with self.assertRaises(TrailerError):
            packTrailer(-1)

    def testEncodeName(self):
        self.assertEqual(encodeName('web'), b'web\x00')
        self.assertEqual(encodeName('données'), 'données'.encode('utf-8') + b'\x00')

    def testEncodeNameRejectsInvalidNames(self):
        for name in ('', 'two words', 'tab\tname', 'nul\x00name', None):
            with self.subTest(name=name):
                with self.assertRaises(ConfigurationError):
                    encodeName(name)

    def testConfigurationErrorIsValueError(self):
        self.assertTrue(issubclass(ConfigurationError, ValueError))


class TrailerChainTest(unittest.TestCase):

    def setUp(self):
        self.executable = b'\x7fELF' + b'x' * 100

    def testPlainExecutableHasNoBlocks(self):
        chain = TrailerChain(io.BytesIO(self.executable))
        self.assertIsNone(chain.next())
        self.assertEqual(list(TrailerChain(io.BytesIO(self.executable))), [])

    def testEmptyStream(self):
        self.assertEqual(list(TrailerChain(io.BytesIO(b''))), [])

    def testWalksNewestFirst(self):
        data = buildBlock(self.executable, 'one', b'first payload')
        firstEnd = len(data) - TRAILER_SIZE
        data = buildBlock(data, 'two', b'second')
        secondEnd = len(data) - TRAILER_SIZE

        blocks = list(TrailerChain(io.BytesIO(data)))
        print(f"Blocks: {blocks}")

        self.assertEqual(
            blocks, [
                TrailerBlock(nameStart=firstEnd + TRAILER_SIZE, end=secondEnd),
                TrailerBlock(nameStart=len(self.executable), end=firstEnd),
            ]
        )

    def testBlocksAreContiguous(self):
        data = self.executable
        for i in range(5):
            data = buildBlock(data, f'c{i}', os.urandom(37 * (i + 1)))

        blocks = list(reversed(list(TrailerChain(io.BytesIO(data)))))
        self.assertEqual(len(blocks), 5)
        self.assertEqual(blocks[0].nameStart, len(self.executable))
        for previous, block in zip(blocks, blocks[1:]):
            self.assertEqual(previous.trailerEnd, block.nameStart)
        self.assertEqual(blocks[-1].trailerEnd, len(data))

    def testReadKeyAndName(self):
        data = buildBlock(self.executable, 'static', b'payload')
        chain = TrailerChain(io.BytesIO(data))
        block = chain.next()

        self.assertEqual(chain.readKey(block, 7), b'static\x00')
        self.assertEqual(chain.readName(block), 'static')
        self.assertEqual(block.payloadStart(7), len(self.executable) + 7)

    def testReadNameWithoutTerminator(self):
        data = self.executable + b'noterminator' + packTrailer(len(self.executable))
        chain = TrailerChain(io.BytesIO(data))
        self.assertIsNone(chain.readName(chain.next()))

    def testForwardOffsetStopsWalk(self):
        # Offset pointing at or past its own trailer would loop forever
        data = self.executable + struct.pack('>4si', b'ZIPR', len(self.executable))
        self.assertEqual(list(TrailerChain(io.BytesIO(data))), [])

        data = self.executable + struct.pack('>4si', b'ZIPR', 10**6)
        self.assertEqual(list(TrailerChain(io.BytesIO(data))), [])

    def testNegativeOffsetStopsWalk(self):
        data = self.executable + struct.pack('>4si', b'ZIPR', -5)
        self.assertEqual(list(TrailerChain(io.BytesIO(data))), [])

    def testCorruptOlderBlockKeepsNewerOnes(self):
        data = self.executable + b'junk' + struct.pack('>4si', b'ZIPR', 10**6)
        data = buildBlock(data, 'good', b'payload')

        blocks = list(TrailerChain(io.BytesIO(data)))
        self.assertEqual(len(blocks), 1)

    def testExhaustedChainStaysExhausted(self):
        chain = TrailerChain(io.BytesIO(buildBlock(self.executable, 'a', b'')))
        self.assertIsNotNone(chain.next())
        self.assertIsNone(chain.next())
        self.assertIsNone(chain.next())


class HasTrailerTest(unittest.TestCase):

    def setUp(self):
        self._tempDirObj = tempfile.TemporaryDirectory()
        self.tempDir = self._tempDirObj.name

    def tearDown(self):
        self._tempDirObj.cleanup()

    def writeFile(self, data):
        path = os.path.join(self.tempDir, 'exe')
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def testPlainFile(self):
        self.assertFalse(hasTrailer(self.writeFile(b'\x7fELF' + b'\x00' * 64)))

    def testAfterAppend(self):
        self.assertTrue(hasTrailer(self.writeFile(buildBlock(b'\x7fELF' * 10, 'web', b'data'))))

    def testEndsWithTag(self):
        self.assertTrue(hasTrailer(self.writeFile(b'\x7fELF' * 10 + b'ZIPR')))

    def testShortFiles(self):
        self.assertFalse(hasTrailer(self.writeFile(b'')))
        self.assertFalse(hasTrailer(self.writeFile(b'ZIP')))
        self.assertTrue(hasTrailer(self.writeFile(b'ZIPR')))

    def testMissingFile(self):
        self.assertFalse(hasTrailer(os.path.join(self.tempDir, 'missing')))


if __name__ == '__main__':
    unittest.main()
