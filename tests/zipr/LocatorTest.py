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
import unittest

from zipr.Locator import findBlock, listCollections, locate
from zipr.Trailer import ConfigurationError
from zipr.Writer import TrailerWriter

from tests.ZiprTestBase import ZiprTestBase, getFileHash


class LocatorTest(ZiprTestBase):

    def setUp(self):
        super().setUp()
        self.webFiles = {'index.html': b'<h1>web</h1>', 'js/app.js': os.urandom(70000)}
        self.docsFiles = {'index.html': b'<h1>docs</h1>', 'guide/intro.md': b'# Intro'}
        self.webDir = self.createTree('web', self.webFiles)
        self.docsDir = self.createTree('docs', self.docsFiles)

    def append(self, name, sourceDir, codec=None):
        return TrailerWriter(codec=codec or self.zipCodec).append(self.exePath, name, sourceDir)

    def testRoundTrip(self):
        self.append('web', self.webDir)

        reader = locate(self.exePath, 'web', codec=self.zipCodec)
        self.assertIsNotNone(reader)
        try:
            self.assertEqual(self.readAll(reader), self.webFiles)
        finally:
            reader.close()

    def testMultipleCollections(self):
        first = self.append('web', self.webDir)
        second = self.append('docs', self.docsDir)

        self.assertEqual(first.end + 8, second.nameStart)
        self.assertEqual(listCollections(self.exePath), ['docs', 'web'])

        for name, files in (('web', self.webFiles), ('docs', self.docsFiles)):
            with self.subTest(name=name):
                reader = locate(self.exePath, name, codec=self.zipCodec)
                try:
                    self.assertEqual(self.readAll(reader), files)
                finally:
                    reader.close()

    def testLastWriteWins(self):
        self.append('web', self.webDir)
        self.append('web', self.docsDir)

        reader = locate(self.exePath, 'web', codec=self.zipCodec)
        try:
            self.assertEqual(self.readAll(reader), self.docsFiles)
        finally:
            reader.close()

    def testNamePrefixIsNotAMatch(self):
        self.append('web', self.webDir)
        self.append('webdocs', self.docsDir)

        reader = locate(self.exePath, 'web', codec=self.zipCodec)
        try:
            self.assertEqual(self.readAll(reader), self.webFiles)
        finally:
            reader.close()

        self.assertIsNone(locate(self.exePath, 'we', codec=self.zipCodec))

    def testMissingCollectionLeavesFileUntouched(self):
        self.append('web', self.webDir)
        digest = getFileHash(self.exePath)

        self.assertIsNone(locate(self.exePath, 'missing', codec=self.zipCodec))
        self.assertEqual(getFileHash(self.exePath), digest)

    def testPlainExecutable(self):
        self.assertIsNone(locate(self.exePath, 'web', codec=self.zipCodec))
        self.assertEqual(listCollections(self.exePath), [])

    def testMissingExecutable(self):
        self.assertIsNone(locate(os.path.join(self.tempDir, 'missing.bin'), 'web', codec=self.zipCodec))

    def testInvalidName(self):
        with self.assertRaises(ConfigurationError):
            locate(self.exePath, 'has space', codec=self.zipCodec)

    def testUnreadableArchive(self):
        # A block whose payload isn't a ZIP archive is reported as absent
        self.append('web', self.webDir, codec=self.fakeCodec)
        self.assertIsNone(locate(self.exePath, 'web', codec=self.zipCodec))

    def testFakeCodecOffsets(self):
        # The fake codec records absolute-looking offsets from tell(); reading them back
        # only works if both sides agree that the archive starts at 0
        self.append('web', self.webDir, codec=self.fakeCodec)
        self.append('docs', self.docsDir, codec=self.fakeCodec)

        for name, files in (('web', self.webFiles), ('docs', self.docsFiles)):
            with self.subTest(name=name):
                reader = locate(self.exePath, name, codec=self.fakeCodec)
                try:
                    self.assertEqual(self.readAll(reader), files)
                finally:
                    reader.close()

    def testFindBlock(self):
        result = self.append('web', self.webDir)

        with open(self.exePath, 'rb') as f:
            block = findBlock(f, 'web')
            self.assertEqual(block.nameStart, result.nameStart)
            self.assertEqual(block.end, result.end)
            self.assertEqual(block.payloadStart(4), result.archiveStart)

            self.assertIsNone(findBlock(f, 'docs'))


if __name__ == '__main__':
    unittest.main()
