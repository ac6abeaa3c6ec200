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
import sys

from enum import Enum

from zipr.Kernel import Singleton, getLogger
from zipr.Utils import getEnv
from zipr.Archives import ZipArchiveCodec, COMPRESSIONS

DEFAULT_COMPRESSION = 'store'
COMPRESSION = getEnv('ZIPR_COMPRESSION', DEFAULT_COMPRESSION)

# Copy chunk size (256 KiB) - used when streaming source files into archives and HTTP bodies
COPY_CHUNK_SIZE = getEnv('ZIPR_COPY_CHUNK_SIZE', 256 * 1024)

# Overrides the executable that openCollection() inspects, mostly for development
EXECUTABLE_OVERRIDE_ENV = 'ZIPR_EXECUTABLE'

logger = getLogger(__name__)


class ExecutionMode(Enum):
    PURE_PYTHON = 1
    EXECUTABLE = 3


def detectExecutionMode():
    # PyInstaller / cx_Freeze / Nuitka all set sys.frozen
    return ExecutionMode.EXECUTABLE if getattr(sys, 'frozen', False) else ExecutionMode.PURE_PYTHON


# Singleton
class SettingsGetter(Singleton):

    def initialize(self, exeMode: ExecutionMode = None, exePath=None, compression=None, chunkSize=None):
        """Initialize the SettingsGetter with execution mode and executable location."""
        self._exeMode = exeMode or detectExecutionMode()
        self._exePath = exePath
        self._compression = compression or COMPRESSION
        self._chunkSize = chunkSize or COPY_CHUNK_SIZE

        if self._compression not in COMPRESSIONS:
            logger.warning(f"Unknown compression '{self._compression}', using {DEFAULT_COMPRESSION}")
            self._compression = DEFAULT_COMPRESSION

    @property
    def exeMode(self) -> ExecutionMode:
        return self._exeMode

    @property
    def compression(self):
        return self._compression

    @property
    def chunkSize(self):
        return self._chunkSize

    def isRunOnExecutable(self) -> bool:
        return self._exeMode == ExecutionMode.EXECUTABLE

    def isRunOnDevelopment(self) -> bool:
        return self._exeMode == ExecutionMode.PURE_PYTHON

    @property
    def currentExecutable(self):
        """
        The file whose trailer chain holds this process's collections.

        Priority: explicit exePath > ZIPR_EXECUTABLE > frozen executable > sys.argv[0].
        """
        if self._exePath:
            return os.path.abspath(self._exePath)

        override = os.getenv(EXECUTABLE_OVERRIDE_ENV)
        if override:
            return os.path.abspath(override)

        if self.isRunOnExecutable():
            return sys.executable

        return os.path.abspath(sys.argv[0]) if sys.argv and sys.argv[0] else sys.executable

    def getArchiveCodec(self):
        return ZipArchiveCodec(compression=self._compression, chunkSize=self._chunkSize)
