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

import bitmath

from zipr.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


# flush is required if this runs inside a frozen executable.
def flushPrint(text, file=None):
    stream = file or sys.stdout
    try:
        print(text, file=stream, flush=True)
    except UnicodeEncodeError as e:
        logger.debug(f"UnicodeEncodeError during print, using fallback encoding: {e}")

        buf = getattr(stream, "buffer", None)
        if buf is not None:
            buf.write(text.encode("utf-8", errors="replace"))
            buf.write(b"\n")
            buf.flush()
            return

        encoding = getattr(stream, "encoding", None) or "ascii"
        print(text.encode(encoding, errors='replace').decode(encoding), file=stream, flush=True)


def formatSize(size, decimal=None, plural=None):
    """
    Human readable size with SI prefixes: "512 Bytes", "3K", "1.6G".
    Byte counts keep their unit word, larger sizes only the prefix letter.
    """
    if decimal is None:
        decimal = 0 if size < ONE_GB else 1 if size < ONE_TB else 2

    best = bitmath.Byte(size).best_prefix(system=bitmath.SI)
    if type(best) is bitmath.Byte:
        if plural is None:
            plural = size != 1
        return f"{best.value:.{decimal}f} {'Bytes' if plural else 'Byte'}"

    return f"{best.value:.{decimal}f}{best.unit.rstrip('B').upper()}"


def getEnv(envVar, default):
    """Environment value converted to the type of default, or default when unset or malformed"""
    value = os.getenv(envVar)
    if value is None or default is None:
        return default if value is None else value

    try:
        if isinstance(default, bool):
            return value == 'True'
        return type(default)(value)
    except (ValueError, TypeError):
        return default
