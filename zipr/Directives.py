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
Collection directives declared in source comments.

A directive looks like:

    # zipr:static ../web/static -x .map -x /drafts

which asks for the directory ../web/static (relative to the source file, or to the
working directory) to be appended as collection "static", skipping any path that
contains ".map" and any path starting with "drafts".
"""

import os
import re
import tokenize

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from zipr.Kernel import getLogger
from zipr.Trailer import ConfigurationError

logger = getLogger(__name__)

DIRECTIVE_PATTERN = re.compile(r'zipr:(\S+)\s+(\S+)((?:\s+-x\s*\S+)*)')
EXCLUDE_PATTERN = re.compile(r'-x\s*(\S+)')

SOURCE_SUFFIX = '.py'


@dataclass
class Directive:
    name: str
    directory: str
    excludes: List[str] = field(default_factory=list)
    sourceFile: Optional[str] = None


def isExcluded(relPath: str, excludes: Iterable[str]) -> bool:
    """
    A leading "/" anchors a pattern at the collection root; any pattern also matches
    as a plain substring. Both rules apply independently.
    """
    for pattern in excludes:
        if not pattern:
            continue

        if pattern.startswith('/') and relPath.startswith(pattern[1:]):
            return True

        if pattern in relPath:
            return True

    return False


def parseDirective(comment: str, sourceFile: Optional[str] = None) -> Optional[Directive]:
    match = DIRECTIVE_PATTERN.search(comment)
    if not match:
        return None

    name, directory, rest = match.groups()
    excludes = EXCLUDE_PATTERN.findall(rest)
    return Directive(name=name, directory=directory, excludes=excludes, sourceFile=sourceFile)


def resolveDirectory(directive: Directive, cwd: Optional[str] = None) -> str:
    """Directory next to the declaring source file wins over one under the working directory."""
    cwd = cwd or os.getcwd()

    candidates = []
    if directive.sourceFile:
        candidates.append(os.path.join(os.path.dirname(os.path.abspath(directive.sourceFile)), directive.directory))
    candidates.append(os.path.join(cwd, directive.directory))

    for candidate in candidates:
        if os.path.isdir(candidate):
            return os.path.abspath(candidate)

    raise ConfigurationError(
        'Neither the directory ' + ' nor '.join(f'"{os.path.normpath(c)}"' for c in candidates) + ' does exist'
    )


def scanFile(path: str) -> Iterator[Directive]:
    with tokenize.open(path) as f:
        for token in tokenize.generate_tokens(f.readline):
            if token.type != tokenize.COMMENT:
                continue

            directive = parseDirective(token.string, sourceFile=path)
            if directive:
                logger.debug(f"Found directive {directive.name} -> {directive.directory} in {path}")
                yield directive


def scanTree(sourceDir: str) -> Iterator[Directive]:
    for dirPath, dirNames, fileNames in os.walk(sourceDir):
        dirNames.sort()
        for fileName in sorted(fileNames):
            if not fileName.endswith(SOURCE_SUFFIX):
                continue

            path = os.path.join(dirPath, fileName)
            try:
                yield from scanFile(path)
            except (OSError, SyntaxError, UnicodeDecodeError, tokenize.TokenError) as e:
                logger.warning(f"Skipping {path}: {e}")
