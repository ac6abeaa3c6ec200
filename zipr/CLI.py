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

import argparse
import json
import os
import sys
import logging
import logging.config

from zipr.Kernel import PUBLIC_VERSION, getLogger, ZiprEvent, configureGlobalLogLevel, LOG_LEVEL_MAPPING
from zipr.Utils import flushPrint, formatSize, getEnv
from zipr.Directives import resolveDirectory, scanTree
from zipr.Locator import listCollections
from zipr.Trailer import ConfigurationError, TrailerError, hasTrailer
from zipr.Writer import AppendError, TrailerWriter

logger = getLogger(__name__)


class CLIError(Exception):
    """Fatal CLI condition; the message is printed as "ERROR: <message>"."""
    pass


def printError(message):
    flushPrint(f'ERROR: {message}', file=sys.stderr)


def configureLogging(logLevel):
    """Configure logging from --log-level or ZIPR_LOGGING_LEVEL

    Both can be a level name (DEBUG, INFO, WARNING, ERROR) or a path to a
    logging.config.dictConfig JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('ZIPR_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()
    return logLevel


def getSourceDir(srcDir=None, cwd=None, toolPath=None):
    """
    Root of the source tree to scan for directives.

    Without --src, the first existing of <cwd>/src, <toolDir>/src and <toolDir>/../src,
    where toolDir is the directory of the running zipr program.
    """
    if srcDir:
        if os.path.isdir(srcDir):
            return os.path.abspath(srcDir)
        raise CLIError(f'{srcDir} does not exist')

    cwd = cwd or os.getcwd()
    toolDir = os.path.dirname(os.path.abspath(toolPath or sys.argv[0]))

    for baseDir in (cwd, toolDir, os.path.join(toolDir, '..')):
        candidate = os.path.join(baseDir, 'src')
        if os.path.isdir(candidate):
            return os.path.abspath(candidate)

    raise CLIError('Could not find src directory')


def createArgumentParser():
    parser = argparse.ArgumentParser(
        prog='zipr',
        description='Append resource collections declared in "# zipr:<name> <dir>" comments to an executable',
    )
    parser.add_argument('executable', nargs='?', help='Executable file to append collections to')
    parser.add_argument('--src', default=None, help='Root source directory')
    parser.add_argument(
        '--log-level',
        default=None,
        help='Logging level (DEBUG, INFO, WARNING, ERROR) or path to a logging config JSON file'
    )
    parser.add_argument(
        '--list', action='store_true', help='List the collections already appended to the executable and exit'
    )
    parser.add_argument('--version', action='version', version=f'zipr {PUBLIC_VERSION}')
    return parser


def printEntry(collectionName=None, path=None, **kwargs):
    flushPrint(f'- {path}')


def processList(exePath):
    for name in listCollections(exePath):
        flushPrint(name)
    return 0


def processCollections(exePath, sourceDir, writer=None):
    """Append every collection declared under sourceDir, in scan order."""
    writer = writer or TrailerWriter()

    ZiprEvent.collectionEntryCreate.subscribe(printEntry)
    try:
        for directive in scanTree(sourceDir):
            try:
                dataDir = resolveDirectory(directive)
            except ConfigurationError as e:
                raise CLIError(str(e)) from e

            flushPrint(f'Collection "{directive.name}":')

            try:
                appended = writer.append(exePath, directive.name, dataDir, directive.excludes)
            except (AppendError, TrailerError, ConfigurationError) as e:
                raise CLIError(f'Could not append zip data: {e}') from e

            logger.info(
                f"Appended {directive.name}: {len(appended.entries)} files, "
                f"{formatSize(appended.end - appended.archiveStart)}"
            )
            flushPrint('')
    finally:
        ZiprEvent.collectionEntryCreate.unsubscribe(printEntry)

    return 0


def run(argv=None):
    parser = createArgumentParser()
    args = parser.parse_args(argv)

    configureLogging(args.log_level)

    exePath = args.executable
    if not exePath:
        parser.print_usage()
        return 1

    try:
        if not os.path.isfile(exePath):
            raise CLIError(f'Executable file "{exePath}" does not exist')

        if args.list:
            return processList(exePath)

        if hasTrailer(exePath):
            raise CLIError(f'Executable file "{exePath}" already has zipped resource data appended')

        sourceDir = getSourceDir(args.src)
        logger.debug(f"Scanning {sourceDir} for collection directives")
        return processCollections(exePath, sourceDir)

    except CLIError as e:
        printError(e)
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        printError(e)
        return 1


def main(argv=None):
    sys.exit(run(argv))


if __name__ == '__main__':
    main()
