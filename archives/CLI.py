#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# zipcache - Zip archives as cached virtual directory trees
# Copyright (C) 2025-2026 zipcache contributors
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
import asyncio
import json
import logging
import logging.config
import os
import sys
import zipfile

import requests

from archives.ArchiveCache import ArchiveCache
from archives.Entries import makeVirtualURL, normalizeArchivePath
from archives.Exceptions import ArchiveError
from archives.Kernel import LOG_LEVEL_MAPPING, PUBLIC_VERSION, configureGlobalLogLevel, getLogger
from archives.Utils import flushPrint, formatSize, getEnv

logger = getLogger(__name__)


def configureLogging(logLevel):
    """Configure logging level for the application using Kernel's centralized configuration or config file

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. ZIPCACHE_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name (DEBUG, INFO, WARNING, ERROR) or the path
    to a logging configuration JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('urllib3').setLevel(logging.INFO)
        logging.getLogger('urllib3.connectionpool').setLevel(logging.INFO)
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('ZIPCACHE_LOGGING_LEVEL', None)

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

        except (json.JSONDecodeError, FileNotFoundError, KeyError, ValueError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    level = LOG_LEVEL_MAPPING.get(logLevel.upper())
    if level is not None:
        configureGlobalLogLevel(level)
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def configureCLIParser():
    """Build the argument parser with ls, cat and tree commands"""
    parser = argparse.ArgumentParser(prog='zipcache', description='Browse zip archives as directory trees')
    parser.add_argument('--version', action='version', version=f'zipcache v{PUBLIC_VERSION}')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        help='Logging level (DEBUG, INFO, WARNING, ERROR) or path to a logging config JSON file'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    subparsers.required = True

    lsParser = subparsers.add_parser('ls', help='List a directory inside an archive')
    lsParser.add_argument('archive', help='Path or URL of the archive')
    lsParser.add_argument('path', nargs='?', default='', help='Directory inside the archive (default: root)')
    lsParser.add_argument('-l', '--long', action='store_true', help='Show entry kind and size')

    catParser = subparsers.add_parser('cat', help='Write a file inside an archive to stdout')
    catParser.add_argument('archive', help='Path or URL of the archive')
    catParser.add_argument('path', help='File inside the archive')

    treeParser = subparsers.add_parser('tree', help='Show every directory and file of an archive')
    treeParser.add_argument('archive', help='Path or URL of the archive')

    return parser


async def _directoryURL(cache, archive, path):
    """Virtual URL of path inside archive, or the archive itself for its root"""
    archivePath = normalizeArchivePath(path)
    if not archivePath:
        return archive

    reader = await cache.openArchive(archive)
    return makeVirtualURL(reader.identifier, archivePath)


async def listCommand(cache, archive, path='', long=False):
    url = await _directoryURL(cache, archive, path)
    entries = await cache.listDirectory(url)

    reader = await cache.openArchive(archive) if long else None
    for entry in entries:
        if not long:
            flushPrint(f"{entry.name}/" if entry.isDir else entry.name)
            continue

        if entry.isDir:
            flushPrint(f"d {'-':>8} {entry.name}/")
        else:
            rawEntry = reader.getEntry(entry.url).rawEntry
            flushPrint(f"f {formatSize(rawEntry.size):>8} {entry.name}")


async def catCommand(cache, archive, path):
    reader = await cache.openArchive(archive)
    data = await cache.readBinary(makeVirtualURL(reader.identifier, normalizeArchivePath(path)))

    out = getattr(sys.stdout, 'buffer', None)
    if out is None:
        sys.stdout.write(data.decode('utf-8', errors='replace'))
    else:
        out.write(data)
        out.flush()


async def treeCommand(cache, archive):
    flushPrint(archive)

    async def walk(url, depth):
        for entry in await cache.listDirectory(url):
            flushPrint(f"{'    ' * depth}{entry.name}{'/' if entry.isDir else ''}")
            if entry.isDir:
                await walk(entry.url, depth + 1)

    await walk(archive, 1)


async def runCommand(args):
    # A CLI run touches each archive a handful of times, keep it until we are done
    cache = ArchiveCache(name='zipcache CLI', archiveTTL=0)
    try:
        if args.command == 'ls':
            await listCommand(cache, args.archive, args.path, args.long)
        elif args.command == 'cat':
            await catCommand(cache, args.archive, args.path)
        elif args.command == 'tree':
            await treeCommand(cache, args.archive)
    finally:
        cache.clear()


def main(argv=None):
    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.log_level)

    try:
        asyncio.run(runCommand(args))
    except (ArchiveError, OSError, zipfile.BadZipFile, requests.RequestException, ValueError) as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        flushPrint(f"Error: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
