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
"""
Single-archive reader.

Owns the decoded structure of one archive and answers listing and read
requests scoped to it. The contents index is built once, when the archive
is loaded, and never changes afterwards.
"""

import uuid

from typing import Iterator, List, Optional

from archives.Codecs import ArchiveCodec, ZipCodec
from archives.Entries import (
    ROOT_PATH, ContentsIndex, DirectoryEntry, ExtendedEntry, extendEntry, isVirtualURL, makeContentsIndex,
    normalizeArchivePath, parseVirtualURL, splitPath, synthesizeMissingDirectories, toDirectoryEntry
)
from archives.Exceptions import EntryNotFoundError, InternalConsistencyError
from archives.Kernel import getLogger
from archives.Settings import TEXT_ENCODING
from archives.Utils import checkAborted, toLocationURL

logger = getLogger(__name__)


class ArchiveReader:
    """
    Decoded contents of one archive.

    Paths accepted by listDirectory/readBinary/readText are either in-archive
    paths ("", "/", "/dir/file.txt") or virtual URLs of this archive. The
    archive's own location refers to its root; anything else is an in-archive path.
    """

    def __init__(self, location, identifier: Optional[str] = None, codec: Optional[ArchiveCodec] = None):
        """
        Initialize ArchiveReader. Call load() (or use create()) before reading.

        Args:
            location: Path or URL of the archive
            identifier: Identifier embedded in virtual URLs, a new UUID by default
            codec: Archive codec, ZipCodec by default
        """
        self._location = toLocationURL(location)
        self._identifier = identifier or str(uuid.uuid4())
        self._codec = codec or ZipCodec()
        self._contents: Optional[ContentsIndex] = None
        self._loadStarted = False

    def __repr__(self):
        return f"<{self.__class__.__name__} {self._identifier} {self._location}>"

    @property
    def name(self) -> str:
        return self._location

    @property
    def location(self) -> str:
        return self._location

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def loaded(self) -> bool:
        return self._contents is not None

    @classmethod
    async def create(cls, location, fileReader, identifier=None, codec=None, cancelSignal=None) -> 'ArchiveReader':
        """Create a reader and load its archive through fileReader"""
        reader = cls(location, identifier=identifier, codec=codec)
        await reader.load(fileReader, cancelSignal)
        return reader

    async def load(self, fileReader, cancelSignal=None):
        """
        Read the archive bytes, decode the entry table and build the contents index.

        Runs at most once per instance. Errors from fileReader or the codec
        propagate unchanged.

        Args:
            fileReader: Byte source with readBinaryFromFile(location, cancelSignal)
            cancelSignal: Optional cancellation signal checked before starting
        """
        checkAborted(cancelSignal, self._location)

        if self._loadStarted:
            raise RuntimeError(f'Archive "{self._location}" has already been loaded')
        self._loadStarted = True

        data = await fileReader.readBinaryFromFile(self._location, cancelSignal)
        rawEntries = await self._codec.readEntries(data)

        entries = synthesizeMissingDirectories(extendEntry(self._identifier, e) for e in rawEntries)
        self._contents = makeContentsIndex(entries)

        syntheticCount = sum(1 for e in entries if e.synthetic)
        logger.debug(
            f"Loaded {self._location} as {self._identifier}: {len(rawEntries)} entries, "
            f"{syntheticCount} synthetic directories"
        )

    def listDirectory(self, path='') -> List[DirectoryEntry]:
        """
        List the direct children of a directory in this archive.

        Raises:
            EntryNotFoundError: If there is no directory at path
        """
        archivePath = self._toArchivePath(path)

        children = self._requireContents().get(archivePath)
        if children is None:
            raise EntryNotFoundError(f'There is no directory at path "{archivePath}" in zip file', archivePath)

        return [toDirectoryEntry(e) for e in children]

    def getEntry(self, path) -> ExtendedEntry:
        """
        Find the entry at path among its parent's children.

        Raises:
            EntryNotFoundError: If there is no entry at path
        """
        archivePath = self._toArchivePath(path)
        parentPath, _ = splitPath(archivePath)

        for entry in self._requireContents().get(parentPath, ()):
            if entry.path == archivePath:
                return entry

        raise EntryNotFoundError(f'There is no file at path "{archivePath}" in zip file', archivePath)

    async def readBinary(self, path, cancelSignal=None) -> bytes:
        """
        Extract the decompressed content of a file.

        Raises:
            EntryNotFoundError: If there is no entry at path
            InternalConsistencyError: If the entry is a directory and has no content
        """
        checkAborted(cancelSignal, path)

        entry = self.getEntry(path)
        if entry.synthetic:
            raise InternalConsistencyError(
                f'Internal error reading file at path "{entry.path}" in zip file -- attempting to load a synthetic entry',
                entry.path
            )

        if entry.isDir:
            raise InternalConsistencyError(
                f'Internal error reading file at path "{entry.path}" in zip file -- the entry is a directory', entry.path
            )

        return await self._codec.readData(entry.rawEntry)

    async def readText(self, path, cancelSignal=None) -> str:
        data = await self.readBinary(path, cancelSignal)
        return data.decode(TEXT_ENCODING, errors='replace')

    def entries(self) -> Iterator[ExtendedEntry]:
        """Iterate over every entry of the archive, synthetic directories included"""
        for children in self._requireContents().values():
            yield from children

    def _requireContents(self) -> ContentsIndex:
        if self._contents is None:
            raise InternalConsistencyError(f'Archive "{self._location}" has not been loaded')
        return self._contents

    def _toArchivePath(self, path) -> str:
        if isVirtualURL(path):
            identifier, archivePath = parseVirtualURL(path)
            if identifier != self._identifier:
                raise EntryNotFoundError(f'URL "{path}" does not refer to zip file "{self._location}"', path)
            return archivePath

        if path == self._location:
            # The archive location itself means its root
            return ROOT_PATH

        return normalizeArchivePath(path)
