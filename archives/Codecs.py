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
Archive codecs.

A codec turns the raw bytes of an archive into its entry table and extracts
the decompressed content of single entries. Decoding and extraction run in
a worker thread so the event loop keeps serving other requests.
"""

import asyncio
import datetime
import io
import zipfile

from typing import List, NamedTuple, Protocol

from archives.Entries import RawEntry
from archives.Kernel import getLogger

logger = getLogger(__name__)


class ArchiveCodec(Protocol):
    """Codec protocol that all archive formats must follow"""

    async def readEntries(self, data: bytes) -> List[RawEntry]:
        ...

    async def readData(self, rawEntry: RawEntry) -> bytes:
        ...


class _ZipHandle(NamedTuple):
    zipFile: zipfile.ZipFile
    info: zipfile.ZipInfo


class ZipCodec:
    """
    Codec for zip archives based on the zipfile module.

    Every decoded archive keeps one ZipFile open over its in-memory bytes;
    it is released together with the entries referring to it.
    """

    async def readEntries(self, data: bytes) -> List[RawEntry]:
        """
        Decode the central directory of a zip archive.

        Raises:
            zipfile.BadZipFile: If data is not a zip archive
        """
        return await asyncio.to_thread(self._readEntries, data)

    async def readData(self, rawEntry: RawEntry) -> bytes:
        """Extract the decompressed content of one entry"""
        handle = rawEntry.handle
        if not isinstance(handle, _ZipHandle):
            raise ValueError(f"Entry {rawEntry.filename!r} was not decoded by {self.__class__.__name__}")

        return await asyncio.to_thread(handle.zipFile.read, handle.info)

    def _readEntries(self, data: bytes) -> List[RawEntry]:
        zipFile = zipfile.ZipFile(io.BytesIO(data))

        entries = [
            RawEntry(
                filename=info.filename,
                isDir=info.is_dir(),
                size=info.file_size,
                compressedSize=info.compress_size,
                modified=self._modifiedTime(info),
                handle=_ZipHandle(zipFile, info),
            ) for info in zipFile.infolist()
        ]

        logger.debug(f"Decoded {len(entries)} zip entries from {len(data)} bytes")
        return entries

    @staticmethod
    def _modifiedTime(info: zipfile.ZipInfo):
        try:
            return datetime.datetime(*info.date_time)
        except ValueError:
            # DOS timestamps of zero (1980-00-00) are common in generated archives
            return None
