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
Byte sources for archives.

Provides a unified interface for fetching the raw bytes of an archive from
wherever it lives:
- LocalFileReader: Local filesystem (plain paths and file: URLs)
- HTTPFileReader: Remote archives over HTTP(S)
- DefaultFileReader: Picks one of the above from the URL scheme

This allows ArchiveCache to work with local and remote archives without changes.
"""

import asyncio

from pathlib import Path
from typing import Dict, Optional, Protocol
from urllib.parse import urlsplit
from urllib.request import url2pathname

import requests

from archives.Kernel import getLogger
from archives.Settings import HTTP_READ_CHUNK, HTTP_TIMEOUT
from archives.Utils import checkAborted, toLocationURL

logger = getLogger(__name__)


class FileReader(Protocol):
    """FileReader protocol that all byte sources must follow"""

    async def readBinaryFromFile(self, location: str, cancelSignal=None) -> bytes:
        ...


class LocalFileReader:
    """
    Local filesystem byte source.

    Reads happen in a worker thread; OSError (FileNotFoundError, PermissionError, ...)
    propagates to the caller unchanged.
    """

    @staticmethod
    def toPath(location) -> Path:
        """Convert a file: URL (or plain path) into a local Path"""
        url = toLocationURL(location)
        parts = urlsplit(url)
        if parts.scheme != 'file':
            raise ValueError(f'Not a local file location: "{url}"')

        return Path(url2pathname(parts.path))

    async def readBinaryFromFile(self, location: str, cancelSignal=None) -> bytes:
        checkAborted(cancelSignal, location)

        path = self.toPath(location)
        logger.debug(f"Reading local archive {path}")
        return await asyncio.to_thread(path.read_bytes)


class HTTPFileReader:
    """
    Remote byte source over HTTP(S).

    Downloads the whole archive in HTTP_READ_CHUNK sized pieces with a
    keep-alive requests.Session. Non-2xx responses raise requests.HTTPError.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        """
        Initialize HTTPFileReader.

        Args:
            session: requests.Session to use, a new one by default
            timeout: Socket timeout in seconds
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    async def readBinaryFromFile(self, location: str, cancelSignal=None) -> bytes:
        checkAborted(cancelSignal, location)
        return await asyncio.to_thread(self._download, location)

    def _download(self, url: str) -> bytes:
        logger.debug(f"Downloading archive {url}")

        with self.session.get(url, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()

            buffer = bytearray()
            for chunk in response.iter_content(chunk_size=HTTP_READ_CHUNK):
                if chunk:
                    buffer.extend(chunk)

        logger.debug(f"Downloaded {len(buffer)} bytes from {url}")
        return bytes(buffer)

    def close(self):
        self.session.close()


class DefaultFileReader:
    """Byte source dispatching on the location's URL scheme"""

    def __init__(self, readers: Optional[Dict[str, FileReader]] = None):
        if readers is None:
            localReader = LocalFileReader()
            httpReader = HTTPFileReader()
            readers = {'file': localReader, 'http': httpReader, 'https': httpReader}

        self.readers = readers

    async def readBinaryFromFile(self, location: str, cancelSignal=None) -> bytes:
        url = toLocationURL(location)
        scheme = urlsplit(url).scheme

        reader = self.readers.get(scheme)
        if reader is None:
            raise ValueError(f'Unsupported archive location "{url}": no reader for scheme "{scheme}"')

        return await reader.readBinaryFromFile(url, cancelSignal)
