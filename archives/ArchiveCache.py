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
Archive cache.

Entry point for reading archives as directory trees. Maps archive identity
to ArchiveReader instances, resolves incoming URLs and evicts archives that
have not been used for archiveTTL milliseconds.

Two kinds of URL are accepted:
- Source locations (paths, file: or http(s): URLs): the archive itself, i.e. its root directory
- Virtual URLs (czf://<identifier>/<path>): a path inside an archive that is already cached

Eviction is driven by a single timer on the event loop, armed for the
earliest deadline (last use + TTL) among all handles. When it fires it drops
every expired or dead handle and re-arms for the next deadline, or goes idle
until the next access.
"""

import asyncio
import os
import time
import weakref

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from signalslot import Signal

from archives.ArchiveReader import ArchiveReader
from archives.Codecs import ArchiveCodec, ZipCodec
from archives.Entries import DirectoryEntry, isVirtualURL, parseVirtualURL
from archives.Exceptions import CacheMissError, EntryNotFoundError
from archives.FileSystems import DefaultFileReader, FileReader
from archives.Kernel import getLogger
from archives.Settings import DEFAULT_ARCHIVE_TTL, DEFAULT_CACHE_NAME
from archives.Utils import checkAborted, toLocationURL

logger = getLogger(__name__)

# Reasons passed to archiveEvicted
EVICT_EXPIRED = 'expired'
EVICT_RECLAIMED = 'reclaimed'
EVICT_CLEARED = 'cleared'
EVICT_REQUESTED = 'requested'
EVICT_LOAD_FAILED = 'loadFailed'


class ArchiveHandle:
    """
    Cache bookkeeping for one loaded archive.

    The reader is referenced weakly. When the cache retains readers the
    handle also pins it, so it stays alive until the handle is evicted.
    """

    def __init__(self, reader: ArchiveReader, pin: bool = True):
        self.identifier = reader.identifier
        self.location = reader.location
        self.lastUsed = 0.0
        self.readerRef = None
        self._pinned = None
        self.attach(reader, pin)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.identifier} {self.location} alive={self.alive}>"

    def attach(self, reader: ArchiveReader, pin: bool = True):
        self.readerRef = weakref.ref(reader)
        self._pinned = reader if pin else None

    def deref(self) -> Optional[ArchiveReader]:
        return self.readerRef()

    @property
    def alive(self) -> bool:
        return self.readerRef() is not None

    def deadline(self, ttl: float) -> float:
        return self.lastUsed + ttl


class DirectoryListing(list):
    """
    Entries of one directory, as returned by ArchiveCache.listDirectory().

    The listing holds its ArchiveReader, so the archive stays loaded while a
    caller still walks or reads through the entries of a listing it holds.
    """

    def __init__(self, entries: List[DirectoryEntry], reader: ArchiveReader):
        super().__init__(entries)
        self.reader = reader


class ArchiveCache:
    """
    Cache of decoded archives addressed through virtual URLs.

    Signals:
        archiveLoaded(cache, identifier, location): a new archive was loaded and cached
        archiveEvicted(cache, identifier, location, reason): a handle left the cache
    """

    def __init__(
        self,
        name: str = DEFAULT_CACHE_NAME,
        fileReader: Optional[FileReader] = None,
        archiveTTL: int = DEFAULT_ARCHIVE_TTL,
        codec: Optional[ArchiveCodec] = None,
        retainReaders: bool = True
    ):
        """
        Initialize ArchiveCache.

        Args:
            name: Label of this cache
            fileReader: Byte source for archives, DefaultFileReader (local files and HTTP) by default
            archiveTTL: Milliseconds an archive stays cached after its last use, 0 caches until clear()
            codec: Archive codec, ZipCodec by default
            retainReaders: If False, handles only hold weak references and a reader
                           nobody else holds is reloaded on its next use
        """
        if archiveTTL < 0:
            raise ValueError(f"archiveTTL must be >= 0, got {archiveTTL}")

        self.name = name
        self.fileReader = fileReader or DefaultFileReader()
        self.archiveTTL = archiveTTL
        self.codec = codec or ZipCodec()
        self.retainReaders = retainReaders

        self.archiveLoaded = Signal(args=['cache', 'identifier', 'location'], name='archiveLoaded')
        self.archiveEvicted = Signal(args=['cache', 'identifier', 'location', 'reason'], name='archiveEvicted')

        self._handles: Dict[str, ArchiveHandle] = {}
        self._pendingLoads: Dict[str, asyncio.Future] = {}
        self._evictorHandle: Optional[asyncio.TimerHandle] = None
        self._evictorLoop: Optional[asyncio.AbstractEventLoop] = None
        self._generation = 0 # Bumped by clear() so loads started earlier are not cached

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name!r} archives={len(self._handles)}>"

    @property
    def handles(self) -> Mapping[str, ArchiveHandle]:
        """Read-only view of the cached handles keyed by identifier"""
        return MappingProxyType(self._handles)

    @property
    def ttlSeconds(self) -> float:
        return self.archiveTTL / 1000

    async def listDirectory(self, url, cancelSignal=None) -> DirectoryListing:
        """
        List a directory.

        Args:
            url: Archive location (lists its root) or virtual URL of a directory
            cancelSignal: Optional cancellation signal

        Returns:
            DirectoryListing: The entries, holding the archive loaded while referenced

        Raises:
            CacheMissError: If a virtual URL refers to an archive that is not cached
            EntryNotFoundError: If there is no directory at the path
        """
        url = self._asString(url)
        checkAborted(cancelSignal, url)

        reader = await self._resolve(url, cancelSignal)
        return DirectoryListing(reader.listDirectory(url if isVirtualURL(url) else ''), reader)

    async def readBinary(self, url, cancelSignal=None) -> bytes:
        """
        Read the decompressed content of a file.

        Args:
            url: Virtual URL of the file, as found in a directory listing
            cancelSignal: Optional cancellation signal

        Raises:
            CacheMissError: If the archive is not cached (anymore)
            EntryNotFoundError: If there is no file at the path
            InternalConsistencyError: If the path is a directory
        """
        url = self._asString(url)
        checkAborted(cancelSignal, url)

        if not isVirtualURL(url):
            raise EntryNotFoundError(f'There is no file at "{url}" in zip file', url)

        reader = await self._resolve(url, cancelSignal)
        return await reader.readBinary(url, cancelSignal)

    async def readText(self, url, cancelSignal=None) -> str:
        url = self._asString(url)
        checkAborted(cancelSignal, url)

        if not isVirtualURL(url):
            raise EntryNotFoundError(f'There is no file at "{url}" in zip file', url)

        reader = await self._resolve(url, cancelSignal)
        return await reader.readText(url, cancelSignal)

    async def openArchive(self, url, cancelSignal=None) -> ArchiveReader:
        """
        Resolve url to its ArchiveReader, loading the archive on first use.

        Holding the returned reader keeps it alive even when the cache does not retain readers.
        """
        url = self._asString(url)
        checkAborted(cancelSignal, url)
        return await self._resolve(url, cancelSignal)

    def evict(self, url) -> bool:
        """
        Drop one archive from the cache.

        Args:
            url: Archive location or any virtual URL of the archive

        Returns:
            bool: True if a handle was removed
        """
        url = self._asString(url)
        if isVirtualURL(url):
            handle = self._handles.get(parseVirtualURL(url)[0])
        else:
            handle = self._findByLocation(toLocationURL(url))

        if handle is None:
            return False

        self._removeHandle(handle, EVICT_REQUESTED)
        if not self._handles:
            self._cancelEvictor()
        return True

    def clear(self):
        """Drop every cached archive and stop the evictor. Safe to call repeatedly."""
        self._cancelEvictor()

        # Loads still in flight finish for their callers but are not cached
        self._generation += 1
        self._pendingLoads.clear()

        handles = list(self._handles.values())
        self._handles.clear()

        for handle in handles:
            self._emitEvicted(handle, EVICT_CLEARED)

        if handles:
            logger.debug(f"{self.name}: cleared {len(handles)} cached archives")

    def isEvictorScheduled(self) -> bool:
        return self._evictorHandle is not None and not self._evictorLoop.is_closed()

    def calculateEvictionDelay(self) -> float:
        """
        Seconds until the earliest handle deadline, 0 if one already passed,
        -1 if nothing can expire (TTL 0 or empty cache).
        """
        if self.archiveTTL <= 0 or not self._handles:
            return -1

        earliest = min(handle.deadline(self.ttlSeconds) for handle in self._handles.values())
        return max(0.0, earliest - self._now())

    def evictExpired(self) -> int:
        """
        Remove every handle that is past its deadline or whose reader is gone.

        Returns:
            int: Number of handles removed
        """
        now = self._now()
        removed = 0

        for handle in list(self._handles.values()):
            if not handle.alive:
                self._removeHandle(handle, EVICT_RECLAIMED)
                removed += 1
            elif self._isExpired(handle, now):
                self._removeHandle(handle, EVICT_EXPIRED)
                removed += 1

        if removed:
            logger.debug(f"{self.name}: evicted {removed} archives, {len(self._handles)} remain")
        return removed

    # Resolution

    async def _resolve(self, url: str, cancelSignal=None) -> ArchiveReader:
        if isVirtualURL(url):
            identifier, _ = parseVirtualURL(url)
            handle = self._liveHandle(self._handles.get(identifier))
            if handle is None:
                raise CacheMissError(f'Could not find zip file at "{url}"', url)
        else:
            location = toLocationURL(url)
            handle = self._liveHandle(self._findByLocation(location))
            if handle is None:
                return await self._loadShared(location, None, cancelSignal)

        reader = handle.deref()
        if reader is None:
            # The reader was reclaimed behind our back, bring it back under the same identifier
            logger.debug(f"{self.name}: reader for {handle.location} was reclaimed, reloading as {handle.identifier}")
            return await self._loadShared(handle.location, handle, cancelSignal)

        self._touch(handle)
        return reader

    def _liveHandle(self, handle: Optional[ArchiveHandle]) -> Optional[ArchiveHandle]:
        """Drop a handle that expired before the evictor got to it"""
        if handle is not None and self._isExpired(handle, self._now()):
            self._removeHandle(handle, EVICT_EXPIRED)
            return None
        return handle

    def _findByLocation(self, location: str) -> Optional[ArchiveHandle]:
        for handle in self._handles.values():
            if handle.location == location:
                return handle
        return None

    # Loading

    async def _loadShared(self, location: str, handle: Optional[ArchiveHandle], cancelSignal=None) -> ArchiveReader:
        """Load location once no matter how many callers ask for it concurrently"""
        future = self._pendingLoads.get(location)
        if future is None:
            future = asyncio.ensure_future(self._load(location, handle, self._generation))
            self._pendingLoads[location] = future
            future.add_done_callback(lambda f: self._forgetPendingLoad(location, f))
        else:
            logger.debug(f"{self.name}: joining pending load of {location}")

        return await asyncio.shield(future)

    def _forgetPendingLoad(self, location: str, future: asyncio.Future):
        if self._pendingLoads.get(location) is future:
            del self._pendingLoads[location]

        # Retrieve the exception so an unawaited failure is not reported as never retrieved
        if not future.cancelled():
            future.exception()

    async def _load(self, location: str, handle: Optional[ArchiveHandle], generation: int) -> ArchiveReader:
        identifier = handle.identifier if handle else None

        try:
            reader = await ArchiveReader.create(location, self.fileReader, identifier=identifier, codec=self.codec)
        except Exception as e:
            logger.warning(f"{self.name}: failed to load {location}: {e}")
            if handle is not None and self._handles.get(handle.identifier) is handle:
                # The handle no longer holds anything of value
                self._removeHandle(handle, EVICT_LOAD_FAILED)
            raise

        if generation != self._generation:
            logger.debug(f"{self.name}: cache was cleared while loading {location}, not caching it")
            return reader

        if handle is None:
            handle = ArchiveHandle(reader, pin=self.retainReaders)
            self._handles[handle.identifier] = handle
            logger.debug(f"{self.name}: cached {location} as {handle.identifier}")
            self.archiveLoaded.emit(cache=self, identifier=handle.identifier, location=location)
        elif self._handles.get(handle.identifier) is handle:
            handle.attach(reader, pin=self.retainReaders)
        else:
            # Evicted while reloading
            return reader

        self._touch(handle)
        return reader

    # Eviction

    def _now(self) -> float:
        return time.monotonic()

    def _isExpired(self, handle: ArchiveHandle, now: float) -> bool:
        return self.archiveTTL > 0 and handle.deadline(self.ttlSeconds) <= now

    def _touch(self, handle: ArchiveHandle):
        handle.lastUsed = self._now()
        self._scheduleEvictor()

    def _scheduleEvictor(self):
        loop = asyncio.get_running_loop()

        if self._evictorHandle is not None:
            # Deadlines only move later, so a timer armed on this loop is never late
            if self._evictorLoop is loop and not loop.is_closed():
                return

            # Armed on a loop that is gone or no longer running us
            logger.debug(f"{self.name}: moving evictor to the running event loop")
            self._cancelEvictor()

        delay = self.calculateEvictionDelay()
        if delay < 0:
            return

        self._evictorHandle = loop.call_later(delay, self._runEvictor)
        self._evictorLoop = loop
        logger.debug(f"{self.name}: evictor armed in {delay:.3f}s")

    def _runEvictor(self):
        self._evictorHandle = None
        self._evictorLoop = None
        self.evictExpired()
        self._scheduleEvictor()

    def _cancelEvictor(self):
        if self._evictorHandle is not None:
            self._evictorHandle.cancel()
            self._evictorHandle = None
            self._evictorLoop = None

    def _removeHandle(self, handle: ArchiveHandle, reason: str):
        if self._handles.get(handle.identifier) is not handle:
            return

        del self._handles[handle.identifier]
        logger.debug(f"{self.name}: dropped {handle.location} ({handle.identifier}), reason: {reason}")
        self._emitEvicted(handle, reason)

    def _emitEvicted(self, handle: ArchiveHandle, reason: str):
        self.archiveEvicted.emit(cache=self, identifier=handle.identifier, location=handle.location, reason=reason)

    @staticmethod
    def _asString(url) -> str:
        return os.fspath(url) if isinstance(url, os.PathLike) else url
