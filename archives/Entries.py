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
Path and entry model for archive contents.

Pure transforms over the entry table a codec decodes from an archive:
- Splitting in-archive paths into (parentPath, name)
- Extending raw codec entries with their virtual URL and kind
- Synthesizing directory entries the archive never declared
- Grouping entries into the per-directory contents index

Paths inside an archive always start with "/"; the root directory is the
empty string. Virtual URLs look like czf://<identifier>/<path>.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote, unquote, urlsplit

from archives.Settings import CACHED_ZIP_FILE_PROTOCOL

ROOT_PATH = ''
SEPARATOR = '/'


class EntryKind(Enum):
    FILE = 'file'
    DIRECTORY = 'directory'


@dataclass
class RawEntry:
    """One record of an archive's entry table, as produced by a codec"""
    filename: str
    isDir: bool
    size: int = 0
    compressedSize: int = 0
    modified: Optional[Any] = None
    handle: Optional[Any] = None # Codec-private, passed back to readData()


@dataclass
class ExtendedEntry:
    """
    Archive entry with derived fields.

    rawEntry is None for directories synthesized from file paths; those
    share the public shape of declared directories but have no content.
    """
    parentPath: str
    name: str
    url: str
    rawEntry: Optional[RawEntry]
    kind: EntryKind

    @property
    def synthetic(self) -> bool:
        return self.rawEntry is None

    @property
    def path(self) -> str:
        return getEntryPath(self)

    @property
    def isDir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True)
class DirectoryEntry:
    """Public view of an archive entry"""
    name: str
    kind: EntryKind
    url: str

    @property
    def isDir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


ContentsIndex = Mapping[str, Tuple[ExtendedEntry, ...]]


def isVirtualURL(url: str) -> bool:
    return urlsplit(url).scheme == CACHED_ZIP_FILE_PROTOCOL


def makeVirtualURL(identifier: str, path: str) -> str:
    """Build czf://<identifier>/<path> with the path percent-quoted"""
    return f"{CACHED_ZIP_FILE_PROTOCOL}://{identifier}/{quote(path.lstrip(SEPARATOR), safe=SEPARATOR)}"


def normalizeArchivePath(path: str) -> str:
    """
    Normalize an in-archive path to the index form: "" for the root,
    otherwise a leading "/" and no trailing "/".
    """
    path = path.strip(SEPARATOR)
    return SEPARATOR + path if path else ROOT_PATH


def parseVirtualURL(url: str) -> Tuple[str, str]:
    """
    Split a virtual URL into (identifier, normalized in-archive path).

    Raises:
        ValueError: If url does not use the virtual scheme
    """
    parts = urlsplit(url)
    if parts.scheme != CACHED_ZIP_FILE_PROTOCOL:
        raise ValueError(f'Not a {CACHED_ZIP_FILE_PROTOCOL}: URL: "{url}"')

    return parts.netloc, normalizeArchivePath(unquote(parts.path))


def splitPath(path: str) -> Tuple[str, str]:
    """
    Split a path on its last slash.

    Top-level names get the root ("") as parent, nested names get "/" plus
    everything before the last slash.

    Args:
        path: Path to split, with or without a leading slash

    Returns:
        (parentPath, name)
    """
    lastSlash = path.rfind(SEPARATOR)
    if lastSlash < 0:
        return ROOT_PATH, path

    prefix = '' if path.startswith(SEPARATOR) else SEPARATOR
    return prefix + path[:lastSlash], path[lastSlash + 1:]


def getEntryPath(entry: ExtendedEntry) -> str:
    return f"{entry.parentPath}{SEPARATOR}{entry.name}"


def extendEntry(archiveIdentifier: str, rawEntry: RawEntry) -> ExtendedEntry:
    """
    Extend a raw codec entry:
    - Remove the trailing slash from directory names
    - Split the filename into parent path and name
    - Create the virtual URL of the entry

    Args:
        archiveIdentifier: Identifier of the cached archive (authority of the URL)
        rawEntry: Entry decoded by the codec

    Returns:
        ExtendedEntry
    """
    fileName = rawEntry.filename
    if rawEntry.isDir and fileName.endswith(SEPARATOR):
        fileName = fileName[:-1]

    parentPath, name = splitPath(fileName)
    kind = EntryKind.DIRECTORY if rawEntry.isDir else EntryKind.FILE

    return ExtendedEntry(
        parentPath=parentPath,
        name=name,
        url=makeVirtualURL(archiveIdentifier, fileName),
        rawEntry=rawEntry,
        kind=kind,
    )


def synthesizeMissingDirectories(entries: Iterable[ExtendedEntry]) -> List[ExtendedEntry]:
    """
    Add synthetic directory entries for every ancestor the archive never declared.

    Office documents, for example, are zip archives without any directory
    records. The result holds the directories (declared first, then
    synthesized, in the order they were met) followed by every other entry
    in archive order.

    Args:
        entries: Extended entries of one archive

    Returns:
        List[ExtendedEntry]: Entries whose parent chains are fully represented
    """
    entries = list(entries)

    directories: Dict[str, ExtendedEntry] = {}
    for entry in entries:
        if entry.isDir:
            directories.setdefault(entry.path, entry)

    for entry in entries:
        parentPath = entry.parentPath
        if not parentPath or parentPath in directories:
            continue

        identifier, _ = parseVirtualURL(entry.url)

        # Walk upwards until we reach an ancestor we already know about
        while parentPath and parentPath not in directories:
            grandParentPath, name = splitPath(parentPath)
            directories[parentPath] = ExtendedEntry(
                parentPath=grandParentPath,
                name=name,
                url=makeVirtualURL(identifier, parentPath),
                rawEntry=None,
                kind=EntryKind.DIRECTORY,
            )
            parentPath = grandParentPath

    return list(directories.values()) + [e for e in entries if not e.isDir]


def makeContentsIndex(entries: Iterable[ExtendedEntry]) -> ContentsIndex:
    """
    Group entries by parent path.

    The root and every directory get a key even when they have no children,
    so listing an empty directory yields an empty list.

    Returns:
        Read-only mapping of parentPath -> tuple of children in entry order
    """
    index: Dict[str, List[ExtendedEntry]] = {ROOT_PATH: []}

    for entry in entries:
        index.setdefault(entry.parentPath, []).append(entry)
        if entry.isDir:
            index.setdefault(entry.path, [])

    return MappingProxyType({parentPath: tuple(children) for parentPath, children in index.items()})


def toDirectoryEntry(entry: ExtendedEntry) -> DirectoryEntry:
    return DirectoryEntry(name=entry.name, kind=entry.kind, url=entry.url)
