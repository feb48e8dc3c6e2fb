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

import asyncio
import os
import unittest
import zipfile

from archives.ArchiveReader import ArchiveReader
from archives.Entries import EntryKind
from archives.Exceptions import AbortedError, EntryNotFoundError, InternalConsistencyError
from archives.FileSystems import LocalFileReader
from archives.Utils import AbortSignal, toLocationURL

from tests.ArchiveTestBase import (
    ArchiveFixtureMixin, BINARY_BIN, NESTED_JSON, SUBDIRECTORY_JSON, TEST_TXT, writeZip
)


class ArchiveReaderTest(ArchiveFixtureMixin, unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.createFixtures()
        self.fileReader = LocalFileReader()

    def tearDown(self):
        self.removeFixtures()

    async def testListsRootOfCompleteDirectoryArchive(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)

        entries = reader.listDirectory('')
        self.assertEqual(
            [(e.name, e.kind) for e in entries], [
                ('subdirectory', EntryKind.DIRECTORY),
                ('test.txt', EntryKind.FILE),
                ('binary.bin', EntryKind.FILE),
                ('subdirectory.json', EntryKind.FILE),
            ]
        )
        for entry in entries:
            self.assertTrue(entry.url.startswith(f"czf://{reader.identifier}/"))

        # "/" and the archive location are the root as well
        self.assertEqual(reader.listDirectory('/'), entries)
        self.assertEqual(reader.listDirectory(toLocationURL(self.completeZip)), entries)

    async def testListsNestedDirectory(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)

        subdirectory = next(e for e in reader.listDirectory('') if e.name == 'subdirectory')
        nested = reader.listDirectory(subdirectory.url)
        self.assertEqual([e.name for e in nested], ['nested.json'])
        self.assertEqual(reader.listDirectory('/subdirectory'), nested)

    async def testReadsFiles(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)
        urls = {e.name: e.url for e in reader.listDirectory('')}

        self.assertEqual(await reader.readText(urls['test.txt']), TEST_TXT.decode('utf-8'))
        self.assertEqual(await reader.readBinary(urls['binary.bin']), BINARY_BIN)
        self.assertEqual(await reader.readBinary('/subdirectory.json'), SUBDIRECTORY_JSON)
        self.assertEqual(await reader.readBinary('/subdirectory/nested.json'), NESTED_JSON)

    async def testNamesThatLookLikeURLs(self):
        path = writeZip(os.path.join(self.tempDir, 'notes.zip'), [('notes:2024.txt', b'minutes'), ('a/b:c.txt', b'nested')])
        reader = await ArchiveReader.create(path, self.fileReader)

        self.assertEqual(await reader.readBinary('notes:2024.txt'), b'minutes')
        self.assertEqual(await reader.readBinary('/notes:2024.txt'), b'minutes')
        self.assertEqual(await reader.readText('a/b:c.txt'), 'nested')

        # Only the archive's own location stands for its root
        with self.assertRaises(EntryNotFoundError):
            reader.listDirectory('https://example.com/other.zip')

    async def testReadTextStripsByteOrderMark(self):
        path = writeZip(os.path.join(self.tempDir, 'bom.zip'), [('bom.txt', b'\xef\xbb\xbfhello')])
        reader = await ArchiveReader.create(path, self.fileReader)
        self.assertEqual(await reader.readText('/bom.txt'), 'hello')

    async def testSynthesizesDirectoriesOfOfficeDocuments(self):
        reader = await ArchiveReader.create(self.officeZip, self.fileReader)

        root = reader.listDirectory('')
        self.assertEqual(len(root), 4)
        self.assertEqual(
            {(e.name, e.kind) for e in root}, {
                ('_rels', EntryKind.DIRECTORY),
                ('docProps', EntryKind.DIRECTORY),
                ('word', EntryKind.DIRECTORY),
                ('[Content_Types].xml', EntryKind.FILE),
            }
        )

        self.assertEqual([e.name for e in reader.listDirectory('/word')], ['_rels', 'document.xml'])
        self.assertEqual([e.name for e in reader.listDirectory('/word/_rels')], ['document.xml.rels'])
        self.assertEqual(await reader.readText('/word/document.xml'), '<document>Hello world</document>')

    async def testEmptyDirectoriesListAsEmpty(self):
        reader = await ArchiveReader.create(self.emptyDirsZip, self.fileReader)

        self.assertEqual(reader.listDirectory('/empty'), [])
        self.assertEqual(reader.listDirectory('/contains/empty'), [])
        self.assertEqual([e.name for e in reader.listDirectory('/contains')], ['empty'])

    async def testEmptyArchive(self):
        path = writeZip(os.path.join(self.tempDir, 'empty.zip'), [])
        reader = await ArchiveReader.create(path, self.fileReader)
        self.assertEqual(reader.listDirectory(''), [])

    async def testMissingPathsAreNotFound(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)

        with self.assertRaises(EntryNotFoundError) as context:
            reader.listDirectory('/nonexistent')
        self.assertIn('"/nonexistent"', str(context.exception))
        self.assertEqual(context.exception.path, '/nonexistent')

        with self.assertRaises(EntryNotFoundError) as context:
            await reader.readBinary('/nonexistent')
        self.assertEqual(str(context.exception), 'There is no file at path "/nonexistent" in zip file')

        # Files are not directories
        with self.assertRaises(EntryNotFoundError):
            reader.listDirectory('/test.txt')

        # NotFound is a FileNotFoundError as well
        with self.assertRaises(FileNotFoundError):
            await reader.readText('/subdirectory/missing.json')

    async def testURLOfAnotherArchiveIsNotFound(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)
        other = await ArchiveReader.create(self.officeZip, self.fileReader)

        with self.assertRaises(EntryNotFoundError):
            reader.listDirectory(other.listDirectory('')[0].url)

    async def testReadingSyntheticEntryIsInternalError(self):
        reader = await ArchiveReader.create(self.officeZip, self.fileReader)

        with self.assertRaises(InternalConsistencyError) as context:
            await reader.readBinary('/word')
        self.assertIn('attempting to load a synthetic entry', str(context.exception))
        self.assertEqual(context.exception.path, '/word')

    async def testReadingDeclaredDirectoryIsInternalError(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)

        with self.assertRaises(InternalConsistencyError):
            await reader.readBinary('/subdirectory')

    async def testLoadsOnlyOnce(self):
        reader = ArchiveReader(self.completeZip)
        self.assertFalse(reader.loaded)
        self.assertEqual(reader.name, toLocationURL(self.completeZip))

        await reader.load(self.fileReader)
        self.assertTrue(reader.loaded)

        with self.assertRaises(RuntimeError):
            await reader.load(self.fileReader)

    async def testUnloadedReaderRefusesRequests(self):
        reader = ArchiveReader(self.completeZip)
        with self.assertRaises(InternalConsistencyError):
            reader.listDirectory('')

    async def testKeepsGivenIdentifier(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader, identifier='fixed-id')
        self.assertEqual(reader.identifier, 'fixed-id')
        self.assertTrue(all(e.url.startswith('czf://fixed-id/') for e in reader.listDirectory('')))

    async def testEntriesIncludeSyntheticDirectories(self):
        reader = await ArchiveReader.create(self.officeZip, self.fileReader)

        paths = {e.path for e in reader.entries()}
        self.assertIn('/docProps', paths)
        self.assertIn('/word/_rels/document.xml.rels', paths)
        self.assertEqual(len(paths), 10)

    async def testLoadErrorsPropagate(self):
        with self.assertRaises(zipfile.BadZipFile):
            await ArchiveReader.create(self.notZip, self.fileReader)

        with self.assertRaises(FileNotFoundError):
            await ArchiveReader.create(os.path.join(self.tempDir, 'missing.zip'), self.fileReader)

    async def testAbortedBeforeLoad(self):
        signal = AbortSignal()
        signal.abort('shutting down')

        with self.assertRaises(AbortedError) as context:
            await ArchiveReader.create(self.completeZip, self.fileReader, cancelSignal=signal)
        self.assertEqual(context.exception.reason, 'shutting down')

    async def testAbortedRead(self):
        reader = await ArchiveReader.create(self.completeZip, self.fileReader)
        event = asyncio.Event()
        event.set()

        with self.assertRaises(AbortedError):
            await reader.readBinary('/test.txt', event)


if __name__ == '__main__':
    unittest.main()
