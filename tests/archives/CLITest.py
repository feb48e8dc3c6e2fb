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

import contextlib
import io
import os
import unittest

from archives.CLI import configureCLIParser, main

from tests.ArchiveTestBase import ArchiveFixtureMixin, TEST_TXT


class CLITest(ArchiveFixtureMixin, unittest.TestCase):
    """Runs the zipcache command line in-process against the fixture archives"""

    def setUp(self):
        self.createFixtures()

    def tearDown(self):
        self.removeFixtures()

    def runCLI(self, *argv):
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            exitCode = main(list(argv))
        return exitCode, output.getvalue()

    def testListRoot(self):
        exitCode, output = self.runCLI('ls', self.completeZip)

        self.assertEqual(exitCode, 0)
        self.assertEqual(output.splitlines(), ['subdirectory/', 'test.txt', 'binary.bin', 'subdirectory.json'])

    def testListSubdirectory(self):
        exitCode, output = self.runCLI('ls', self.completeZip, 'subdirectory')

        self.assertEqual(exitCode, 0)
        self.assertEqual(output.splitlines(), ['nested.json'])

    def testLongListing(self):
        exitCode, output = self.runCLI('ls', '-l', self.completeZip)

        self.assertEqual(exitCode, 0)
        lines = output.splitlines()
        self.assertTrue(lines[0].startswith('d ') and lines[0].endswith('subdirectory/'))
        self.assertTrue(lines[1].startswith('f ') and lines[1].endswith('test.txt'))
        self.assertIn('Byte', lines[1])

    def testCat(self):
        exitCode, output = self.runCLI('cat', self.completeZip, '/test.txt')

        self.assertEqual(exitCode, 0)
        self.assertEqual(output, TEST_TXT.decode('utf-8'))

    def testTreeShowsSynthesizedDirectories(self):
        exitCode, output = self.runCLI('tree', self.officeZip)

        self.assertEqual(exitCode, 0)
        lines = output.splitlines()
        self.assertEqual(lines[0], self.officeZip)
        self.assertIn('    word/', lines)
        self.assertIn('        _rels/', lines)
        self.assertIn('            document.xml.rels', lines)
        self.assertIn('    [Content_Types].xml', lines)

    def testErrors(self):
        testCases = [
            (('ls', os.path.join(self.tempDir, 'missing.zip')), "missing archive"),
            (('ls', self.notZip), "not a zip file"),
            (('ls', self.completeZip, 'nonexistent'), "missing directory"),
            (('cat', self.completeZip, 'nonexistent.txt'), "missing file"),
            (('cat', self.officeZip, 'word'), "synthetic directory"),
        ]

        for argv, description in testCases:
            with self.subTest(description=description):
                exitCode, output = self.runCLI(*argv)
                self.assertEqual(exitCode, 1)
                self.assertTrue(output.startswith('Error: '), output)

    def testParser(self):
        args = configureCLIParser().parse_args(['--log-level', 'DEBUG', 'ls', 'a.zip', 'sub', '-l'])

        self.assertEqual(args.command, 'ls')
        self.assertEqual(args.archive, 'a.zip')
        self.assertEqual(args.path, 'sub')
        self.assertTrue(args.long)
        self.assertEqual(args.log_level, 'DEBUG')


if __name__ == '__main__':
    unittest.main()
