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
Errors raised by the archive cache and single-archive readers.

Failures from the byte source (OSError, requests.HTTPError, ...) and from
the codec (zipfile.BadZipFile, ...) are not wrapped: they propagate as-is.
"""


class ArchiveError(RuntimeError):
    """Base class for archive cache errors"""


class EntryNotFoundError(ArchiveError, FileNotFoundError):
    """The requested path has no entry in a loaded archive"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class CacheMissError(ArchiveError, LookupError):
    """A virtual URL refers to an archive that is not (or no longer) cached"""

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class InternalConsistencyError(ArchiveError):
    """An index entry lacks the data needed to serve the request, e.g. reading a synthetic directory"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class AbortedError(ArchiveError):
    """The cancellation signal was already set when the operation started"""

    def __init__(self, message: str = 'Operation was aborted', reason=None):
        super().__init__(message)
        self.reason = reason
