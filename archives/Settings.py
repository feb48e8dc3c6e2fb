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

from archives.Utils import getEnv

# URL scheme of virtual URLs pointing into cached archives: czf://<identifier>/<path>
CACHED_ZIP_FILE_PROTOCOL = 'czf'

# How long an archive stays cached after its last use, in milliseconds. 0 caches until cleared.
DEFAULT_ARCHIVE_TTL = getEnv('ZIPCACHE_ARCHIVE_TTL', 60000)

DEFAULT_CACHE_NAME = getEnv('ZIPCACHE_CACHE_NAME', 'Zip file reader')

# Socket timeout for archives fetched over HTTP(S), in seconds
HTTP_TIMEOUT = getEnv('ZIPCACHE_HTTP_TIMEOUT', 30.0)

# Transfer chunk size for HTTP downloads
HTTP_READ_CHUNK = 1024 * 1024 # 1 MB

# UTF-8; a leading byte order mark is dropped
TEXT_ENCODING = 'utf-8-sig'
