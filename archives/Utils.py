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

import os
import sys

from pathlib import Path
from urllib.parse import urlsplit

import bitmath

from archives.Exceptions import AbortedError
from archives.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


# flush is required if this is in .exe file.
def flushPrint(text):
    try:
        print(text, flush=True)
    except UnicodeEncodeError as e:
        # Fallback for terminals that don't support certain characters
        logger.debug(f"UnicodeEncodeError during print, using fallback encoding: {e}, {sys.stdout.encoding=}")

        buf = getattr(sys.stdout, "buffer", None)
        if buf is not None:
            buf.write(text.encode("utf-8", errors="replace"))
            buf.write(b"\n")
            buf.flush()
            return

        print(text.encode(sys.stdout.encoding, errors='replace').decode(sys.stdout.encoding), flush=True)


def formatSize(size, decimal=None, plural=None):
    if decimal is None:
        if size < ONE_GB: # Less than 1GB
            decimal = 0
        elif size < ONE_TB: # Between 1GB and 1TB
            decimal = 1
        else: # Greater than 1TB
            decimal = 2

    if plural is None:
        plural = False if size > ONE_KB else True

    sizeStr = bitmath.Byte(size).best_prefix(system=bitmath.SI).format(
        "{value:.%df}{%s}" % (decimal, 'unit_plural' if plural else 'unit')
    )

    if not sizeStr.endswith('Byte') and not sizeStr.endswith('Bytes') and not sizeStr.endswith('Bits'):
        return sizeStr.replace('B', '').upper()
    else:
        return sizeStr.replace('Byte', ' Byte').replace('Bit', ' Byte')


def getEnv(envVar, default):
    """Safely get value from environment variable with automatic type detection based on default"""
    try:
        value = os.getenv(envVar)
        if value is not None:
            if default is None:
                return value

            # Automatically detect type based on default value
            if isinstance(default, bool):
                return value == "True"
            elif isinstance(default, int):
                return int(value)
            elif isinstance(default, float):
                return float(value)
            elif isinstance(default, str):
                return str(value)
            else:
                return type(default)(value)
        return default
    except (ValueError, TypeError):
        return default


def toLocationURL(location) -> str:
    """
    Normalize an archive location into the URL string used as its cache key.

    Plain filesystem paths (str or os.PathLike) become absolute file: URLs,
    anything that already carries a scheme is returned as-is.

    Args:
        location: Filesystem path, path-like object or URL string

    Returns:
        str: Normalized URL
    """
    if isinstance(location, os.PathLike):
        location = os.fspath(location)

    if not isinstance(location, str):
        raise TypeError(f"Archive location must be a str or path-like object, got {type(location).__name__}")

    if not location:
        raise ValueError("Archive location must not be empty")

    scheme = urlsplit(location).scheme
    # A single letter "scheme" is a Windows drive (C:\archive.zip)
    if len(scheme) > 1:
        return location

    return Path(os.path.abspath(location)).as_uri()


def checkAborted(cancelSignal, what=None):
    """
    Raise AbortedError if the cancellation signal is already set.

    Args:
        cancelSignal: None or any object with is_set() (asyncio.Event, threading.Event, AbortSignal)
        what: Optional URL/path named in the error message
    """
    if cancelSignal is None or not cancelSignal.is_set():
        return

    reason = getattr(cancelSignal, 'reason', None)
    raise AbortedError(f'Operation on "{what}" was aborted' if what else 'Operation was aborted', reason=reason)


class AbortSignal:
    """
    Minimal cancellation signal carrying an optional reason.

    Anything with is_set() works as a cancelSignal; this adds the reason
    that ends up on AbortedError.
    """

    def __init__(self):
        self._aborted = False
        self.reason = None

    def abort(self, reason=None):
        self._aborted = True
        self.reason = reason

    def is_set(self) -> bool:
        return self._aborted
