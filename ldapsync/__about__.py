# -*- coding: utf-8 -*-
"""
Meta information about ldapsync

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import collections

VersionInfo = collections.namedtuple('version_info', ('major', 'minor', 'micro'))
__version_info__ = VersionInfo(
    major=0,
    minor=9,
    micro=2,
)
__version__ = '.'.join(str(val) for val in __version_info__)
__author__ = 'ldapsync authors'
__mail__ = 'ldapsync@lists.example.org'
__copyright__ = '(C) 2021 by the ldapsync authors'
__license__ = 'Apache-2.0'

__all__ = [
    '__version_info__',
    '__version__',
    '__author__',
    '__mail__',
    '__license__',
    '__copyright__',
]
