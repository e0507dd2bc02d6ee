# -*- coding: utf-8 -*-
"""
ldaputil - several LDAP-related utility functions

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import re

from . import passwd


AD_LDAP49_ERROR_CODES = {
    0x525: 'user not found',
    0x52e: 'invalid credentials',
    0x530: 'not permitted to logon at this time',
    0x531: 'not permitted to logon at this workstation',
    0x532: 'password expired',
    0x533: 'account disabled',
    0x701: 'account expired',
    0x773: 'user must reset password',
    0x775: 'user account locked',
}
AD_LDAP49_ERROR_PREFIX = 'AcceptSecurityContext error, data '

# bind error codes meaning the password is correct but has to be changed
AD_PASSWORD_EXPIRED_CODES = {0x532, 0x773}

AD_LDAP49_ERROR_RE = re.compile(
    re.escape(AD_LDAP49_ERROR_PREFIX) + '(?P<code>[0-9a-fA-F]+)'
)

# order matters, backslash has to be replaced first
FILTER_ESCAPE_MAP = (
    ('\\', '\\5c'),
    ('*', '\\2a'),
    ('(', '\\28'),
    (')', '\\29'),
    ('\x00', '\\00'),
)

DN_ESCAPE_MAP = (
    ('\\', '\\5c'),
    (' ', '\\20'),
    ('"', '\\22'),
    ('#', '\\23'),
    ('+', '\\2b'),
    (',', '\\2c'),
    (';', '\\3b'),
    ('<', '\\3c'),
    ('=', '\\3d'),
    ('>', '\\3e'),
    ('\x00', '\\00'),
)

# hex escapes are tried first, consecutive ones form one UTF-8 byte sequence
DN_UNESCAPE_RE = re.compile(
    r'(?P<hex>(?:\\[0-9A-Fa-f]{2})+)|\\(?P<char>[\\ "#+,;<=>])'
)


def escape_filter_value(value):
    """
    Escape a string for use as assertion value in a LDAP filter (RFC 4515)
    """
    for char, escaped in FILTER_ESCAPE_MAP:
        value = value.replace(char, escaped)
    return value


def escape_dn_value(value):
    """
    Escape a string for use as attribute value in a DN (RFC 4514)

    All special characters are escaped in numeric form, non-ASCII
    characters are left as is.
    """
    for char, escaped in DN_ESCAPE_MAP:
        value = value.replace(char, escaped)
    return value


def _unescape_match(match):
    if match.group('hex') is not None:
        return bytes.fromhex(match.group('hex').replace('\\', '')).decode('utf-8', 'surrogateescape')
    return match.group('char')


def unescape_dn_value(value):
    """
    Reverse the escaping of a DN attribute value

    Both the numeric (\\HH) and the alpha (\\<char>) forms are
    recognised in one pass. Hex pairs which are not valid UTF-8 are
    kept as surrogate escapes of the raw bytes.
    """
    return DN_UNESCAPE_RE.sub(_unescape_match, value)


def normalize_objectclass_filter(objectclass):
    """
    Returns a full filter string for an object class given in config

    Empty value means any object class, a value already starting
    with a parenthesis is assumed to be a complete filter.
    """
    objectclass = (objectclass or '').strip()
    if not objectclass:
        return '(objectClass=*)'
    if objectclass.lower().startswith('objectclass='):
        return '(%s)' % (objectclass,)
    if not objectclass.startswith('('):
        return '(objectClass=%s)' % (objectclass,)
    return objectclass


def split_values(value, sep=';'):
    """
    Split a separated config value into list of stripped non-empty strings
    """
    if not value:
        return []
    return [
        val.strip()
        for val in value.split(sep)
        if val.strip()
    ]


def ad_bind_error_code(diagnostic):
    """
    Extract the numeric data code from an Active Directory bind
    diagnostic message, None if not present
    """
    match = AD_LDAP49_ERROR_RE.search(diagnostic or '')
    if match is None:
        return None
    return int(match.group('code'), 16)


def ad_bind_error(diagnostic):
    """
    Returns a readable reason for an Active Directory bind failure
    """
    code = ad_bind_error_code(diagnostic)
    if code is None:
        return None
    return AD_LDAP49_ERROR_CODES.get(code, 'unknown error code 0x%x' % (code,))


def ad_password_expired(diagnostic):
    """
    Returns True if the diagnostic message of a failed Active Directory
    bind says the password has expired or must be changed
    """
    return ad_bind_error_code(diagnostic) in AD_PASSWORD_EXPIRED_CODES
