# -*- coding: ascii -*-
"""
ldaputil.passwd - client-side password hashing

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import base64
import hashlib
import secrets

AVAIL_USERPASSWORD_SCHEMES = {
    'sha': 'SHA-1',
    'ssha': 'salted SHA-1',
    'md5': 'MD5',
    'smd5': 'salted MD5',
    'sha256': 'SHA-256',
    'ssha256': 'salted SHA-256',
    'sha384': 'SHA-384',
    'ssha384': 'salted SHA-384',
    'sha512': 'SHA-512',
    'ssha512': 'salted SHA-512',
    '': 'plain text',
}


SALTED_USERPASSWORD_SCHEMES = {
    'smd5',
    'ssha',
    'ssha256',
    'ssha384',
    'ssha512',
}


# map lower-cased password scheme to hash function
SCHEME2HASHLIBFUNC = {
    'sha': hashlib.sha1,
    'ssha': hashlib.sha1,
    'md5': hashlib.md5,
    'smd5': hashlib.md5,
    'sha256': hashlib.sha256,
    'ssha256': hashlib.sha256,
    'sha384': hashlib.sha384,
    'ssha384': hashlib.sha384,
    'sha512': hashlib.sha512,
    'ssha512': hashlib.sha512,
}

# names accepted for config parameter passtype
PASSTYPE2SCHEME = {
    'plaintext': '',
    'md5': 'md5',
    'sha1': 'sha',
}


def user_password_hash(password, scheme, salt=None):
    """
    Return hashed password (including salt) as str.
    """
    scheme = scheme.lower().strip()
    if not scheme:
        return password
    if scheme not in AVAIL_USERPASSWORD_SCHEMES:
        raise ValueError('Hashing scheme %r not supported.' % (scheme))
    password_b = password.encode('utf-8')
    if scheme in SALTED_USERPASSWORD_SCHEMES:
        salt = salt or secrets.token_bytes(12)
    else:
        salt = b''
    encoded_pw = base64.b64encode(
        SCHEME2HASHLIBFUNC[scheme](password_b+salt).digest()+salt
    ).decode('ascii')
    return '{%s}%s' % (scheme.upper(), encoded_pw)


def encode_password(password, passtype):
    """
    Encode password according to config parameter passtype
    """
    passtype = (passtype or 'plaintext').lower().strip()
    return user_password_hash(password, PASSTYPE2SCHEME.get(passtype, passtype))
