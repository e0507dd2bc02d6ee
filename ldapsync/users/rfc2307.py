# -*- coding: utf-8 -*-
"""
ldapsync.users.rfc2307 - POSIX user accounts (RFC 2307 and RFC 2307bis)

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

from ..ldaputil import escape_dn_value
from .base import UserBase, SECONDS_PER_DAY

# prefix of userPassword value of a disabled account
DISABLED_PASSWORD_PREFIX = '*'


class RFC2307User(UserBase):
    """
    posixAccount with memberUid-style groups
    """
    DEFAULTS = {
        'user_objectclass': 'posixAccount',
        'user_attribute': 'uid',
        'member_attribute': 'member',
        'member_attribute_isdn': False,
        'password_expiration_attribute': 'shadowExpire',
    }
    OBJECTCLASSES = ['posixAccount', 'inetOrgPerson', 'organizationalPerson', 'person', 'top']

    def _posix_entry(self, password):
        return {
            'objectClass': list(self.OBJECTCLASSES),
            'cn': [self.username],
            self.cfg.user_attribute: [self.username],
            'uidNumber': ['-2'],
            'gidNumber': ['-2'],
            'homeDirectory': ['/'],
            'loginShell': ['/bin/false'],
            'userPassword': [DISABLED_PASSWORD_PREFIX + self.encode_password(password)],
        }

    def _create(self, entry, password):
        dn = '%s=%s,%s' % (
            self.cfg.user_attribute,
            escape_dn_value(self.username),
            self.cfg.user_create_context,
        )
        posix_entry = self._posix_entry(password)
        for attr_type, attr_values in entry.items():
            posix_entry.setdefault(attr_type, attr_values)
        self.client.add(dn, posix_entry)
        self._dn = dn

    def activate(self):
        password = self.info(['userPassword']).get('userPassword')
        if password and password.startswith(DISABLED_PASSWORD_PREFIX):
            self.client.modify(
                self.dn(),
                {'userPassword': [password.lstrip(DISABLED_PASSWORD_PREFIX)]},
            )

    def _expiry_timestamp(self, value, info):
        # shadowExpire counts days since epoch
        return int(value) * SECONDS_PER_DAY


class RFC2307bisUser(RFC2307User):
    """
    posixAccount with groups listing member DNs
    """
    DEFAULTS = dict(
        RFC2307User.DEFAULTS,
        member_attribute_isdn=True,
    )
    GROUP_OBJECTCLASSES = ('groupOfNames', 'groupOfUniqueNames')
