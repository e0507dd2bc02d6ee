# -*- coding: utf-8 -*-
"""
ldapsync.users.samba - Samba accounts stored in LDAP

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

from .base import UserBase
from .rfc2307 import RFC2307User

ACCT_FLAGS_ATTRIBUTE = 'sambaAcctFlags'
# normal user account, disabled
NEW_ACCT_FLAGS = '[UD         ]'
ACCT_FLAG_DISABLED = 'D'


def format_acct_flags(flags):
    """
    Returns flags in fixed-width format [XXXXXXXXXXX]
    """
    return '[%-11s]' % (flags,)


def parse_acct_flags(value):
    return (value or '').strip().strip('[]').replace(' ', '')


class SambaUser(RFC2307User):
    """
    posixAccount with sambaSamAccount
    """
    DEFAULTS = {
        'user_objectclass': 'sambaSamAccount',
        'user_attribute': 'uid',
        'member_attribute': 'member',
        'member_attribute_isdn': False,
        'password_expiration_attribute': 'sambaPwdMustChange',
    }
    INFO_ATTRS = (ACCT_FLAGS_ATTRIBUTE,)
    OBJECTCLASSES = RFC2307User.OBJECTCLASSES + ['sambaSamAccount']

    def _posix_entry(self, password):
        entry = RFC2307User._posix_entry(self, password)
        entry[ACCT_FLAGS_ATTRIBUTE] = [NEW_ACCT_FLAGS]
        return entry

    def activate(self):
        RFC2307User.activate(self)
        flags = parse_acct_flags(self.info([ACCT_FLAGS_ATTRIBUTE]).get(ACCT_FLAGS_ATTRIBUTE))
        if ACCT_FLAG_DISABLED in flags:
            self.client.modify(
                self.dn(),
                {ACCT_FLAGS_ATTRIBUTE: [format_acct_flags(flags.replace(ACCT_FLAG_DISABLED, ''))]},
            )

    def is_suspended(self, info=None):
        if self.cfg.suspended_attribute:
            return UserBase.is_suspended(self, info)
        if info is None:
            info = self.info([ACCT_FLAGS_ATTRIBUTE])
        return ACCT_FLAG_DISABLED in parse_acct_flags(info.get(ACCT_FLAGS_ATTRIBUTE))

    def _expiry_timestamp(self, value, info):
        # sambaPwdMustChange is seconds since epoch
        return int(value)
