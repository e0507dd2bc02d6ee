# -*- coding: utf-8 -*-
"""
ldapsync.users.activedirectory - user accounts in MS Active Directory

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging

from ..errors import (
    DirectoryCommandError,
    InvalidUsernameError,
    NoAttributeValueError,
)
from ..ldaputil import ad_bind_error, ad_password_expired, escape_dn_value
from .base import UserBase

# flags in attribute userAccountControl
UF_ACCOUNT_DISABLE = 0x0002
UF_NORMAL_ACCOUNT = 0x0200
UF_DONT_EXPIRE_PASSWD = 0x10000

CONTROL_ATTRIBUTE = 'userAccountControl'
PSO_ATTRIBUTE = 'msDS-ResultantPSO'

# seconds between 1601-01-01 and 1970-01-01
AD_EPOCH_OFFSET = 11644473600
# AD time stamps count 100 ns intervals
AD_TICKS_PER_SECOND = 10000000

# characters not allowed in sAMAccountName
INVALID_USERNAME_CHARS = frozenset('/\\[]:;|=,+*?<>@"')


def ad_expiry_timestamp(pwd_last_set, max_pwd_age):
    """
    Returns Unix time stamp when a password set at pwd_last_set
    expires with a (negative) max_pwd_age, 0 if it never expires
    """
    if max_pwd_age % 2**32 == 0:
        return 0
    return (pwd_last_set - max_pwd_age) // AD_TICKS_PER_SECOND - AD_EPOCH_OFFSET


def unicode_password(password):
    """
    Returns value for attribute unicodePwd
    """
    return ('"%s"' % (password,)).encode('utf-16-le')


class ActiveDirectoryUser(UserBase):
    """
    User account in MS Active Directory
    """
    DEFAULTS = {
        'user_objectclass': '(samaccounttype=805306368)',
        'user_attribute': 'cn',
        'member_attribute': 'member',
        'member_attribute_isdn': True,
        'password_expiration_attribute': 'pwdLastSet',
    }
    GROUP_OBJECTCLASSES = ('group',)
    INFO_ATTRS = (CONTROL_ATTRIBUTE, PSO_ATTRIBUTE)
    OBJECTCLASSES = ['top', 'person', 'organizationalPerson', 'user']

    @classmethod
    def prepare_client(cls, client):
        # don't chase referrals
        client.set_option('referrals', False)

    def _password_expired_on_bind(self):
        diagnostic = self.client.diagnostic_message(safe=True)
        self.log(
            logging.DEBUG,
            'Bind diagnostic for %r: %r (%s)',
            self.username,
            diagnostic,
            ad_bind_error(diagnostic),
        )
        return ad_password_expired(diagnostic)

    def _create(self, entry, password):
        if INVALID_USERNAME_CHARS.intersection(self.username):
            raise InvalidUsernameError(self.username)
        dn = 'cn=%s,%s' % (escape_dn_value(self.username), self.cfg.user_create_context)
        entry.update({
            'objectClass': self.OBJECTCLASSES,
            'sAMAccountName': [self.username],
            CONTROL_ATTRIBUTE: [str(UF_NORMAL_ACCOUNT | UF_ACCOUNT_DISABLE)],
        })
        # AD refuses passwords in the add request, set it separately
        self.client.add(dn, entry)
        try:
            self.client.modify(dn, {'unicodePwd': [unicode_password(password)]})
        except DirectoryCommandError:
            self.log(logging.WARNING, 'Setting password of %r failed, removing entry', dn)
            self.client.delete(dn)
            raise
        self._dn = dn

    def _update_password(self, password):
        self.client.modify(self.dn(), {'unicodePwd': [unicode_password(password)]})

    def _account_control(self, info=None):
        if info is None:
            info = self.info([CONTROL_ATTRIBUTE])
        return int(info.get(CONTROL_ATTRIBUTE) or 0)

    def activate(self):
        uac = self._account_control()
        self.client.modify(
            self.dn(),
            {CONTROL_ATTRIBUTE: [str(uac & ~UF_ACCOUNT_DISABLE)]},
        )

    def is_suspended(self, info=None):
        if self.cfg.suspended_attribute:
            return UserBase.is_suspended(self, info)
        return bool(self._account_control(info) & UF_ACCOUNT_DISABLE)

    def _max_pwd_age(self, info):
        """
        Returns maximum password age from the user's resultant password
        settings object or the domain policy
        """
        pso_dn = info.get(PSO_ATTRIBUTE)
        if pso_dn:
            pso = self.client.find_any(pso_dn, ['msDS-MaximumPasswordAge'])
            if pso is not None and pso.first('msDS-MaximumPasswordAge'):
                return int(pso.first('msDS-MaximumPasswordAge'))
        naming_contexts = self.client.global_attribute('defaultNamingContext')
        if not naming_contexts:
            raise NoAttributeValueError('defaultNamingContext', self.cfg.root_ds)
        domain = self.client.find_any(naming_contexts[0], ['maxPwdAge'])
        if domain is None or not domain.first('maxPwdAge'):
            raise NoAttributeValueError('maxPwdAge', naming_contexts[0])
        return int(domain.first('maxPwdAge'))

    def _expiry_timestamp(self, value, info):
        if self._account_control(info) & UF_DONT_EXPIRE_PASSWD:
            return 0
        pwd_last_set = int(value)
        if pwd_last_set == 0:
            # user has to change password on next login
            return -1
        return ad_expiry_timestamp(pwd_last_set, self._max_pwd_age(info))
