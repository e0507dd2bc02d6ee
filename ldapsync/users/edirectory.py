# -*- coding: utf-8 -*-
"""
ldapsync.users.edirectory - user accounts in Novell eDirectory

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import time
import calendar

from ..ldaputil import escape_dn_value
from .base import UserBase

GENERALIZED_TIME_FORMAT = '%Y%m%d%H%M%SZ'


def parse_generalized_time(value):
    """
    Returns Unix time stamp of a LDAP generalized time string in UTC
    """
    return calendar.timegm(time.strptime(value[:14], '%Y%m%d%H%M%S'))


def format_generalized_time(timestamp):
    return time.strftime(GENERALIZED_TIME_FORMAT, time.gmtime(timestamp))


class EDirectoryUser(UserBase):
    """
    User account in Novell eDirectory
    """
    DEFAULTS = {
        'user_objectclass': 'user',
        'user_attribute': 'cn',
        'member_attribute': 'member',
        'member_attribute_isdn': True,
        'password_expiration_attribute': 'passwordExpirationTime',
    }
    GROUP_OBJECTCLASSES = ('groupOfNames',)
    INFO_ATTRS = ('loginDisabled',)
    OBJECTCLASSES = ['inetOrgPerson', 'organizationalPerson', 'person', 'top']

    def _create(self, entry, password):
        dn = '%s=%s,%s' % (
            self.cfg.user_attribute,
            escape_dn_value(self.username),
            self.cfg.user_create_context,
        )
        entry.update({
            'objectClass': self.OBJECTCLASSES,
            self.cfg.user_attribute: [self.username],
            'uniqueId': [self.username],
            'loginDisabled': ['TRUE'],
            'userPassword': [self.encode_password(password)],
        })
        self.client.add(dn, entry)
        self._dn = dn

    def activate(self):
        self.client.modify(self.dn(), {'loginDisabled': ['FALSE']})

    def is_suspended(self, info=None):
        if self.cfg.suspended_attribute:
            return UserBase.is_suspended(self, info)
        if info is None:
            info = self.info(['loginDisabled'])
        return (info.get('loginDisabled') or '').upper() == 'TRUE'

    def _expiry_timestamp(self, value, info):
        return parse_generalized_time(value)

    def _update_password(self, password):
        """
        Set new password and restart password expiry and grace logins
        """
        expiry_attr = self.cfg.password_expiration_attribute
        info = self.info([
            expiry_attr,
            'passwordExpirationInterval',
            'loginGraceLimit',
        ])
        changes = {'userPassword': [self.encode_password(password)]}
        if info.get(expiry_attr):
            interval = int(info.get('passwordExpirationInterval') or 0)
            if interval:
                changes[expiry_attr] = [format_generalized_time(time.time() + interval)]
            if info.get('loginGraceLimit'):
                changes['loginGraceRemaining'] = [info['loginGraceLimit']]
        self.client.modify(self.dn(), changes)
