# -*- coding: utf-8 -*-
"""
ldapsync.users - registry of directory user account types

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging
from contextlib import closing

from ..log import LogHelper
from ..errors import UnsupportedUserTypeError
from ..groups import Group, GroupExpander
from ..ldaputil import split_values
from .base import DN_ATTRS, UserBase
from .activedirectory import ActiveDirectoryUser
from .edirectory import EDirectoryUser
from .rfc2307 import RFC2307User, RFC2307bisUser
from .samba import SambaUser

USER_TYPES = {
    'default': UserBase,
    'ad': ActiveDirectoryUser,
    'edir': EDirectoryUser,
    'rfc2307': RFC2307User,
    'rfc2307bis': RFC2307bisUser,
    'samba': SambaUser,
}

# human-readable names of user types
USER_TYPE_NAMES = {
    'default': 'Default',
    'ad': 'MS ActiveDirectory',
    'edir': 'Novell Edirectory',
    'rfc2307': 'posixAccount (rfc2307)',
    'rfc2307bis': 'posixAccount (rfc2307bis)',
    'samba': 'sambaSamAccount (v.3.0.7)',
}


class Users(LogHelper):
    """
    Entry point for all user related directory operations,
    selects the user class from config parameter user_type
    """

    def __init__(self, client, cfg=None, cache=None):
        cfg = cfg or client.cfg
        try:
            self.user_class = USER_TYPES[cfg.user_type.strip().lower()]
        except KeyError:
            raise UnsupportedUserTypeError(cfg.user_type)
        self.client = client
        self.cache = cache
        self.cfg = self.user_class.merged_config(cfg)
        self.user_class.prepare_client(client)
        self.group_expander = GroupExpander(
            client,
            self.user_class.group_objectclasses(self.cfg),
            cache=cache,
        )

    @property
    def user_contexts(self):
        return split_values(self.cfg.user_contexts)

    def user(self, username):
        """
        Returns user class instance for username
        """
        return self.user_class(self.client, self.cfg, username, self.group_expander)

    def group(self, dn, member_attribute=None):
        return Group(self.group_expander, dn, member_attribute or self.cfg.member_attribute)

    def iter_usernames(self, filterstr=''):
        """
        Generator over user names found in all user contexts
        """
        attr_type = self.cfg.user_attribute
        user_filter = '(&(%s=*)%s%s)' % (attr_type, self.cfg.user_objectclass, filterstr)
        for context in self.user_contexts:
            self.log(logging.DEBUG, 'Searching users below %r with %r', context, user_filter)
            for entry in self.client.iter_entries(
                    context,
                    user_filter,
                    [attr_type],
                    sub=self.cfg.user_search_sub,
                ):
                username = entry.first(attr_type)
                if username:
                    yield username

    def for_each(self, callback, filterstr=''):
        """
        Call callback with each user name, stops if callback returns False
        """
        with closing(self.iter_usernames(filterstr)) as usernames:
            for username in usernames:
                if callback(username) is False:
                    break

    def list(self, filterstr=''):
        return list(self.iter_usernames(filterstr))

    def _uid(self, member_dn):
        entry = self.client.find(member_dn, self.cfg.user_objectclass, [self.cfg.user_attribute])
        if entry is None:
            return None
        return entry.first(self.cfg.user_attribute)

    def get_uids(self, members):
        """
        Map member attribute values to user names, member DNs which are
        not user entries are dropped
        """
        if not self.cfg.member_attribute_isdn or self.cfg.user_attribute.lower() in DN_ATTRS:
            return [member for member in members if member]
        uids = []
        for member_dn in members:
            if self.cache is not None:
                uid = self.cache.get_or_set('uid', member_dn.lower(), lambda: self._uid(member_dn))
            else:
                uid = self._uid(member_dn)
            if uid is None:
                self.log(logging.DEBUG, 'No user entry for member %r', member_dn)
                continue
            uids.append(uid)
        return uids
        # end of get_uids()
