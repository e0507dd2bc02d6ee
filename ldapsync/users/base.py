# -*- coding: utf-8 -*-
"""
ldapsync.users.base - base class for directory user accounts

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import math
import time
import logging

from ldap3.utils.ciDict import CaseInsensitiveDict

from ..log import LogHelper
from ..errors import (
    BindError,
    ConfigurationError,
    NoAttributeValueError,
    UserNotFoundError,
)
from ..ldaputil import (
    escape_filter_value,
    normalize_objectclass_filter,
    split_values,
)
from ..ldaputil.passwd import encode_password

# attribute names which are mapped to the entry's DN
DN_ATTRS = {'dn', 'distinguishedname'}

# values of a suspended attribute meaning "not suspended"
FALSE_VALUES = {'', '0', 'false', 'no'}

SECONDS_PER_DAY = 86400


def expiry_days(timestamp, now=None):
    """
    Convert password expiry Unix timestamp to days from now

    Timestamps <= 0 are returned as is (0 never expires, -1 expired).
    Days in the future are rounded up, days in the past down, an expiry
    reached right now is -1.
    """
    if timestamp <= 0:
        return timestamp
    if now is None:
        now = time.time()
    days = (timestamp - now) / SECONDS_PER_DAY
    if days > 0:
        return math.ceil(days)
    return min(math.floor(days), -1)


class UserBase(LogHelper):
    """
    Operations on a single user account in the directory
    """
    # vendor defaults for config parameters left empty by the admin
    DEFAULTS = {
        'user_objectclass': '',
        'user_attribute': 'cn',
        'member_attribute': '',
        'member_attribute_isdn': False,
        'password_expiration_attribute': '',
    }
    # object classes of entries treated as groups during nested expansion
    GROUP_OBJECTCLASSES = ()
    # attributes always read by info_array()
    INFO_ATTRS = ()

    def __init__(self, client, cfg, username, group_expander=None):
        self.client = client
        self.cfg = cfg
        self.username = username.strip().lower()
        self.group_expander = group_expander
        self.login_expired = False
        self._dn = None

    @classmethod
    def merged_config(cls, cfg):
        """
        Returns a copy of cfg with vendor defaults filled in
        """
        params = {
            param_name: default
            for param_name, default in cls.DEFAULTS.items()
            if getattr(cfg, param_name) in (None, '')
        }
        new_cfg = cfg.clone(**params)
        new_cfg.update({
            'user_objectclass': normalize_objectclass_filter(new_cfg.user_objectclass),
            'member_attribute_isdn': bool(new_cfg.member_attribute_isdn),
        })
        if not new_cfg.user_create_context:
            contexts = split_values(new_cfg.user_contexts)
            if len(contexts) == 1:
                new_cfg.update({'user_create_context': contexts[0]})
        return new_cfg

    @classmethod
    def group_objectclasses(cls, cfg):
        if cfg.group_objectclass:
            return tuple(split_values(cfg.group_objectclass))
        return cls.GROUP_OBJECTCLASSES

    @classmethod
    def prepare_client(cls, client):
        """
        Set vendor-specific options on the directory client
        """

    @property
    def user_contexts(self):
        return split_values(self.cfg.user_contexts)

    @property
    def escaped_username(self):
        """
        user name escaped for use in LDAP filters
        """
        return escape_filter_value(self.username)

    def user_filter(self):
        return '(&%s(%s=%s))' % (
            self.cfg.user_objectclass,
            self.cfg.user_attribute,
            self.escaped_username,
        )

    def find_dn(self):
        """
        Returns the DN of the user's entry or None if not found
        """
        if self._dn is None:
            filterstr = self.user_filter()
            for context in self.user_contexts:
                dn = self.client.get_dn(context, filterstr, sub=self.cfg.user_search_sub)
                if dn:
                    self._dn = dn
                    break
        return self._dn

    def dn(self):
        """
        Returns the DN of the user's entry, raises UserNotFoundError if not found
        """
        dn = self.find_dn()
        if dn is None:
            raise UserNotFoundError(self.username)
        return dn

    def exists(self):
        return self.find_dn() is not None

    def _password_expired_on_bind(self):
        """
        Check diagnostic message of a failed bind for an expired password
        """
        return False

    def login(self, password, expired_ok=False):
        """
        Check password by binding as the user, returns True if successful

        The admin identity is always restored afterwards. With expired_ok
        set login_expired tells whether the bind failed because the
        password has expired.
        """
        self.login_expired = False
        if not password:
            return False
        dn = self.find_dn()
        if dn is None:
            return False
        try:
            self.client.bind(dn, password)
        except BindError as err:
            self.log(logging.DEBUG, 'Login of %r failed: %s', self.username, err)
            if expired_ok:
                self.login_expired = self._password_expired_on_bind()
            return False
        else:
            return True
        finally:
            self.client.bind_admin()
        # end of login()

    def info_array(self, attrs=()):
        """
        Returns case-insensitive dict of all values of the requested
        attributes of the user's entry
        """
        dn = self.dn()
        wanted = {
            attr_type
            for attr_type in attrs
            if attr_type.lower() not in DN_ATTRS
        }
        wanted.update(self.INFO_ATTRS)
        for attr_type in (
                self.cfg.user_attribute,
                self.cfg.suspended_attribute,
                self.cfg.password_expiration_attribute,
            ):
            if attr_type:
                wanted.add(attr_type)
        entry = self.client.find_any(dn, sorted(wanted))
        if entry is None:
            raise UserNotFoundError(self.username)
        result = CaseInsensitiveDict(entry.items())
        for attr_type in attrs:
            if attr_type.lower() in DN_ATTRS:
                result[attr_type] = [entry.dn]
        return result

    def info(self, attrs=()):
        """
        Returns case-insensitive dict of first values of the requested
        attributes of the user's entry
        """
        result = CaseInsensitiveDict()
        for attr_type, attr_values in self.info_array(attrs).items():
            if attr_values:
                result[attr_type] = attr_values[0]
        return result

    def attribute(self, name):
        return self.info([name]).get(name)

    def encode_password(self, password):
        return encode_password(password, self.cfg.passtype)

    def create(self, attributes, password):
        """
        Create the user's entry below user_create_context,
        attributes is a dict of attribute type to value(s)
        """
        if not self.cfg.user_create_context:
            raise ConfigurationError('user_create_context')
        entry = {
            attr_type: attr_values if isinstance(attr_values, (list, tuple)) else [attr_values]
            for attr_type, attr_values in attributes.items()
            if attr_values not in (None, '', [])
        }
        self._create(entry, password)
        self.log(logging.INFO, 'Created user entry %r', self._dn)

    def _create(self, entry, password):
        raise ConfigurationError(
            'user_type',
            'creating users not supported for %s' % (self.__class__.__name__,),
        )

    def update(self, attributes):
        """
        Replace values of the given attributes
        """
        self.client.modify(self.dn(), attributes)

    def update_password(self, password):
        self._update_password(password)

    def _update_password(self, password):
        self.client.modify(self.dn(), {'userPassword': [self.encode_password(password)]})

    def activate(self):
        raise ConfigurationError(
            'user_type',
            'activating users not supported for %s' % (self.__class__.__name__,),
        )

    def is_suspended(self, info=None):
        """
        Returns True if the account is marked as suspended
        """
        attr_type = self.cfg.suspended_attribute
        if not attr_type:
            return False
        if info is None:
            info = self.info([attr_type])
        value = info.get(attr_type) or ''
        if isinstance(value, list):
            value = value[0] if value else ''
        return value.strip().lower() not in FALSE_VALUES

    def _expiry_timestamp(self, value, info):
        """
        Convert value of the password expiry attribute to Unix time
        """
        return int(value)

    def password_expire(self, info=None):
        """
        Returns number of days until the password expires,
        0 if it never expires and a negative number if already expired
        """
        attr_type = self.cfg.password_expiration_attribute
        if not attr_type:
            raise ConfigurationError('password_expiration_attribute')
        if info is None:
            info = self.info([attr_type])
        value = info.get(attr_type)
        if not value:
            raise NoAttributeValueError(attr_type, self.dn())
        return expiry_days(self._expiry_timestamp(value, info))

    def member_id(self):
        """
        Returns the value used in group membership attributes
        """
        if self.cfg.member_attribute_isdn:
            return self.find_dn()
        return self.username

    def is_group_member(self, group_dns):
        """
        Returns True if the user is a direct member of any of the
        groups, group_dns may be a list or ;-separated string

        An entry below a configured DN also counts as member.
        """
        if not self.cfg.member_attribute:
            raise ConfigurationError('member_attribute')
        if isinstance(group_dns, str):
            group_dns = split_values(group_dns)
        dn = self.find_dn()
        if dn is None:
            return False
        member_id = self.member_id()
        for group_dn in group_dns:
            if dn.lower().endswith(',' + group_dn.lower()):
                return True
            entry = self.client.find(
                group_dn,
                '(%s=%s)' % (self.cfg.member_attribute, escape_filter_value(member_id)),
                ['1.1'],
            )
            if entry is not None:
                return True
        return False
        # end of is_group_member()

    def groups(self, contexts=None):
        """
        Returns list of DNs of all groups the user is a member of,
        directly or through nested groups
        """
        if not self.cfg.member_attribute:
            raise ConfigurationError('member_attribute')
        if self.group_expander is None:
            raise ConfigurationError('group_objectclass', 'no group expander available')
        member_id = self.member_id()
        if member_id is None:
            return []
        return self.group_expander.find_groups(
            member_id,
            contexts if contexts is not None else self.user_contexts,
            self.cfg.member_attribute,
        )

    def __repr__(self):
        return '<%s.%s username=%r dn=%r>' % (
            self.__class__.__module__,
            self.__class__.__name__,
            self.username,
            self._dn,
        )
