# -*- coding: utf-8 -*-
"""
ldapsync application package

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging

from .log import logger, LogHelper
from .__about__ import __version__

logger.debug('Loaded ldapsync %s', __version__)


VALID_CFG_PARAM_NAMES = {
    # connection
    'host_url': str,
    'ldap_version': int,
    'start_tls': int,
    'encoding': str,
    'pagesize': int,
    'paged_results': None,
    'timeout': int,
    'bind_dn': str,
    'bind_pw': str,
    'opt_deref': int,
    'root_ds': str,
    # users
    'user_type': str,
    'user_contexts': str,
    'user_create_context': str,
    'user_search_sub': bool,
    'user_attribute': str,
    'user_objectclass': str,
    'passtype': str,
    'password_expiration_attribute': str,
    'suspended_attribute': str,
    'member_attribute': str,
    'member_attribute_isdn': None,
    'group_objectclass': str,
    # account sync
    'removeuser': str,
    'sync_suspended': bool,
    'forcechangepassword': bool,
    'field_map': dict,
    'field_updatelocal': dict,
    'field_updateremote': dict,
    'system_role_mapping': dict,
    # enrolment sync
    'contexts_role': dict,
    'memberattribute_role': dict,
    'objectclass': str,
    'course_idnumber': str,
    'course_fullname': str,
    'course_shortname': str,
    'course_summary': str,
    'course_updateonsync': tuple,
    'autocreate': bool,
    'nested_groups': bool,
    'unenrolaction': str,
    'ignorehiddencourses': bool,
    'category': int,
    'template': str,
    # local store
    'database_url': str,
}

DEFAULT_CFG_PARAMS = {
    'host_url': '',
    'ldap_version': 3,
    'start_tls': 0,
    'encoding': 'utf-8',
    'pagesize': 0,
    'paged_results': None,
    'timeout': 60,
    'bind_dn': '',
    'bind_pw': '',
    'opt_deref': 0,
    'root_ds': '',
    'user_type': 'default',
    'user_contexts': '',
    'user_create_context': '',
    'user_search_sub': False,
    'user_attribute': '',
    'user_objectclass': '',
    'passtype': 'plaintext',
    'password_expiration_attribute': '',
    'suspended_attribute': '',
    'member_attribute': '',
    'member_attribute_isdn': None,
    'group_objectclass': '',
    'removeuser': 'keep',
    'sync_suspended': False,
    'forcechangepassword': False,
    'field_map': {},
    'field_updatelocal': {},
    'field_updateremote': {},
    'system_role_mapping': {},
    'contexts_role': {},
    'memberattribute_role': {},
    'objectclass': '',
    'course_idnumber': 'cn',
    'course_fullname': '',
    'course_shortname': '',
    'course_summary': '',
    'course_updateonsync': (),
    'autocreate': False,
    'nested_groups': False,
    'unenrolaction': 'unenrol',
    'ignorehiddencourses': False,
    'category': 1,
    'template': '',
    'database_url': 'sqlite://',
}


class SyncConfig(LogHelper):
    """
    Configuration of one directory integration
    """
    __slots__ = tuple(VALID_CFG_PARAM_NAMES.keys())

    def __init__(self, **params):
        self.update({
            param_name: param_val.copy() if isinstance(param_val, dict) else param_val
            for param_name, param_val in DEFAULT_CFG_PARAMS.items()
        })
        self.update(params)

    def update(self, params):
        """
        sets params as class attributes
        """
        for param_name, param_val in params.items():
            try:
                param_type = VALID_CFG_PARAM_NAMES[param_name]
            except KeyError:
                raise ValueError('Invalid config parameter %r.' % (param_name))
            if param_type is not None and not isinstance(param_val, param_type):
                raise TypeError(
                    'Invalid type for config parameter %r. Expected %r, got %r' % (
                        param_name,
                        param_type,
                        param_val,
                    )
                )
            setattr(self, param_name, param_val)

    def items(self):
        """
        returns list of (name, value) tuples of all parameters set
        """
        return [
            (param_name, getattr(self, param_name))
            for param_name in VALID_CFG_PARAM_NAMES
            if hasattr(self, param_name)
        ]

    def clone(self, **params):
        """
        returns a copy of the current SyncConfig
        with some more params set
        """
        old_params = {
            param_name: param_val.copy() if isinstance(param_val, dict) else param_val
            for param_name, param_val in self.items()
        }
        new = SyncConfig(**old_params)
        new.update(params)
        self.log(
            logging.DEBUG,
            'Cloned config %s with %d parameters to %s with %d new params %s',
            id(self),
            len(old_params),
            id(new),
            len(params),
            sorted(params.keys()),
        )
        return new
