# -*- coding: utf-8 -*-
"""
ldapsync.errors - exception classes

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""


class LDAPSyncError(Exception):
    """
    Base exception class raised within this package
    """


class DirectoryConnectionError(LDAPSyncError):
    """
    Transport to the directory server could not be established
    """

    def __init__(self, uri, desc):
        LDAPSyncError.__init__(self, uri, desc)
        self.uri = uri
        self.desc = desc

    def __str__(self):
        return 'Could not connect to %s: %s' % (self.uri, self.desc)


class BindError(LDAPSyncError):
    """
    Credentials were rejected by the directory server
    """

    def __init__(self, who, desc):
        LDAPSyncError.__init__(self, who, desc)
        self.who = who
        self.desc = desc

    def __str__(self):
        return 'Bind as %r failed: %s' % (self.who or '(anonymous)', self.desc)


class DirectoryCommandError(LDAPSyncError):
    """
    A single LDAP operation failed

    operation
        name of the failed operation (search, add, modify, ...)
    diagnostic
        diagnostic message returned by the server
    args
        arguments the operation was called with
    result
        numeric LDAP result code if known
    """

    def __init__(self, operation, diagnostic, args=(), result=None):
        LDAPSyncError.__init__(self, operation, diagnostic)
        self.operation = operation
        self.diagnostic = diagnostic
        self.op_args = tuple(args)
        self.result = result

    def __str__(self):
        return 'LDAP %s%r failed: %s' % (self.operation, self.op_args, self.diagnostic)


class UserNotFoundError(LDAPSyncError):
    """
    No entry for a user name was found in any of the user contexts
    """

    def __init__(self, username):
        LDAPSyncError.__init__(self, username)
        self.username = username

    def __str__(self):
        return 'User %r not found in directory' % (self.username,)


class ConfigurationError(LDAPSyncError):
    """
    A required configuration parameter is missing or invalid
    """

    def __init__(self, parameter, desc=None):
        LDAPSyncError.__init__(self, parameter)
        self.parameter = parameter
        self.desc = desc

    def __str__(self):
        if self.desc:
            return 'Configuration parameter %r: %s' % (self.parameter, self.desc)
        return 'Configuration parameter %r not set' % (self.parameter,)


class UnsupportedUserTypeError(ConfigurationError):
    """
    The configured user type has no strategy class
    """

    def __init__(self, user_type):
        ConfigurationError.__init__(self, 'user_type', 'unsupported value %r' % (user_type,))
        self.user_type = user_type


class NoAttributeValueError(LDAPSyncError):
    """
    A required attribute has no value in an entry
    """

    def __init__(self, attribute, dn):
        LDAPSyncError.__init__(self, attribute, dn)
        self.attribute = attribute
        self.dn = dn

    def __str__(self):
        return 'No value for attribute %r in entry %r' % (self.attribute, self.dn)


class InvalidUsernameError(LDAPSyncError):
    """
    User name contains characters the directory does not accept
    """

    def __init__(self, username):
        LDAPSyncError.__init__(self, username)
        self.username = username

    def __str__(self):
        return 'Invalid user name %r' % (self.username,)


class NaturalKeyConflictError(LDAPSyncError):
    """
    Two external records map to the same local natural key
    """

    def __init__(self, key):
        LDAPSyncError.__init__(self, key)
        self.key = key

    def __str__(self):
        return 'Duplicate external record for %r' % (self.key,)
