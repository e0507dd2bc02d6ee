# -*- coding: utf-8 -*-
"""
ldapsync.ldapsession - lower-level class for handling one LDAP connection

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import time
import logging

import ldap3
from ldap3.core.exceptions import LDAPException, LDAPOperationResult
from ldap3.utils.ciDict import CaseInsensitiveDict

from .log import LogHelper
from .errors import BindError, DirectoryCommandError, DirectoryConnectionError

START_TLS_NO = 0
START_TLS_TRY = 1
START_TLS_REQUIRED = 2

# RFC 2696: Simple Paged Results Manipulation
CONTROL_PAGEDRESULTS = '1.2.840.113556.1.4.319'

# LDAP result code noSuchObject
RESULT_NO_SUCH_OBJECT = 32

LDAP_DEFAULT_TIMEOUT = 60

ROOTDSE_ATTRS = (
    'defaultNamingContext',
    'namingContexts',
    'supportedControl',
    'supportedLDAPVersion',
    'vendorName',
)

# map numeric deref option to ldap3 constants
DEREF_ALIASES = {
    0: ldap3.DEREF_NEVER,
    1: ldap3.DEREF_SEARCH,
    2: ldap3.DEREF_BASE,
    3: ldap3.DEREF_ALWAYS,
}

SEARCH_SCOPES = {
    'base': ldap3.BASE,
    'one': ldap3.LEVEL,
    'sub': ldap3.SUBTREE,
}


class DirectoryEntry:
    """
    Snapshot of a single directory entry: DN plus case-insensitive
    dictionary of attribute type to list of str values
    """
    __slots__ = (
        'dn',
        'entry',
    )

    def __init__(self, dn, entry=None):
        self.dn = dn
        self.entry = CaseInsensitiveDict()
        for attr_type, attr_values in (entry or {}).items():
            if attr_values:
                self.entry[attr_type] = list(attr_values)

    @classmethod
    def from_response(cls, response, charset):
        """
        Build instance from single item of ldap3's Connection.response
        """
        return cls(
            response['dn'],
            {
                attr_type: [
                    val.decode(charset, 'surrogateescape') if isinstance(val, bytes) else val
                    for val in attr_values
                ]
                for attr_type, attr_values in response['raw_attributes'].items()
            },
        )

    def __getitem__(self, attr_type):
        return self.entry[attr_type]

    def __contains__(self, attr_type):
        return attr_type in self.entry

    def get(self, attr_type, default=None):
        return self.entry.get(attr_type, default)

    def first(self, attr_type, default=None):
        """
        Returns the first value of attribute or default
        """
        try:
            return self.entry[attr_type][0]
        except (KeyError, IndexError):
            return default

    def items(self):
        return self.entry.items()

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__, self.dn, dict(self.entry.items()))


class LDAPSession(LogHelper):
    """
    Class for handling a LDAP connection object
    """
    __slots__ = (
        'charset',
        'client_strategy',
        'conn',
        'connStartTime',
        'deref',
        'last_result',
        'rootDSE',
        'secureConn',
        '_servers',
        'startTLSOption',
        'supportedControl',
        'timeout',
        'uri',
        'version',
        'who',
    )

    def __init__(
            self,
            version=3,
            charset='utf-8',
            timeout=LDAP_DEFAULT_TIMEOUT,
            deref=0,
            client_strategy=ldap3.SYNC,
            servers=None,
        ):
        self.conn = None
        self.uri = None
        self.who = None
        self.version = version
        # Character set/encoding of data stored on this particular host
        self.charset = charset
        self.timeout = timeout
        self.deref = DEREF_ALIASES.get(deref, ldap3.DEREF_NEVER)
        self.client_strategy = client_strategy
        # ldap3.Server instances by URI, kept across reconnects
        self._servers = servers if servers is not None else {}
        self.last_result = {}
        self.secureConn = 0
        self.startTLSOption = 0
        self.connStartTime = None
        self._reset_rootdse_attrs()
        # end of __init__()

    def _get_server(self, uri):
        try:
            return self._servers[uri]
        except KeyError:
            server = ldap3.Server(
                uri,
                get_info=ldap3.NONE,
                connect_timeout=self.timeout,
            )
            self._servers[uri] = server
            return server

    def _start_tls(self, startTLSOption):
        """
        StartTLS if possible and requested
        """
        self.secureConn = 0
        self.startTLSOption = 0
        if not startTLSOption:
            return
        try:
            self.conn.start_tls(read_server_info=False)
        except LDAPException as ldap_err:
            if startTLSOption > 1:
                self.unbind()
                raise DirectoryConnectionError(self.uri, 'StartTLS failed: %s' % (ldap_err,))
            self.log(logging.WARNING, 'StartTLS failed on %r, continue without: %s', self.uri, ldap_err)
        else:
            self.startTLSOption = 2
            self.secureConn = 1
        # end of _start_tls()

    def open(self, uri, start_tls=START_TLS_NO):
        """
        Open a LDAP connection to a single LDAP URI
        """
        if not uri:
            raise ValueError('Empty value for uri')
        uri = uri.strip()
        self.unbind()
        try:
            self.conn = ldap3.Connection(
                self._get_server(uri),
                version=self.version,
                client_strategy=self.client_strategy,
                raise_exceptions=True,
                receive_timeout=self.timeout,
                return_empty_attributes=False,
            )
            self.conn.open(read_server_info=False)
        except LDAPException as ldap_err:
            self.conn = None
            raise DirectoryConnectionError(uri, str(ldap_err))
        self.uri = uri
        self.who = None
        if uri.lower().startswith('ldap:'):
            # Start TLS extended operation
            self._start_tls(start_tls)
        elif uri.lower().startswith('ldaps:') or uri.lower().startswith('ldapi:'):
            self.secureConn = 1
        self.connStartTime = time.time()
        self.log(logging.DEBUG, 'Connected to %r', self.uri)
        # end of open()

    def unbind(self):
        """Close LDAP connection object if necessary"""
        if self.conn is not None:
            try:
                self.conn.unbind()
            except LDAPException as ldap_err:
                self.log(logging.DEBUG, 'Ignoring error during unbind from %r: %s', self.uri, ldap_err)
        self.conn = None
        self.uri = None # delete the LDAP connection URI
        self.who = None
        # end of unbind()

    def set_option(self, name, value):
        """
        Set a connection option, only 'referrals' is supported
        """
        if name != 'referrals':
            raise ValueError('Unsupported session option %r' % (name,))
        self.conn.auto_referrals = bool(value)

    def bind(self, who, cred):
        """
        Send simple BindRequest, anonymous if who is empty
        """
        if who:
            self.conn.authentication = ldap3.SIMPLE
            self.conn.user = who
            self.conn.password = cred
        else:
            self.conn.authentication = ldap3.ANONYMOUS
            self.conn.user = ''
            self.conn.password = None
        try:
            self.conn.bind(read_server_info=False)
        except LDAPOperationResult as ldap_err:
            # Explicitly forget bind identity before re-raising exception
            self.who = None
            self.last_result = self.conn.result or {'message': ldap_err.message}
            raise BindError(who, ldap_err.message or ldap_err.description)
        except LDAPException as ldap_err:
            self.who = None
            self.last_result = {'message': str(ldap_err)}
            raise DirectoryConnectionError(self.uri, str(ldap_err))
        else:
            self.last_result = self.conn.result or {}
            self.who = who or None
        # end of bind()

    def execute(self, operation, func, *args, **kwargs):
        """
        Call a ldap3 method, any failure raises DirectoryCommandError
        """
        if self.conn is None:
            raise DirectoryCommandError(operation, 'not connected', args)
        try:
            res = func(*args, **kwargs)
        except LDAPOperationResult as ldap_err:
            self.last_result = self.conn.result or {}
            raise DirectoryCommandError(
                operation,
                ldap_err.message or ldap_err.description,
                args,
                result=ldap_err.result,
            )
        except LDAPException as ldap_err:
            self.last_result = {'message': str(ldap_err)}
            raise DirectoryCommandError(operation, str(ldap_err), args)
        self.last_result = self.conn.result or {}
        return res

    def diagnostic_message(self):
        """
        Returns diagnostic message of the last operation
        """
        return self.last_result.get('message') or ''

    def search(
            self,
            base,
            scope,
            filterstr,
            attrlist=None,
            paged_size=None,
            paged_cookie=None,
        ):
        """
        Search and return a tuple of list of DirectoryEntry instances
        and the paged results cookie returned by the server
        """
        self.execute(
            'search',
            self.conn.search,
            base,
            filterstr,
            search_scope=SEARCH_SCOPES[scope],
            dereference_aliases=self.deref,
            attributes=list(attrlist or [ldap3.ALL_ATTRIBUTES]),
            paged_size=paged_size,
            paged_cookie=paged_cookie,
        )
        entries = [
            DirectoryEntry.from_response(res, self.charset)
            for res in self.conn.response or []
            if res.get('type') == 'searchResEntry'
        ]
        try:
            cookie = self.last_result['controls'][CONTROL_PAGEDRESULTS]['value']['cookie']
        except (KeyError, TypeError):
            cookie = None
        return entries, cookie

    def add(self, dn, entry):
        self.execute('add', self.conn.add, dn, attributes=entry)

    def modify(self, dn, changes):
        self.execute('modify', self.conn.modify, dn, changes)

    def delete(self, dn):
        self.execute('delete', self.conn.delete, dn)

    def _reset_rootdse_attrs(self):
        """Forget all old RootDSE values"""
        self.rootDSE = DirectoryEntry('')
        self.supportedControl = frozenset([])

    def init_rootdse(self, root_ds=''):
        """Retrieve attributes from Root DSE"""
        self._reset_rootdse_attrs()
        try:
            entries, _ = self.search(root_ds, 'base', '(objectClass=*)', ROOTDSE_ATTRS)
        except DirectoryCommandError as ldap_err:
            self.log(logging.DEBUG, 'Reading root DSE %r failed: %s', root_ds, ldap_err)
            return
        if entries:
            self.rootDSE = entries[0]
        self.supportedControl = frozenset(self.rootDSE.get('supportedControl', []))
        # end of init_rootdse()

    def __repr__(self):
        return '<%s.%s uri=%r who=%r>' % (
            self.__class__.__module__,
            self.__class__.__name__,
            self.uri,
            self.who,
        )
