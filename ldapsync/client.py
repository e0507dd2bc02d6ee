# -*- coding: utf-8 -*-
"""
ldapsync.client - directory client used by all sync components

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging
from contextlib import closing

import ldap3

from .log import LogHelper
from .errors import (
    BindError,
    ConfigurationError,
    DirectoryCommandError,
    DirectoryConnectionError,
)
from .ldapsession import (
    CONTROL_PAGEDRESULTS,
    RESULT_NO_SUCH_OBJECT,
    LDAPSession,
)
from .ldaputil import split_values
from .ldaputil.paging import PagedSearch

# page size used if server supports paging but none is configured
DEFAULT_PAGESIZE = 100

ANY_FILTER = '(objectClass=*)'


class DirectoryClient(LogHelper):
    """
    Owns exactly one connection to one of the configured directory servers
    """

    def __init__(self, cfg, client_strategy=ldap3.SYNC, servers=None):
        self.cfg = cfg
        self.uri_list = split_values(cfg.host_url)
        self.uri = None
        self.paged_results_supported = False
        self.pagesize = cfg.pagesize
        self._options = {}
        self._session = LDAPSession(
            version=cfg.ldap_version,
            charset=cfg.encoding,
            timeout=cfg.timeout,
            deref=cfg.opt_deref,
            client_strategy=client_strategy,
            servers=servers,
        )

    @classmethod
    def from_config(cls, cfg, **kwargs):
        """
        Returns a connected and admin-bound instance
        """
        if not split_values(cfg.host_url):
            raise ConfigurationError('host_url')
        client = cls(cfg, **kwargs)
        client.connect()
        return client

    @property
    def encoding(self):
        return self._session.charset

    @property
    def root_dse(self):
        return self._session.rootDSE

    def connect(self):
        """
        Try all configured server URIs in turn, the error of
        the last one is raised if none could be used
        """
        if not self.uri_list:
            raise ConfigurationError('host_url')
        last_error = None
        for uri in self.uri_list:
            try:
                self._connect_uri(uri)
            except (DirectoryConnectionError, BindError) as err:
                self.log(logging.WARNING, 'Connecting to %r failed: %s', uri, err)
                last_error = err
            else:
                return
        raise last_error
        # end of connect()

    def _connect_uri(self, uri):
        self._session.open(uri, self.cfg.start_tls)
        for name, value in self._options.items():
            self._session.set_option(name, value)
        self.bind_admin()
        self._session.init_rootdse(self.cfg.root_ds)
        if self.cfg.paged_results is None:
            self.paged_results_supported = CONTROL_PAGEDRESULTS in self._session.supportedControl
        else:
            self.paged_results_supported = bool(self.cfg.paged_results)
        if self.paged_results_supported and not self.pagesize:
            self.pagesize = DEFAULT_PAGESIZE
        self.uri = uri
        self.log(
            logging.DEBUG,
            'Connected to %r (paged results: %s, page size %d)',
            uri,
            self.paged_results_supported,
            self.pagesize,
        )
        # end of _connect_uri()

    def reconnect(self):
        """
        Tear down and rebuild the session, preferring the current server
        """
        uri = self.uri
        self.close()
        if uri is not None:
            try:
                self._connect_uri(uri)
            except (DirectoryConnectionError, BindError) as err:
                self.log(logging.WARNING, 'Reconnecting to %r failed: %s', uri, err)
            else:
                return
        self.connect()

    def close(self):
        self._session.unbind()
        self.uri = None

    def set_option(self, name, value):
        """
        Set a session option now and after every reconnect
        """
        self._options[name] = value
        if self.uri is not None:
            self._session.set_option(name, value)

    def bind(self, dn=None, password=None):
        """
        Bind as dn/password, anonymously if dn is empty
        """
        self._session.bind(dn, password)

    def bind_admin(self):
        """
        Bind with configured admin credentials
        """
        self.bind(self.cfg.bind_dn or None, self.cfg.bind_pw)

    def diagnostic_message(self, safe=False):
        """
        Returns the diagnostic message of the last operation

        With safe set an empty string is returned instead of
        raising an error if not connected.
        """
        if self.uri is None and not safe:
            raise DirectoryCommandError('diagnostic_message', 'not connected')
        return self._session.diagnostic_message()

    def _search(self, dn, scope, filterstr, attrs):
        try:
            entries, _ = self._session.search(dn, scope, filterstr, attrs)
        except DirectoryCommandError as ldap_err:
            if ldap_err.result == RESULT_NO_SUCH_OBJECT:
                self.log(logging.DEBUG, 'Search base %r does not exist', dn)
                return []
            raise
        return entries

    def read(self, dn, filterstr=ANY_FILTER, attrs=None):
        """
        Returns list with the entry dn if it matches filterstr
        """
        return self._search(dn, 'base', filterstr, attrs)

    def search(self, dn, filterstr, attrs=None, sub=True):
        """
        Returns list of all entries below dn matching filterstr
        """
        return self._search(dn, 'sub' if sub else 'one', filterstr, attrs)

    def find(self, dn, filterstr=ANY_FILTER, attrs=None):
        """
        Returns the entry dn if it matches filterstr or None
        """
        entries = self.read(dn, filterstr, attrs)
        if not entries:
            return None
        return entries[0]

    def find_any(self, dn, attrs=None):
        return self.find(dn, ANY_FILTER, attrs)

    def get_dn(self, dn, filterstr, sub=True):
        """
        Returns DN of the first entry below dn matching filterstr or None
        """
        entries = self.search(dn, filterstr, ['1.1'], sub=sub)
        if not entries:
            return None
        return entries[0].dn

    def iter_entries(self, dn, filterstr, attrs=None, sub=True):
        """
        Generator over all entries below dn matching filterstr
        using paged results if the server supports them

        The session is rebuilt after a paged search has ended, also when
        the consumer stopped iterating early.
        """
        scope = 'sub' if sub else 'one'
        if not self.paged_results_supported:
            yield from self._search(dn, scope, filterstr, attrs)
            return
        paged_search = PagedSearch(self._session, self.pagesize)
        paged_search.start_search(dn, scope, filterstr, attrs)
        try:
            yield from paged_search
        except DirectoryCommandError as ldap_err:
            if ldap_err.result != RESULT_NO_SUCH_OBJECT:
                raise
            self.log(logging.DEBUG, 'Search base %r does not exist', dn)
        finally:
            self.log(
                logging.DEBUG,
                'Paged search below %r ended after %d pages with %d entries',
                dn,
                paged_search.page_count,
                paged_search.entry_count,
            )
            self.reconnect()
        # end of iter_entries()

    def for_each(self, dn, callback, filterstr=ANY_FILTER, attrs=None, sub=True):
        """
        Call callback for each entry found, a callback returning False
        stops the search

        Returns number of processed entries.
        """
        count = 0
        with closing(self.iter_entries(dn, filterstr, attrs, sub=sub)) as entries:
            for entry in entries:
                count += 1
                if callback(entry) is False:
                    break
        return count

    def add(self, dn, entry):
        """
        Add entry given as dict of attribute type to value(s)
        """
        self._session.add(dn, entry)

    def modify(self, dn, changes):
        """
        Replace attribute values, an empty list removes the attribute
        """
        self._session.modify(
            dn,
            {
                attr_type: [(
                    ldap3.MODIFY_REPLACE,
                    attr_values if isinstance(attr_values, (list, tuple)) else [attr_values],
                )]
                for attr_type, attr_values in changes.items()
            },
        )

    def delete(self, dn):
        self._session.delete(dn)

    def global_attribute(self, name):
        """
        Returns list of values of attribute name in the root DSE or None
        """
        entry = self.find(self.cfg.root_ds, ANY_FILTER, [name])
        if entry is None:
            return None
        return entry.get(name)

    def __repr__(self):
        return '<%s.%s uri=%r session=%r>' % (
            self.__class__.__module__,
            self.__class__.__name__,
            self.uri,
            self._session,
        )
