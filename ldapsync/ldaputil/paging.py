# -*- coding: utf-8 -*-
"""
ldapsync.ldaputil.paging - stream results of paged LDAP searches

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""


class PagedSearch:
    """
    Class for stream-processing LDAP search results retrieved
    with the Simple Paged Results control (RFC 2696)

    Arguments:

    session
      LDAPSession instance
    page_size
      number of entries requested per page
    """

    def __init__(self, session, page_size):
        self._session = session
        self.page_size = page_size
        self.cookie = None
        self.page_count = 0
        self.entry_count = 0
        self._search_args = None

    def start_search(self, base, scope, filterstr, attrlist=None):
        """
        base
            search base DN
        scope
            one of 'base', 'one', 'sub'
        filterstr
            LDAP filter string
        attrlist=None
            list of attribute types to request
        """
        self._search_args = (base, scope, filterstr, attrlist)
        self.cookie = None
        self.page_count = 0
        self.entry_count = 0
        # end of start_search()

    def pages(self):
        """
        Generator yielding one list of DirectoryEntry instances per page
        until the server returns an empty cookie or an empty page
        """
        if self._search_args is None:
            raise ValueError('start_search() has to be called first')
        base, scope, filterstr, attrlist = self._search_args
        while True:
            entries, self.cookie = self._session.search(
                base,
                scope,
                filterstr,
                attrlist,
                paged_size=self.page_size,
                paged_cookie=self.cookie,
            )
            self.page_count += 1
            self.entry_count += len(entries)
            if not entries:
                break
            yield entries
            if not self.cookie:
                break
        # end of pages()

    def __iter__(self):
        for page in self.pages():
            yield from page
