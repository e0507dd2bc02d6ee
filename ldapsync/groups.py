# -*- coding: utf-8 -*-
"""
ldapsync.groups - nested group membership

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging

from .log import LogHelper
from .ldaputil import escape_filter_value


class GroupExpander(LogHelper):
    """
    Resolves nested group memberships without ever visiting
    a DN twice, so circular nesting is harmless

    group_objectclasses
        object classes of entries treated as groups, empty if the
        directory does not support nested groups
    cache
        optional RunCache for memoising expansions during one run
    """

    def __init__(self, client, group_objectclasses=(), cache=None):
        self.client = client
        self.group_objectclasses = tuple(group_objectclasses)
        self._group_oc_set = {oc.lower() for oc in self.group_objectclasses}
        self.cache = cache

    def is_group(self, entry):
        return bool(self._group_oc_set.intersection(
            oc.lower() for oc in entry.get('objectClass', [])
        ))

    def group_filter(self):
        if not self.group_objectclasses:
            return '(objectClass=*)'
        return '(|%s)' % ''.join(
            '(objectClass=%s)' % (oc,)
            for oc in self.group_objectclasses
        )

    def expand(self, group_dn, member_attribute):
        """
        Returns list of all DNs of non-group members of group_dn
        including members of nested groups, in order of discovery

        A DN not referring to a group is returned as sole member.
        """
        if not self.group_objectclasses:
            self.log(
                logging.WARNING,
                'No group object classes known, not expanding %r',
                group_dn,
            )
            return [group_dn]
        if self.cache is not None:
            return list(self.cache.get_or_set(
                'expand',
                (group_dn.lower(), member_attribute.lower()),
                lambda: self._expand(group_dn, member_attribute),
            ))
        return self._expand(group_dn, member_attribute)

    def _expand(self, group_dn, member_attribute):
        members = []
        seen = set()
        stack = [group_dn]
        while stack:
            dn = stack.pop()
            if dn.lower() in seen:
                continue
            seen.add(dn.lower())
            entry = self.client.find_any(dn, ['objectClass', member_attribute])
            if entry is None or not self.is_group(entry):
                members.append(dn)
                continue
            self.log(logging.DEBUG, 'Expanding group %r', dn)
            # reversed to pop members in attribute order
            for member_dn in reversed(entry.get(member_attribute, [])):
                if member_dn.lower() not in seen:
                    stack.append(member_dn)
        return members
        # end of _expand()

    def find_groups(self, member_id, contexts, member_attribute, sub=True):
        """
        Returns list of DNs of all groups below contexts containing
        member_id directly or through nested groups
        """
        groups = []
        seen = {member_id.lower()}
        stack = [member_id]
        while stack:
            current = stack.pop()
            filterstr = '(&%s(%s=%s))' % (
                self.group_filter(),
                member_attribute,
                escape_filter_value(current),
            )
            for context in contexts:
                for entry in self.client.search(context, filterstr, ['1.1'], sub=sub):
                    if entry.dn.lower() in seen:
                        continue
                    seen.add(entry.dn.lower())
                    groups.append(entry.dn)
                    # memberUid-style groups can't be nested
                    if self.group_objectclasses:
                        stack.append(entry.dn)
        return groups
        # end of find_groups()


class Group:
    """
    Directory group referenced by DN
    """

    def __init__(self, expander, dn, member_attribute):
        self.expander = expander
        self.dn = dn
        self.member_attribute = member_attribute

    def members(self):
        """
        Returns list of direct member values
        """
        entry = self.expander.client.find_any(self.dn, [self.member_attribute])
        if entry is None:
            return []
        return entry.get(self.member_attribute, [])

    def all_members(self):
        """
        Returns list of member DNs including those of nested groups
        """
        return self.expander.expand(self.dn, self.member_attribute)
