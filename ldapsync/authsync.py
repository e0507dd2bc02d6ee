# -*- coding: utf-8 -*-
"""
ldapsync.authsync - authentication against the directory and account sync

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from .log import LogHelper, NullTrace
from .errors import (
    ConfigurationError,
    DirectoryCommandError,
    LDAPSyncError,
    UserNotFoundError,
)
from .client import DirectoryClient
from .ldaputil import split_values
from .reconcile import (
    MirrorTarget,
    Reconciler,
    RemovalPolicy,
    RunCache,
    SyncReport,
)
from .schema import ACCOUNT_FIELDS
from .users import Users

# value of Account.auth for accounts owned by the account sync
AUTH_TYPE = 'ldap'

# accounts of this type are taken over when found in the directory
AUTH_NOLOGIN = 'nologin'

# attribution of system role assignments made by the account sync
AUTH_COMPONENT = 'auth_ldap'

# fields of field_updatelocal updated during sync runs
UPDATE_ON_LOGIN = 'onlogin'


def check_settings(cfg, client=None, **client_kwargs):
    """
    Returns list of (level, message) tuples describing problems
    of the directory configuration
    """
    messages = []
    if not split_values(cfg.host_url):
        messages.append((logging.ERROR, 'LDAP server not configured'))
        return messages
    if cfg.ldap_version != 3:
        messages.append((
            logging.WARNING,
            'LDAP protocol version %d is too old, use version 3' % (cfg.ldap_version,),
        ))
    if client is None:
        try:
            client = DirectoryClient.from_config(cfg, **client_kwargs)
        except LDAPSyncError as err:
            messages.append((logging.ERROR, str(err)))
            return messages
    if not client.paged_results_supported:
        messages.append((logging.INFO, 'Paged results not supported by server'))

    def test_dn(dn, message):
        try:
            found = bool(client.read(dn, attrs=['1.1']))
        except DirectoryCommandError as err:
            messages.append((logging.WARNING, '%s: %s' % (message, err)))
            return
        if not found:
            messages.append((logging.WARNING, message))

    for context in cfg.user_contexts.split(';'):
        context = context.strip()
        if not context:
            messages.append((logging.WARNING, 'Empty user context configured'))
            continue
        test_dn(context, 'User context %r not found' % (context,))
    for role_name, group_dns in sorted(cfg.system_role_mapping.items()):
        for group_dn in split_values(group_dns):
            test_dn(group_dn, 'Group %r of role %r not found' % (group_dn, role_name))
    messages.append((logging.INFO, 'Connection to LDAP server %s successful' % (client.uri,)))
    return messages
    # end of check_settings()


class AccountTarget(MirrorTarget):
    """
    Local accounts of the account sync, keyed by lower-cased user name
    """
    STORE_ERRORS = (SQLAlchemyError,)

    name = 'accounts'

    def __init__(self, authsync, update_keys, revive_suspended):
        self.authsync = authsync
        self.store = authsync.store
        self.update_keys = update_keys
        self.revive_suspended = revive_suspended

    def key_of(self, entity):
        return entity.strip().lower()

    def local_rows(self):
        return {
            account.username: account
            for account in self.store.list_accounts(auth=AUTH_TYPE)
        }

    def transaction(self):
        return self.store.transaction()

    def record(self):
        return self.store.savepoint()

    def add(self, key, entity):
        account = self.store.find_account(key)
        if account is not None:
            if account.auth != AUTH_NOLOGIN:
                self.authsync.trace.output(
                    'Skipping %s, account exists with authentication %r' % (key, account.auth),
                    1,
                )
                return False
            # take over former account
            self.store.update_account(account, {'auth': AUTH_TYPE, 'suspended': False})
        else:
            userinfo = self.authsync.get_userinfo(key)
            fields = {
                field: value
                for field, value in userinfo.items()
                if field in ACCOUNT_FIELDS
            }
            account = self.store.insert_account(
                username=key,
                auth=AUTH_TYPE,
                suspended=bool(userinfo['suspended']),
                force_password_change=self.authsync.cfg.forcechangepassword,
                **fields
            )
        self.authsync.sync_roles(account)
        return True

    def is_active(self, row):
        return not row.suspended

    def revive(self, key, row, entity):
        # only accounts suspended by the suspend policy come back
        if not self.revive_suspended:
            return False
        if self.authsync.cfg.sync_suspended and self.authsync.users.user(key).is_suspended():
            return False
        self.store.set_account_status(row, False)
        return True

    def update(self, key, row, entity):
        changed = False
        if self.update_keys:
            userinfo = self.authsync.get_userinfo(key)
            changed = self.store.update_account(row, {
                field: userinfo[field]
                for field in self.update_keys
                if field in userinfo
            })
        return self.authsync.sync_roles(row) or changed

    def remove(self, key, row):
        self.store.delete_account(row)

    def suspend(self, key, row):
        self.store.set_account_status(row, True)

    def strip_roles(self, key, row):
        return self.store.unassign_all(row, component=AUTH_COMPONENT)


class AuthSync(LogHelper):
    """
    Authentication and account synchronisation against the directory

    client
        connected DirectoryClient
    store
        LocalStore holding the local accounts
    trace
        progress sink of sync runs
    """

    def __init__(self, client, store, cfg=None, trace=None):
        self.client = client
        self.store = store
        self.trace = trace or NullTrace()
        self.cache = RunCache()
        self.users = Users(client, cfg or client.cfg, cache=self.cache)
        self.cfg = self.users.cfg

    def ldap_attributes(self):
        """
        Returns dict of local field name to list of attribute types
        """
        return {
            field: [attr_type.strip() for attr_type in attr_types.split(',') if attr_type.strip()]
            for field, attr_types in self.cfg.field_map.items()
            if attr_types and attr_types.strip()
        }

    def _search_attrs(self, attrmap):
        search_attrs = []
        for attr_types in attrmap.values():
            for attr_type in attr_types:
                if attr_type not in search_attrs:
                    search_attrs.append(attr_type)
        return search_attrs

    def profile_keys(self, fetch_all=False):
        """
        Returns list of local fields to be updated from the directory
        """
        update_keys = [
            field
            for field, when in sorted(self.cfg.field_updatelocal.items())
            if field in self.cfg.field_map and (fetch_all or when == UPDATE_ON_LOGIN)
        ]
        if self.cfg.sync_suspended:
            update_keys.append('suspended')
        return update_keys

    def user_login(self, username, password):
        """
        Returns True if username and password are accepted by the directory
        """
        if not username or not password:
            return False
        return self.users.user(username).login(password)

    def get_userinfo(self, username):
        """
        Returns dict of local field name to value read from the user's entry
        """
        attrmap = self.ldap_attributes()
        user = self.users.user(username)
        entry = user.info(self._search_attrs(attrmap))
        result = {
            'suspended': user.is_suspended(entry),
        }
        for field, attr_types in attrmap.items():
            for attr_type in attr_types:
                if attr_type in entry:
                    result[field] = entry[attr_type]
                    break
        return result

    def get_userlist(self):
        return self.users.list()

    def user_exists(self, username):
        return self.users.user(username).exists()

    def user_create(self, fields, password):
        """
        Create directory entry for the local account fields
        """
        entry = {}
        for field, attr_types in self.ldap_attributes().items():
            if fields.get(field):
                for attr_type in attr_types:
                    entry[attr_type] = fields[field]
        self.users.user(fields['username']).create(entry, password)

    def user_activate(self, username):
        self.users.user(username).activate()

    def user_update(self, old, new):
        """
        Write changed local fields marked in field_updateremote
        to the user's entry, returns False if anything failed
        """
        if old.get('username') and new.get('username') and old['username'] != new['username']:
            self.log(logging.ERROR, 'Renaming %r to %r not allowed', old['username'], new['username'])
            return False
        if old.get('auth', AUTH_TYPE) != AUTH_TYPE:
            return True
        attrmap = {
            field: attr_types
            for field, attr_types in self.ldap_attributes().items()
            if self.cfg.field_updateremote.get(field)
        }
        if not attrmap:
            return True
        user = self.users.user(old['username'])
        if not user.exists():
            return False
        entry = user.info(self._search_attrs(attrmap))
        success = True
        for field, attr_types in attrmap.items():
            old_value = old.get(field)
            new_value = new.get(field)
            if new_value is None or new_value == old_value:
                continue
            # ambiguous if the field can come from several attributes
            ambiguous = len(attr_types) > 1
            changed = False
            for attr_type in attr_types:
                ldap_value = entry.get(attr_type, '')
                if ambiguous and old_value != '' and old_value != ldap_value:
                    continue
                if new_value == ldap_value:
                    continue
                try:
                    user.update({attr_type: new_value})
                except DirectoryCommandError as err:
                    success = False
                    self.log(
                        logging.ERROR,
                        'Updating %r of %r from %r to %r failed: %s',
                        attr_type,
                        user.username,
                        old_value,
                        new_value,
                        err,
                    )
                else:
                    changed = True
            if ambiguous and not changed:
                success = False
                self.log(
                    logging.ERROR,
                    'Field %r of %r maps to several attributes, none matched old value %r',
                    field,
                    user.username,
                    old_value,
                )
        return success
        # end of user_update()

    def user_update_password(self, username, password):
        """
        Returns True if the password was changed in the directory
        """
        try:
            self.users.user(username).update_password(password)
        except (DirectoryCommandError, UserNotFoundError) as err:
            self.log(logging.ERROR, 'Changing password of %r failed: %s', username, err)
            return False
        return True

    def password_expire(self, username):
        try:
            return self.users.user(username).password_expire()
        except ConfigurationError:
            return 0

    def sync_roles(self, account):
        """
        Assign or unassign system roles configured in system_role_mapping
        according to the group memberships of account

        Returns True if any role assignment was changed.
        """
        changed = False
        user = None
        for role_name, group_dns in sorted(self.cfg.system_role_mapping.items()):
            group_dns = split_values(group_dns or '')
            if not group_dns:
                continue
            role = self.store.get_role(role_name)
            if role is None:
                self.log(logging.WARNING, 'Role %r of system_role_mapping not found', role_name)
                continue
            if user is None:
                user = self.users.user(account.username)
            if user.is_group_member(group_dns):
                if self.store.assign_role(role, account, component=AUTH_COMPONENT):
                    self.trace.output('assigned role %s to %s' % (role_name, account.username), 1)
                    changed = True
            elif self.store.unassign_role(role, account, component=AUTH_COMPONENT):
                self.trace.output('unassigned role %s from %s' % (role_name, account.username), 1)
                changed = True
        return changed
        # end of sync_roles()

    def sync_users(self, do_updates=True):
        """
        Mirror all directory users into the local accounts,
        returns SyncReport
        """
        self.cache.clear()
        report = SyncReport()
        try:
            usernames = {username.strip().lower() for username in self.users.iter_usernames()}
        except LDAPSyncError as err:
            self.log(logging.ERROR, 'Reading users from directory failed: %s', err)
            report.fail(AccountTarget.name, str(err))
            return report
        usernames.discard('')
        if not usernames:
            # an empty result most likely means a broken directory search
            self.trace.output('Did not get any users from directory, sync aborted')
            report.fail(AccountTarget.name, 'No users found in directory')
            self.trace.finished()
            return report
        self.trace.output('Got %d users from directory' % (len(usernames),))
        policy = RemovalPolicy.from_config(self.cfg.removeuser)
        target = AccountTarget(
            self,
            self.profile_keys() if do_updates else [],
            policy is RemovalPolicy.SUSPEND,
        )
        reconciler = Reconciler(policy, trace=self.trace, do_updates=do_updates)
        report.merge(reconciler.run(target, sorted(usernames)))
        self.log(logging.INFO, 'User sync finished: %s', report)
        self.trace.finished()
        return report
        # end of sync_users()

    def test_settings(self):
        return check_settings(self.cfg, self.client)
