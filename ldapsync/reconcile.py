# -*- coding: utf-8 -*-
"""
ldapsync.reconcile - apply an authoritative external set to a local mirror

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import enum
import logging
from contextlib import contextmanager

from .log import LogHelper, NullTrace
from .errors import LDAPSyncError, NaturalKeyConflictError


class RemovalPolicy(enum.Enum):
    """
    What happens to local rows whose external counterpart disappeared
    """
    UNENROL = 'unenrol'
    KEEP = 'keep'
    SUSPEND = 'suspend'
    SUSPEND_AND_STRIP_ROLES = 'suspend_and_strip_roles'

    @classmethod
    def from_config(cls, value):
        """
        Returns policy for a config value, accepts enum names,
        values and some aliases
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace('-', '_')
        name = REMOVAL_POLICY_ALIASES.get(name, name)
        for policy in cls:
            if name in (policy.value, policy.name.lower()):
                return policy
        raise ValueError('Invalid removal policy %r' % (value,))


REMOVAL_POLICY_ALIASES = {
    'fulldelete': 'unenrol',
    'delete': 'unenrol',
    'suspendnoroles': 'suspend_and_strip_roles',
}


class SyncReport:
    """
    Counters and distinct error messages of one or more reconciliation passes
    """
    COUNTERS = (
        'created',
        'updated',
        'revived',
        'suspended',
        'removed',
        'skipped',
    )

    def __init__(self):
        for name in self.COUNTERS:
            setattr(self, name, 0)
        self.errors = []
        self.failed_partitions = []

    def error(self, message):
        if message not in self.errors:
            self.errors.append(message)

    def fail(self, partition, message):
        self.error(message)
        if partition not in self.failed_partitions:
            self.failed_partitions.append(partition)

    @property
    def mutations(self):
        return self.created + self.updated + self.revived + self.suspended + self.removed

    @property
    def ok(self):
        return not self.failed_partitions

    def merge(self, other):
        for name in self.COUNTERS:
            setattr(self, name, getattr(self, name) + getattr(other, name))
        for message in other.errors:
            self.error(message)
        for partition in other.failed_partitions:
            if partition not in self.failed_partitions:
                self.failed_partitions.append(partition)
        return self

    def as_dict(self):
        res = {name: getattr(self, name) for name in self.COUNTERS}
        res['errors'] = list(self.errors)
        res['failed_partitions'] = list(self.failed_partitions)
        return res

    def __str__(self):
        return ', '.join(
            '%s: %d' % (name, getattr(self, name))
            for name in self.COUNTERS
        ) + ', errors: %d' % (len(self.errors),)


class RunCache:
    """
    Memoises lookups during one sync run, thrown away afterwards
    """

    def __init__(self):
        self._data = {}

    def get_or_set(self, namespace, key, factory):
        try:
            return self._data[(namespace, key)]
        except KeyError:
            value = self._data[(namespace, key)] = factory()
            return value

    def get(self, namespace, key, default=None):
        return self._data.get((namespace, key), default)

    def set(self, namespace, key, value):
        self._data[(namespace, key)] = value

    def __contains__(self, namespace_key):
        return namespace_key in self._data

    def clear(self):
        self._data.clear()


class MirrorTarget:
    """
    Adapter between the reconciliation algorithm and one partition
    of the local store

    Sub-classes implement the verbs for their entity type.
    """
    # errors of a single record, the record is skipped
    RECORD_ERRORS = (LDAPSyncError,)
    # errors of the local store, the whole batch is rolled back
    STORE_ERRORS = ()

    name = 'partition'

    def key_of(self, entity):
        raise NotImplementedError

    def local_rows(self):
        """
        Returns dict of natural key to local row attributed to this partition
        """
        raise NotImplementedError

    def add(self, key, entity):
        """
        Create or reuse local counterpart, returns False if skipped
        """
        raise NotImplementedError

    def is_active(self, row):
        raise NotImplementedError

    def revive(self, key, row, entity):
        """
        Reactivate inactive local row, returns False if it stays inactive
        """
        raise NotImplementedError

    def update(self, key, row, entity):
        """
        Update changed fields, returns True if anything changed
        """
        return False

    def remove(self, key, row):
        raise NotImplementedError

    def suspend(self, key, row):
        raise NotImplementedError

    def strip_roles(self, key, row):
        """
        Remove role attributions, returns True if anything was removed
        """
        return False

    def transaction(self):
        raise NotImplementedError

    @contextmanager
    def record(self):
        """
        Scope of the changes made for one record within transaction(),
        on error only these changes are undone
        """
        yield


class Reconciler(LogHelper):
    """
    Generic diff-and-apply of an external entity set against a MirrorTarget

    policy
        RemovalPolicy applied to local rows without external counterpart
    trace
        progress sink
    do_updates
        whether fields of existing rows are updated
    """

    def __init__(self, policy, trace=None, do_updates=True):
        self.policy = RemovalPolicy.from_config(policy)
        self.trace = trace or NullTrace()
        self.do_updates = do_updates

    def collect(self, target, entities, report):
        """
        Returns dict of natural key to entity, bad entities are skipped
        """
        external = {}
        for entity in entities:
            key = target.key_of(entity)
            if not key:
                report.skipped += 1
                self.trace.output('Skipping record without identifier: %r' % (entity,), 1)
                continue
            if key in external:
                conflict = NaturalKeyConflictError(key)
                report.skipped += 1
                report.error(str(conflict))
                self.log(logging.WARNING, '%s: %s', target.name, conflict)
                continue
            external[key] = entity
        return external

    def _remove(self, target, key, row, report):
        if self.policy is RemovalPolicy.UNENROL:
            target.remove(key, row)
            report.removed += 1
            self.trace.output('removed %s' % (key,), 1)
            return
        if target.is_active(row):
            target.suspend(key, row)
            report.suspended += 1
            self.trace.output('suspended %s' % (key,), 1)
        if self.policy is RemovalPolicy.SUSPEND_AND_STRIP_ROLES:
            if target.strip_roles(key, row):
                report.updated += 1
                self.trace.output('removed roles of %s' % (key,), 1)

    def _record_failed(self, key, err, report):
        # changes of the record were undone by MirrorTarget.record()
        report.skipped += 1
        report.error(str(err))
        self.trace.output('error for %s: %s' % (key, err), 1)

    def _apply(self, target, key, entity, row, report):
        if row is None:
            if target.add(key, entity) is False:
                report.skipped += 1
                return
            report.created += 1
            self.trace.output('created %s' % (key,), 1)
            return
        if not target.is_active(row) and target.revive(key, row, entity) is not False:
            report.revived += 1
            self.trace.output('revived %s' % (key,), 1)
        if self.do_updates and target.update(key, row, entity):
            report.updated += 1
            self.trace.output('updated %s' % (key,), 1)

    def run(self, target, entities):
        """
        Run one reconciliation pass, returns SyncReport

        entities is an iterable of external records which may fail
        with a directory error, the partition is aborted then.
        """
        report = SyncReport()
        try:
            external = self.collect(target, entities, report)
        except LDAPSyncError as err:
            self.log(logging.ERROR, 'Collecting %s failed: %s', target.name, err)
            report.fail(target.name, str(err))
            return report
        try:
            with target.transaction():
                local = target.local_rows()
        except target.STORE_ERRORS as err:
            self.log(logging.ERROR, 'Reading local rows of %s failed: %s', target.name, err)
            report.fail(target.name, str(err))
            return report
        removals = [key for key in local if key not in external]
        self.log(
            logging.DEBUG,
            '%s: %d external, %d local, %d to remove with policy %s',
            target.name,
            len(external),
            len(local),
            len(removals),
            self.policy.name,
        )
        if removals and self.policy is not RemovalPolicy.KEEP:
            batch = SyncReport()
            try:
                with target.transaction():
                    for key in removals:
                        record_report = SyncReport()
                        try:
                            with target.record():
                                self._remove(target, key, local[key], record_report)
                        except target.RECORD_ERRORS as err:
                            self._record_failed(key, err, batch)
                        else:
                            batch.merge(record_report)
            except target.STORE_ERRORS as err:
                self.log(logging.ERROR, 'Removals in %s rolled back: %s', target.name, err)
                report.fail(target.name, str(err))
                return report
            report.merge(batch)
        batch = SyncReport()
        try:
            with target.transaction():
                for key, entity in external.items():
                    record_report = SyncReport()
                    try:
                        with target.record():
                            self._apply(target, key, entity, local.get(key), record_report)
                    except target.RECORD_ERRORS as err:
                        self._record_failed(key, err, batch)
                    else:
                        batch.merge(record_report)
        except target.STORE_ERRORS as err:
            self.log(logging.ERROR, 'Changes in %s rolled back: %s', target.name, err)
            report.fail(target.name, str(err))
            return report
        report.merge(batch)
        return report
        # end of run()
