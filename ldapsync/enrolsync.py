# -*- coding: utf-8 -*-
"""
ldapsync.enrolsync - course enrolments from directory groups

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import logging
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from .log import LogHelper, NullTrace
from .errors import LDAPSyncError
from .ldaputil import (
    escape_filter_value,
    normalize_objectclass_filter,
    split_values,
)
from .reconcile import (
    MirrorTarget,
    Reconciler,
    RunCache,
    SyncReport,
)
from .schema import ENROL_ACTIVE, ENROL_SUSPENDED
from .users import Users

# attribution of enrolments and course role assignments
ENROL_COMPONENT = 'enrol_ldap'

# course fields which can be taken from the directory
COURSE_FIELDS = ('shortname', 'fullname', 'summary')

EnrolmentRow = namedtuple('EnrolmentRow', ('account', 'course', 'enrolment'))


class EnrolmentTarget(MirrorTarget):
    """
    Enrolments with role of this integration, base for the
    per-course and the per-account partition
    """
    STORE_ERRORS = (SQLAlchemyError,)

    def __init__(self, enrolsync, role):
        self.enrolsync = enrolsync
        self.store = enrolsync.store
        self.trace = enrolsync.trace
        self.role = role

    def transaction(self):
        return self.store.transaction()

    def record(self):
        return self.store.savepoint()

    def _hidden(self, course):
        return self.enrolsync.cfg.ignorehiddencourses and not course.visible

    def _enrol(self, account, course):
        self.store.enrol(course, account, self.role, ENROL_COMPONENT)
        self.store.assign_role(self.role, account, course, ENROL_COMPONENT)
        self.trace.output(
            'enrolled %s in course %s (%d) as %s' % (
                account.username,
                course.shortname,
                course.id,
                self.role.shortname,
            ),
            1,
        )

    def is_active(self, row):
        return row.enrolment.status == ENROL_ACTIVE

    def revive(self, key, row, entity):
        self.store.set_enrolment_status(row.enrolment, ENROL_ACTIVE)
        self.store.assign_role(self.role, row.account, row.course, ENROL_COMPONENT)
        return True

    def update(self, key, row, entity):
        # missing after stripping roles or with several roles in one course
        return self.store.assign_role(self.role, row.account, row.course, ENROL_COMPONENT)

    def remove(self, key, row):
        self.store.unassign_role(self.role, row.account, row.course, ENROL_COMPONENT)
        self.store.unenrol(row.enrolment)

    def suspend(self, key, row):
        self.store.set_enrolment_status(row.enrolment, ENROL_SUSPENDED)

    def strip_roles(self, key, row):
        return self.store.unassign_role(self.role, row.account, row.course, ENROL_COMPONENT)


class CourseRoleTarget(EnrolmentTarget):
    """
    Enrolments with one role in one course keyed by the member's idnumber
    """

    def __init__(self, enrolsync, role, course):
        EnrolmentTarget.__init__(self, enrolsync, role)
        self.course = course
        self.name = '%s/%s' % (course.idnumber, role.shortname)

    def key_of(self, entity):
        return entity.strip()

    def local_rows(self):
        return {
            account.idnumber or '#%d' % (account.id,): EnrolmentRow(account, self.course, enrolment)
            for account, enrolment in self.store.enrolments(self.course, self.role, ENROL_COMPONENT)
        }

    def add(self, key, entity):
        account = self.store.find_account_by_idnumber(key)
        if account is None:
            self.trace.output('could not find user %s' % (key,), 1)
            return False
        if self._hidden(self.course):
            return False
        self._enrol(account, self.course)
        return True


class AccountRoleTarget(EnrolmentTarget):
    """
    Enrolments with one role of one account keyed by the course's idnumber
    """

    def __init__(self, enrolsync, role, account):
        EnrolmentTarget.__init__(self, enrolsync, role)
        self.account = account
        self.name = '%s/%s' % (account.username, role.shortname)

    def key_of(self, entity):
        return entity.idnumber

    def local_rows(self):
        return {
            course.idnumber or '#%d' % (course.id,): EnrolmentRow(self.account, course, enrolment)
            for course, enrolment in self.store.user_enrolments(self.account, self.role, ENROL_COMPONENT)
        }

    def add(self, key, entity):
        if self._hidden(entity):
            return False
        self._enrol(self.account, entity)
        return True


class EnrolSync(LogHelper):
    """
    Synchronises course enrolments with course entries in the directory

    client
        connected DirectoryClient
    store
        LocalStore holding accounts, courses and enrolments
    trace
        progress sink of sync runs
    """

    def __init__(self, client, store, cfg=None, trace=None):
        self.client = client
        self.store = store
        self.trace = trace or NullTrace()
        self.cache = RunCache()
        self.users = Users(client, cfg or client.cfg, cache=self.cache)
        self.cfg = self.users.cfg.clone(
            objectclass=normalize_objectclass_filter(self.users.cfg.objectclass),
        )

    def roles(self):
        return self.cache.get_or_set('roles', None, self.store.roles)

    def role_contexts(self, role):
        return split_values(self.cfg.contexts_role.get(role.shortname) or '')

    def member_attribute(self, role):
        return (self.cfg.memberattribute_role.get(role.shortname) or '').strip()

    def course_attrs(self, role=None):
        """
        Returns list of attribute types read from course entries,
        membership is only read if role is given
        """
        attrs = []
        for attr_type in (
                self.cfg.course_idnumber,
                self.cfg.course_fullname,
                self.cfg.course_shortname,
                self.cfg.course_summary,
                self.member_attribute(role) if role is not None else '',
            ):
            if attr_type and attr_type not in attrs:
                attrs.append(attr_type)
        return attrs

    def _course_value(self, course_ext, field):
        attr_type = getattr(self.cfg, 'course_' + field)
        if not attr_type:
            return None
        return course_ext.first(attr_type)

    def find_course(self, idnumber):
        """
        Returns local course with idnumber or None, found courses are
        remembered during the run
        """
        course = self.cache.get('course', idnumber)
        if course is None:
            course = self.store.find_course_by_idnumber(idnumber)
            if course is not None:
                self.cache.set('course', idnumber, course)
        return course

    def _local_course(self, course_ext, idnumber, update):
        course = self.find_course(idnumber)
        if course is None:
            if not self.cfg.autocreate:
                self.trace.output('Course %s does not exist, not created' % (idnumber,), 1)
                return None
            self.trace.output('Creating course %s' % (idnumber,), 1)
            return self.create_course(course_ext)
        if update:
            self.update_course(course, course_ext)
        return course

    def create_course(self, course_ext):
        """
        Returns new local course for the course entry or None if
        it can't be created
        """
        fields = {
            'summary': '',
            'visible': True,
        }
        if self.cfg.template:
            template = self.store.find_course_by_shortname(self.cfg.template)
            if template is not None:
                fields['summary'] = template.summary
                fields['visible'] = template.visible
        fields['category'] = self.cfg.category
        fields['idnumber'] = course_ext.first(self.cfg.course_idnumber)
        for field in ('fullname', 'shortname'):
            fields[field] = self._course_value(course_ext, field)
        if not (fields['idnumber'] and fields['fullname'] and fields['shortname']):
            self.trace.output('Cannot create course from %s, required fields missing' % (course_ext.dn,), 1)
            return None
        summary = self._course_value(course_ext, 'summary')
        if summary:
            fields['summary'] = summary
        if self.store.find_course_by_shortname(fields['shortname']) is not None:
            self.trace.output(
                'Cannot create course %s, short name %r already exists' % (
                    fields['idnumber'],
                    fields['shortname'],
                ),
                1,
            )
            return None
        with self.store.transaction():
            course = self.store.insert_course(**fields)
        self.cache.set('course', course.idnumber, course)
        self.log(logging.INFO, 'Created course %r from %r', course.shortname, course_ext.dn)
        return course
        # end of create_course()

    def _should_update_courses(self):
        return any(field in COURSE_FIELDS for field in self.cfg.course_updateonsync)

    def update_course(self, course, course_ext):
        """
        Update course fields marked in course_updateonsync,
        returns True if the course was changed
        """
        if not self.cache.get_or_set('course_updateonsync', None, self._should_update_courses):
            return False
        changes = {}
        for field in COURSE_FIELDS:
            if field not in self.cfg.course_updateonsync:
                continue
            value = self._course_value(course_ext, field)
            if value is not None and getattr(course, field) != value:
                changes[field] = value
        if not changes:
            self.trace.output('Course %s unchanged' % (course.shortname,), 1)
            return False
        if ('fullname' in changes and not changes['fullname']) or \
           ('shortname' in changes and not changes['shortname']):
            self.trace.output('Cannot update course %s with empty names' % (course.shortname,), 1)
            return False
        if 'shortname' in changes and self.store.find_course_by_shortname(changes['shortname']) is not None:
            self.trace.output(
                'Cannot update course %s, short name %r already exists' % (
                    course.shortname,
                    changes['shortname'],
                ),
                1,
            )
            return False
        with self.store.transaction():
            self.store.update_course(course, changes)
        self.trace.output('Course %s updated' % (course.shortname,), 1)
        return True
        # end of update_course()

    def _collect_courses(self, context, filterstr, attrs):
        course_entries = []

        def collect(entry):
            if entry.first(self.cfg.course_idnumber):
                course_entries.append(entry)

        self.client.for_each(context, collect, filterstr, attrs)
        return course_entries

    def _members(self, course_ext, member_attr):
        if not member_attr:
            return []
        members = course_ext.get(member_attr, [])
        if members and self.cfg.nested_groups:
            expanded = []
            for member in members:
                for member_dn in self.users.group(member, member_attr).all_members():
                    if member_dn not in expanded:
                        expanded.append(member_dn)
            members = expanded
        return self.users.get_uids(members)

    def sync_enrolments(self, onecourse=None):
        """
        Synchronise enrolments of all courses found in the role contexts,
        or only those of local course id onecourse, returns SyncReport
        """
        self.cache.clear()
        report = SyncReport()
        course_filter = self.cfg.objectclass
        if onecourse is not None:
            course = self.store.find_course(onecourse)
            if course is None:
                self.trace.output('Course %s does not exist, no sync performed' % (onecourse,))
                self.trace.finished()
                return report
            if not course.idnumber:
                self.trace.output('Course %s has no idnumber, no sync performed' % (onecourse,))
                self.trace.finished()
                return report
            course_filter = '(&%s(%s=%s))' % (
                course_filter,
                self.cfg.course_idnumber,
                escape_filter_value(course.idnumber),
            )
        for role in self.roles():
            member_attr = self.member_attribute(role)
            reconciler = Reconciler(self.cfg.unenrolaction, trace=self.trace)
            for context in self.role_contexts(role):
                try:
                    course_entries = self._collect_courses(
                        context,
                        course_filter,
                        self.course_attrs(role),
                    )
                except LDAPSyncError as err:
                    self.log(logging.ERROR, 'Reading courses below %r failed: %s', context, err)
                    report.fail('%s/%s' % (context, role.shortname), str(err))
                    continue
                for course_ext in course_entries:
                    idnumber = course_ext.first(self.cfg.course_idnumber)
                    self.trace.output('Synchronising course %s for role %s' % (idnumber, role.shortname))
                    try:
                        course = self._local_course(course_ext, idnumber, update=True)
                    except SQLAlchemyError as err:
                        report.fail('%s/%s' % (idnumber, role.shortname), str(err))
                        continue
                    if course is None:
                        continue
                    target = CourseRoleTarget(self, role, course)
                    try:
                        members = self._members(course_ext, member_attr)
                    except LDAPSyncError as err:
                        self.log(logging.ERROR, 'Reading members of %r failed: %s', course_ext.dn, err)
                        report.fail(target.name, str(err))
                        continue
                    if not members:
                        self.trace.output(
                            'No enrolments for role %s in course %s' % (role.shortname, course.shortname),
                            1,
                        )
                    report.merge(reconciler.run(target, members))
        self.log(logging.INFO, 'Enrolment sync finished: %s', report)
        self.trace.finished()
        return report
        # end of sync_enrolments()

    def find_ext_enrolments(self, memberuid, role):
        """
        Returns list of course entries listing memberuid as member with role
        """
        if not memberuid:
            return []
        contexts = self.role_contexts(role)
        member_attr = self.member_attribute(role)
        if not contexts or not member_attr:
            return []
        user = self.users.user(memberuid)
        member_filters = []
        if self.cfg.nested_groups:
            member_filters.extend(
                '(%s=%s)' % (member_attr, escape_filter_value(group_dn))
                for group_dn in user.groups()
            )
        member_id = user.member_id() or user.username
        member_filters.append('(%s=%s)' % (member_attr, escape_filter_value(member_id)))
        if len(member_filters) == 1:
            filterstr = '(&%s%s)' % (self.cfg.objectclass, member_filters[0])
        else:
            filterstr = '(&%s(|%s))' % (self.cfg.objectclass, ''.join(member_filters))
        course_entries = []
        for context in contexts:
            self.client.for_each(context, course_entries.append, filterstr, self.course_attrs())
        return course_entries
        # end of find_ext_enrolments()

    def sync_user_enrolments(self, account):
        """
        Synchronise all enrolments of a single local account,
        returns SyncReport
        """
        self.cache.clear()
        report = SyncReport()
        for role in self.roles():
            target = AccountRoleTarget(self, role, account)
            try:
                course_entries = self.find_ext_enrolments(account.idnumber, role)
            except LDAPSyncError as err:
                self.log(logging.ERROR, 'Reading courses of %r failed: %s', account.username, err)
                report.fail(target.name, str(err))
                continue
            courses = []
            for course_ext in course_entries:
                idnumber = course_ext.first(self.cfg.course_idnumber)
                if not idnumber:
                    self.trace.output('Invalid course id in %s, skipped' % (course_ext.dn,), 1)
                    continue
                try:
                    course = self._local_course(course_ext, idnumber, update=False)
                except SQLAlchemyError as err:
                    report.fail(target.name, str(err))
                    continue
                if course is not None and course not in courses:
                    courses.append(course)
            reconciler = Reconciler(self.cfg.unenrolaction, trace=self.trace)
            report.merge(reconciler.run(target, courses))
        self.trace.finished()
        return report
        # end of sync_user_enrolments()
