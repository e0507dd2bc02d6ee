# -*- coding: utf-8 -*-
"""
ldapsync.storage - access to the local mirror of accounts and memberships

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import time
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, delete, event, select
from sqlalchemy.orm import Session

from .log import LogHelper
from .schema import (
    ENROL_ACTIVE,
    Account,
    Course,
    Enrolment,
    Role,
    RoleAssignment,
    SchemaBase,
)


def _sqlite_transactions(engine):
    """
    SQLAlchemy starts transactions on SQLite connections instead
    of pysqlite, required for savepoints
    """

    @event.listens_for(engine, 'connect')
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN')


def create_store(database_url, echo=False):
    """
    Returns LocalStore for database_url, tables are created if missing
    """
    engine = create_engine(database_url, echo=echo)
    if engine.dialect.name == 'sqlite':
        _sqlite_transactions(engine)
    SchemaBase.metadata.create_all(engine)
    return LocalStore(Session(engine))


class LocalStore(LogHelper):
    """
    Stores and retrieves local accounts, courses, enrolments
    and role assignments

    session
        SQLAlchemy session, changes are committed by transaction()
    """

    def __init__(self, session):
        self._session = session

    @property
    def session(self):
        return self._session

    @contextmanager
    def transaction(self):
        """
        Commit all changes made in the with-block or roll them back
        if an exception is raised
        """
        try:
            yield self
            self._session.commit()
        except BaseException:
            self._session.rollback()
            raise

    @contextmanager
    def savepoint(self):
        """
        Undo only the changes made in the with-block if an exception
        is raised, used within transaction()
        """
        with self._session.begin_nested():
            yield self

    def close(self):
        self._session.close()

    # accounts

    def find_account(self, username):
        stmt = select(Account).where(Account.username == username)
        return self._session.scalars(stmt).one_or_none()

    def find_account_by_idnumber(self, idnumber):
        if not idnumber:
            return None
        stmt = select(Account).where(Account.idnumber == idnumber).order_by(Account.id)
        return self._session.scalars(stmt).first()

    def list_accounts(self, auth=None):
        stmt = select(Account).order_by(Account.username)
        if auth is not None:
            stmt = stmt.where(Account.auth == auth)
        return list(self._session.scalars(stmt))

    def insert_account(self, **fields):
        fields.setdefault('timemodified', int(time.time()))
        account = Account(**fields)
        self._session.add(account)
        self._session.flush()
        self.log(logging.DEBUG, 'Inserted account %r', account.username)
        return account

    def update_account(self, account, fields):
        """
        Set changed fields, returns True if anything changed
        """
        changed = False
        for name, value in fields.items():
            if getattr(account, name) != value:
                setattr(account, name, value)
                changed = True
        if changed:
            account.timemodified = int(time.time())
            self._session.flush()
        return changed

    def set_account_status(self, account, suspended):
        """
        Returns True if status was changed
        """
        return self.update_account(account, {'suspended': bool(suspended)})

    def delete_account(self, account):
        for model in (Enrolment, RoleAssignment):
            self._session.execute(delete(model).where(model.account_id == account.id))
        self._session.delete(account)
        self._session.flush()
        self.log(logging.DEBUG, 'Deleted account %r', account.username)

    # roles

    def get_role(self, shortname):
        stmt = select(Role).where(Role.shortname == shortname)
        return self._session.scalars(stmt).one_or_none()

    def roles(self):
        return list(self._session.scalars(select(Role).order_by(Role.id)))

    def ensure_role(self, shortname, name='', system=False):
        role = self.get_role(shortname)
        if role is None:
            role = Role(shortname=shortname, name=name or shortname, system=system)
            self._session.add(role)
            self._session.flush()
        return role

    def has_role(self, role, account, course=None, component=None):
        return bool(self.role_assignments(account, course, component, role=role))

    def role_assignments(self, account, course=None, component=None, role=None):
        stmt = select(RoleAssignment).where(RoleAssignment.account_id == account.id)
        if course is None:
            stmt = stmt.where(RoleAssignment.course_id.is_(None))
        else:
            stmt = stmt.where(RoleAssignment.course_id == course.id)
        if component is not None:
            stmt = stmt.where(RoleAssignment.component == component)
        if role is not None:
            stmt = stmt.where(RoleAssignment.role_id == role.id)
        return list(self._session.scalars(stmt))

    def assign_role(self, role, account, course=None, component=''):
        """
        Returns True if a new assignment was added
        """
        if self.role_assignments(account, course, component, role=role):
            return False
        self._session.add(RoleAssignment(
            role_id=role.id,
            account_id=account.id,
            course_id=None if course is None else course.id,
            component=component,
        ))
        self._session.flush()
        return True

    def unassign_role(self, role, account, course=None, component=''):
        """
        Returns True if an assignment was removed
        """
        return self.unassign_all(account, course, component, role=role)

    def unassign_all(self, account, course=None, component='', role=None):
        """
        Remove all matching role assignments, returns True if any was removed
        """
        assignments = self.role_assignments(account, course, component, role=role)
        for assignment in assignments:
            self._session.delete(assignment)
        self._session.flush()
        return bool(assignments)

    # courses

    def find_course(self, course_id):
        return self._session.get(Course, course_id)

    def find_course_by_idnumber(self, idnumber):
        if not idnumber:
            return None
        stmt = select(Course).where(Course.idnumber == idnumber).order_by(Course.id)
        return self._session.scalars(stmt).first()

    def find_course_by_shortname(self, shortname):
        stmt = select(Course).where(Course.shortname == shortname)
        return self._session.scalars(stmt).one_or_none()

    def insert_course(self, **fields):
        course = Course(**fields)
        self._session.add(course)
        self._session.flush()
        self.log(logging.DEBUG, 'Inserted course %r', course.shortname)
        return course

    def update_course(self, course, fields):
        """
        Set changed fields, returns True if anything changed
        """
        changed = False
        for name, value in fields.items():
            if getattr(course, name) != value:
                setattr(course, name, value)
                changed = True
        if changed:
            self._session.flush()
        return changed

    # enrolments

    def enrolments(self, course, role, component):
        """
        Returns list of (account, enrolment) tuples
        """
        stmt = (
            select(Account, Enrolment)
            .join(Enrolment, Enrolment.account_id == Account.id)
            .where(
                Enrolment.course_id == course.id,
                Enrolment.role_id == role.id,
                Enrolment.component == component,
            )
            .order_by(Account.username)
        )
        return [tuple(row) for row in self._session.execute(stmt)]

    def user_enrolments(self, account, role, component):
        """
        Returns list of (course, enrolment) tuples
        """
        stmt = (
            select(Course, Enrolment)
            .join(Enrolment, Enrolment.course_id == Course.id)
            .where(
                Enrolment.account_id == account.id,
                Enrolment.role_id == role.id,
                Enrolment.component == component,
            )
            .order_by(Course.id)
        )
        return [tuple(row) for row in self._session.execute(stmt)]

    def find_enrolment(self, course, account, role, component):
        stmt = select(Enrolment).where(
            Enrolment.course_id == course.id,
            Enrolment.account_id == account.id,
            Enrolment.role_id == role.id,
            Enrolment.component == component,
        )
        return self._session.scalars(stmt).one_or_none()

    def enrol(self, course, account, role, component, status=ENROL_ACTIVE):
        """
        Returns enrolment, an existing one is reused
        """
        enrolment = self.find_enrolment(course, account, role, component)
        if enrolment is None:
            enrolment = Enrolment(
                course_id=course.id,
                account_id=account.id,
                role_id=role.id,
                component=component,
                status=status,
            )
            self._session.add(enrolment)
        else:
            enrolment.status = status
        self._session.flush()
        return enrolment

    def set_enrolment_status(self, enrolment, status):
        """
        Returns True if status was changed
        """
        if enrolment.status == status:
            return False
        enrolment.status = status
        self._session.flush()
        return True

    def unenrol(self, enrolment):
        self._session.delete(enrolment)
        self._session.flush()
