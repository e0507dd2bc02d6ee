# -*- coding: utf-8 -*-
"""
ldapsync.schema - database tables of the local mirror

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

from typing import Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# enrolment status values
ENROL_ACTIVE = 0
ENROL_SUSPENDED = 1

# local account fields which can be mapped to directory attributes
ACCOUNT_FIELDS = (
    'firstname',
    'lastname',
    'email',
    'idnumber',
    'phone',
    'department',
    'institution',
    'city',
    'country',
    'description',
)

__all__ = [
    'Account',
    'Course',
    'Enrolment',
    'Role',
    'RoleAssignment',
    'SchemaBase',
]


class SchemaBase(DeclarativeBase):
    """Declarative base for the local mirror schema."""


class Account(SchemaBase):
    """Local user account."""

    __tablename__ = 'account'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    auth: Mapped[str] = mapped_column(String(20), nullable=False, default='manual')
    idnumber: Mapped[str] = mapped_column(String(255), nullable=False, default='', index=True)
    suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    force_password_change: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    firstname: Mapped[str] = mapped_column(String(100), nullable=False, default='')
    lastname: Mapped[str] = mapped_column(String(100), nullable=False, default='')
    email: Mapped[str] = mapped_column(String(100), nullable=False, default='')
    phone: Mapped[str] = mapped_column(String(20), nullable=False, default='')
    department: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    institution: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    city: Mapped[str] = mapped_column(String(120), nullable=False, default='')
    country: Mapped[str] = mapped_column(String(2), nullable=False, default='')
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    timemodified: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Role(SchemaBase):
    """Role which can be assigned system-wide or in a course."""

    __tablename__ = 'role'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shortname: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Course(SchemaBase):
    """Course identified externally by idnumber."""

    __tablename__ = 'course'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    idnumber: Mapped[str] = mapped_column(String(100), nullable=False, default='', index=True)
    shortname: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    fullname: Mapped[str] = mapped_column(String(254), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default='')
    category: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Enrolment(SchemaBase):
    """Membership of an account in a course with a role."""

    __tablename__ = 'enrolment'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey('course.id'), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey('account.id'), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey('role.id'), nullable=False)
    component: Mapped[str] = mapped_column(String(100), nullable=False, default='')
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=ENROL_ACTIVE)

    __table_args__ = (
        UniqueConstraint('course_id', 'account_id', 'role_id', 'component'),
    )


class RoleAssignment(SchemaBase):
    """Role of an account, course_id is NULL for system roles."""

    __tablename__ = 'role_assignment'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey('role.id'), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey('account.id'), nullable=False)
    course_id: Mapped[Optional[int]] = mapped_column(ForeignKey('course.id'), nullable=True)
    component: Mapped[str] = mapped_column(String(100), nullable=False, default='')

    __table_args__ = (
        UniqueConstraint('role_id', 'account_id', 'course_id', 'component'),
    )
