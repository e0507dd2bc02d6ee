# -*- coding: utf-8 -*-
"""
ldapsynccnf - Configure the directory integration of ldapsync

Copy this module, adjust the values and point env var LDAPSYNC_CFG
to the module name or file path.

(c) 2021 by the ldapsync authors
"""

import os

from ldapsync import SyncConfig

#---------------------------------------------------------------------------
# Connection
#---------------------------------------------------------------------------

cfg = SyncConfig(
    # ;-separated list of LDAP URIs tried in this order
    host_url='ldap://localhost:389',
    # LDAP protocol version, only 3 is really supported
    ldap_version=3,
    # 0 = no StartTLS, 1 = try StartTLS, 2 = StartTLS required
    start_tls=0,
    # character encoding of the directory, LDAPv3 mandates UTF-8
    encoding='utf-8',
    # page size of paged searches, 0 means default page size
    # if the server supports the paged results control
    pagesize=0,
    # None = detect from root DSE, True/False = override detection
    paged_results=None,
    # seconds to wait for server responses
    timeout=60,
    # admin identity used for searching, empty for anonymous access
    bind_dn='cn=admin,dc=example,dc=com',
    bind_pw=os.environ.get('LDAPSYNC_BIND_PW', ''),
    # 0 = never, 1 = searching, 2 = finding, 3 = always dereference aliases
    opt_deref=0,
    # DN of the entry global attributes are read from (root DSE)
    root_ds='',

    #---------------------------------------------------------------------------
    # Users
    #---------------------------------------------------------------------------

    # one of default, ad, edir, rfc2307, rfc2307bis, samba
    user_type='rfc2307',
    # ;-separated list of DNs below which users are searched
    user_contexts='ou=people,dc=example,dc=com',
    # new users are created here, defaults to the only user context
    user_create_context='',
    # search subtrees of the user contexts
    user_search_sub=True,
    # the following are taken from the user type when left empty
    user_attribute='',
    user_objectclass='',
    member_attribute='',
    member_attribute_isdn=None,
    password_expiration_attribute='',
    # ;-separated object classes of groups, overrides user type
    group_objectclass='',
    # password hashing: plaintext, md5, sha1, ssha, sha256, ...
    passtype='plaintext',
    # attribute marking an account as suspended, overrides user type
    suspended_attribute='',

    #---------------------------------------------------------------------------
    # Account sync
    #---------------------------------------------------------------------------

    # local accounts missing in the directory: keep, suspend or fulldelete
    removeuser='keep',
    # take suspended flag of local accounts from the directory
    sync_suspended=False,
    # force password change of new local accounts
    forcechangepassword=False,
    # local field to ,-separated attribute types
    field_map={
        'firstname': 'givenName',
        'lastname': 'sn',
        'email': 'mail',
        'idnumber': 'uid',
    },
    # local field to oncreate or onlogin (updated on every sync)
    field_updatelocal={
        'firstname': 'onlogin',
        'lastname': 'onlogin',
        'email': 'onlogin',
        'idnumber': 'oncreate',
    },
    # local fields written back to the directory when changed
    field_updateremote={},
    # role short name to ;-separated group DNs, members get the system role
    system_role_mapping={
        'coursecreator': 'cn=creators,ou=groups,dc=example,dc=com',
    },

    #---------------------------------------------------------------------------
    # Enrolment sync
    #---------------------------------------------------------------------------

    # role short name to ;-separated contexts of course entries
    contexts_role={
        'student': 'ou=courses,dc=example,dc=com',
        'editingteacher': 'ou=courses,dc=example,dc=com',
    },
    # role short name to member attribute of course entries
    memberattribute_role={
        'student': 'memberUid',
        'editingteacher': 'owner',
    },
    # object class of course entries
    objectclass='groupOfNames',
    # attribute types of course entries
    course_idnumber='cn',
    course_fullname='description',
    course_shortname='cn',
    course_summary='',
    # course fields updated from the directory on every sync
    course_updateonsync=('fullname',),
    # create missing courses
    autocreate=False,
    # short name of a course used as template for new courses
    template='',
    # category of new courses
    category=1,
    # expand nested groups of course members
    nested_groups=False,
    # enrolments missing in the directory:
    # unenrol, keep, suspend or suspend_and_strip_roles
    unenrolaction='unenrol',
    # do not add enrolments to hidden courses
    ignorehiddencourses=False,

    #---------------------------------------------------------------------------
    # Local store
    #---------------------------------------------------------------------------

    # SQLAlchemy database URL of the local accounts and enrolments
    database_url=os.environ.get('LDAPSYNC_DATABASE_URL', 'sqlite:///ldapsync.sqlite'),
)
