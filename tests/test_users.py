# -*- coding: utf-8 -*-
# from Python's standard lib
import time
import unittest
from unittest import mock

from ldapsync.errors import (
    ConfigurationError,
    InvalidUsernameError,
    NoAttributeValueError,
    UnsupportedUserTypeError,
    UserNotFoundError,
)
from ldapsync.users import Users
from ldapsync.users.base import expiry_days
from ldapsync.users.activedirectory import (
    AD_EPOCH_OFFSET,
    AD_TICKS_PER_SECOND,
    ad_expiry_timestamp,
    unicode_password,
)
from ldapsync.users.edirectory import format_generalized_time, parse_generalized_time
from ldapsync.users.samba import format_acct_flags, parse_acct_flags

from ldapmock import BASE_DN, GROUPS_DN, PEOPLE_DN, MockDirectory

DAY = 86400

# password of AD domain expires after 42 days
MAX_PWD_AGE = -42 * DAY * AD_TICKS_PER_SECOND

AD_EXPIRED_DIAGNOSTIC = (
    '80090308: LdapErr: DSID-0C09042A, comment: '
    'AcceptSecurityContext error, data 532, v3839'
)


def ad_time(timestamp):
    return int((timestamp + AD_EPOCH_OFFSET) * AD_TICKS_PER_SECOND)


class TestExpiry(unittest.TestCase):

    def test_expiry_days(self):
        """
        test function expiry_days()
        """
        now = 1609459200
        self.assertEqual(expiry_days(0, now), 0)
        self.assertEqual(expiry_days(-1, now), -1)
        self.assertEqual(expiry_days(now + 1.5 * DAY, now), 2)
        self.assertEqual(expiry_days(now + 10 * DAY, now), 10)
        self.assertEqual(expiry_days(now - 1.5 * DAY, now), -2)
        # expiring right now or a moment ago counts as expired
        self.assertEqual(expiry_days(now, now), -1)
        self.assertEqual(expiry_days(now - 60, now), -1)

    def test_ad_expiry_timestamp(self):
        """
        test function ad_expiry_timestamp()
        """
        # 2021-01-01T00:00:00Z plus 42 days
        self.assertEqual(ad_expiry_timestamp(132539328000000000, MAX_PWD_AGE), 1613088000)
        self.assertEqual(ad_time(1609459200), 132539328000000000)
        # maxPwdAge with zero low part means "never expires"
        self.assertEqual(ad_expiry_timestamp(132539328000000000, -9223372036854775808), 0)
        self.assertEqual(ad_expiry_timestamp(132539328000000000, 0), 0)

    def test_generalized_time(self):
        self.assertEqual(parse_generalized_time('20210212000000Z'), 1613088000)
        self.assertEqual(parse_generalized_time('20210212000000.0Z'), 1613088000)
        self.assertEqual(format_generalized_time(1613088000), '20210212000000Z')

    def test_acct_flags(self):
        self.assertEqual(parse_acct_flags('[UD         ]'), 'UD')
        self.assertEqual(parse_acct_flags(None), '')
        self.assertEqual(format_acct_flags('U'), '[U          ]')

    def test_unicode_password(self):
        self.assertEqual(unicode_password('ab'), b'"\x00a\x00b\x00"\x00')


class UserTestCase(unittest.TestCase):
    user_type = 'rfc2307'
    cfg_params = {}

    def setUp(self):
        self.directory = MockDirectory()
        params = {'user_type': self.user_type}
        params.update(self.cfg_params)
        self.client = self.directory.client(**params)

    def users(self, **params):
        if params:
            return Users(self.client, self.client.cfg.clone(**params))
        return Users(self.client)


class TestUsers(UserTestCase):

    def test_unsupported_user_type(self):
        with self.assertRaises(UnsupportedUserTypeError):
            self.users(user_type='novell')

    def test_user_types(self):
        for user_type in ('default', 'ad', 'edir', 'rfc2307', 'rfc2307bis', 'samba', ' AD '):
            users = self.users(user_type=user_type)
            self.assertTrue(users.cfg.user_objectclass.startswith('('))

    def test_vendor_defaults(self):
        """
        empty parameters are filled from the user type, explicit
        values are kept
        """
        users = self.users()
        self.assertEqual(users.cfg.user_attribute, 'uid')
        self.assertEqual(users.cfg.user_objectclass, '(objectClass=posixAccount)')
        self.assertEqual(users.cfg.user_create_context, PEOPLE_DN)
        self.assertFalse(users.cfg.member_attribute_isdn)
        users = self.users(user_attribute='cn', member_attribute_isdn=True)
        self.assertEqual(users.cfg.user_attribute, 'cn')
        self.assertTrue(users.cfg.member_attribute_isdn)
        # no create context with several user contexts
        users = self.users(user_contexts='%s;%s' % (PEOPLE_DN, GROUPS_DN))
        self.assertEqual(users.cfg.user_create_context, '')

    def test_list(self):
        """
        test method Users.list() over several contexts
        """
        for uid in ('alice', 'bob'):
            self.directory.add_posix_user(uid)
        self.directory.add(
            'uid=carol,%s' % (GROUPS_DN,),
            {'objectClass': ['top', 'posixAccount'], 'uid': 'carol', 'cn': 'carol'},
        )
        self.assertEqual(sorted(self.users().list()), ['alice', 'bob'])
        users = self.users(user_contexts='%s;%s' % (PEOPLE_DN, GROUPS_DN))
        self.assertEqual(sorted(users.list()), ['alice', 'bob', 'carol'])
        self.assertEqual(users.list('(uid=b*)'), ['bob'])

    def test_for_each_stops(self):
        for uid in ('alice', 'bob', 'carol'):
            self.directory.add_posix_user(uid)
        seen = []
        self.users().for_each(lambda username: seen.append(username) or False)
        self.assertEqual(len(seen), 1)


class TestRFC2307User(UserTestCase):

    def test_find(self):
        dn = self.directory.add_posix_user('jsmith')
        user = self.users().user(' JSmith ')
        self.assertEqual(user.username, 'jsmith')
        self.assertTrue(user.exists())
        self.assertEqual(user.dn(), dn)
        self.assertFalse(self.users().user('nobody').exists())
        with self.assertRaises(UserNotFoundError):
            self.users().user('nobody').dn()

    def test_filter_injection(self):
        """
        user names are escaped in search filters
        """
        self.directory.add_posix_user('jsmith')
        self.assertFalse(self.users().user('*').exists())
        self.assertFalse(self.users().user('j*').exists())

    def test_login(self):
        """
        test method login() and restoring of the admin identity
        """
        self.directory.add_posix_user('jsmith', password='Pa55w0rd')
        user = self.users().user('jsmith')
        self.assertTrue(user.login('Pa55w0rd'))
        self.assertFalse(user.login('wrong-password'))
        self.assertFalse(user.login(''))
        self.assertFalse(self.users().user('nobody').login('Pa55w0rd'))
        # still bound as admin
        self.assertTrue(self.users().user('jsmith').exists())

    def test_info(self):
        self.directory.add_posix_user('jsmith', mail=['j@example.com', 'js@example.com'], givenName='John')
        user = self.users().user('jsmith')
        info = user.info(['mail', 'givenName', 'dn'])
        self.assertEqual(info['mail'], 'j@example.com')
        self.assertEqual(info['GIVENNAME'], 'John')
        self.assertEqual(info['dn'], user.dn())
        self.assertEqual(user.info_array(['mail'])['mail'], ['j@example.com', 'js@example.com'])
        self.assertEqual(user.attribute('givenName'), 'John')

    def test_create_and_activate(self):
        """
        new posixAccount entries are disabled until activated
        """
        users = self.users()
        user = users.user('newbie')
        user.create({'sn': 'Newbie', 'mail': 'newbie@example.com', 'description': ''}, 'Start123')
        self.assertEqual(user.dn(), 'uid=newbie,%s' % (PEOPLE_DN,))
        info = users.user('newbie').info(['userPassword', 'mail', 'loginShell', 'description'])
        self.assertEqual(info['userPassword'], '*Start123')
        self.assertEqual(info['mail'], 'newbie@example.com')
        self.assertEqual(info['loginShell'], '/bin/false')
        self.assertNotIn('description', info)
        self.assertFalse(users.user('newbie').login('Start123'))
        users.user('newbie').activate()
        self.assertTrue(users.user('newbie').login('Start123'))

    def test_create_without_context(self):
        users = self.users(user_contexts='%s;%s' % (PEOPLE_DN, GROUPS_DN))
        with self.assertRaises(ConfigurationError):
            users.user('newbie').create({'sn': 'Newbie'}, 'Start123')

    def test_update_password(self):
        self.directory.add_posix_user('jsmith', password='old-password')
        users = self.users(passtype='sha1')
        users.user('jsmith').update_password('new-password')
        self.assertTrue(users.user('jsmith').attribute('userPassword').startswith('{SHA}'))

    def test_password_expire(self):
        today = int(time.time() // DAY)
        self.directory.add_posix_user('jsmith', shadowExpire=str(today + 10))
        self.directory.add_posix_user('nexp')
        users = self.users()
        self.assertEqual(users.user('jsmith').password_expire(), 10)
        with self.assertRaises(NoAttributeValueError):
            users.user('nexp').password_expire()
        with self.assertRaises(ConfigurationError):
            self.users(user_type='default').user('jsmith').password_expire()

    def test_suspended_attribute(self):
        self.directory.add_posix_user('jsmith', employeeType='1')
        self.directory.add_posix_user('active', employeeType='false')
        self.directory.add_posix_user('plain')
        users = self.users(suspended_attribute='employeeType')
        self.assertTrue(users.user('jsmith').is_suspended())
        self.assertFalse(users.user('active').is_suspended())
        self.assertFalse(users.user('plain').is_suspended())
        self.assertFalse(self.users().user('jsmith').is_suspended())

    def test_is_group_member(self):
        """
        test method is_group_member() with uid-valued members
        """
        self.directory.add_posix_user('jsmith')
        group_dn = self.directory.add_group('creators', ['jsmith'])
        other_dn = self.directory.add_group('others', ['bob'])
        user = self.users().user('jsmith')
        self.assertTrue(user.is_group_member(group_dn))
        self.assertTrue(user.is_group_member([other_dn, group_dn]))
        self.assertTrue(user.is_group_member('%s;%s' % (other_dn, group_dn)))
        self.assertFalse(user.is_group_member(other_dn))
        # entries below a configured DN are members too
        self.assertTrue(user.is_group_member(PEOPLE_DN))
        self.assertFalse(self.users().user('nobody').is_group_member(group_dn))


class TestRFC2307bisUser(UserTestCase):
    user_type = 'rfc2307bis'

    def test_nested_groups(self):
        """
        groups() follows nested groups and terminates on cycles
        """
        user_dn = self.directory.add_posix_user('jsmith')
        group_a = 'cn=a,%s' % (GROUPS_DN,)
        group_b = 'cn=b,%s' % (GROUPS_DN,)
        self.directory.add_group('a', [user_dn, group_b])
        self.directory.add_group('b', [group_a])
        self.directory.add_group('c', ['uid=other,%s' % (PEOPLE_DN,)])
        user = self.users().user('jsmith')
        self.assertEqual(user.member_id(), user_dn)
        groups = user.groups([GROUPS_DN])
        self.assertEqual(sorted(groups), [group_a, group_b])
        self.assertTrue(user.is_group_member(group_a))
        self.assertFalse(user.is_group_member(group_b))

    def test_get_uids(self):
        """
        member DNs are mapped to user names, other DNs are dropped
        """
        alice_dn = self.directory.add_posix_user('alice')
        bob_dn = self.directory.add_posix_user('bob')
        group_dn = self.directory.add_group('a', [alice_dn])
        users = self.users()
        self.assertEqual(users.get_uids([alice_dn, group_dn, bob_dn]), ['alice', 'bob'])


class TestActiveDirectoryUser(UserTestCase):
    user_type = 'ad'

    def add_ad_user(self, cn, password='password', **attributes):
        dn = 'cn=%s,%s' % (cn, PEOPLE_DN)
        entry = {
            'objectClass': ['top', 'person', 'organizationalPerson', 'user'],
            'cn': cn,
            'sAMAccountName': cn,
            'sAMAccountType': '805306368',
            'userAccountControl': '512',
            'userPassword': password,
        }
        entry.update(attributes)
        self.directory.add(dn, entry)
        return dn

    def test_defaults(self):
        users = self.users()
        self.assertEqual(users.cfg.user_objectclass, '(samaccounttype=805306368)')
        self.assertEqual(users.cfg.member_attribute, 'member')
        self.assertTrue(users.cfg.member_attribute_isdn)
        # referrals are not chased
        self.assertFalse(self.client._session.conn.auto_referrals)

    def test_create_and_activate(self):
        users = self.users()
        user = users.user('jdoe')
        user.create({'sn': 'Doe'}, 'Start123')
        dn = 'cn=jdoe,%s' % (PEOPLE_DN,)
        self.assertEqual(user.dn(), dn)
        entry = self.client.find_any(dn)
        self.assertEqual(entry.first('sAMAccountName'), 'jdoe')
        self.assertEqual(entry.first('userAccountControl'), '514')
        self.assertIn('unicodePwd', entry)
        self.assertTrue(user.is_suspended())
        user.activate()
        self.assertEqual(self.client.find_any(dn).first('userAccountControl'), '512')
        self.assertFalse(user.is_suspended())

    def test_invalid_username(self):
        with self.assertRaises(InvalidUsernameError):
            self.users().user('j,doe').create({'sn': 'Doe'}, 'Start123')

    def test_expired_login(self):
        """
        a failed bind with AD data code 532 marks the password as expired
        """
        self.add_ad_user('jdoe', password='Pa55w0rd')
        user = self.users().user('jdoe')
        self.assertTrue(user.login('Pa55w0rd', expired_ok=True))
        self.assertFalse(user.login_expired)
        with mock.patch.object(self.client, 'diagnostic_message', return_value=AD_EXPIRED_DIAGNOSTIC):
            self.assertFalse(user.login('wrong-password', expired_ok=True))
            self.assertTrue(user.login_expired)
            self.assertFalse(user.login('wrong-password'))
            self.assertFalse(user.login_expired)
        self.assertFalse(user.login('wrong-password', expired_ok=True))
        self.assertFalse(user.login_expired)

    def test_password_expire(self):
        """
        expiry is computed from pwdLastSet and maxPwdAge of the domain
        """
        domain_dn = 'dc=ad,%s' % (BASE_DN,)
        self.directory.add(domain_dn, {
            'objectClass': ['top', 'domain'],
            'dc': 'ad',
            'maxPwdAge': str(MAX_PWD_AGE),
        })
        self.add_ad_user('jdoe', pwdLastSet=str(ad_time(time.time() - 2 * DAY)))
        self.add_ad_user('neverexp', pwdLastSet=str(ad_time(time.time())), userAccountControl='66048')
        self.add_ad_user('mustchange', pwdLastSet='0')
        users = self.users()
        with mock.patch.object(self.client, 'global_attribute', return_value=[domain_dn]):
            self.assertEqual(users.user('jdoe').password_expire(), 40)
            self.assertEqual(users.user('neverexp').password_expire(), 0)
            self.assertEqual(users.user('mustchange').password_expire(), -1)

    def test_password_expire_pso(self):
        """
        a resultant password settings object overrides the domain policy
        """
        pso_dn = 'cn=pso,%s' % (BASE_DN,)
        self.directory.add(pso_dn, {
            'objectClass': ['top', 'msDS-PasswordSettings'],
            'cn': 'pso',
            'msDS-MaximumPasswordAge': str(-10 * DAY * AD_TICKS_PER_SECOND),
        })
        self.add_ad_user(
            'jdoe',
            pwdLastSet=str(ad_time(time.time() - 2 * DAY)),
            **{'msDS-ResultantPSO': pso_dn}
        )
        self.assertEqual(self.users().user('jdoe').password_expire(), 8)

    def test_password_expire_without_domain(self):
        self.add_ad_user('jdoe', pwdLastSet=str(ad_time(time.time())))
        with self.assertRaises(NoAttributeValueError):
            self.users().user('jdoe').password_expire()

    def test_is_suspended(self):
        self.add_ad_user('disabled', userAccountControl='514')
        self.add_ad_user('enabled')
        users = self.users()
        self.assertTrue(users.user('disabled').is_suspended())
        self.assertFalse(users.user('enabled').is_suspended())


class TestEDirectoryUser(UserTestCase):
    user_type = 'edir'

    def test_create_and_activate(self):
        users = self.users()
        user = users.user('jdoe')
        user.create({'sn': 'Doe'}, 'Start123')
        self.assertEqual(user.dn(), 'cn=jdoe,%s' % (PEOPLE_DN,))
        self.assertTrue(user.is_suspended())
        user.activate()
        self.assertFalse(user.is_suspended())
        self.assertEqual(user.attribute('uniqueId'), 'jdoe')

    def test_password_expire(self):
        dn = 'cn=jdoe,%s' % (PEOPLE_DN,)
        self.directory.add(dn, {
            'objectClass': ['top', 'person', 'inetOrgPerson', 'user'],
            'cn': 'jdoe',
            'sn': 'Doe',
            'passwordExpirationTime': format_generalized_time(time.time() + 5 * DAY),
            'passwordExpirationInterval': str(30 * DAY),
            'loginGraceLimit': '3',
            'loginGraceRemaining': '1',
        })
        users = self.users()
        self.assertEqual(users.user('jdoe').password_expire(), 5)
        users.user('jdoe').update_password('new-password')
        info = users.user('jdoe').info(['loginGraceRemaining', 'userPassword'])
        self.assertEqual(info['loginGraceRemaining'], '3')
        self.assertEqual(info['userPassword'], 'new-password')
        self.assertEqual(users.user('jdoe').password_expire(), 30)


class TestSambaUser(UserTestCase):
    user_type = 'samba'

    def test_create_and_activate(self):
        users = self.users()
        user = users.user('jdoe')
        user.create({'sn': 'Doe'}, 'Start123')
        self.assertEqual(user.attribute('sambaAcctFlags'), '[UD         ]')
        self.assertTrue(user.is_suspended())
        user.activate()
        self.assertEqual(user.attribute('sambaAcctFlags'), '[U          ]')
        self.assertEqual(user.attribute('userPassword'), 'Start123')
        self.assertEqual(user.attribute('sambaNTPassword'), None)
        self.assertFalse(user.is_suspended())


if __name__ == '__main__':
    unittest.main()
