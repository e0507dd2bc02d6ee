# -*- coding: utf-8 -*-
# from Python's standard lib
import unittest

from ldapsync.ldaputil import (
    ad_bind_error,
    ad_bind_error_code,
    ad_password_expired,
    escape_dn_value,
    escape_filter_value,
    normalize_objectclass_filter,
    split_values,
    unescape_dn_value,
)

DN_VALUES = (
    ('Simplest', 'Simplest'),
    ('Simple case', r'Simple\20case'),
    ('Medium ‒ case', r'Medium\20‒\20case'),
    ('#Harder+case#', r'\23Harder\2bcase\23'),
    (' Harder (and); harder case ', r'\20Harder\20(and)\3b\20harder\20case\20'),
    ('Really \\0 (hard) case!\\', r'Really\20\5c0\20(hard)\20case!\5c'),
    ('James "Jim" = Smith, III', r'James\20\22Jim\22\20\3d\20Smith\2c\20III'),
    ('  <jsmith@example.com> ', r'\20\20\3cjsmith@example.com\3e\20'),
)


class TestDNValues(unittest.TestCase):

    def test_escape_dn_value(self):
        """
        test function escape_dn_value()
        """
        for value, escaped in DN_VALUES:
            self.assertEqual(escape_dn_value(value), escaped)

    def test_unescape_dn_value(self):
        """
        test function unescape_dn_value() with numeric escapes
        """
        for value, escaped in DN_VALUES:
            self.assertEqual(unescape_dn_value(escaped), value)

    def test_unescape_dn_value_mixed(self):
        """
        test function unescape_dn_value() with alpha and UTF-8 escapes
        """
        self.assertEqual(unescape_dn_value(r'Simple\ case'), 'Simple case')
        self.assertEqual(unescape_dn_value(r'Simple\ \63\61\73\65'), 'Simple case')
        self.assertEqual(unescape_dn_value(r'Medium\ ‒\ case'), 'Medium ‒ case')
        self.assertEqual(unescape_dn_value(r'Medium\20\E2\80\92\20case'), 'Medium ‒ case')
        self.assertEqual(unescape_dn_value(r'\#Harder\+case\#'), '#Harder+case#')
        self.assertEqual(
            unescape_dn_value(r'\ Harder\ (and)\;\ harder\ case\ '),
            ' Harder (and); harder case ',
        )

    def test_unescape_dn_value_raw_bytes(self):
        """
        hex pairs which are not UTF-8 are kept as raw bytes
        """
        value = unescape_dn_value(r'Jos\e9')
        self.assertEqual(value, 'Jos\udce9')
        self.assertEqual(value.encode('utf-8', 'surrogateescape'), b'Jos\xe9')
        self.assertEqual(unescape_dn_value(r'Jos\c3\a9'), 'José')
        self.assertEqual(
            unescape_dn_value(r'Really\ \\0\ (hard)\ case!\\'),
            'Really \\0 (hard) case!\\',
        )
        self.assertEqual(
            unescape_dn_value(r'James\ \"Jim\" \= Smith\, III'),
            'James "Jim" = Smith, III',
        )
        self.assertEqual(
            unescape_dn_value(r'\ \<jsmith@example.com\>\ '),
            ' <jsmith@example.com> ',
        )
        self.assertEqual(unescape_dn_value(r'Lu\C4\8Di\C4\87'), 'Lučić')


class TestFilterValues(unittest.TestCase):

    def test_escape_filter_value(self):
        """
        test function escape_filter_value()
        """
        self.assertEqual(escape_filter_value('jsmith'), 'jsmith')
        self.assertEqual(escape_filter_value('*'), r'\2a')
        self.assertEqual(escape_filter_value('a(b)c'), r'a\28b\29c')
        self.assertEqual(escape_filter_value('back\\slash'), r'back\5cslash')
        self.assertEqual(escape_filter_value('nul\x00'), r'nul\00')
        # backslash must not be escaped twice
        self.assertEqual(escape_filter_value('\\*'), r'\5c\2a')

    def test_escape_filter_value_injection(self):
        """
        escaped values never contain filter meta characters
        """
        for value in ('*)(uid=*', 'admin)(|(objectClass=*)', '(cn=*)'):
            escaped = escape_filter_value(value)
            for char in '*()':
                self.assertNotIn(char, escaped)

    def test_normalize_objectclass_filter(self):
        """
        test function normalize_objectclass_filter()
        """
        self.assertEqual(normalize_objectclass_filter(None), '(objectClass=*)')
        self.assertEqual(normalize_objectclass_filter(''), '(objectClass=*)')
        self.assertEqual(normalize_objectclass_filter('objectClass=tiger'), '(objectClass=tiger)')
        self.assertEqual(normalize_objectclass_filter('leopard'), '(objectClass=leopard)')
        self.assertEqual(
            normalize_objectclass_filter('(&(objectClass=cheetah)(enabledMoodleUser=1))'),
            '(&(objectClass=cheetah)(enabledMoodleUser=1))',
        )


class TestConfigValues(unittest.TestCase):

    def test_split_values(self):
        """
        test function split_values()
        """
        self.assertEqual(split_values(None), [])
        self.assertEqual(split_values(''), [])
        self.assertEqual(
            split_values(' ou=a,dc=example ; ;ou=b,dc=example'),
            ['ou=a,dc=example', 'ou=b,dc=example'],
        )
        self.assertEqual(split_values('givenName, cn', sep=','), ['givenName', 'cn'])


class TestADBindErrors(unittest.TestCase):
    diagnostic = (
        '80090308: LdapErr: DSID-0C09042A, comment: AcceptSecurityContext error, '
        'data %s, v3839'
    )

    def test_ad_bind_error_code(self):
        """
        test function ad_bind_error_code()
        """
        self.assertEqual(ad_bind_error_code(self.diagnostic % '532'), 0x532)
        self.assertEqual(ad_bind_error_code(self.diagnostic % '52e'), 0x52e)
        self.assertEqual(ad_bind_error_code('Invalid credentials'), None)
        self.assertEqual(ad_bind_error_code(None), None)

    def test_ad_bind_error(self):
        """
        test function ad_bind_error()
        """
        self.assertEqual(ad_bind_error(self.diagnostic % '533'), 'account disabled')
        self.assertEqual(ad_bind_error(self.diagnostic % '999'), 'unknown error code 0x999')
        self.assertEqual(ad_bind_error(''), None)

    def test_ad_password_expired(self):
        """
        test function ad_password_expired()
        """
        self.assertTrue(ad_password_expired(self.diagnostic % '532'))
        self.assertTrue(ad_password_expired(self.diagnostic % '773'))
        self.assertFalse(ad_password_expired(self.diagnostic % '52e'))
        self.assertFalse(ad_password_expired(''))


if __name__ == '__main__':
    unittest.main()
