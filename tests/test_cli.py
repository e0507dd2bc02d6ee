# -*- coding: utf-8 -*-
# from Python's standard lib
import io
import os
import tempfile
import unittest
from unittest import mock

from ldapsync.cli import check_main, parse_args, sync_enrolments_main

NO_SERVER_CFG = """
from ldapsync import SyncConfig

cfg = SyncConfig(host_url='')
"""


class TestParseArgs(unittest.TestCase):

    def test_options(self):
        cfg_name, debug, extra, posargs = parse_args(
            ['ldapsync-users', '-c', 'mycnf', '-n', 'rest'],
            extra_opts='n',
        )
        self.assertEqual(cfg_name, 'mycnf')
        self.assertFalse(debug)
        self.assertEqual(extra, {'-n': ''})
        self.assertEqual(posargs, ['rest'])

    def test_usage(self):
        with mock.patch('sys.stderr', new_callable=io.StringIO) as stderr:
            with self.assertRaises(SystemExit) as ctx:
                parse_args(['ldapsync-users', '-h'])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn('usage: ldapsync-users', stderr.getvalue())
        with mock.patch('sys.stderr', new_callable=io.StringIO) as stderr:
            with self.assertRaises(SystemExit):
                parse_args(['ldapsync-users', '-x'])
        self.assertIn('*** Error:', stderr.getvalue())

    def test_invalid_course_id(self):
        with mock.patch('sys.stderr', new_callable=io.StringIO) as stderr:
            with self.assertRaises(SystemExit) as ctx:
                sync_enrolments_main(['ldapsync-enrolments', 'abc'])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn('Course id must be valid integer literal', stderr.getvalue())


class TestCheckMain(unittest.TestCase):

    def test_no_server(self):
        """
        a config without LDAP server is reported as error
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg_path = os.path.join(tmpdir, 'ldapsync_noserver_cfg.py')
            with open(cfg_path, 'w', encoding='utf-8') as cfg_file:
                cfg_file.write(NO_SERVER_CFG)
            with mock.patch('sys.stdout', new_callable=io.StringIO) as stdout:
                with self.assertRaises(SystemExit) as ctx:
                    check_main(['ldapsync-check', '-c', cfg_path])
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(stdout.getvalue(), 'ERROR: LDAP server not configured\n')


if __name__ == '__main__':
    unittest.main()
