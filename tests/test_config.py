# -*- coding: utf-8 -*-
# from Python's standard lib
import os
import tempfile
import unittest
from unittest import mock

from ldapsync import SyncConfig, DEFAULT_CFG_PARAMS
from ldapsync.cnf import CFG_ENV_VAR, load_config

CFG_MODULE_TEXT = """
from ldapsync import SyncConfig

cfg = SyncConfig(
    host_url='ldap://ldap.example.com',
    user_type='rfc2307',
    contexts_role={'student': 'ou=courses,dc=example,dc=com'},
)
"""


class TestSyncConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = SyncConfig()
        for param_name, param_val in DEFAULT_CFG_PARAMS.items():
            self.assertEqual(getattr(cfg, param_name), param_val)
        self.assertEqual(cfg.removeuser, 'keep')
        self.assertEqual(cfg.unenrolaction, 'unenrol')

    def test_invalid_params(self):
        with self.assertRaises(ValueError):
            SyncConfig(no_such_param=1)
        with self.assertRaises(TypeError):
            SyncConfig(pagesize='100')
        with self.assertRaises(TypeError):
            SyncConfig(field_map='firstname=givenName')
        # type not checked
        self.assertEqual(SyncConfig(paged_results=True).paged_results, True)

    def test_clone(self):
        """
        test method SyncConfig.clone()
        """
        cfg = SyncConfig(host_url='ldap://a', field_map={'email': 'mail'})
        new = cfg.clone(host_url='ldap://b')
        self.assertEqual(new.host_url, 'ldap://b')
        self.assertEqual(cfg.host_url, 'ldap://a')
        new.field_map['firstname'] = 'givenName'
        self.assertEqual(cfg.field_map, {'email': 'mail'})
        with self.assertRaises(ValueError):
            cfg.clone(no_such_param=1)

    def test_default_dicts_not_shared(self):
        cfg1 = SyncConfig()
        cfg1.contexts_role['student'] = 'ou=courses'
        self.assertEqual(SyncConfig().contexts_role, {})


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.cfg_path = self._write('ldapsync_test_cfg.py', CFG_MODULE_TEXT)

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, name, text):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, 'w', encoding='utf-8') as cfg_file:
            cfg_file.write(text)
        return path

    def test_load_path(self):
        cfg = load_config(self.cfg_path)
        self.assertIsInstance(cfg, SyncConfig)
        self.assertEqual(cfg.host_url, 'ldap://ldap.example.com')
        self.assertEqual(cfg.contexts_role, {'student': 'ou=courses,dc=example,dc=com'})

    def test_env_var(self):
        with mock.patch.dict(os.environ, {CFG_ENV_VAR: self.cfg_path}):
            cfg = load_config()
        self.assertEqual(cfg.user_type, 'rfc2307')

    def test_module_name(self):
        cfg = load_config('ldapsynccnf')
        self.assertIsInstance(cfg, SyncConfig)
        self.assertEqual(cfg.user_type, 'rfc2307')

    def test_no_cfg(self):
        path = self._write('ldapsync_empty_cfg.py', 'host_url = "ldap://ldap.example.com"\n')
        with self.assertRaises(TypeError):
            load_config(path)

    def test_missing_module(self):
        with self.assertRaises(ImportError):
            load_config('ldapsync_no_such_cfg_module')


if __name__ == '__main__':
    unittest.main()
