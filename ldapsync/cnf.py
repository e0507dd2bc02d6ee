# -*- coding: utf-8 -*-
"""
ldapsync.cnf - load configuration modules

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import os
import importlib
import importlib.util

from .log import logger
from . import SyncConfig

# env var naming the config module to be loaded
CFG_ENV_VAR = 'LDAPSYNC_CFG'

# config module loaded if neither name nor env var is given
DEFAULT_CFG_MODULE = 'ldapsynccnf'


def _import_path(path):
    module_name = os.path.splitext(os.path.basename(path))[0]
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None:
        raise ImportError('Cannot load config file %r' % (path,))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_config(name=None):
    """
    Returns SyncConfig instance named cfg of a config module

    name is a dotted module name or a path name of a Python file.
    If None the module named in env var LDAPSYNC_CFG is loaded.
    """
    name = name or os.environ.get(CFG_ENV_VAR) or DEFAULT_CFG_MODULE
    if name.endswith('.py') or os.sep in name:
        logger.debug('Loading config file %r', name)
        module = _import_path(name)
    else:
        logger.debug('Loading config module %r', name)
        module = importlib.import_module(name)
    cfg = getattr(module, 'cfg', None)
    if not isinstance(cfg, SyncConfig):
        raise TypeError(
            'Config module %r does not define cfg as SyncConfig instance, got %r' % (name, cfg)
        )
    return cfg
