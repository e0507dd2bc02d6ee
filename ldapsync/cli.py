# -*- coding: utf-8 -*-
"""
ldapsync.cli - command-line entry points

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import sys
import getopt
import logging

from .__about__ import __version__
from .log import logger, log_exception, TextTrace
from .errors import LDAPSyncError
from .cnf import load_config
from .client import DirectoryClient
from .storage import create_store
from .authsync import AuthSync, check_settings
from .enrolsync import EnrolSync

USAGE = """
usage: %(prog)s [options]%(args)s

-c config
    Dotted module name or file path of the config module.
    Default: env var LDAPSYNC_CFG or module ldapsynccnf

-d
    Write debug messages and tracebacks to the log.
%(options)s
-h
    Print this help.
"""


def print_usage(prog, args='', options='', error_msg=None):
    """
    Print usage and error message, then exit
    """
    sys.stderr.write(USAGE % {'prog': prog, 'args': args, 'options': options})
    if error_msg:
        sys.stderr.write('*** Error: %s\n' % (error_msg,))
    raise SystemExit(1)


def parse_args(argv, extra_opts='', args='', options=''):
    """
    Returns (cfg_name, debug, extra option dict, positional args)
    """
    prog = argv[0]
    try:
        optlist, posargs = getopt.getopt(argv[1:], '?hdc:' + extra_opts)
    except getopt.error as err:
        print_usage(prog, args, options, str(err))
    cfg_name = None
    debug = False
    extra = {}
    for key, val in optlist:
        if key in ('-h', '-?'):
            print_usage(prog, args, options)
        elif key == '-c':
            cfg_name = val
        elif key == '-d':
            debug = True
        else:
            extra[key] = val
    if debug:
        logger.setLevel(logging.DEBUG)
    return cfg_name, debug, extra, posargs


def _run(argv, func, cfg_name, debug):
    """
    Load config, connect to the directory and the local store, then
    call func(cfg, client, store), returns exit code
    """
    cfg = None
    client = None
    try:
        cfg = load_config(cfg_name)
        client = DirectoryClient.from_config(cfg)
        store = create_store(cfg.database_url)
        try:
            return func(cfg, client, store)
        finally:
            store.close()
            client.close()
    except LDAPSyncError as err:
        logger.error('%s: %s', argv[0], err)
        return 1
    except Exception:
        log_exception(cfg, client, debug)
        return 2
    # end of _run()


def sync_users_main(argv=None):
    """
    Synchronise local accounts with the directory
    """
    argv = argv or sys.argv
    cfg_name, debug, extra, _ = parse_args(
        argv,
        extra_opts='n',
        options='\n-n\n    Do not update fields of existing accounts.\n',
    )

    def sync(cfg, client, store):
        logger.info('ldapsync %s: synchronising users', __version__)
        authsync = AuthSync(client, store, cfg, trace=TextTrace())
        report = authsync.sync_users(do_updates='-n' not in extra)
        logger.info('%s', report)
        return 0 if report.ok else 1

    raise SystemExit(_run(argv, sync, cfg_name, debug))


def sync_enrolments_main(argv=None):
    """
    Synchronise course enrolments with the directory
    """
    argv = argv or sys.argv
    cfg_name, debug, _, posargs = parse_args(argv, args=' [course id]')
    onecourse = None
    if len(posargs) > 1:
        print_usage(argv[0], ' [course id]', error_msg='Expected at most one course id')
    if posargs:
        try:
            onecourse = int(posargs[0])
        except ValueError:
            print_usage(
                argv[0],
                ' [course id]',
                error_msg='Course id must be valid integer literal, was %r' % (posargs[0],),
            )

    def sync(cfg, client, store):
        logger.info('ldapsync %s: synchronising enrolments', __version__)
        enrolsync = EnrolSync(client, store, cfg, trace=TextTrace())
        report = enrolsync.sync_enrolments(onecourse)
        logger.info('%s', report)
        return 0 if report.ok else 1

    raise SystemExit(_run(argv, sync, cfg_name, debug))


def check_main(argv=None):
    """
    Check directory settings and print diagnostics
    """
    argv = argv or sys.argv
    cfg_name, debug, _, _ = parse_args(argv)
    cfg = None
    try:
        cfg = load_config(cfg_name)
        messages = check_settings(cfg)
    except Exception:
        log_exception(cfg, None, debug)
        raise SystemExit(2)
    exit_code = 0
    for level, message in messages:
        sys.stdout.write('%s: %s\n' % (logging.getLevelName(level), message))
        if level >= logging.ERROR:
            exit_code = 1
    raise SystemExit(exit_code)
