# -*- coding: utf-8 -*-
"""
ldapsync.log -- Logging and progress reporting

ldapsync - directory account and membership synchronisation

(c) 2021 by the ldapsync authors

This software is distributed under the terms of the
Apache License Version 2.0 (Apache-2.0)
https://www.apache.org/licenses/LICENSE-2.0
"""

import os
import sys
import logging
import pprint
import collections

import ldapsync.__about__


LOG_LEVEL = os.environ.get('LOG_LEVEL', logging.INFO)

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s'

LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

# config parameters never written to the log
SECRET_CFG_PARAMS = {
    'bind_pw',
    'database_url',
}

EXC_TYPE_COUNTER = collections.defaultdict(lambda: 0)


class LogHelper:
    """
    mix-in class for logging with a class-specific log prefix
    """

    def _log_prefix(self):
        return '%s[%x]' % (self.__class__.__name__, id(self))

    def log(self, level, msg, *args, **kwargs):
        logger.log(level, ' '.join((self._log_prefix(), msg)), *args, **kwargs)


def log_exception(cfg, client, debug):
    """
    Write an exception with config parameters, directory client data
    and Python traceback to error log
    """
    # Get exception instance and traceback info
    exc_type, exc_value, exc_trb = sys.exc_info()
    exc_key = '%s.%s' % (exc_type.__module__, exc_type.__name__)
    EXC_TYPE_COUNTER[exc_key] += 1
    logentry = [
        '------------------- Unhandled error -------------------',
        'ldapsync %s' % (ldapsync.__about__.__version__,),
        '%s raised %d times' % (exc_type, EXC_TYPE_COUNTER[exc_key]),
        'DirectoryClient instance: %r' % (client,),
        '%s.%s: %s' % (exc_type.__module__, exc_type.__name__, exc_value),
    ]
    if debug and cfg is not None:
        # Log the config parameters except secrets
        logentry.append(pprint.pformat(sorted([
            (name, val)
            for name, val in cfg.items()
            if name not in SECRET_CFG_PARAMS
        ])))
    # Write the log entry
    logger.error(os.linesep.join(logentry), exc_info=debug)
    # explicitly remove stuff
    del exc_type
    del exc_value
    del exc_trb
    # end of log_exception()


class Trace:
    """
    Write-only sink for human-readable progress lines of a sync run
    """

    def output(self, message, depth=0):
        raise NotImplementedError

    def finished(self):
        pass


class NullTrace(Trace):
    """
    Discards all progress lines
    """

    def output(self, message, depth=0):
        pass


class TextTrace(Trace):
    """
    Writes indented progress lines to a text stream
    """

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout

    def output(self, message, depth=0):
        self._stream.write('%s%s\n' % ('  ' * depth, message))

    def finished(self):
        self._stream.flush()


class LogTrace(Trace):
    """
    Passes progress lines to the logger
    """

    def __init__(self, level=logging.INFO):
        self._level = level

    def output(self, message, depth=0):
        logger.log(self._level, '%s%s', '  ' * depth, message)


class BufferedTrace(Trace):
    """
    Keeps all progress lines in memory
    """

    def __init__(self):
        self.lines = []

    def output(self, message, depth=0):
        self.lines.append(message)

    def __contains__(self, text):
        return any(text in line for line in self.lines)


def init_logger():
    """
    Create logger instance
    """
    logging.basicConfig(
        level=LOG_LEVEL,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    return logging.getLogger()


logger = init_logger()
