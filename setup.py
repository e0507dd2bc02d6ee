#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
package/install ldapsync
"""

import sys
import os
from setuptools import setup, find_packages

PYPI_NAME = 'ldapsync'

BASEDIR = os.path.dirname(os.path.realpath(__file__))

sys.path.insert(0, os.path.join(BASEDIR, 'ldapsync'))
import __about__

setup(
    name=PYPI_NAME,
    license=__about__.__license__,
    version=__about__.__version__,
    description='Directory account and course enrolment synchronisation',
    author=__about__.__author__,
    author_email=__about__.__mail__,
    maintainer=__about__.__author__,
    maintainer_email=__about__.__mail__,
    keywords=['LDAP', 'LDAPv3', 'Active Directory', 'Synchronisation'],
    packages=find_packages(exclude=['tests']),
    package_dir={'': '.'},
    test_suite='tests',
    python_requires='>=3.8',
    include_package_data=True,
    install_requires=[
        'setuptools',
        'ldap3>=2.9',
        'SQLAlchemy>=2.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=False,
    entry_points={
        'console_scripts':[
            'ldapsync-users=ldapsync.cli:sync_users_main',
            'ldapsync-enrolments=ldapsync.cli:sync_enrolments_main',
            'ldapsync-check=ldapsync.cli:check_main',
        ],
    }
)
