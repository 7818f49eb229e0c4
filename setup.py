#!/usr/bin/env python

"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Setup
"""


from setuptools import setup

setup(name='pywcet',
      version='1.0',
      description='pyWCET - recursive, cache-aware worst-case execution time analysis',
      author='the pyWCET developers',
      license="MIT",
      packages=['pywcet'],
      install_requires=['networkx', 'numpy', 'scipy>=1.9'],
      extras_require={'test': 'pytest'}
     )
