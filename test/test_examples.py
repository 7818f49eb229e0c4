"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Regression test of all examples
"""

import glob
import os
import subprocess
import sys

import pytest

ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), os.pardir)
EXAMPLES = sorted(glob.glob(os.path.join(ROOT, 'examples', '*.py')))


@pytest.mark.parametrize('example', EXAMPLES, ids=os.path.basename)
def test_example(example):
    env = dict(os.environ)
    env['PYTHONPATH'] = os.pathsep.join([os.path.abspath(ROOT), env.get('PYTHONPATH', '')])
    retval = subprocess.check_call([sys.executable, example], env=env)
    assert retval == 0
