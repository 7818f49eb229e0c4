"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Regression tests of the microcode timing table
"""

import os
import shutil
import tempfile
import unittest

from pywcet import model
from pywcet import timing
from pywcet.timing import WaitStates

import wcet_programs


class Test(unittest.TestCase):

    def setUp(self):
        self.table = wcet_programs.timing_table()

    def test_parse(self):
        self.assertEqual(self.table.resolve_opcode('invokestatic'), 184)
        self.assertEqual(self.table.resolve_opcode(184), 184)
        self.assertEqual(len(self.table.get_timing('getfield')), 2)
        self.assertEqual(str(self.table.get_timing(184)[0]), "74+[r-3]+[b-37]")

    def test_parse_errors(self):
        self.assertRaises(ValueError, timing.TimingTable.from_lines, ["1 foo 3"])
        self.assertRaises(ValueError, timing.TimingTable.from_lines, ["1 foo : 3 x-1"])
        self.assertRaises(ValueError, timing.TimingTable.from_lines, ["1 foo : "])

    def test_local_cycles(self):
        ws = WaitStates(1, 2)
        self.assertEqual(self.table.get_local_cycles('nop', ws), 1)
        self.assertEqual(self.table.get_local_cycles('getfield', ws), 15)
        self.assertEqual(self.table.get_local_cycles('getfield', WaitStates(5, 2)), 19)
        self.assertEqual(self.table.get_local_cycles('putfield', ws), 14)
        self.assertEqual(self.table.get_local_cycles('putfield', WaitStates(1, 4)), 16)
        # the load of a method without code is hidden
        self.assertEqual(self.table.get_local_cycles('invokestatic', ws), 74)

    def test_invoke_cycles(self):
        self.assertEqual(self.table.get_cycles(184, True, 100, WaitStates(1, 2)), 74)
        self.assertEqual(self.table.get_cycles(184, False, 100, WaitStates(1, 2)), 245)
        self.assertEqual(self.table.get_cycles(184, False, 100, WaitStates(3, 2)), 447)

    def test_not_implemented(self):
        self.assertFalse(self.table.is_implemented(42))
        self.assertFalse(self.table.has_timing_info(42))
        self.assertEqual(self.table.get_cycles(42, True, 0, WaitStates(1, 2)), 100)

    def test_analysis_error(self):
        self.assertTrue(self.table.is_implemented(186))
        self.assertFalse(self.table.has_timing_info(186))
        self.assertEqual(self.table.get_analysis_error(186), "unable to verify microcode")
        self.assertRaises(model.PreconditionViolation, self.table.get_cycles,
                          186, True, 0, WaitStates(1, 2))

    def test_unknown_mnemonic(self):
        self.assertRaises(model.PreconditionViolation, self.table.get_timing, 'frobnicate')

    def test_unknown_method_size(self):
        self.assertRaises(model.PreconditionViolation, self.table.get_cycles,
                          'invokestatic', False, -1, WaitStates(1, 2))
        # no bytecode load, the size does not matter
        self.assertEqual(self.table.get_cycles('nop', False, -1, WaitStates(1, 2)), 1)

    def test_method_cache_access(self):
        for words in (0, 1, 1000):
            self.assertEqual(timing.method_cache_access_cycles(True, words, 3), 4)
        self.assertEqual(timing.method_cache_access_cycles(False, 0, 0), 6 + 2)
        self.assertEqual(timing.method_cache_access_cycles(False, 0, 1), 6 + 2)
        self.assertEqual(timing.method_cache_access_cycles(False, 0, 3), 6 + 1 * (2 + 2))

    def test_hidden_cycles(self):
        self.assertEqual(self.table.method_cache_hidden_access_cycles(True), 37)
        self.assertEqual(self.table.method_cache_hidden_access_cycles(False), 9)
        self.assertEqual(self.table.opcode_hidden_access_cycles('ireturn'), 10)
        self.assertEqual(self.table.opcode_hidden_access_cycles('nop'), None)

    def test_miss_penalty(self):
        ws = WaitStates(1, 2)
        self.assertEqual(self.table.miss_penalty(100, True, ws), 208 - 37)
        self.assertEqual(self.table.miss_penalty(100, False, ws), 208 - 9)
        self.assertEqual(self.table.miss_penalty(10, True, ws), 0)

    def test_java_impl_dispatch(self):
        ws = WaitStates(1, 2)
        self.assertEqual(self.table.java_impl_dispatch_cycles(42, True, 0, ws), 100)
        self.assertEqual(self.table.java_impl_dispatch_cycles(184, True, 0, ws), 74)
        self.assertRaises(model.PreconditionViolation,
                          self.table.java_impl_dispatch_cycles, 'iadd', True, 0, ws)

    def test_configured_view(self):
        fast = self.table.configure_wait_states(1, 2)
        slow = self.table.configure_wait_states(3, 2)
        self.assertEqual(fast.get_cycles('invokestatic', hit=False, words=100), 245)
        self.assertEqual(slow.get_cycles('invokestatic', hit=False, words=100), 447)
        # configuring one view does not affect another
        self.assertEqual(fast.miss_penalty(100, True), 171)
        self.assertEqual(fast.method_cache_access_cycles(True, 100), 4)
        self.assertEqual(fast.hidden_access_cycles(False), 9)

    def test_from_file(self):
        directory = tempfile.mkdtemp()
        filename = os.path.join(directory, 'timing.txt')
        try:
            with open(filename, 'w') as f:
                f.write(wcet_programs.TIMING)
            table = timing.TimingTable.from_file(filename)
            self.assertEqual(table.get_local_cycles('getfield', WaitStates(1, 2)), 15)
        finally:
            shutil.rmtree(directory)

    def test_dump(self):
        rows = self.table.dump(WaitStates(1, 2))
        self.assertEqual(len(rows), 11)
        self.assertTrue(rows[-1][2].startswith("100"))


if __name__ == "__main__":
    unittest.main()
