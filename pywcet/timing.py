"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Microcode timing table.

The timing of each bytecode is described by one or more microcode
paths. A path consists of a constant number of cycles plus stall terms
for memory reads, memory writes and bytecode (method cache) loads.
Each stall term is written as :math:`[d - h]`, i.e. :math:`max(0, d-h)`,
where :math:`d` is the delay of the memory access and :math:`h` the
number of cycles hidden by concurrent microcode execution.
The cost of a bytecode is the maximum over its paths.

The table is read from a text artifact with one bytecode per line::

    # opcode mnemonic : path | path ...
    96  iadd          : 1
    180 getfield      : 12 r-3 | 15 r-3 r-3
    184 invokestatic  : 74 r-3 b-37
    186 invokedynamic : ! unsupported microcode sequence

A line whose timing starts with ``!`` records a failed microcode
analysis; querying such an opcode is an error.
Opcodes not listed are not implemented in microcode and use the
timing of the ``sys_noim`` entry.

Wait states are not stored in the table. Every query either passes
them explicitly or uses a view created by
:meth:`TimingTable.configure_wait_states`.
"""

import logging
from collections import namedtuple

from . import model

logger = logging.getLogger(__name__)

# # areturn, ireturn, lreturn, freturn, dreturn, return
RETURN_OPCODES = (172, 173, 174, 175, 176, 177)

NOT_IMPLEMENTED = 'sys_noim'

METHOD_CACHE_HIT_CYCLES = 4
METHOD_CACHE_MISS_BASE_CYCLES = 6

WaitStates = namedtuple('WaitStates', ['read', 'write'])


def read_wait_cycles(read_wait_states):
    """ Additional cycles per word loaded from main memory """
    return read_wait_states - 1 if read_wait_states > 0 else 0


def method_cache_access_cycles(hit, words, read_wait_states):
    """ Method load time on invoke or return.

    A hit costs a constant number of cycles, a miss loads
    words+1 words (including the method header) into the cache.
    """
    if hit:
        return METHOD_CACHE_HIT_CYCLES
    c = read_wait_cycles(read_wait_states)
    return METHOD_CACHE_MISS_BASE_CYCLES + (words + 1) * (2 + c)


class MicropathTiming(object):
    """ Timing of a single microcode path """

    def __init__(self, constant, read_hidden=(), write_hidden=(),
                 bytecode_hidden=None):
        self.constant = constant
        # # hidden cycles of each memory read / write on this path
        self.read_hidden = tuple(read_hidden)
        self.write_hidden = tuple(write_hidden)
        # # hidden cycles of the bytecode load (None if there is none)
        self.bytecode_hidden = bytecode_hidden

    @staticmethod
    def parse(text):
        """ Parse a path such as '74 r-3 b-37' """
        tokens = text.split()
        if len(tokens) == 0:
            raise ValueError("empty microcode path")
        constant = int(tokens[0])
        reads, writes, bytecode = [], [], None
        for tok in tokens[1:]:
            kind, _, hidden = tok.partition('-')
            hidden = int(hidden) if hidden else 0
            if kind == 'r':
                reads.append(hidden)
            elif kind == 'w':
                writes.append(hidden)
            elif kind == 'b' and bytecode is None:
                bytecode = hidden
            else:
                raise ValueError("invalid stall term '%s' in '%s'" % (tok, text))
        return MicropathTiming(constant, reads, writes, bytecode)

    def has_bytecode_load(self):
        return self.bytecode_hidden is not None

    def get_hidden_bytecode_load_cycles(self):
        return self.bytecode_hidden

    def get_cycles(self, read_delay, write_delay, bytecode_delay):
        cycles = self.constant
        for h in self.read_hidden:
            cycles += max(0, read_delay - h)
        for h in self.write_hidden:
            cycles += max(0, write_delay - h)
        if self.has_bytecode_load():
            cycles += max(0, bytecode_delay - self.bytecode_hidden)
        return cycles

    def __str__(self):
        s = str(self.constant)
        for h in self.read_hidden:
            s += "+[r-%d]" % h
        for h in self.write_hidden:
            s += "+[w-%d]" % h
        if self.has_bytecode_load():
            s += "+[b-%d]" % self.bytecode_hidden
        return s


class TimingTable(object):
    """ Maps opcodes and method cache outcomes to cycle counts """

    def __init__(self, timings, mnemonics=None, analysis_errors=None):
        # # opcode -> list of MicropathTiming
        self.timing_table = dict(timings)
        # # opcode -> mnemonic
        self.mnemonics = dict(mnemonics or {})
        # # opcode -> error message of the failed microcode analysis
        self.analysis_errors = dict(analysis_errors or {})
        self._opcodes = dict((v, k) for k, v in self.mnemonics.items())

        self.min_cycles_hidden_on_invoke = 0
        self.min_cycles_hidden_on_return = 0
        self._calculate_hidden_cycles()

    @classmethod
    def from_lines(cls, lines):
        timings = dict()
        mnemonics = dict()
        errors = dict()
        for lineno, line in enumerate(lines, 1):
            line = line.split('#', 1)[0].strip()
            if not line:
                continue
            head, sep, body = line.partition(':')
            head = head.split()
            if not sep or len(head) != 2:
                raise ValueError("line %d: expected '<opcode> <mnemonic> : <timing>'"
                                 % lineno)
            opcode = int(head[0])
            mnemonics[opcode] = head[1]
            body = body.strip()
            if body.startswith('!'):
                errors[opcode] = body[1:].strip()
                continue
            try:
                timings[opcode] = [MicropathTiming.parse(p) for p in body.split('|')]
            except ValueError as e:
                raise ValueError("line %d: %s" % (lineno, e))
        logger.debug("timing table: %d opcodes, %d analysis errors"
                     % (len(timings), len(errors)))
        return cls(timings, mnemonics, errors)

    @classmethod
    def from_file(cls, filename):
        with open(filename) as f:
            return cls.from_lines(f.readlines())

    def resolve_opcode(self, opcode):
        """ Returns the numeric opcode for an opcode or mnemonic """
        if isinstance(opcode, int):
            return opcode
        try:
            return self._opcodes[opcode]
        except KeyError:
            raise model.PreconditionViolation("no timing information for "
                                              "bytecode %s" % opcode)

    def has_timing_info(self, opcode):
        return self.resolve_opcode(opcode) in self.timing_table

    def is_implemented(self, opcode):
        """ True if the opcode has a microcode implementation
        (even if its analysis failed) """
        opcode = self.resolve_opcode(opcode)
        return opcode in self.timing_table or opcode in self.analysis_errors

    def get_analysis_error(self, opcode):
        return self.analysis_errors.get(self.resolve_opcode(opcode), None)

    def get_timing(self, opcode):
        opcode = self.resolve_opcode(opcode)
        if opcode in self.analysis_errors:
            raise model.PreconditionViolation(
                "Failed to analyse microcode timing of %s (%d): %s" %
                (self.mnemonics.get(opcode, '?'), opcode,
                 self.analysis_errors[opcode]))
        if not self.is_implemented(opcode):
            return self.get_timing(NOT_IMPLEMENTED)
        return self.timing_table[opcode]

    def has_bytecode_load(self, opcode):
        return any(p.has_bytecode_load() for p in self.get_timing(opcode))

    def get_cycles(self, opcode, hit, words, wait_states):
        """ Cycles of an instruction given the method cache outcome.

        :param hit: whether the method cache access (if any) hits
        :param words: number of words loaded on a miss, negative if unknown
        :param wait_states: memory wait states
        :type wait_states: WaitStates
        """
        timing = self.get_timing(opcode)
        if words < 0 and any(p.has_bytecode_load() for p in timing):
            raise model.PreconditionViolation(
                "Cannot calculate WCET of instruction %s accessing method cache "
                "without information on the size of the method" % (opcode,))
        bytecode_delay = method_cache_access_cycles(hit, words, wait_states.read)
        return max(p.get_cycles(wait_states.read, wait_states.write, bytecode_delay)
                   for p in timing)

    def get_local_cycles(self, opcode, wait_states):
        return self.get_cycles(opcode, False, 0, wait_states)

    def method_cache_access_cycles(self, hit, words, wait_states):
        return method_cache_access_cycles(hit, words, wait_states.read)

    def method_cache_hidden_access_cycles(self, on_invoke):
        """ Minimal number of load cycles hidden on invoke or return """
        if on_invoke:
            return self.min_cycles_hidden_on_invoke
        return self.min_cycles_hidden_on_return

    def opcode_hidden_access_cycles(self, opcode):
        """ Hidden cycles of the bytecode load of an opcode,
        None if the opcode never loads bytecode """
        hidden = [p.get_hidden_bytecode_load_cycles()
                  for p in self.timing_table.get(self.resolve_opcode(opcode), ())
                  if p.has_bytecode_load()]
        if len(hidden) == 0:
            return None
        return min(hidden)

    def miss_penalty(self, words, on_invoke, wait_states):
        """ Cycles lost by a method cache miss loading words """
        return max(0, self.method_cache_access_cycles(False, words, wait_states)
                   - self.method_cache_hidden_access_cycles(on_invoke))

    def java_impl_dispatch_cycles(self, opcode, hit, words, wait_states):
        """ Dispatch cost of a bytecode implemented in Java """
        if self.has_timing_info(opcode):
            if not self.has_bytecode_load(opcode):
                raise model.PreconditionViolation("%s is not a java implemented "
                                                  "bytecode" % (opcode,))
            return self.get_cycles(opcode, hit, words, wait_states)
        return self.get_cycles(NOT_IMPLEMENTED, hit, words, wait_states)

    def configure_wait_states(self, read, write):
        """ Returns a view of this table for the given memory timing """
        return ConfiguredTimingTable(self, WaitStates(read, write))

    def _calculate_hidden_cycles(self):
        rhidden = [self.opcode_hidden_access_cycles(op) for op in RETURN_OPCODES
                   if op in self.timing_table]
        rhidden = [h for h in rhidden if h is not None]
        self.min_cycles_hidden_on_return = min(rhidden) if rhidden else 0

        # now check all other opcodes with a bytecode load
        ihidden = [self.opcode_hidden_access_cycles(op) for op in self.timing_table
                   if op not in RETURN_OPCODES]
        ihidden = [h for h in ihidden if h is not None]
        self.min_cycles_hidden_on_invoke = min(ihidden) if ihidden else 0

    def dump(self, wait_states):
        """ Returns a table (list of rows) of all opcodes """
        rows = list()
        for opcode in sorted(set(self.timing_table) | set(self.analysis_errors)):
            name = self.mnemonics.get(opcode, '?')
            if opcode in self.analysis_errors:
                rows.append([str(opcode), name, "FAILED: " + self.analysis_errors[opcode]])
                continue
            paths = " | ".join(str(p) for p in self.timing_table[opcode])
            rows.append([str(opcode), name, paths,
                         self.get_cycles(opcode, True, 0, wait_states),
                         self.get_cycles(opcode, False, 32, wait_states)])
        return rows


class ConfiguredTimingTable(object):
    """ A timing table together with a memory timing scenario """

    def __init__(self, table, wait_states):
        self.table = table
        self.wait_states = wait_states

    def get_cycles(self, opcode, hit=True, words=0):
        return self.table.get_cycles(opcode, hit, words, self.wait_states)

    def get_local_cycles(self, opcode):
        return self.table.get_local_cycles(opcode, self.wait_states)

    def method_cache_access_cycles(self, hit, words):
        return self.table.method_cache_access_cycles(hit, words, self.wait_states)

    def hidden_access_cycles(self, on_invoke):
        return self.table.method_cache_hidden_access_cycles(on_invoke)

    def miss_penalty(self, words, on_invoke):
        return self.table.miss_penalty(words, on_invoke, self.wait_states)

    def java_impl_dispatch_cycles(self, opcode, hit, words):
        return self.table.java_impl_dispatch_cycles(opcode, hit, words, self.wait_states)

    def __repr__(self):
        return "TimingTable(r=%d, w=%d)" % self.wait_states
