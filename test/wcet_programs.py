"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Small programs and timing tables shared by the tests
"""

from pywcet import analysis
from pywcet import ipet
from pywcet import model
from pywcet import timing

TIMING = """
# opcode mnemonic : paths
0   nop            : 1
96  iadd           : 1
180 getfield       : 12 r-3 | 15 r-3 r-3
181 putfield       : 14 w-2
182 invokevirtual  : 100 r-3 r-3 b-37
183 invokespecial  : 74 r-3 b-37
184 invokestatic   : 74 r-3 b-37
172 ireturn        : 23 b-10
177 return         : 21 b-9
186 invokedynamic  : ! unable to verify microcode
254 sys_noim       : 100 r-3 b-37
"""

# returns hide every method cache load
TIMING_HIDDEN_RETURN = """
0   nop            : 1
184 invokestatic   : 74 r-3 b-37
177 return         : 21 b-1000
254 sys_noim       : 100 r-3 b-37
"""


def timing_table(text=TIMING):
    return timing.TimingTable.from_lines(text.splitlines())


def nops(n):
    return [model.Instruction('nop') for _ in range(n)]


def single_block(name, cycles, callee=None):
    """ entry -> block -> exit, the block invokes callee if given """
    cfg = model.ControlFlowGraph(name)
    if callee is None:
        block = cfg.add_basic_block(nops(cycles))
    else:
        block = cfg.add_invoke(nops(cycles), callee)
    cfg.link(cfg.entry, block, cfg.exit)
    return cfg


def chain_program(costs=(('A', 2), ('B', 3), ('C', 5)), size_words=None):
    """ A -> B -> C, each method a single block of nops """
    methods = list()
    for i, (name, cycles) in enumerate(costs):
        callee = costs[i + 1][0] if i + 1 < len(costs) else None
        methods.append(model.Method(name, single_block(name, cycles, callee),
                                    size_words))
    return model.Program(methods, target=costs[0][0])


def fork_program():
    """ A calls B, then C """
    cfg = model.ControlFlowGraph('A')
    b = cfg.add_invoke(nops(1), 'B')
    c = cfg.add_invoke(nops(1), 'C')
    cfg.link(cfg.entry, b, c, cfg.exit)
    return model.Program([model.Method('A', cfg),
                          model.Method('B', single_block('B', 3)),
                          model.Method('C', single_block('C', 5))],
                         target='A')


def loop_cfg(name, bound=10, header_cycles=1, body_cycles=2, callee=None):
    """ entry -> header -> (body -> header)* -> exit """
    cfg = model.ControlFlowGraph(name)
    header = cfg.add_basic_block(nops(header_cycles), 'header')
    if callee is None:
        body = cfg.add_basic_block(nops(body_cycles), 'body')
    else:
        body = cfg.add_invoke(nops(body_cycles), callee, name='body')
    cfg.link(cfg.entry, header, body, header)
    cfg.add_edge(header, cfg.exit)
    cfg.set_loop_bound(header, bound)
    return cfg


def diamond_cfg(name='D'):
    """ entry -> a -> (b | c) -> d -> exit, b is the expensive branch """
    cfg = model.ControlFlowGraph(name)
    a = cfg.add_basic_block(nops(1), 'a')
    b = cfg.add_basic_block(nops(5), 'b')
    c = cfg.add_basic_block(nops(2), 'c')
    d = cfg.add_basic_block(nops(1), 'd')
    cfg.link(cfg.entry, a, b, d, cfg.exit)
    cfg.link(a, c, d)
    return cfg


def two_exit_cfg(name='X'):
    """ entry -> a -> b -> exit or entry -> a -> c -> second exit,
    b is the expensive branch """
    cfg = model.ControlFlowGraph(name)
    a = cfg.add_basic_block(nops(1), 'a')
    b = cfg.add_basic_block(nops(9), 'b')
    c = cfg.add_basic_block(nops(2), 'c')
    second_exit = cfg.add_exit()
    cfg.link(cfg.entry, a, b, cfg.exit)
    cfg.link(a, c, second_exit)
    return cfg


def local_analysis(program, table=None, wait_states=(1, 2), solver=None,
                   callstring_length=0):
    """ RecursiveAnalysis without cache costs """
    if table is None:
        table = timing_table()
    cost_model = analysis.WcetCostModel(table.configure_wait_states(*wait_states))
    if solver is None:
        solver = ipet.MILPSolver()
    return analysis.RecursiveAnalysis(program, cost_model,
                                      analysis.LocalStrategy(callstring_length),
                                      solver=solver)


EMPTY = model.AnalysisContext()
