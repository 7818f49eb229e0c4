"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Simple WCET example: a main method calling a filter routine in a loop
"""

import sys

from pywcet import invoker
from pywcet import ipet
from pywcet import model
from pywcet import objectcache
from pywcet import options
from pywcet import timing

TIMING = """
0   nop            : 1
21  iload          : 2
96  iadd           : 1
180 getfield       : 12 r-3 | 15 r-3 r-3
181 putfield       : 14 w-2
184 invokestatic   : 74 r-3 b-37
172 ireturn        : 23 b-10
177 return         : 21 b-9
254 sys_noim       : 100 r-3 b-37
"""


def build_program():
    # the filter reads two fields of the sample buffer and writes the result
    fcfg = model.ControlFlowGraph('Filter.apply')
    body = fcfg.add_basic_block([
        model.Instruction('getfield', 3, handle='buf', field_index=0),
        model.Instruction('getfield', 3, handle='buf', field_index=1),
        model.Instruction('iadd'),
        model.Instruction('putfield', 3, handle='out', field_index=0),
        model.Instruction('ireturn')])
    fcfg.link(fcfg.entry, body, fcfg.exit)

    # main: for (i = 0; i < 8; i++) Filter.apply();
    mcfg = model.ControlFlowGraph('Main.main')
    init = mcfg.add_basic_block([model.Instruction('iload'), model.Instruction('nop')])
    header = mcfg.add_basic_block([model.Instruction('iload')], 'loop')
    call = mcfg.add_invoke([model.Instruction('invokestatic', 3)], 'Filter.apply')
    done = mcfg.add_basic_block([model.Instruction('return')])
    mcfg.link(mcfg.entry, init, header, call, header)
    mcfg.link(header, done, mcfg.exit)
    mcfg.set_loop_bound(header, 8)

    return model.Program([model.Method('Main.main', mcfg),
                          model.Method('Filter.apply', fcfg)],
                         target='Main.main')


def wcet_test():
    # initialize pywcet (read command line switches and set up default options)
    options.init_pywcet()

    table = timing.TimingTable.from_lines(TIMING.splitlines())
    config = model.ProcessorConfig.from_options()
    print("Timing table for %r" % config)
    options.pprintTable(sys.stdout, table.dump(timing.WaitStates(config.wait_states_read,
                                                                 config.wait_states_write)))

    program = build_program()
    wca = invoker.WCAInvoker(program, table, config, ipet_config=ipet.IPETConfig.from_options())
    c = wca.initialize()
    print("WCET of %s: %s" % (program.target, c))

    for n in program.get_flow_graph('Main.main').nodes():
        print("  %-20s on worst-case path: %s" % (n, wca.is_on_wcet_path('Main.main', n)))

    oca = objectcache.ObjectCacheAnalysis(program, config)
    print("Object cache cost: %s" % oca.compute_cost())


if __name__ == "__main__":
    wcet_test()
