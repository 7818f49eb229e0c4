"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Call graph construction
"""

import pytest

from pywcet import model
from pywcet.callgraph import CallGraph, ExecutionContext

import wcet_programs


def diamond_calls_program():
    """ A calls B and C, both call D """
    program = wcet_programs.fork_program()
    program.replace_method(model.Method('B', wcet_programs.single_block('B', 3, callee='D')))
    program.replace_method(model.Method('C', wcet_programs.single_block('C', 5, callee='D')))
    program.add_method(model.Method('D', wcet_programs.single_block('D', 1)))
    return program


def test_context_insensitive():
    cg = CallGraph.build(diamond_calls_program())
    assert cg.get_methods() == ['A', 'B', 'C', 'D']
    assert cg.get_nodes('D') == [ExecutionContext('D', model.CallString.EMPTY)]
    assert cg.graph.number_of_edges() == 4
    assert cg.reachable_methods() == set(['A', 'B', 'C', 'D'])
    assert cg.reachable_methods(cg.get_nodes('B')[0]) == set(['B', 'D'])


def test_callstrings():
    cg = CallGraph.build(diamond_calls_program(), callstring_length=1)
    nodes = cg.get_nodes('D')
    assert len(nodes) == 2
    assert set(n.callstring.sites[0][0] for n in nodes) == set(['B', 'C'])
    assert len(cg.get_nodes('A')) == 1


def test_reversed_graph():
    cg = CallGraph.build(diamond_calls_program())
    reversed_graph = cg.get_reversed_graph()
    d = cg.get_nodes('D')[0]
    assert set(n.method for n in reversed_graph.successors(d)) == set(['B', 'C'])
    # the call graph itself is not modified
    assert list(cg.graph.successors(d)) == []
    assert [n.method for n in cg.get_callers(d)] == ['B', 'C']


def test_contains_method():
    program = diamond_calls_program()
    program.add_method(model.Method('X', wcet_programs.single_block('X', 1)))
    cg = CallGraph.build(program)
    assert cg.contains_method('D')
    assert not cg.contains_method('X')
    assert cg.get_nodes('X') == []


def test_recursive_program():
    program = model.Program([model.Method('R', wcet_programs.single_block('R', 1, callee='R'))],
                            target='R')
    cg = CallGraph.build(program, callstring_length=2)
    # call strings are bounded, so the graph is finite
    assert len(cg.get_nodes('R')) == 3


def test_summary_invokes():
    sub = wcet_programs.loop_cfg('S.loop', bound=3, callee='C')
    cfg = model.ControlFlowGraph('S')
    summary = cfg.add_summary(sub)
    cfg.link(cfg.entry, summary, cfg.exit)
    program = model.Program([model.Method('S', cfg),
                             model.Method('C', wcet_programs.single_block('C', 5))],
                            target='S')
    assert CallGraph.build(program).contains_method('C')


def test_virtual_invoke():
    cfg = model.ControlFlowGraph('V')
    invoke = cfg.add_invoke(wcet_programs.nops(1), None)
    cfg.link(cfg.entry, invoke, cfg.exit)
    program = model.Program([model.Method('V', cfg)], target='V')
    with pytest.raises(model.PreconditionViolation):
        CallGraph.build(program)


def test_no_target():
    with pytest.raises(model.ConfigurationException):
        CallGraph.build(model.Program([]))


if __name__ == "__main__":
    test_context_insensitive()
