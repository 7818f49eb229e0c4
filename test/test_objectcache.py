"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Object cache analysis
"""

import pytest

from pywcet import model
from pywcet import objectcache
from pywcet.cost import ObjectCacheCost
from pywcet.model import Instruction

import wcet_programs
from wcet_programs import EMPTY


def getfield(handle, field_index):
    return Instruction('getfield', handle=handle, field_index=field_index)


def block_program():
    """ two cached fields of one object, one field bypassing the cache """
    cfg = model.ControlFlowGraph('M')
    block = cfg.add_basic_block([getfield('a', 0), getfield('a', 1),
                                 getfield('b', 20), Instruction('nop')])
    cfg.link(cfg.entry, block, cfg.exit)
    return model.Program([model.Method('M', cfg)], target='M')


def loop_program():
    """ M accesses a, then calls N five times; N accesses two fields of x """
    cfg = model.ControlFlowGraph('M')
    pre = cfg.add_basic_block([getfield('a', 0)])
    header = cfg.add_basic_block([Instruction('nop')])
    body = cfg.add_invoke([Instruction('nop')], 'N')
    cfg.link(cfg.entry, pre, header, body, header)
    cfg.add_edge(header, cfg.exit)
    cfg.set_loop_bound(header, 5)

    callee = model.ControlFlowGraph('N')
    block = callee.add_basic_block([getfield('x', 0), getfield('x', 1)])
    callee.link(callee.entry, block, callee.exit)
    return model.Program([model.Method('M', cfg), model.Method('N', callee)], target='M')


def config(**kwargs):
    # one wait state: a line of 4 words loads in 8 cycles, a bypass takes 2
    return model.ProcessorConfig(wait_states_read=1, **kwargs)


def test_classification():
    ref = objectcache.FieldIndexRefAnalysis(block_program(), config())
    assert ref.classify(Instruction('nop')) == objectcache.NOT_A_HANDLE_ACCESS
    assert ref.classify(getfield('a', 15)) == objectcache.CACHED
    assert ref.classify(getfield('a', 16)) == objectcache.BYPASS
    assert ref.classify(Instruction('getfield', handle='a')) == objectcache.CACHED


def test_all_miss():
    oca = objectcache.ObjectCacheAnalysis(block_program(), config(), assume_all_miss=True)
    c = oca.compute_cost()
    assert c == ObjectCacheCost(miss_count=2, miss_cost=16, bypass_count=1,
                                bypass_cost=2, field_accesses=2)
    assert c.get_cost() == 18


def test_persistence():
    ref = objectcache.FieldIndexRefAnalysis(block_program(), config())
    c = ref.get_max_cache_cost('M', EMPTY)
    # a is loaded once
    assert c.get_cache_miss_count() == 1
    assert c.get_cost() == 8 + 2
    assert c.get_total_field_accesses() == 3


def test_single_field_caching():
    ref = objectcache.FieldIndexRefAnalysis(block_program(),
                                            config(single_field_caching=True))
    assert ref.get_max_cached_tags('M', EMPTY) == 2
    c = ref.get_max_cache_cost('M', EMPTY)
    assert c.get_cache_miss_count() == 2
    assert c.get_cost() == 2 * 2 + 2


def test_strategy_shortcut():
    oca = objectcache.ObjectCacheAnalysis(loop_program(), config(ocache_associativity=1))
    c = oca.compute_cost('M')
    # M itself does not fit, N does: one miss per invocation of N
    assert c.get_cache_miss_count() == 1 + 5
    assert c.get_cost() == 8 + 5 * 8
    assert c.get_field_accesses_without_bypass() == 1 + 5 * 2


def test_strategy_all_miss():
    oca = objectcache.ObjectCacheAnalysis(loop_program(), config(ocache_associativity=1),
                                          assume_all_miss=True)
    assert oca.compute_cost('M').get_cost() == 8 + 5 * 16


def test_target_is_analysed():
    oca = objectcache.ObjectCacheAnalysis(loop_program(), config())
    assert oca.ref_analysis.get_max_cache_cost('M', EMPTY).get_cost() == 16
    # the target fits, but only the callee is bounded by the persistence cost
    c = oca.compute_cost('M')
    assert c.get_cache_miss_count() == 1 + 5
    assert c.get_cost() == 8 + 5 * 8


def test_target_without_callees():
    c = objectcache.ObjectCacheAnalysis(block_program(), config()).compute_cost()
    assert c == ObjectCacheCost(miss_count=2, miss_cost=16, bypass_count=1,
                                bypass_cost=2, field_accesses=2)


def test_context_insensitive():
    program = loop_program()
    ref = objectcache.FieldIndexRefAnalysis(program, config())
    context = model.AnalysisContext(model.CallString([('M', 4)]))
    with pytest.raises(model.PreconditionViolation):
        ref.get_max_cached_tags('N', context)

    strategy = objectcache.ObjectCacheStrategy(ref, config())
    invoke = program.get_flow_graph('M').invoke_nodes()[0]
    with pytest.raises(model.PreconditionViolation):
        strategy.recursive_cost(None, invoke, context)


def test_invalid_config():
    with pytest.raises(model.ConfigurationException):
        objectcache.ObjectCacheAnalysis(block_program(), config(ocache_associativity=0))


if __name__ == "__main__":
    test_persistence()
