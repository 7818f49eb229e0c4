"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Cost values
"""

import pytest

from pywcet.cost import WcetCost, ObjectCacheCost


def test_wcet_cost():
    c = WcetCost(local_cost=10, cache_cost=3, non_local_cost=7)
    assert c.get_cost() == 20
    assert c.times(0) == WcetCost.zero()
    assert c.times(3) == WcetCost(30, 9, 21)
    assert c.add_local_cost(1).add_cache_cost(2).add_non_local_cost(3) == WcetCost(11, 5, 10)


def test_wcet_cost_associative():
    a = WcetCost(1, 2, 3)
    b = WcetCost(4, 0, 6)
    c = WcetCost(0, 8, 9)
    assert a.add_cost(b).add_cost(c) == a.add_cost(b.add_cost(c))
    assert a.add_cost(WcetCost.zero()) == a


def test_wcet_cost_immutable():
    a = WcetCost(1, 2, 3)
    a.add_cost(WcetCost(1, 1, 1))
    a.times(5)
    assert a == WcetCost(1, 2, 3)
    assert hash(a) == hash(WcetCost(1, 2, 3))


def test_negative_multiplicity():
    with pytest.raises(ValueError):
        WcetCost(1, 1, 1).times(-1)
    with pytest.raises(ValueError):
        ObjectCacheCost().times(-1)


def test_object_cache_cost():
    c = ObjectCacheCost().add_miss_cost(8, 1).add_bypass_cost(2, 1) \
        .add_access_to_cached_field(3)
    assert c.get_cost() == 10
    assert c.get_cache_miss_count() == 1
    assert c.get_bypass_count() == 1
    assert c.get_bypass_cost() == 2
    assert c.get_field_accesses_without_bypass() == 3
    assert c.get_total_field_accesses() == 4

    assert c.times(0) == ObjectCacheCost.zero()
    assert c.times(2).get_cost() == 20
    assert c.times(2).get_total_field_accesses() == 8


def test_object_cache_cost_associative():
    a = ObjectCacheCost(1, 8, 0, 0, 1)
    b = ObjectCacheCost(0, 0, 2, 4, 0)
    c = ObjectCacheCost(3, 24, 1, 2, 5)
    assert a.add_cost(b).add_cost(c) == a.add_cost(b.add_cost(c))
    assert a.add_cost(b).add_cost(c) == ObjectCacheCost(4, 32, 3, 6, 6)


if __name__ == "__main__":
    test_wcet_cost()
    test_wcet_cost_associative()
    test_object_cache_cost()
