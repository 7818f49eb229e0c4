"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Cost values computed by the recursive analysis.

A cost can be added to another cost of the same type, multiplied by an
execution frequency (a non-negative integer) and reduced to a scalar
with get_cost(), which serves as coefficient of the IPET objective.
Costs are immutable; all operations return new objects.
"""


def _check_multiplicity(n):
    if n < 0:
        raise ValueError("cost multiplicity must be non-negative (is %s)" % n)


class WcetCost(object):
    """ Execution time split into the cost of the instructions of a
    method (local), of cache misses and of invoked methods (non-local) """

    def __init__(self, local_cost=0, cache_cost=0, non_local_cost=0):
        self.local_cost = local_cost
        self.cache_cost = cache_cost
        self.non_local_cost = non_local_cost

    @classmethod
    def zero(cls):
        return cls()

    def get_cost(self):
        return self.local_cost + self.cache_cost + self.non_local_cost

    def add_cost(self, other):
        return WcetCost(self.local_cost + other.local_cost,
                        self.cache_cost + other.cache_cost,
                        self.non_local_cost + other.non_local_cost)

    def add_local_cost(self, cycles):
        return WcetCost(self.local_cost + cycles, self.cache_cost,
                        self.non_local_cost)

    def add_cache_cost(self, cycles):
        return WcetCost(self.local_cost, self.cache_cost + cycles,
                        self.non_local_cost)

    def add_non_local_cost(self, cycles):
        return WcetCost(self.local_cost, self.cache_cost,
                        self.non_local_cost + cycles)

    def times(self, n):
        _check_multiplicity(n)
        return WcetCost(self.local_cost * n, self.cache_cost * n,
                        self.non_local_cost * n)

    def _key(self):
        return (self.local_cost, self.cache_cost, self.non_local_cost)

    def __eq__(self, other):
        return isinstance(other, WcetCost) and self._key() == other._key()

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return "WcetCost(local=%d, cache=%d, non-local=%d)" % self._key()

    def __str__(self):
        return "%d (local: %d, cache: %d, non-local: %d)" % \
            ((self.get_cost(),) + self._key())


class ObjectCacheCost(object):
    """ Cost of object cache accesses.

    Accesses bypassing the cache are tracked separately from accesses
    to cached fields; only misses and bypasses contribute cycles.
    """

    def __init__(self, miss_count=0, miss_cost=0, bypass_count=0,
                 bypass_cost=0, field_accesses=0):
        self.miss_count = miss_count
        self.miss_cost = miss_cost
        self.bypass_count = bypass_count
        self.bypass_cost = bypass_cost
        # # accesses to cached fields, either hits or misses
        self.field_accesses = field_accesses

    @classmethod
    def zero(cls):
        return cls()

    def get_cost(self):
        return self.miss_cost + self.bypass_cost

    def get_cache_miss_count(self):
        return self.miss_count

    def get_bypass_count(self):
        return self.bypass_count

    def get_bypass_cost(self):
        return self.bypass_cost

    def get_total_field_accesses(self):
        return self.bypass_count + self.field_accesses

    def get_field_accesses_without_bypass(self):
        return self.field_accesses

    def add_miss_cost(self, miss_cost, miss_count=1):
        return ObjectCacheCost(self.miss_count + miss_count,
                               self.miss_cost + miss_cost,
                               self.bypass_count, self.bypass_cost,
                               self.field_accesses)

    def add_bypass_cost(self, bypass_cost, accesses=1):
        return ObjectCacheCost(self.miss_count, self.miss_cost,
                               self.bypass_count + accesses,
                               self.bypass_cost + bypass_cost,
                               self.field_accesses)

    def add_access_to_cached_field(self, accesses=1):
        return ObjectCacheCost(self.miss_count, self.miss_cost,
                               self.bypass_count, self.bypass_cost,
                               self.field_accesses + accesses)

    def add_cost(self, other):
        return ObjectCacheCost(self.miss_count + other.miss_count,
                               self.miss_cost + other.miss_cost,
                               self.bypass_count + other.bypass_count,
                               self.bypass_cost + other.bypass_cost,
                               self.field_accesses + other.field_accesses)

    def times(self, n):
        _check_multiplicity(n)
        return ObjectCacheCost(self.miss_count * n, self.miss_cost * n,
                               self.bypass_count * n, self.bypass_cost * n,
                               self.field_accesses * n)

    def _key(self):
        return (self.miss_count, self.miss_cost, self.bypass_count,
                self.bypass_cost, self.field_accesses)

    def __eq__(self, other):
        return isinstance(other, ObjectCacheCost) and self._key() == other._key()

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return "ObjectCacheCost(misses=%d, miss-cost=%d, bypasses=%d, " \
            "bypass-cost=%d, field-accesses=%d)" % self._key()

    def __str__(self):
        return "missCycles = %d [miss-cost=%d, bypass-cost = %d, " \
            "relevant-accesses=%d]" % (self.get_cost(), self.miss_cost,
                                       self.bypass_cost, self.field_accesses)
