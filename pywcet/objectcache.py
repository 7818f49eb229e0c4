"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Object cache analysis.

Field accesses through an object handle are classified by a reference
analysis:

 - not a handle access: no object cache cost
 - cached: the access goes through the object cache, a miss loads a
   cache line (or a single field)
 - bypass: the access never uses the cache and always pays the
   bypass cost

Without further knowledge, every cached access is a miss. If the
number of distinct tags (objects, or fields with single field caching)
accessed by a method and its callees does not exceed the associativity
of the cache, every tag is loaded at most once ("all-fit") and the
cost of the subtree is bounded by one line load per tag. The bound is
used for invoked methods only; the analysed method itself is always
computed access by access.

The analysis is context-insensitive.
"""

import logging

from . import analysis
from . import cost
from . import model
from . import util

logger = logging.getLogger(__name__)

# access classification
NOT_A_HANDLE_ACCESS = 'none'
CACHED = 'cached'
BYPASS = 'bypass'


class ObjectCacheReferenceAnalysis(object):
    """ Classification of handle accesses and persistence bounds.
    Implementations decide which accesses use the object cache. """

    def classify(self, instruction):
        """ NOT_A_HANDLE_ACCESS, CACHED or BYPASS """
        raise NotImplementedError

    def get_max_cached_tags(self, method, context):
        """ Maximal number of distinct tags accessed by method and its callees """
        raise NotImplementedError

    def get_max_cache_cost(self, method, context):
        """ Cost of method and its callees if every tag is loaded only once """
        raise NotImplementedError

    def clear_cache(self, methods):
        pass


class FieldIndexRefAnalysis(ObjectCacheReferenceAnalysis):
    """ Reference analysis based on the handle and field index annotations
    of the instructions. Fields with an index up to max_cached_field_index
    are cached, other fields bypass the cache. Distinct handle names denote
    distinct objects. """

    def __init__(self, program, config, ipet_config=None, solver=None):
        self.program = program
        self.config = config
        self.ipet_config = ipet_config
        self.solver = solver
        self._access_analysis = None

    def classify(self, instruction):
        if not instruction.is_handle_access():
            return NOT_A_HANDLE_ACCESS
        if instruction.field_index is not None and \
                instruction.field_index > self.config.max_cached_field_index:
            return BYPASS
        return CACHED

    def access_tag(self, instruction):
        if self.config.single_field_caching:
            return (instruction.handle, instruction.field_index)
        return instruction.handle

    def _check_context(self, context):
        if not context.get_callstring().is_empty():
            raise model.PreconditionViolation(
                "object cache analysis is context-insensitive, but got %s" % (context,))

    def reachable_methods(self, method):
        def callees(m):
            return [i.callee for i in self.program.get_flow_graph(m).invoke_nodes()]
        return util.breadth_first_search(method, get_reachable_nodes=callees)

    def get_cached_tags(self, method, context):
        self._check_context(context)
        tags = set()
        for m in self.reachable_methods(method):
            for i in self.program.get_flow_graph(m).instructions():
                if self.classify(i) == CACHED:
                    tags.add(self.access_tag(i))
        return tags

    def get_max_cached_tags(self, method, context):
        return len(self.get_cached_tags(method, context))

    def get_max_cache_cost(self, method, context):
        """ One line load per tag, plus the bypass cost and the number of
        accesses on the path with the most field accesses """
        tags = self.get_max_cached_tags(method, context)
        if self._access_analysis is None:
            self._access_analysis = analysis.RecursiveAnalysis(
                self.program, ObjectCacheCostModel(self, self.config, count_misses=False),
                analysis.LocalStrategy(), self.ipet_config, self.solver)
        accesses = self._access_analysis.compute_cost(method, context)
        return accesses.add_miss_cost(tags * self.config.ocache_load_block_cycles(), tags)

    def clear_cache(self, methods):
        if self._access_analysis is not None:
            self._access_analysis.clear_cache(methods)


class ObjectCacheCostModel(analysis.CostModel):
    """ Object cache cost of CFG nodes.

    With count_misses unset, cached accesses are only counted; the
    objective is then the number of field accesses.
    """

    def __init__(self, ref_analysis, config, count_misses=True):
        self.ref_analysis = ref_analysis
        self.config = config
        self.count_misses = count_misses

    def zero(self):
        return cost.ObjectCacheCost()

    def scalar(self, c):
        if self.count_misses:
            return c.get_cost()
        return c.get_total_field_accesses()

    def block_cost(self, node):
        c = self.zero()
        for i in node.get_instructions():
            kind = self.ref_analysis.classify(i)
            if kind == BYPASS:
                c = c.add_bypass_cost(self.config.ocache_bypass_cycles(), 1)
            elif kind == CACHED:
                if self.count_misses:
                    c = c.add_miss_cost(self.config.ocache_load_block_cycles(), 1)
                c = c.add_access_to_cached_field(1)
        return c

    def compute_cost_of_node(self, wca, node, context):
        return _ObjectCacheVisitor(self, wca, context).visit(node)


class _ObjectCacheVisitor(model.CFGVisitor):

    def __init__(self, cost_model, wca, context):
        self.cost_model = cost_model
        self.analysis = wca
        self.context = context

    def visit_basic_block(self, node):
        return self.cost_model.block_cost(node)

    def visit_invoke(self, node):
        c = self.cost_model.block_cost(node)
        analysis.CostModel.check_invoke(node)
        return c.add_cost(self.analysis.strategy.recursive_cost(
            self.analysis, node, self.context))

    def visit_summary(self, node):
        return self.analysis.compute_cost_uncached(str(node), node.sub_cfg,
                                                   self.context)

    def visit_special(self, node):
        return cost.ObjectCacheCost()


class ObjectCacheStrategy(analysis.RecursiveStrategy):
    """ Uses the persistence bound of the callee if all its tags fit
    into the cache, recurses otherwise """

    def __init__(self, ref_analysis, config, assume_all_miss=False):
        analysis.RecursiveStrategy.__init__(self, 0)
        self.ref_analysis = ref_analysis
        self.config = config
        self.assume_all_miss = assume_all_miss

    def all_fit(self, method, context):
        return not self.assume_all_miss and \
            self.ref_analysis.get_max_cached_tags(method, context) \
            <= self.config.ocache_associativity

    def recursive_cost(self, wca, invocation, context):
        if not context.get_callstring().is_empty():
            raise model.PreconditionViolation(
                "object cache analysis is context-insensitive, but got %s" % (context,))
        callee_context = self.callee_context(invocation, context)
        if self.all_fit(invocation.callee, callee_context):
            return self.ref_analysis.get_max_cache_cost(invocation.callee,
                                                        callee_context)
        return wca.compute_cost(invocation.callee, callee_context)

    def clear_cache(self, methods):
        self.ref_analysis.clear_cache(methods)


class ObjectCacheAnalysis(object):
    """ Computes the object cache cost of a target method """

    def __init__(self, program, config, ref_analysis=None, assume_all_miss=False,
                 ipet_config=None, solver=None):
        self.program = program
        self.config = config.validate()
        if ref_analysis is None:
            ref_analysis = FieldIndexRefAnalysis(program, config, ipet_config, solver)
        self.ref_analysis = ref_analysis
        self.strategy = ObjectCacheStrategy(ref_analysis, config, assume_all_miss)
        self.analysis = analysis.RecursiveAnalysis(
            program, ObjectCacheCostModel(ref_analysis, config),
            self.strategy, ipet_config, solver)

    def compute_cost(self, method=None):
        """ Object cache cost of method (default: the program's target) """
        if method is None:
            method = self.program.target
        context = model.AnalysisContext()
        # # the persistence bound only applies to callees
        c = self.analysis.compute_cost(method, context)
        logger.info("object cache cost of %s: %s" % (method, c))
        return c

    def clear_cache(self, methods):
        self.analysis.clear_cache(methods)
