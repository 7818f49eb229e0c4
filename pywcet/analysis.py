""" Recursive WCET Analysis

| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

This module contains the generic recursive cost computation.
It should be imported in scripts that do the analysis.

The cost of a method in a context is computed by

 1. computing the cost of every CFG node (a CostModel; invoke nodes
    are delegated to a RecursiveStrategy, which usually asks for the
    cost of the invoked method),
 2. solving the IPET problem of the CFG with the scalar node costs as
    objective,
 3. reconstructing the full cost from the node flow of the solution and
    checking it against the objective value of the solver.

Results are memoized per (method, context). Costs of invoked methods
are computed with an explicit work list: if a node needs the cost of
a method that has not been computed yet, the current computation is
suspended, the callee is computed and the caller is retried.
A method whose computation depends on itself is rejected.
"""

import logging

from . import cost
from . import model
from . import ipet

logger = logging.getLogger(__name__)

# states of a cache key
UNCOMPUTED = 'uncomputed'
COMPUTING = 'computing'
CACHED = 'cached'


class CacheKey(object):
    """ Key for caching recursive calculations """

    def __init__(self, method, context):
        self.method = method
        self.context = context

    def __eq__(self, other):
        return isinstance(other, CacheKey) and self.method == other.method \
            and self.context == other.context

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.method, self.context))

    def __repr__(self):
        return "%s%s" % (self.method, self.context.get_callstring())


class _MissingCost(Exception):
    """ Raised (and handled) within a computation if the cost of
    another method is needed first """
    def __init__(self, analysis, key):
        super(_MissingCost, self).__init__(key)
        self.analysis = analysis
        self.key = key


class RecursiveStrategy(object):
    """ Decides how the cost of an invoke node is obtained """

    def __init__(self, callstring_length=0):
        self.callstring_length = callstring_length

    def callee_context(self, invocation, context):
        """ Analysis context of the invoked method """
        callstring = context.get_callstring().push(invocation.get_call_site(),
                                                   self.callstring_length)
        return context.with_callstring(callstring)

    def recursive_cost(self, analysis, invocation, context):
        """ Cost of the method invoked by invocation, to be added to the
        cost of the invoke node.

        :param analysis: the analysis asking for the cost
        :type analysis: RecursiveAnalysis
        :param invocation: the invoke node
        :type invocation: model.InvokeNode
        :param context: context of the invoking method
        :type context: model.AnalysisContext
        """
        raise NotImplementedError

    def clear_cache(self, methods):
        """ Forget everything derived for the given methods """
        pass

    def is_wcet_block(self, cfg, node):
        """ True if an analysis owned by the strategy found the node on
        a worst-case path """
        return False


class LocalStrategy(RecursiveStrategy):
    """ Always recurse into the invoked method """

    def recursive_cost(self, analysis, invocation, context):
        cost = analysis.compute_cost(invocation.callee,
                                     self.callee_context(invocation, context))
        return analysis.cost_model.invocation_cost(cost)


class CostModel(object):
    """ The cost semantics of a recursive analysis:
    node costs, objective coefficients and the reconstruction
    of the solution.
    """

    def zero(self):
        raise NotImplementedError

    def compute_cost_of_node(self, analysis, node, context):
        raise NotImplementedError

    def invocation_cost(self, callee_cost):
        """ Contribution of an invoked method's cost to the invoke node """
        return callee_cost

    def scalar(self, cost):
        """ The objective coefficient of a cost """
        return cost.get_cost()

    def get_cost_provider(self, node_costs):
        return ipet.MapCostProvider(dict((n, self.scalar(c))
                                         for n, c in node_costs.items()))

    def extract_solution(self, cfg, node_costs, max_cost, edge_flow):
        """ Sum up the node costs weighted with the node flow.
        The scalar of the sum must match the objective value. """
        node_flow = ipet.edge_to_node_flow(cfg, edge_flow)
        cost = self.zero()
        for n in cfg.nodes():
            cost = cost.add_cost(node_costs[n].times(node_flow[n]))
        if self.scalar(cost) != max_cost:
            raise model.InconsistencyException(
                "%s: Cost of lp solver (%d) and reconstructed cost (%d) "
                "do not coincide" % (cfg.name, max_cost, self.scalar(cost)))
        return cost

    @staticmethod
    def check_invoke(node):
        if node.is_virtual():
            raise model.PreconditionViolation(
                "Invoke node %s (%s) without implementation in WCET analysis - "
                "did you preprocess virtual methods?" % (node, node.callee))


class RecursiveAnalysis(object):
    """ Recursive maximization problem over the methods of a program.

    Different contexts may lead to different results; recomputation
    with the same context is cached.
    """

    def __init__(self, program, cost_model, strategy=None, ipet_config=None,
                 solver=None):
        self.program = program
        self.cost_model = cost_model
        self.strategy = strategy if strategy is not None else LocalStrategy()
        self.ipet_config = ipet_config if ipet_config is not None else ipet.IPETConfig()
        self.solver = solver if solver is not None else ipet.MILPSolver()

        # # CacheKey -> cost
        self._cost_map = dict()
        # # keys being computed (work list), None if idle
        self._computing = None
        # # owner of a graph computed by compute_cost_uncached at top level
        self._uncached_method = None
        # # cfg -> (method, nodes executed on a worst-case path)
        self._wcet_nodes = dict()

    def compute_cost(self, method, context):
        """ Cost of a method in a context, memoized """
        key = CacheKey(method, context)
        if key in self._cost_map:
            logger.debug("cached cost of %s" % (key,))
            return self._cost_map[key]

        if self._computing is not None:
            # called during a computation, i.e. from a recursive strategy
            if key in self._computing:
                raise model.RecursionException(
                    "recursive computation of %s (call chain: %s)"
                    % (key, " -> ".join(str(k) for k in self._computing)))
            raise _MissingCost(self, key)

        return self._run(key)

    def _run(self, root):
        """ Work list driver """
        self._computing = [root]
        try:
            while len(self._computing) > 0:
                key = self._computing[-1]
                cfg = self.program.get_flow_graph(key.method)
                try:
                    cost = self._compute_cost_uncached(str(key), cfg, key.context)
                except _MissingCost as missing:
                    if missing.analysis is not self:
                        raise
                    logger.debug("%s: computing %s first" % (key, missing.key))
                    self._computing.append(missing.key)
                    continue
                self._computing.pop()
                logger.debug("cost of %s: %s" % (key, cost))
                self._cost_map[key] = cost
        finally:
            self._computing = None
        return self._cost_map[root]

    def compute_cost_uncached(self, name, cfg, context, method=None):
        """ Cost of a control flow graph, without consulting the cache.
        Used for summary nodes and forced recomputation.

        :param method: the method the graph belongs to, if called
                       outside of a computation
        """
        if self._computing is not None:
            return self._compute_cost_uncached(name, cfg, context)

        while True:
            self._computing = []
            self._uncached_method = method
            try:
                return self._compute_cost_uncached(name, cfg, context)
            except _MissingCost as missing:
                if missing.analysis is not self:
                    raise
                key = missing.key
            finally:
                self._computing = None
                self._uncached_method = None
            self.compute_cost(key.method, key.context)

    def _compute_cost_uncached(self, name, cfg, context):
        node_costs = self.build_node_cost_map(cfg, context)
        cost_provider = self.cost_model.get_cost_provider(node_costs)
        max_cost, edge_flow = self.run_local_computation(name, cfg, context,
                                                         cost_provider)
        cost = self.cost_model.extract_solution(cfg, node_costs, max_cost, edge_flow)
        self._record_wcet_nodes(cfg, edge_flow)
        return cost

    def build_node_cost_map(self, cfg, context):
        """ map flowgraph nodes to costs
        If the node is a invoke, we need to compute the cost for the invoked method
        otherwise, just take the basic block cost
        """
        node_costs = dict()
        for n in cfg.nodes():
            node_costs[n] = self.cost_model.compute_cost_of_node(self, n, context)
        return node_costs

    def run_local_computation(self, name, cfg, context, cost_provider):
        """ Compute the cost of the given control flow graph, using a local ILP

        :param name: name for the ILP problem
        :param cfg: the control flow graph
        :param context: the context to use
        :rtype: tuple (maximal cost, dict execution edge -> flow)
        """
        problem = ipet.build_local_model(name, cfg, cost_provider,
                                         self.ipet_config, context.get_callstring())
        try:
            max_cost, edge_flow = self.solver.solve(problem)
        except model.AnalysisException:
            raise
        except Exception as e:
            raise model.SolverException("Failed to solve LP problem %s: %s"
                                        % (name, e))
        return int(round(max_cost)), edge_flow

    def _record_wcet_nodes(self, cfg, edge_flow):
        owner = self.current_method()
        node_flow = ipet.edge_to_node_flow(cfg, edge_flow)
        _, nodes = self._wcet_nodes.get(cfg, (owner, set()))
        nodes |= set(n for n, f in node_flow.items() if f > 0)
        self._wcet_nodes[cfg] = (owner, nodes)

    def is_wcet_block(self, cfg, node):
        """ True if the node is executed on the worst-case path of
        the CFG in some analysed context """
        _, nodes = self._wcet_nodes.get(cfg, (None, ()))
        return node in nodes or self.strategy.is_wcet_block(cfg, node)

    def record_cost(self, method, context, cost):
        self._cost_map[CacheKey(method, context)] = cost

    def is_cached(self, method, context):
        return CacheKey(method, context) in self._cost_map

    def get_cached(self, method, context):
        return self._cost_map.get(CacheKey(method, context), None)

    def get_state(self, method, context):
        key = CacheKey(method, context)
        if key in self._cost_map:
            return CACHED
        if self._computing is not None and key in self._computing:
            return COMPUTING
        return UNCOMPUTED

    def current_method(self):
        """ The method whose cost is being computed, None if idle or
        computing a graph of unknown origin outside of the memo """
        if self._computing:
            return self._computing[-1].method
        return self._uncached_method

    def cached_keys(self):
        return list(self._cost_map.keys())

    def clear_cache(self, methods):
        """ Remove the results of the given methods in all contexts """
        methods = set(methods)
        stale = [k for k in self._cost_map if k.method in methods]
        for k in stale:
            del self._cost_map[k]
        for cfg in [c for c, (owner, _) in self._wcet_nodes.items()
                    if owner in methods or c.name in methods]:
            del self._wcet_nodes[cfg]
        self.strategy.clear_cache(methods)
        logger.info("invalidated %d results of %d methods" % (len(stale), len(methods)))


class WcetCostModel(CostModel):
    """ Execution time in cycles, using the microcode timing table """

    def __init__(self, timing):
        """
        :param timing: timing table configured with the memory wait states
        :type timing: timing.ConfiguredTimingTable
        """
        self.timing = timing

    def zero(self):
        return cost.WcetCost()

    def local_cycles(self, node):
        return sum(self.timing.get_local_cycles(i.opcode)
                   for i in node.get_instructions())

    def invocation_cost(self, callee_cost):
        return cost.WcetCost(non_local_cost=callee_cost.get_cost())

    def compute_cost_of_node(self, analysis, node, context):
        return _WcetVisitor(self, analysis, context).visit(node)


class _WcetVisitor(model.CFGVisitor):
    """ Visitor for computing the WCET of CFG nodes """

    def __init__(self, cost_model, analysis, context):
        self.cost_model = cost_model
        self.analysis = analysis
        self.context = context

    def visit_basic_block(self, node):
        return cost.WcetCost(local_cost=self.cost_model.local_cycles(node))

    def visit_invoke(self, node):
        CostModel.check_invoke(node)
        local = self.visit_basic_block(node)
        return local.add_cost(self.analysis.strategy.recursive_cost(
            self.analysis, node, self.context))

    def visit_summary(self, node):
        return self.analysis.compute_cost_uncached(str(node), node.sub_cfg,
                                                   self.context)

    def visit_special(self, node):
        return cost.WcetCost()


