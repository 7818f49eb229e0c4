"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

WCET analysis session for a single target method.

The invoker sets up the call graph, the method cache classification,
the cost model and the recursive analysis, and answers the queries of
optimization passes: which methods are analysed and which CFG nodes
are on a worst-case path. After code changes, update_wca() invalidates
the results of the changed methods and of all their (transitive)
callers and recomputes the cost of the target.
"""

import logging

from . import analysis
from . import callgraph
from . import ipet
from . import methodcache
from . import model
from . import options
from . import util

logger = logging.getLogger(__name__)

LOCAL = 'local'
METHOD_CACHE = 'method_cache'


class WCAInvoker(object):
    """ Runs the WCET analysis of one target and keeps it up to date """

    def __init__(self, program, timing_table, config=None, targets=None,
                 wca_strategy=None, callstring_length=None,
                 assume_cache_miss=None, ipet_config=None, solver=None):
        """
        :param program: the program model
        :type program: model.Program
        :param timing_table: microcode timing
        :type timing_table: timing.TimingTable
        :param config: processor configuration (default: from the options)
        :type config: model.ProcessorConfig
        :param targets: the analysis targets (default: the program's target)
        """
        self.program = program
        self.timing_table = timing_table
        self.config = config if config is not None else model.ProcessorConfig.from_options()

        if targets is None:
            targets = [program.target] if program.target is not None else []
        self.targets = list(targets)

        if wca_strategy is None:
            wca_strategy = options.get_opt('wca_strategy')
        self.wca_strategy = wca_strategy
        if callstring_length is None:
            callstring_length = options.get_opt('callstring_length')
        self.callstring_length = callstring_length
        if assume_cache_miss is None:
            assume_cache_miss = options.get_opt('assume_cache_miss')
        self.assume_cache_miss = assume_cache_miss

        self.ipet_config = ipet_config if ipet_config is not None else ipet.IPETConfig()
        self.solver = solver if solver is not None else ipet.MILPSolver()

        self.target = None
        self.call_graph = None
        self.method_cache_analysis = None
        self.cost_model = None
        self.strategy = None
        self.wca = None
        self.cost = None

    def initialize(self):
        """ Validate the configuration and compute the cost of the target """
        if len(self.targets) != 1:
            raise model.ConfigurationException(
                "exactly one analysis target is supported (got %s)" % (self.targets,))
        self.target = self.targets[0]
        self.config.validate()
        if self.callstring_length < 0:
            raise model.ConfigurationException("callstring_length must be "
                                               "non-negative")

        self.call_graph = callgraph.CallGraph.build(self.program, self.target,
                                                    self.callstring_length)
        self.method_cache_analysis = methodcache.MethodCacheAnalysis(
            self.program, self.call_graph, self.config)
        self.method_cache_analysis.analyze()

        timing = self.timing_table.configure_wait_states(
            self.config.wait_states_read, self.config.wait_states_write)
        self.cost_model = analysis.WcetCostModel(timing)

        if self.wca_strategy == LOCAL:
            self.strategy = analysis.LocalStrategy(self.callstring_length)
        elif self.wca_strategy == METHOD_CACHE:
            self.strategy = methodcache.MethodCacheStrategy(
                self.method_cache_analysis, timing, self.callstring_length,
                self.assume_cache_miss)
        else:
            raise model.ConfigurationException("unknown WCA strategy %s"
                                               % self.wca_strategy)

        self.wca = analysis.RecursiveAnalysis(self.program, self.cost_model,
                                              self.strategy, self.ipet_config,
                                              self.solver)
        self.cost = self.compute_target_cost()
        return self.cost

    def compute_target_cost(self):
        c = self.wca.compute_cost(self.target, model.AnalysisContext())
        logger.info("WCET of %s: %s" % (self.target, c))
        return c

    def get_wca_call_graphs(self):
        return [self.call_graph]

    def get_wca_methods(self):
        return self.call_graph.get_methods()

    def is_wca_method(self, method):
        return self.call_graph.contains_method(method)

    def is_on_wcet_path(self, method, node):
        """ True if the CFG node of the method is executed on the worst-case
        path in some context """
        return self.wca.is_wcet_block(self.program.get_flow_graph(method), node)

    def update_wca(self, changed_methods):
        """ Invalidate all results depending on the changed methods
        and recompute the cost of the target """
        self.call_graph = callgraph.CallGraph.build(self.program, self.target,
                                                    self.callstring_length)
        change_set = self.method_cache_analysis.analyze(self.call_graph)

        roots = set(changed_methods) | change_set
        reversed_graph = self.call_graph.get_reversed_graph()
        root_nodes = list()
        for m in sorted(roots):
            root_nodes.extend(self.call_graph.get_nodes(m))

        visited = util.depth_first_search(
            root_nodes, lambda n: sorted(reversed_graph.successors(n), key=repr))
        methods = set(n.method for n in visited) | roots
        logger.info("update: changed %s, cache classification changed %s, "
                    "invalidating %s" % (sorted(changed_methods), sorted(change_set),
                                         sorted(methods)))

        self.wca.clear_cache(methods)
        self.cost = self.compute_target_cost()
        return self.cost
