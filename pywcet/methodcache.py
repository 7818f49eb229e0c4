"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Method cache persistence analysis and the method cache aware
recursive strategy.

A method is loaded into the method cache when it is invoked and when
it is returned to. If all methods reachable from an execution context
fit into the cache at the same time ("all-fit"), each of them is
loaded at most once while the context executes. The cost of such a
subtree is the cost with all cache accesses hitting, plus one miss
per method of the subtree.
"""

import logging

from . import analysis
from . import cost
from . import model
from .callgraph import ExecutionContext

logger = logging.getLogger(__name__)


class MethodCacheAnalysis(object):
    """ Classifies the nodes of a call graph as all-fit or not """

    def __init__(self, program, callgraph, config):
        """
        :param program: the program model
        :type program: model.Program
        :param callgraph: the call graph of the analysis target
        :type callgraph: callgraph.CallGraph
        :param config: processor configuration
        :type config: model.ProcessorConfig
        """
        self.program = program
        self.callgraph = callgraph
        self.config = config

        # # ExecutionContext -> number of cache blocks of the reachable methods
        self.blocks = None
        # # ExecutionContext -> bool
        self.classification = None
        # # methods whose classification changed on the last analyze()
        self.change_set = set()

    def analyze(self, callgraph=None):
        """ (Re)compute the classification.
        Returns the set of methods whose classification changed
        compared to the previous run. """
        if callgraph is not None:
            self.callgraph = callgraph

        blocks = dict()
        classification = dict()
        for node in self.callgraph.graph.nodes():
            blocks[node] = sum(self.config.method_cache_blocks(
                               self.program.get_method(m).size_words)
                               for m in self.callgraph.reachable_methods(node))
            classification[node] = blocks[node] <= self.config.cache_blocks

        change_set = set()
        if self.classification is not None:
            for node in set(classification) | set(self.classification):
                if classification.get(node) != self.classification.get(node):
                    change_set.add(node.method)

        self.blocks = blocks
        self.classification = classification
        self.change_set = change_set
        logger.debug("method cache classification: %d of %d nodes all-fit, "
                     "changed: %s" % (sum(1 for v in classification.values() if v),
                                      len(classification), sorted(change_set)))
        return change_set

    def get_classification_change_set(self):
        return self.change_set

    def _check_analyzed(self):
        if self.classification is None:
            raise model.PreconditionViolation("method cache analysis has not "
                                              "been run")

    def is_all_fit(self, method, callstring=model.CallString.EMPTY):
        """ True if all methods reachable from the method in the given
        call string context fit into the method cache.

        With the empty call string, the property has to hold for every
        context of the method.
        """
        self._check_analyzed()
        node = ExecutionContext(method, callstring)
        if node in self.classification:
            return self.classification[node]
        if callstring.is_empty():
            nodes = self.callgraph.get_nodes(method)
            if len(nodes) > 0:
                return all(self.classification[n] for n in nodes)
        raise model.PreconditionViolation("no method cache classification for "
                                          "%s%s" % (method, callstring))

    def get_all_fit_blocks(self, method, callstring=model.CallString.EMPTY):
        """ Maximal number of cache blocks needed by the methods reachable
        from the method """
        self._check_analyzed()
        nodes = [n for n in self.callgraph.get_nodes(method)
                 if callstring.is_empty() or n.callstring == callstring]
        if len(nodes) == 0:
            raise model.PreconditionViolation("no method cache classification for "
                                              "%s%s" % (method, callstring))
        return max(self.blocks[n] for n in nodes)

    def get_reachable_methods(self, method, callstring=model.CallString.EMPTY):
        methods = set()
        for n in self.callgraph.get_nodes(method):
            if callstring.is_empty() or n.callstring == callstring:
                methods |= self.callgraph.reachable_methods(n)
        return methods


class MethodCacheStrategy(analysis.RecursiveStrategy):
    """ Adds method cache miss penalties to invocations and uses the
    all-fit classification to avoid counting a miss on every invoke
    within a persistent subtree. """

    def __init__(self, cache_analysis, timing, callstring_length=0,
                 assume_cache_miss=False):
        """
        :param cache_analysis: the all-fit classification
        :type cache_analysis: MethodCacheAnalysis
        :param timing: timing table with wait states
        :type timing: timing.ConfiguredTimingTable
        :param assume_cache_miss: every invoke and return misses
        """
        analysis.RecursiveStrategy.__init__(self, callstring_length)
        self.cache_analysis = cache_analysis
        self.timing = timing
        self.assume_cache_miss = assume_cache_miss

        # # (method, context) -> (methods of the subtree, cost)
        self._all_fit_cache = dict()
        self._all_hit_analysis = None

    def _caller(self, wca, invocation):
        method = wca.current_method()
        if method is None:
            method = invocation.cfg.name
        return wca.program.get_method(method)

    def invoke_penalty(self, method):
        return self.timing.miss_penalty(method.size_words, True)

    def return_penalty(self, method):
        return self.timing.miss_penalty(method.size_words, False)

    def recursive_cost(self, wca, invocation, context):
        caller = self._caller(wca, invocation)
        callee = wca.program.get_method(invocation.callee)
        callee_context = self.callee_context(invocation, context)

        if not self.assume_cache_miss and \
                self.cache_analysis.is_all_fit(callee.name,
                                               callee_context.get_callstring()):
            return self.all_fit_cost(wca, callee, callee_context) \
                .add_cache_cost(self.return_penalty(caller))

        callee_cost = wca.compute_cost(callee.name, callee_context)
        return cost.WcetCost(non_local_cost=callee_cost.get_cost(),
                             cache_cost=self.invoke_penalty(callee)
                             + self.return_penalty(caller))

    def all_fit_cost(self, wca, callee, context):
        """ Cost of an all-fit subtree: all cache accesses hit,
        except the first load of each method """
        key = (callee.name, context)
        if key in self._all_fit_cache:
            return self._all_fit_cache[key][1]

        if self._all_hit_analysis is None or self._all_hit_analysis.program is not wca.program:
            self._all_hit_analysis = analysis.RecursiveAnalysis(
                wca.program, wca.cost_model,
                analysis.LocalStrategy(self.callstring_length),
                wca.ipet_config, wca.solver)
        all_hit = self._all_hit_analysis.compute_cost(callee.name, context)

        methods = self.cache_analysis.get_reachable_methods(callee.name,
                                                            context.get_callstring())
        methods.add(callee.name)
        misses = sum(self.invoke_penalty(wca.program.get_method(m)) for m in methods)
        result = cost.WcetCost(non_local_cost=all_hit.get_cost(), cache_cost=misses)
        logger.debug("all-fit cost of %s%s: %s" % (callee.name, context, result))
        self._all_fit_cache[key] = (methods, result)
        return result

    def clear_cache(self, methods):
        methods = set(methods)
        for key in [k for k, (subtree, _) in self._all_fit_cache.items()
                    if subtree & methods]:
            del self._all_fit_cache[key]
        if self._all_hit_analysis is not None:
            self._all_hit_analysis.clear_cache(methods)

    def is_wcet_block(self, cfg, node):
        return self._all_hit_analysis is not None and \
            self._all_hit_analysis.is_wcet_block(cfg, node)
