"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Context-sensitive call graph.

Nodes are execution contexts, i.e. a method together with the call
string by which it is reached. Edges lead from an invoking to an
invoked execution context. The graph is built from the program model
starting at the analysis target; invokes inside summarized sub-graphs
are part of the method that contains them.
"""

import logging
from collections import namedtuple

import networkx as nx

from . import model
from . import util

logger = logging.getLogger(__name__)


class ExecutionContext(namedtuple('ExecutionContext', ['method', 'callstring'])):
    """ A node of the call graph """

    def __repr__(self):
        return "%s%s" % (self.method, self.callstring)


class CallGraph(object):
    """ Call graph over ExecutionContext nodes, stored in a networkx.DiGraph """

    def __init__(self, graph, root, callstring_length=0):
        self.graph = graph
        self.root = root
        self.callstring_length = callstring_length
        self._nodes_by_method = dict()
        for n in graph.nodes():
            self._nodes_by_method.setdefault(n.method, list()).append(n)

    @classmethod
    def build(cls, program, target=None, callstring_length=0):
        """ Build the call graph of all methods reachable from target

        :param program: the program model
        :type program: model.Program
        :param target: name of the root method (default: the program's target)
        :param callstring_length: maximal length of the call strings
        :rtype: CallGraph
        """
        if target is None:
            target = program.target
        if target is None:
            raise model.ConfigurationException("no analysis target given")

        graph = nx.DiGraph()
        root = ExecutionContext(target, model.CallString.EMPTY)
        graph.add_node(root)

        def callees(ec):
            cfg = program.get_flow_graph(ec.method)
            result = list()
            for invoke in cfg.invoke_nodes():
                if invoke.is_virtual():
                    raise model.PreconditionViolation(
                        "unresolved virtual invoke %s in %s" % (invoke, ec.method))
                callstring = ec.callstring.push(invoke.get_call_site(),
                                                callstring_length)
                callee = ExecutionContext(invoke.callee, callstring)
                graph.add_edge(ec, callee)
                result.append(callee)
            return result

        util.breadth_first_search(root, get_reachable_nodes=callees)
        logger.debug("call graph of %s: %d nodes, %d edges"
                     % (target, graph.number_of_nodes(), graph.number_of_edges()))
        return cls(graph, root, callstring_length)

    def get_nodes(self, method):
        """ All execution contexts of a method """
        return sorted(self._nodes_by_method.get(method, ()), key=repr)

    def contains_method(self, method):
        return method in self._nodes_by_method

    def get_methods(self):
        return sorted(self._nodes_by_method.keys())

    def get_reversed_graph(self):
        """ Graph with edges from invoked to invoking contexts """
        return self.graph.reverse(copy=True)

    def get_callers(self, node):
        return sorted(self.graph.predecessors(node), key=repr)

    def reachable_nodes(self, node):
        """ The node and all nodes reachable from it """
        return nx.descendants(self.graph, node) | set([node])

    def reachable_methods(self, node=None):
        """ Methods reachable from the node (default: the root), including
        the node's own method """
        if node is None:
            node = self.root
        return set(n.method for n in self.reachable_nodes(node))

    def __repr__(self):
        return "CallGraph(%s, %d nodes)" % (self.root, self.graph.number_of_nodes())
