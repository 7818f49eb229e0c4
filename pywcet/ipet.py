"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Implicit path enumeration (IPET).

The worst-case path through a control flow graph is found by an
integer linear program over edge flow variables:

 - one flow variable per CFG edge, plus a source edge entering the
   entry node and a sink edge leaving each exit node
 - the source edge carries exactly one unit of flow
 - flow conservation (inflow = outflow) at every node
 - loop bounds: the flow on the back edges of a loop is at most the
   loop bound times the flow entering the loop
 - objective: maximize the sum of node cost times node execution
   count, where the execution count of a node is its inflow

The coefficients of the objective are provided by a CostProvider,
so that different cost semantics share the constraint construction.
Solving is delegated to an IPETSolver; :class:`MILPSolver` uses the
HiGHS mixed integer solver shipped with scipy.
"""

import logging
from collections import namedtuple

import networkx as nx
import numpy as np
from scipy import optimize

from . import model
from . import options

logger = logging.getLogger(__name__)


class ExecutionEdge(namedtuple('ExecutionEdge', ['src', 'dst'])):
    """ A flow variable of the IPET problem.
    src is None for the source edge, dst is None for sink edges. """

    def is_source(self):
        return self.src is None

    def is_sink(self):
        return self.dst is None

    def __repr__(self):
        return "%s->%s" % ('S' if self.src is None else self.src,
                           'T' if self.dst is None else self.dst)


class CostProvider(object):
    """ Maps CFG nodes to objective coefficients """

    def get_cost(self, node):
        raise NotImplementedError


class MapCostProvider(CostProvider):
    """ Looks up node costs in a dictionary """

    def __init__(self, cost_map, default_cost=None):
        self.cost_map = cost_map
        self.default_cost = default_cost

    def get_cost(self, node):
        cost = self.cost_map.get(node, self.default_cost)
        if cost is None:
            raise model.PreconditionViolation("no cost for node %s" % node)
        return cost


class FunctionCostProvider(CostProvider):
    """ Computes node costs using a function """

    def __init__(self, func):
        self.func = func

    def get_cost(self, node):
        return self.func(node)


class IPETConfig(object):
    """ Configuration of the IPET model construction """

    def __init__(self, dump_ilp=False):
        self.dump_ilp = dump_ilp

    @classmethod
    def from_options(cls):
        return cls(dump_ilp=options.get_opt('dump_ilp'))


class LinearConstraint(object):
    """ sum(coefficient * flow(edge)) <op> rhs, op is '<=' or '==' """

    def __init__(self, coefficients, op, rhs):
        assert op in ('<=', '==')
        self.coefficients = coefficients
        self.op = op
        self.rhs = rhs

    def is_satisfied(self, edge_flow):
        lhs = sum(c * edge_flow[e] for e, c in self.coefficients.items())
        if self.op == '==':
            return lhs == self.rhs
        return lhs <= self.rhs

    def __str__(self):
        lhs = " + ".join("%s %r" % (c, e) for e, c in self.coefficients.items())
        return "%s %s %s" % (lhs or "0", self.op, self.rhs)


class IPETModel(object):
    """ Flow variables, constraints and objective of one IPET problem """

    def __init__(self, name, callstring=model.CallString.EMPTY):
        self.name = name
        self.callstring = callstring
        self.edges = list()
        self.constraints = list()
        # # edge -> objective coefficient
        self.objective = dict()

    def add_edge(self, edge, cost=0):
        self.edges.append(edge)
        self.objective[edge] = cost
        return edge

    def add_constraint(self, coefficients, op, rhs):
        constraint = LinearConstraint(coefficients, op, rhs)
        self.constraints.append(constraint)
        return constraint

    def objective_value(self, edge_flow):
        return sum(c * edge_flow[e] for e, c in self.objective.items())

    def __str__(self):
        s = "IPET %s %s\nmax: " % (self.name, self.callstring)
        s += " + ".join("%s %r" % (self.objective[e], e) for e in self.edges
                        if self.objective[e] != 0) or "0"
        for c in self.constraints:
            s += "\n  " + str(c)
        return s


def find_back_edges(cfg):
    """ Returns the back edges of the CFG, i.e. edges whose target
    dominates their source """
    idom = nx.immediate_dominators(cfg.graph, cfg.entry)
    reachable = nx.descendants(cfg.graph, cfg.entry) | set([cfg.entry])

    def dominates(a, b):
        while True:
            if a == b:
                return True
            parent = idom.get(b, b)
            if parent == b:
                return False
            b = parent

    return [(u, v) for (u, v) in cfg.edges()
            if u in reachable and dominates(v, u)]


def build_local_model(name, cfg, cost_provider, config=None,
                      callstring=model.CallString.EMPTY):
    """ Build the IPET problem for a single control flow graph.

    :param name: name of the problem (used in diagnostics)
    :param cfg: the control flow graph
    :type cfg: model.ControlFlowGraph
    :param cost_provider: objective coefficients of the nodes
    :type cost_provider: CostProvider
    :param config: IPET configuration
    :type config: IPETConfig
    :rtype: IPETModel
    """
    if config is None:
        config = IPETConfig()
    ipet = IPETModel(name, callstring)

    # flow variables, the coefficient of an edge is the cost of its target
    incoming = dict((n, list()) for n in cfg.nodes())
    outgoing = dict((n, list()) for n in cfg.nodes())

    source = ipet.add_edge(ExecutionEdge(None, cfg.entry),
                           cost_provider.get_cost(cfg.entry))
    incoming[cfg.entry].append(source)
    for (u, v) in cfg.edges():
        e = ipet.add_edge(ExecutionEdge(u, v), cost_provider.get_cost(v))
        outgoing[u].append(e)
        incoming[v].append(e)
    for x in cfg.exits:
        e = ipet.add_edge(ExecutionEdge(x, None), 0)
        outgoing[x].append(e)

    # the method is executed once
    ipet.add_constraint({source: 1}, '==', 1)

    # flow conservation
    for n in cfg.nodes():
        coefficients = dict()
        for e in incoming[n]:
            coefficients[e] = coefficients.get(e, 0) + 1
        for e in outgoing[n]:
            coefficients[e] = coefficients.get(e, 0) - 1
        ipet.add_constraint(coefficients, '==', 0)

    # nodes not reachable from the entry are never executed
    reachable = nx.descendants(cfg.graph, cfg.entry) | set([cfg.entry])
    for n in cfg.nodes():
        if n not in reachable and len(incoming[n]) > 0:
            logger.warning("%s: node %s is unreachable" % (name, n))
            ipet.add_constraint(dict((e, 1) for e in incoming[n]), '==', 0)

    # loop bounds
    back_edges = find_back_edges(cfg)
    forward = cfg.graph.subgraph(reachable).copy()
    forward.remove_edges_from(back_edges)
    if not nx.is_directed_acyclic_graph(forward):
        raise model.PreconditionViolation("%s: irreducible control flow in %s"
                                          % (name, cfg.name))

    headers = sorted(set(v for (u, v) in back_edges), key=lambda n: n.id)
    for header in headers:
        bound = cfg.get_loop_bound(header)
        if bound is None:
            raise model.PreconditionViolation("%s: no loop bound for loop header %s"
                                              % (name, header))
        coefficients = dict()
        for e in incoming[header]:
            if (e.src, e.dst) in back_edges:
                coefficients[e] = 1
            else:
                coefficients[e] = -bound
        ipet.add_constraint(coefficients, '<=', 0)

    if config.dump_ilp:
        logger.debug(str(ipet))
    return ipet


def edge_to_node_flow(cfg, edge_flow):
    """ Execution count of each node: the sum of its incoming flow """
    node_flow = dict((n, 0) for n in cfg.nodes())
    for e, flow in edge_flow.items():
        if e.dst is not None:
            node_flow[e.dst] += flow
    return node_flow


class IPETSolver(object):
    """ Solves IPET problems. Every call of solve() is counted. """

    def __init__(self):
        # # number of solved problems
        self.invocations = 0

    def solve(self, ipet):
        """ Maximize the objective of the problem.

        :rtype: tuple (objective value, dict edge -> flow)
        """
        self.invocations += 1
        logger.debug("solving %s (%d variables, %d constraints)"
                     % (ipet.name, len(ipet.edges), len(ipet.constraints)))
        return self._solve(ipet)

    def _solve(self, ipet):
        raise NotImplementedError


class MILPSolver(IPETSolver):
    """ Integer solver based on scipy.optimize.milp (HiGHS) """

    def _solve(self, ipet):
        index = dict((e, i) for i, e in enumerate(ipet.edges))
        n = len(ipet.edges)

        # milp minimizes
        c = np.zeros(n)
        for e, coefficient in ipet.objective.items():
            c[index[e]] = -coefficient

        A = np.zeros((len(ipet.constraints), n))
        lb = np.zeros(len(ipet.constraints))
        ub = np.zeros(len(ipet.constraints))
        for k, constraint in enumerate(ipet.constraints):
            for e, coefficient in constraint.coefficients.items():
                A[k, index[e]] = coefficient
            ub[k] = constraint.rhs
            lb[k] = constraint.rhs if constraint.op == '==' else -np.inf

        try:
            res = optimize.milp(c,
                                constraints=optimize.LinearConstraint(A, lb, ub),
                                integrality=np.ones(n),
                                bounds=optimize.Bounds(0, np.inf))
        except ValueError as e:
            raise model.SolverException("Failed to solve LP problem %s: %s"
                                        % (ipet.name, e))
        if not res.success:
            raise model.SolverException("Failed to solve LP problem %s: %s"
                                        % (ipet.name, res.message))

        edge_flow = dict((e, int(round(res.x[index[e]]))) for e in ipet.edges)
        return -res.fun, edge_flow
