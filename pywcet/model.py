"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

It should be imported in scripts that do the analysis.
We model programs composed of methods, each owning exactly one
control-flow graph (CFG). A CFG consists of basic blocks,
invoke nodes (basic blocks with a statically resolved callee),
summary nodes (wrapping a synthesized sub-graph) and special
nodes (entry and exit markers).

Methods are analysed in a calling context, which is a bounded
call string. The hardware the program runs on is described by a
:class:`ProcessorConfig`.
"""

import logging

import networkx as nx

from . import options
from . import util

logger = logging.getLogger(__name__)


class AnalysisException(Exception):
    """ Base class of all fatal analysis errors """
    def __init__(self, value):
        super(AnalysisException, self).__init__(value)
        self.value = value

    def __str__(self):
        return repr(self.value)


class ConfigurationException(AnalysisException):
    """ Thrown if the analysis is configured inconsistently.
    Raised before any analysis begins. """


class PreconditionViolation(AnalysisException):
    """ Thrown if a collaborator hands over something the analysis
    cannot deal with (e.g. an unresolved virtual invoke) """


class SolverException(AnalysisException):
    """ Thrown if the IPET problem could not be solved """


class InconsistencyException(AnalysisException):
    """ Thrown if an internal consistency check fails """


class RecursionException(AnalysisException):
    """ Thrown if the computation of a method in a context
    depends on itself """


class ProcessorConfig(object):
    """ Hardware parameters of the analysed processor.
    The configuration is validated once at session start.
    """

    def __init__(self, wait_states_read=options.WAIT_STATES_READ,
                 wait_states_write=options.WAIT_STATES_WRITE,
                 cache_blocks=options.CACHE_BLOCKS,
                 cache_block_words=options.CACHE_BLOCK_WORDS,
                 ocache_associativity=options.OCACHE_ASSOCIATIVITY,
                 ocache_block_words=options.OCACHE_BLOCK_WORDS,
                 single_field_caching=False,
                 max_cached_field_index=options.OCACHE_MAX_CACHED_FIELD_INDEX):
        # # memory timing
        self.wait_states_read = wait_states_read
        self.wait_states_write = wait_states_write

        # # method cache geometry
        self.cache_blocks = cache_blocks
        self.cache_block_words = cache_block_words

        # # object cache geometry
        self.ocache_associativity = ocache_associativity
        self.ocache_block_words = ocache_block_words
        self.single_field_caching = single_field_caching
        self.max_cached_field_index = max_cached_field_index

    @classmethod
    def from_options(cls):
        """ Create a processor configuration from the command line options """
        return cls(wait_states_read=options.get_opt('wait_states_read'),
                   wait_states_write=options.get_opt('wait_states_write'),
                   cache_blocks=options.get_opt('cache_blocks'),
                   cache_block_words=options.get_opt('cache_block_words'),
                   ocache_associativity=options.get_opt('ocache_associativity'),
                   ocache_block_words=options.get_opt('ocache_block_words'),
                   single_field_caching=options.get_opt('ocache_single_field'),
                   max_cached_field_index=options.get_opt('ocache_max_cached_field_index'))

    def validate(self):
        """ Check that all required parameters are present and sane """
        for name in ('wait_states_read', 'wait_states_write',
                     'max_cached_field_index'):
            value = getattr(self, name)
            if value is None or value < 0:
                raise ConfigurationException("%s must be a non-negative integer "
                                             "(is %s)" % (name, value))
        for name in ('cache_blocks', 'cache_block_words',
                     'ocache_associativity', 'ocache_block_words'):
            value = getattr(self, name)
            if value is None or value <= 0:
                raise ConfigurationException("%s must be a positive integer "
                                             "(is %s)" % (name, value))
        return self

    def read_wait_cycles(self):
        """ Additional cycles per word read from main memory """
        return max(0, self.wait_states_read - 1)

    def ocache_load_words(self):
        """ Words transferred on an object cache miss """
        if self.single_field_caching:
            return 1
        return self.ocache_block_words

    def ocache_load_block_cycles(self):
        """ Cycles needed to load one object cache line """
        return self.ocache_load_words() * (2 + self.read_wait_cycles())

    def ocache_bypass_cycles(self):
        """ Cycles of a field access bypassing the object cache """
        return 2 + self.read_wait_cycles()

    def method_cache_blocks(self, size_words):
        """ Number of method cache blocks occupied by a method """
        return max(1, util.ceil_div(size_words, self.cache_block_words))

    def __repr__(self):
        return "ProcessorConfig(r=%d, w=%d, blocks=%d x %d words, " \
            "ocache=%d-way x %d words%s)" % (
                self.wait_states_read, self.wait_states_write,
                self.cache_blocks, self.cache_block_words,
                self.ocache_associativity, self.ocache_block_words,
                ", single field" if self.single_field_caching else "")


class Instruction(object):
    """ A single bytecode instruction.

    Object accesses carry the name of the accessed object handle and
    the field index; all other instructions leave both at None.
    """

    def __init__(self, opcode, size=1, handle=None, field_index=None):
        # # numeric opcode or mnemonic, resolved by the timing table
        self.opcode = opcode
        # # encoded size in bytes
        self.size = size
        self.handle = handle
        self.field_index = field_index

    def is_handle_access(self):
        return self.handle is not None

    def __repr__(self):
        if self.is_handle_access():
            return "%s(%s.%s)" % (self.opcode, self.handle, self.field_index)
        return str(self.opcode)


# CFG node kinds
BASIC_BLOCK = 'basic_block'
INVOKE = 'invoke'
SUMMARY = 'summary'
SPECIAL = 'special'

NODE_KINDS = (BASIC_BLOCK, INVOKE, SUMMARY, SPECIAL)


class CFGNode(object):
    """ A node of a control flow graph. Nodes are created by
    the ControlFlowGraph and numbered in creation order. """

    kind = None

    def __init__(self, cfg, name=None):
        self.cfg = cfg
        self.id = None
        self.name = name

    def get_instructions(self):
        return ()

    def __repr__(self):
        if self.name is not None:
            return "%s#%s(%s)" % (self.cfg.name, self.id, self.name)
        return "%s#%s" % (self.cfg.name, self.id)


class BasicBlockNode(CFGNode):
    """ Sequence of instructions with an intrinsic local cost """

    kind = BASIC_BLOCK

    def __init__(self, cfg, instructions, name=None):
        CFGNode.__init__(self, cfg, name)
        self.instructions = list(instructions)

    def get_instructions(self):
        return self.instructions


class InvokeNode(BasicBlockNode):
    """ A basic block ending in a call of a statically resolved method.
    A node with virtual set (or no callee) has not been devirtualized
    and must not reach the analysis.
    """

    kind = INVOKE

    def __init__(self, cfg, instructions, callee, virtual=False, name=None):
        BasicBlockNode.__init__(self, cfg, instructions, name)
        self.callee = callee
        self.virtual = virtual

    def is_virtual(self):
        return self.virtual or self.callee is None

    def get_call_site(self):
        """ Identifies this invoke in a call string """
        return (self.cfg.name, self.id)


class SummaryNode(CFGNode):
    """ Wraps a synthesized sub-graph (e.g. a summarized loop).
    The node has no instructions of its own, its cost is the cost
    of the sub-graph. """

    kind = SUMMARY

    def __init__(self, cfg, sub_cfg, name=None):
        CFGNode.__init__(self, cfg, name)
        self.sub_cfg = sub_cfg


class SpecialNode(CFGNode):
    """ Structural marker without cost (entry, exit) """

    kind = SPECIAL


class CFGVisitor(object):
    """ Dispatches on the kind of a CFG node.
    Subclasses implement one visit method per node kind;
    a missing method is reported instead of being ignored.
    """

    def visit(self, node):
        handler = getattr(self, 'visit_' + node.kind, None)
        if handler is None:
            raise NotImplementedError("%s does not handle %s nodes"
                                      % (type(self).__name__, node.kind))
        return handler(node)


class ControlFlowGraph(object):
    """ Control flow graph with a single entry and one or more exits.
    The graph structure is kept in a networkx.DiGraph.
    """

    def __init__(self, name):
        self.name = name
        self.graph = nx.DiGraph()
        self._next_id = 0
        # # loop header -> maximum iterations per entry of the loop
        self._loop_bounds = dict()

        self.entry = self._add_node(SpecialNode(self, 'entry'))
        self.exits = [self._add_node(SpecialNode(self, 'exit'))]

    @property
    def exit(self):
        return self.exits[0]

    def _add_node(self, node):
        node.id = self._next_id
        self._next_id += 1
        self.graph.add_node(node)
        return node

    def add_basic_block(self, instructions, name=None):
        return self._add_node(BasicBlockNode(self, instructions, name))

    def add_invoke(self, instructions, callee, virtual=False, name=None):
        return self._add_node(InvokeNode(self, instructions, callee, virtual, name))

    def add_summary(self, sub_cfg, name=None):
        return self._add_node(SummaryNode(self, sub_cfg, name))

    def add_exit(self):
        """ Add another exit node """
        node = self._add_node(SpecialNode(self, 'exit'))
        self.exits.append(node)
        return node

    def add_edge(self, src, dst):
        assert src in self.graph and dst in self.graph, \
            'both nodes of an edge must belong to %s' % self.name
        self.graph.add_edge(src, dst)

    def link(self, *nodes):
        """ Connect the nodes in sequence """
        for src, dst in zip(nodes, nodes[1:]):
            self.add_edge(src, dst)

    def set_loop_bound(self, header, bound):
        """ The loop with the given header is iterated at most bound times
        each time it is entered """
        assert bound >= 0, 'loop bounds must be non-negative'
        self._loop_bounds[header] = bound

    def get_loop_bound(self, header):
        return self._loop_bounds.get(header, None)

    def nodes(self):
        """ All nodes in creation order """
        return sorted(self.graph.nodes(), key=lambda n: n.id)

    def edges(self):
        return sorted(self.graph.edges(), key=lambda e: (e[0].id, e[1].id))

    def invoke_nodes(self):
        """ All invoke nodes, including those of summarized sub-graphs """
        invokes = list()
        for n in self.nodes():
            if n.kind == INVOKE:
                invokes.append(n)
            elif n.kind == SUMMARY:
                invokes.extend(n.sub_cfg.invoke_nodes())
        return invokes

    def instructions(self):
        """ All instructions, including those of summarized sub-graphs """
        instructions = list()
        for n in self.nodes():
            if n.kind == SUMMARY:
                instructions.extend(n.sub_cfg.instructions())
            else:
                instructions.extend(n.get_instructions())
        return instructions

    def __repr__(self):
        return "CFG(%s)" % self.name


class Method(object):
    """ An analysable unit. The control flow graph of a method is
    never modified; code changes replace the method in the Program.
    """

    def __init__(self, name, cfg, size_words=None):
        self.name = name
        self.cfg = cfg
        self._size_words = size_words

    def get_flow_graph(self):
        return self.cfg

    @property
    def size_words(self):
        """ Code size in words (relevant for the method cache) """
        if self._size_words is not None:
            return self._size_words
        size = sum(i.size for i in self.cfg.instructions())
        return max(1, util.bytes_to_words(size))

    def __repr__(self):
        return self.name


class Program(object):
    """ Mapping from method name to method, as delivered by
    the program loader. """

    def __init__(self, methods=(), target=None):
        self._methods = dict()
        for m in methods:
            self.add_method(m)
        self.target = target

    def add_method(self, method):
        self._methods[method.name] = method
        return method

    def replace_method(self, method):
        """ Replace a method by new code, returns the old method """
        old = self._methods.get(method.name, None)
        self._methods[method.name] = method
        logger.debug("replaced method %s" % method.name)
        return old

    def has_method(self, name):
        return name in self._methods

    def get_method(self, name):
        try:
            return self._methods[name]
        except KeyError:
            raise PreconditionViolation("unknown method %s" % name)

    def get_flow_graph(self, name):
        return self.get_method(name).get_flow_graph()

    def methods(self):
        return [self._methods[k] for k in sorted(self._methods.keys())]


class CallString(object):
    """ Sequence of call sites by which a method is reached,
    the most recent site last. """

    def __init__(self, sites=()):
        self.sites = tuple(sites)

    def push(self, site, max_length):
        """ Append a call site, keeping the last max_length sites """
        if max_length <= 0:
            return CallString.EMPTY
        return CallString((self.sites + (site,))[-max_length:])

    def is_empty(self):
        return len(self.sites) == 0

    def __len__(self):
        return len(self.sites)

    def __iter__(self):
        return iter(self.sites)

    def __eq__(self, other):
        return isinstance(other, CallString) and self.sites == other.sites

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.sites)

    def __repr__(self):
        return "[" + ",".join("%s#%s" % s for s in self.sites) + "]"

CallString.EMPTY = CallString()


class AnalysisContext(object):
    """ Context of a cost computation.
    Two contexts are equal iff their call strings are equal;
    the empty call string means context-insensitive analysis.
    """

    def __init__(self, callstring=CallString.EMPTY):
        self.callstring = callstring

    def get_callstring(self):
        return self.callstring

    def with_callstring(self, callstring):
        return AnalysisContext(callstring)

    def __eq__(self, other):
        return isinstance(other, AnalysisContext) and \
            self.callstring == other.callstring

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.callstring)

    def __repr__(self):
        return "ctx%s" % (self.callstring,)
