"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

Various utility functions
"""

import logging
from collections import deque

logger = logging.getLogger("pywcet")

# bytes per word of the modelled processor
WORD_SIZE = 4


def ceil_div(a, b):
    """ Integer division rounding towards positive infinity """
    return -(-a // b)


def bytes_to_words(size):
    """ Returns the number of words occupied by size bytes """
    return ceil_div(size, WORD_SIZE)


def breadth_first_search(node, func=None, get_reachable_nodes=None):
    """ returns a set of nodes which is reachable
    starting from the starting node.
    calls func on the first discover of a node.

    get_reachable_nodes(node) specifies a function which returns all nodes
    considered immediately reachable for a given node.
    """
    marked = set()
    queue = deque()

    queue.append(node)
    marked.add(node)

    if func is not None:
        func(node)

    while len(queue) > 0:
        v = queue.popleft()
        for e in get_reachable_nodes(v):
            if e not in marked:
                if func is not None:
                    func(e)
                marked.add(e)
                queue.append(e)
    return marked


def depth_first_search(roots, get_reachable_nodes, preorder=None):
    """ Depth-first traversal from several roots.
    Every reachable node is visited at most once, so the traversal
    terminates on cyclic graphs.
    preorder(node) is called when a node is discovered.

    Returns the list of visited nodes in discovery order.
    """
    marked = set()
    visited = list()
    for root in roots:
        if root in marked:
            continue
        stack = [root]
        while len(stack) > 0:
            v = stack.pop()
            if v in marked:
                continue
            marked.add(v)
            visited.append(v)
            if preorder is not None:
                preorder(v)
            # reversed to visit the first successor first
            for e in reversed(list(get_reachable_nodes(v))):
                if e not in marked:
                    stack.append(e)
    return visited
