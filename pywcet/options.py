"""
| Copyright (C) 2026 the pyWCET developers
| All rights reserved.
| See LICENSE file for copyright and license details.

Description
-----------

This module contains methods to initalize the pywcet environment.
It will setup an argument parser and set up default parameters
for the modelled processor (memory wait states, method cache and
object cache geometry) and for the analysis itself.
"""

WAIT_STATES_READ = 1
WAIT_STATES_WRITE = 2
CACHE_BLOCKS = 16
CACHE_BLOCK_WORDS = 64
CALLSTRING_LENGTH = 0
OCACHE_ASSOCIATIVITY = 16
OCACHE_BLOCK_WORDS = 4
OCACHE_MAX_CACHED_FIELD_INDEX = 15

import argparse
import logging
import sys

from pywcet import __license_text__

parser = argparse.ArgumentParser(description='Worst-Case Execution Time Analysis')
parser.add_argument('--wait_states_read', type=int,
                    default=WAIT_STATES_READ,
                    help='Memory read wait states (default=%d)' % (WAIT_STATES_READ))
parser.add_argument('--wait_states_write', type=int,
                    default=WAIT_STATES_WRITE,
                    help='Memory write wait states (default=%d)' % (WAIT_STATES_WRITE))
parser.add_argument('--cache_blocks', type=int,
                    default=CACHE_BLOCKS,
                    help='Number of method cache blocks (default=%d)' % (CACHE_BLOCKS))
parser.add_argument('--cache_block_words', type=int,
                    default=CACHE_BLOCK_WORDS,
                    help='Size of a method cache block in words (default=%d)' % (CACHE_BLOCK_WORDS))
parser.add_argument('--callstring_length', type=int,
                    default=CALLSTRING_LENGTH,
                    help='Length of the call strings used as analysis context; '
                    '0 is context-insensitive (default=%d)' % (CALLSTRING_LENGTH))
parser.add_argument('--wca_strategy', type=str, default='method_cache',
                    choices=['local', 'method_cache'],
                    help='Recursive WCET strategy (local, method_cache). default: method_cache')
parser.add_argument('--assume_cache_miss', action='store_true',
                    help='disable cache persistence, every access is a miss')
parser.add_argument('--ocache_associativity', type=int,
                    default=OCACHE_ASSOCIATIVITY,
                    help='Object cache associativity (default=%d)' % (OCACHE_ASSOCIATIVITY))
parser.add_argument('--ocache_block_words', type=int,
                    default=OCACHE_BLOCK_WORDS,
                    help='Object cache line size in words (default=%d)' % (OCACHE_BLOCK_WORDS))
parser.add_argument('--ocache_single_field', action='store_true',
                    help='object cache loads single fields instead of blocks')
parser.add_argument('--ocache_max_cached_field_index', type=int,
                    default=OCACHE_MAX_CACHED_FIELD_INDEX,
                    help='Highest field index handled by the object cache (default=%d)'
                    % (OCACHE_MAX_CACHED_FIELD_INDEX))
parser.add_argument('--dump_ilp', action='store_true',
                    help='log every generated IPET model')
parser.add_argument('--verbose', '-v', action='store_true',
                    help='be more talkative')


welcome = "pyWCET a Worst-Case Execution Time Analysis Toolkit implemented in Python.\n\n" \
+ __license_text__

_opts = None
_opts_dict = None


def get_opt(option):
    """ Returns the option specified by the parameter.
    If called for the first time, the parsing is done.
    """
    global _opts
    if _opts is None: init_pywcet(implicit=True)
    return getattr(_opts, option)

def set_opt(option, value):
    """ Sets the option specified by the parameter to value.
    If called for the first time, the parsing is done.
    """
    global _opts
    if _opts is None: init_pywcet(implicit=True)
    setattr(_opts, option, value)

def pprintTable(out, table, column_sperator="", header_separator=":"):
    """Prints out a table of data, padded for alignment
    @param out: Output stream (file-like object)
    @param table: The table to print. A list of lists.
    Each row must have the same number of columns. """

    def get_max_width(table1, index1):
        """Get the maximum width of the given column index"""
        return max([len(str(row1[index1])) for row1 in table1])

    col_paddings = []
    for i in range(len(table[0])):
        col_paddings.append(get_max_width(table, i))

    for row in table:
        # left col
        print(row[0].ljust(col_paddings[0] + 1), end=header_separator, file=out)
        # rest of the cols
        for i in range(1, len(row)):
            col = str(row[i]).rjust(col_paddings[i] + 1)
            print(col, end=" " + column_sperator, file=out)
        print(file=out)

def init_pywcet(implicit=False, args=None):
    """ Initialize pyWCET.
    This function parses the options and prints them for reference.
    It is called once automatically from get_opt() or set_opt()
    during the beginning of the analysis.
    It can also be called directly to control when initialization happens
    in order to modify options afterwards.
    """
    global _opts, _opts_dict
    _opts_dict = dict()
    if not implicit:
        # in this case we are explicitly initialized,
        # output welcome and consume cmdline parameters
        print(welcome)
        print("invoked via: " + " ".join(sys.argv) + "\n")

        _opts = parser.parse_args(args)
    else:
        # implicit init, through regression test or non-pywcet script
        # distill defaults from the parser and pretend nothing happend
        _opts = argparse.Namespace()
        for action in parser._actions:
            if action.default == argparse.SUPPRESS:
                continue
            setattr(_opts, action.dest, action.default)

    table = list()
    for attr in dir(_opts):
        if not attr.startswith("_"):
            row = ["%s" % attr, str(getattr(_opts, attr))]
            _opts_dict[attr] = str(getattr(_opts, attr))
            table.append(row)
    if not implicit:
        pprintTable(sys.stdout, table)
        print("\n\n")
    # set up the general logging object
    if get_opt('verbose') == True:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
