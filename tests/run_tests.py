#!/usr/bin/env python3

import unittest
import sys
import os
import argparse

# Add project root and test directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
sys.path.append(os.path.dirname(__file__))


def run_tests(test_modules=None, verbose=False):
    """Run the test suite"""
    all_test_modules = [
        'test_pricing',
        'test_arbitrage_search',
        'test_fee_bidder',
        'test_mempool_matcher',
        'test_counter_allocator',
        'test_tokens_protocols',
        'test_node_client',
        'test_fee_estimator',
        'test_engine'
    ]

    modules_to_test = test_modules if test_modules else all_test_modules

    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for module_name in modules_to_test:
        try:
            module = __import__(module_name)
            suite.addTests(loader.loadTestsFromModule(module))
            print(f"Added tests from {module_name}")
        except ImportError as e:
            print(f"Error importing {module_name}: {e}")
            return 1

    runner = unittest.TextTestRunner(verbosity=2 if verbose else 1)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Run the ammarb test suite')
    parser.add_argument(
        '-m', '--modules',
        nargs='+',
        help='Specific test modules to run (e.g., test_pricing test_engine)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )

    args = parser.parse_args()
    sys.exit(run_tests(args.modules, args.verbose))
