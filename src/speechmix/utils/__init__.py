"""
Utility Modules for speechmix.

    - timeit.py: Performance measurement for log lines
"""
