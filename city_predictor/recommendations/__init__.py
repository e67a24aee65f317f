"""
Recommendation engine: turns a (current, predicted) pair into an ordered list
of operational advisories.

Modules
-------
rules : Threshold constants, advisory texts, and recommend() — pure
        functions, no model, DB, or I/O access.
"""
