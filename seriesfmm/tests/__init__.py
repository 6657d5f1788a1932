"""
Series Expansion Test Suite

Tests for the multi-index tables, kernels, series expansions and
translation operators.
"""
