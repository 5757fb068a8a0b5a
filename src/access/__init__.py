"""Accessor facade.

This package dispatches uniform fetch requests to the matching backend
and manages scoped handle acquisition and partitioned reads.
"""
