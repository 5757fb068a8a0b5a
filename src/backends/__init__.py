"""Read-only backends over external sources.

This package wraps an embedded SQL engine, tabix-indexed text files,
and HDF5 stores behind explicit open, inspect, and read operations.
"""
