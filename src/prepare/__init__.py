"""Source preparation helpers.

This package builds sorted, compressed, indexed interval files and
chunked tally stores before any read through the backends.
"""
