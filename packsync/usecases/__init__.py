"""Use-case layer for update passes.

Each module coordinates domain objects and ports without performing transport
I/O directly: fetching one file, deploying one file, and orchestrating the
whole pass.
"""
