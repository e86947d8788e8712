"""Adapter package for external I/O implementations.

Purpose:
    Collect concrete implementations of the domain ports: HTTP and local
    directory transfers, and JSON state persistence under the install root.

Dependencies:
    ``transfer_http`` and ``http_client`` depend on ``requests``; the others
    only use the filesystem.

Call context:
    Imported by ``packsync.app`` for runtime wiring and by tests.
"""
