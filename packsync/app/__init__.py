"""Application composition layer for the updater.

Modules in this package wire adapters, use cases and view models into a
runnable command without placing update logic in the entry point.
"""
