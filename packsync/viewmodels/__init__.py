"""ViewModel package for update progress state.

Call context:
    ``packsync/app/main.py`` and any interactive front end register the
    viewmodels from this package as progress listeners of an update pass.

Dependencies:
    Modules in this package depend on domain types only. I/O adapters and
    use-case orchestration remain outside.
"""
