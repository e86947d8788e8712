"""Host environment used by the manifest platform filter."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from typing import Iterable

_OS_ALIASES = {
    "darwin": "macos",
    "mac": "macos",
    "osx": "macos",
    "win32": "windows",
    "win": "windows",
}

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "i386": "x86",
    "i686": "x86",
    "aarch64": "arm64",
}


def normalize_os(value: str) -> str:
    text = str(value or "").strip().lower()
    return _OS_ALIASES.get(text, text)


def normalize_arch(value: str) -> str:
    text = str(value or "").strip().lower()
    return _ARCH_ALIASES.get(text, text)


@dataclass(frozen=True)
class Environment:
    """Operating system and CPU architecture of the installation host."""

    os_name: str
    arch: str

    @classmethod
    def current(cls) -> "Environment":
        return cls(
            os_name=normalize_os(platform.system()),
            arch=normalize_arch(platform.machine()),
        )

    def matches(self, platforms: Iterable[str], archs: Iterable[str] = ()) -> bool:
        """Return whether this host passes an OS and architecture filter.

        Empty filters match every host.
        """
        wanted_os = {normalize_os(item) for item in platforms if str(item).strip()}
        if wanted_os and normalize_os(self.os_name) not in wanted_os:
            return False
        wanted_arch = {normalize_arch(item) for item in archs if str(item).strip()}
        if wanted_arch and normalize_arch(self.arch) not in wanted_arch:
            return False
        return True


__all__ = ["Environment", "normalize_arch", "normalize_os"]
