"""Immutable in-memory package manifest and its query surface.

The manifest describes what should exist in the installation directory after
an update: file groups (a source/destination prefix pair plus files), optional
components that scope files, and lifecycle messages shown at fixed phases.

It is parsed once and read many times. ``Manifest.ensure_valid`` must pass
before anything else touches the model.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Tuple
from urllib.parse import quote, urljoin

from .digests import resolve_algorithm
from .environment import Environment
from .errors import ManifestRejected
from .identity import derive_identity, normalize_relative_path

SUPPORTED_VERSION_PATTERN = re.compile(r"^1\.[012]$")
FILE_KINDS = ("file", "archive")


class Phase(str, enum.Enum):
    """Lifecycle points at which manifest messages are shown."""

    INITIALIZE = "initialize"
    PRE_DOWNLOAD = "pre_download"
    POST_DOWNLOAD = "post_download"
    PRE_INSTALL = "pre_install"
    POST_INSTALL = "post_install"
    FINALIZE = "finalize"


@dataclass(frozen=True)
class Message:
    """One lifecycle message, optionally shown only once per installation."""

    id: str
    phase: Phase
    title: str = ""
    text: str = ""
    url: Optional[str] = None
    once: bool = False


@dataclass(frozen=True)
class Component:
    """Installable unit that can scope files; optional ones can be deselected."""

    id: str
    title: str = ""
    description: str = ""
    required: bool = False
    selected: bool = True


@dataclass(frozen=True)
class ManifestFile:
    """One file entry, path relative to its group."""

    path: str
    size: int = 0
    version: Optional[str] = None
    overwrite: bool = False
    platforms: Tuple[str, ...] = ()
    archs: Tuple[str, ...] = ()
    components: Tuple[str, ...] = ()
    kind: str = "file"

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_archive(self) -> bool:
        return self.kind == "archive"


@dataclass(frozen=True)
class FileGroup:
    """Files sharing a source (URL) prefix and a destination prefix."""

    source: str = ""
    dest: str = ""
    digest_algorithm: Optional[str] = None
    files: Tuple[ManifestFile, ...] = ()

    def url_for(self, base_url: str, file: ManifestFile) -> str:
        """Join the base URL with the group source prefix and the file path."""
        base = base_url if base_url.endswith("/") else base_url + "/"
        relative = f"{self.source}{file.path}".replace("\\", "/").lstrip("/")
        return urljoin(base, quote(relative, safe="/%:@+~"))

    def identity_of(self, file: ManifestFile) -> str:
        return derive_identity(self.dest, file.path)

    @property
    def total_size(self) -> int:
        return sum(max(0, int(item.size)) for item in self.files)


@dataclass(frozen=True)
class Manifest:
    """Target file set of one installation or update."""

    version: str
    groups: Tuple[FileGroup, ...] = ()
    components: Tuple[Component, ...] = ()
    messages: Tuple[Message, ...] = ()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def is_supported_version(self) -> bool:
        return bool(SUPPORTED_VERSION_PATTERN.match(str(self.version or "")))

    def ensure_supported(self) -> None:
        if not self.is_supported_version():
            raise ManifestRejected(
                "The update package is written in an unsupported version",
                hint=f"Manifest version '{self.version}' is not accepted (update the updater?).",
            )

    def ensure_valid(self) -> None:
        """Reject unsupported versions, duplicate identities and bad digests."""
        self.ensure_supported()
        seen: Set[str] = set()
        for group in self.groups:
            resolve_algorithm(group.digest_algorithm)
            for file in group.files:
                identity = group.identity_of(file)
                if identity in seen:
                    raise ManifestRejected(
                        "Duplicate file in manifest",
                        hint=f"'{identity}' is declared more than once.",
                        identity=identity,
                    )
                seen.add(identity)
                if file.kind not in FILE_KINDS:
                    raise ManifestRejected(
                        "Unknown file kind",
                        hint=f"'{file.kind}' is not one of {', '.join(FILE_KINDS)}.",
                        identity=identity,
                    )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def iter_files(self) -> Iterator[Tuple[FileGroup, ManifestFile]]:
        for group in self.groups:
            for file in group.files:
                yield group, file

    @property
    def total_size(self) -> int:
        return sum(group.total_size for group in self.groups)

    @property
    def download_count(self) -> int:
        return sum(len(group.files) for group in self.groups)

    @property
    def optional_components(self) -> Tuple[Component, ...]:
        return tuple(component for component in self.components if not component.required)

    @property
    def required_component_ids(self) -> FrozenSet[str]:
        return frozenset(component.id for component in self.components if component.required)

    def messages_for_phase(self, phase: Phase) -> List[Message]:
        return [message for message in self.messages if message.phase == Phase(phase)]

    @staticmethod
    def matches_environment(file: ManifestFile, environment: Environment) -> bool:
        return environment.matches(file.platforms, file.archs)

    def matches_components(self, file: ManifestFile, selected: Iterable[str]) -> bool:
        """Unfiltered files always match; otherwise any selected component does."""
        if not file.components:
            return True
        chosen = set(selected) | set(self.required_component_ids)
        return any(component_id in chosen for component_id in file.components)

    def is_eligible(self, file: ManifestFile, environment: Environment, selected: Iterable[str]) -> bool:
        return self.matches_environment(file, environment) and self.matches_components(file, selected)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------
    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Manifest":
        """Build a validated manifest from an already-decoded mapping."""
        if not isinstance(payload, Mapping):
            raise ManifestRejected("Invalid manifest", hint="Manifest payload must be an object.")

        groups = tuple(_group_from_payload(item) for item in _as_list(payload, "groups"))
        components = tuple(_component_from_payload(item) for item in _as_list(payload, "components"))
        messages = tuple(
            _message_from_payload(item, index) for index, item in enumerate(_as_list(payload, "messages"))
        )
        manifest = cls(
            version=str(payload.get("version") or "").strip(),
            groups=groups,
            components=components,
            messages=messages,
        )
        manifest.ensure_valid()
        return manifest


def _as_list(payload: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    raw = payload.get(key) or []
    if not isinstance(raw, list) or not all(isinstance(item, Mapping) for item in raw):
        raise ManifestRejected("Invalid manifest", hint=f"'{key}' must be a list of objects.")
    return list(raw)


def _as_names(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _optional_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


def _as_bool(value: Any, *, field: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ManifestRejected("Invalid manifest", hint=f"'{field}' must be true or false, got {value!r}.")


def _prefix(value: Any, *, field: str) -> str:
    normalized = normalize_relative_path(value, field=field, allow_empty=True)
    return f"{normalized}/" if normalized else ""


def _file_from_payload(raw: Mapping[str, Any]) -> ManifestFile:
    try:
        size = int(raw.get("size") or 0)
    except (TypeError, ValueError) as exc:
        raise ManifestRejected("Invalid manifest", hint=f"File size is not a number: {raw.get('size')!r}") from exc
    return ManifestFile(
        path=normalize_relative_path(raw.get("path"), field="file path"),
        size=max(0, size),
        version=_optional_text(raw.get("version")),
        overwrite=_as_bool(raw.get("overwrite"), field="overwrite", default=False),
        platforms=_as_names(raw.get("platforms")),
        archs=_as_names(raw.get("archs")),
        components=_as_names(raw.get("components")),
        kind=str(raw.get("kind") or "file").strip().lower(),
    )


def _group_from_payload(raw: Mapping[str, Any]) -> FileGroup:
    return FileGroup(
        source=_prefix(raw.get("source"), field="group source"),
        dest=_prefix(raw.get("dest"), field="group destination"),
        digest_algorithm=_optional_text(raw.get("digest")),
        files=tuple(_file_from_payload(item) for item in _as_list(raw, "files")),
    )


def _component_from_payload(raw: Mapping[str, Any]) -> Component:
    component_id = str(raw.get("id") or "").strip()
    if not component_id:
        raise ManifestRejected("Invalid manifest", hint="Every component needs an id.")
    return Component(
        id=component_id,
        title=str(raw.get("title") or component_id),
        description=str(raw.get("description") or ""),
        required=_as_bool(raw.get("required"), field="required", default=False),
        selected=_as_bool(raw.get("selected"), field="selected", default=True),
    )


def _message_from_payload(raw: Mapping[str, Any], index: int) -> Message:
    phase_raw = str(raw.get("phase") or "").strip().lower()
    try:
        phase = Phase(phase_raw)
    except ValueError as exc:
        raise ManifestRejected("Invalid manifest", hint=f"Unknown message phase '{phase_raw}'.") from exc
    return Message(
        id=str(raw.get("id") or f"message-{index}"),
        phase=phase,
        title=str(raw.get("title") or ""),
        text=str(raw.get("text") or ""),
        url=_optional_text(raw.get("url")),
        once=_as_bool(raw.get("once"), field="once", default=False),
    )


__all__ = [
    "Component",
    "FileGroup",
    "Manifest",
    "ManifestFile",
    "Message",
    "Phase",
    "SUPPORTED_VERSION_PATTERN",
]
