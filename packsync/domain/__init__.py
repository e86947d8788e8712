"""Domain package exports for the manifest model and update state."""

from .cancellation import CancellationToken
from .environment import Environment
from .errors import (
    DeployFailure,
    ManifestRejected,
    PersistFailure,
    TransportFailure,
    UpdateCancelled,
    UpdateError,
    VerificationFailure,
)
from .ledger import InstalledPathLedger
from .manifest import Component, FileGroup, Manifest, ManifestFile, Message, Phase
from .ports import TransferResult, UpdateType
from .progress import ProgressChannel, ProgressEvent, QueueProgressListener
from .settings import UpdaterSettings
from .version_cache import VersionCache

__all__ = [
    "CancellationToken",
    "Component",
    "DeployFailure",
    "Environment",
    "FileGroup",
    "InstalledPathLedger",
    "Manifest",
    "ManifestFile",
    "ManifestRejected",
    "Message",
    "PersistFailure",
    "Phase",
    "ProgressChannel",
    "ProgressEvent",
    "QueueProgressListener",
    "TransferResult",
    "TransportFailure",
    "UpdateCancelled",
    "UpdateError",
    "UpdateType",
    "UpdaterSettings",
    "VerificationFailure",
    "VersionCache",
]
