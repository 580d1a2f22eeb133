"""Engine components wiring resolve → build → deliver."""

from .artifact import Artifact, ArtifactBuilder, ArtifactFile, artifact_file_name, artifact_platforms, describe_result
from .delivery import (
    DeliveryClient,
    DeliveryResult,
    DeliveryStatus,
    DeliveryTarget,
    ExportTrigger,
    FailureKind,
    FileDelivery,
)
from .resolver import resolve, resolve_ids
from .thread_pool import ThreadPoolManager
from .vault import CredentialVault

__all__ = [
    "Artifact",
    "ArtifactBuilder",
    "ArtifactFile",
    "CredentialVault",
    "DeliveryClient",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryTarget",
    "ExportTrigger",
    "FailureKind",
    "FileDelivery",
    "ThreadPoolManager",
    "artifact_file_name",
    "artifact_platforms",
    "describe_result",
    "resolve",
    "resolve_ids",
]
