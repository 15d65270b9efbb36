"""Service layer for business logic and external integrations."""

from .file_storage import FileStorageManager
from .upload_sessions import AssembledUpload, UploadSession, UploadSessionManager
from .pricing_client import HttpPricingClient, PricingClient
from .slicing_orchestrator import SlicingOrchestrator
from .service_factory import (
    get_link_signer,
    get_orchestrator,
    get_storage,
    get_upload_sessions,
    reset_services,
)

__all__ = [
    "FileStorageManager",
    "AssembledUpload",
    "UploadSession",
    "UploadSessionManager",
    "HttpPricingClient",
    "PricingClient",
    "SlicingOrchestrator",
    "get_link_signer",
    "get_orchestrator",
    "get_storage",
    "get_upload_sessions",
    "reset_services",
]
