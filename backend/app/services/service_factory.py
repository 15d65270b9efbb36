"""
Service factory.

Builds the process-wide upload managers, link signer and slicing
orchestrator from settings. Instances are singletons so the in-memory
session tables survive across requests.
"""

import logging
from typing import Optional

from app.config import settings
from link_signing import LinkSigner
from slice_engine import ProfileResolver, SlicingJobInvoker, SubprocessEngineRunner
from .file_storage import FileStorageManager
from .pricing_client import HttpPricingClient, PricingClient
from .slicing_orchestrator import SlicingOrchestrator
from .upload_sessions import SLICE_FILETYPES, UPLOAD_FILETYPES, UploadSessionManager

logger = logging.getLogger(__name__)

# Singleton instances
_storage: Optional[FileStorageManager] = None
_upload_sessions: Optional[UploadSessionManager] = None
_orchestrator: Optional[SlicingOrchestrator] = None
_signer: Optional[LinkSigner] = None


def public_base_url() -> str:
    """Link base: localhost in development, PUBLIC_BASE_URL otherwise."""
    if settings.ENV == "development":
        return f"http://localhost:{settings.PORT}"
    return settings.PUBLIC_BASE_URL


def get_storage() -> FileStorageManager:
    global _storage
    if _storage is None:
        _storage = FileStorageManager(settings.UPLOAD_DIR)
    return _storage


def get_link_signer() -> LinkSigner:
    """
    Get the link signer.

    A missing DOWNLOAD_SECRET does not fail here; the signer refuses each
    sign/verify call instead so requests fail independently.
    """
    global _signer
    if _signer is None:
        _signer = LinkSigner(settings.DOWNLOAD_SECRET, public_base_url(), settings.UPLOAD_DIR)
    return _signer


def get_upload_sessions() -> UploadSessionManager:
    """Session table for plain chunked uploads."""
    global _upload_sessions
    if _upload_sessions is None:
        _upload_sessions = UploadSessionManager(UPLOAD_FILETYPES, get_storage(), name="upload")
    return _upload_sessions


def get_pricing_client() -> Optional[PricingClient]:
    if not settings.PRICING_API_URL:
        return None
    return HttpPricingClient(
        settings.PRICING_API_URL,
        api_key=settings.PRICING_API_KEY,
        timeout=settings.PRICING_TIMEOUT,
    )


def get_orchestrator() -> SlicingOrchestrator:
    """
    Get the slicing orchestrator.

    Uses singleton pattern to keep the slice session table across requests.
    """
    global _orchestrator
    if _orchestrator is not None:
        return _orchestrator

    profiles = ProfileResolver(
        settings.DATA_PATH,
        {
            "printers": settings.MACHINE_PROFILES_FOLDER,
            "presets": settings.PROCESS_PROFILES_FOLDER,
            "filaments": settings.FILAMENT_PROFILES_FOLDER,
        },
    )
    invoker = SlicingJobInvoker(
        engine_path=settings.ORCASLICER_PATH,
        runner=SubprocessEngineRunner(),
        profiles=profiles,
        timeout=settings.SLICE_TIMEOUT,
        workdir_root=settings.SLICE_WORKDIR,
    )
    _orchestrator = SlicingOrchestrator(
        sessions=UploadSessionManager(SLICE_FILETYPES, get_storage(), name="slice"),
        storage=get_storage(),
        invoker=invoker,
        signer=get_link_signer(),
        pricing=get_pricing_client(),
        delete_artifacts_on_failure=settings.DELETE_ARTIFACTS_ON_FAILURE,
    )
    logger.info(
        f"Initialized SlicingOrchestrator (engine={settings.ORCASLICER_PATH or 'unset'}, "
        f"pricing={'on' if _orchestrator.pricing else 'off'})"
    )
    return _orchestrator


def reset_services() -> None:
    """
    Reset the service singletons (for testing purposes).

    Clears every cached instance so the next call rebuilds from settings.
    """
    global _storage, _upload_sessions, _orchestrator, _signer
    _storage = None
    _upload_sessions = None
    _orchestrator = None
    _signer = None
    logger.info("Service singletons reset")
