"""
evergreen — order pricing, checkout, lifecycle and refunds.

    from evergreen import build_services, Repository, Settings
    from evergreen.store import MemoryDocumentStore

    services = build_services(Repository(MemoryDocumentStore()), Settings())
    result = await services.checkout.create_order(request)
"""

from evergreen.config import Settings, get_settings
from evergreen.errors import CommerceError, ErrorKind, Errors
from evergreen.log import configure_logging
from evergreen.repo import Repository
from evergreen.services import Services, build_services, open_services

__version__ = "0.1.0"

__all__ = (
    "Settings",
    "get_settings",
    "CommerceError",
    "ErrorKind",
    "Errors",
    "configure_logging",
    "Repository",
    "Services",
    "build_services",
    "open_services",
)
