"""
Service layer: authentication, object storage, change notifications and error handling.
"""

from .auth import AuthService, AuthGateway
from .storage import ObjectStorage
from .realtime import ChangeHub, change_hub
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "AuthGateway",
    "ObjectStorage",
    "ChangeHub",
    "change_hub",
    "ErrorHandlerService"
]
