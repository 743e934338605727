"""Nexus search, version listing and image moves."""

from .client import NexusClient
from .models import ImageRef, MoveImageCommand, MoveOutcome, NexusPage, Version
from .move import DisabledMoveService, MoveService, NexusMoveService, create_move_service
from .service import NexusService

__all__ = [
    "NexusClient",
    "NexusService",
    "MoveService",
    "NexusMoveService",
    "DisabledMoveService",
    "create_move_service",
    "ImageRef",
    "MoveImageCommand",
    "MoveOutcome",
    "NexusPage",
    "Version",
]
