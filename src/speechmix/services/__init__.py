"""
speechmix Services Layer.

Orchestration on top of the audio components:
    - compose_service.py: ComposeService (path selection, logging, config)
"""
from .compose_service import PATH_CONCAT, PATH_MIX, ComposeService, compose

__all__ = [
    "ComposeService",
    "compose",
    "PATH_CONCAT",
    "PATH_MIX",
]
