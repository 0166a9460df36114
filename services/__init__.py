"""
Services package for the match bot.

This package contains the service classes behind the match lifecycle: the
match store, the voice provisioner, the lifecycle manager, the expiry sweeper
and the webhook server. Services are wired together by ServiceContainer.
"""

from .base import BaseService
from .match_store import JsonMatchStore, MatchStore
from .match_service import MatchLifecycleManager
from .expiry_sweeper import ExpirySweeper
from .service_container import ServiceContainer
from .voice_provisioner import VoiceProvisioner
from .webhook_api import WebhookAPIServer

__all__ = [
    "BaseService",
    "ExpirySweeper",
    "JsonMatchStore",
    "MatchLifecycleManager",
    "MatchStore",
    "ServiceContainer",
    "VoiceProvisioner",
    "WebhookAPIServer",
]
