"""
Ephemeral Chat Relay - Admission Control

Limits the room to a fixed number of distinct network origins.
"""

import logging

from relay.errors import AdmissionRejected
from relay.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class AdmissionController:
    """
    Decides whether a connect may register.

    Must run under the same lock as the registry upsert that follows it,
    so the check and the slot reservation are one step.
    """

    def __init__(self, registry: SessionRegistry, max_origins: int = 8):
        self.registry = registry
        self.max_origins = max_origins

    def try_admit(self, identity: str, origin: str) -> None:
        """
        Raises:
            AdmissionRejected: a new origin would exceed the quota
        """
        if identity in self.registry:
            return

        origins = self.registry.origins(excluding=identity)
        if origin in origins:
            return

        if len(origins) >= self.max_origins:
            logger.info("Rejected origin %s: %d/%d origins in use", origin, len(origins), self.max_origins)
            raise AdmissionRejected(origin, self.max_origins)
