"""
Service initialization and dependency injection for the LeadFlow API.

Creates and manages all service instances used by the API.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admission.controller import AdmissionController
from config.settings import get_settings, Settings
from lead_scoring.conversation_scorer import ConversationScorer
from lead_scoring.qualification import LeadQualificationService
from llm.exceptions import ProviderConfigurationError
from llm.lead_chat import LeadChatService
from llm.orchestrator import CompletionProvider, ProviderOrchestrator
from llm.providers import build_providers

logger = logging.getLogger(__name__)


class Services:
    """Container for all application services."""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.providers: List[CompletionProvider] = []
        self.orchestrator: Optional[ProviderOrchestrator] = None
        self.scorer: Optional[ConversationScorer] = None
        self.qualification: Optional[LeadQualificationService] = None
        self.chat: Optional[LeadChatService] = None
        self.admission: Optional[AdmissionController] = None
        self._initialized = False

    def initialize(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        providers: Optional[List[CompletionProvider]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize all services.

        Args:
            session_factory: Database session factory; without one the
                qualification, chat and admission services stay disabled
            providers: Provider catalogue; built from settings when omitted
            settings: Settings override
        """
        if self._initialized:
            return

        self.settings = settings or get_settings()
        self.providers = providers if providers is not None else build_providers(self.settings)

        try:
            self._init_orchestrator()
        except ProviderConfigurationError as e:
            logger.error(f"Provider orchestrator unavailable: {e}")
            logger.warning("API starting in degraded mode")

        if session_factory is not None:
            self._init_admission(session_factory)
            self._init_qualification(session_factory)
        else:
            logger.warning("No database configured, qualification and rate limiting disabled")

        self._initialized = True
        logger.info("Services initialized")

    def _init_orchestrator(self):
        self.orchestrator = ProviderOrchestrator(
            self.providers,
            timeout_seconds=self.settings.provider_timeout_seconds,
        )
        self.scorer = ConversationScorer(
            self.orchestrator,
            min_turns=self.settings.scoring_min_turns,
            interval=self.settings.scoring_interval,
        )

    def _init_admission(self, session_factory: async_sessionmaker[AsyncSession]):
        if self.settings.rate_limit_enabled:
            self.admission = AdmissionController(session_factory)
            logger.info("Admission controller ready")

    def _init_qualification(self, session_factory: async_sessionmaker[AsyncSession]):
        if self.orchestrator is None:
            return

        self.qualification = LeadQualificationService(session_factory, self.scorer)
        self.chat = LeadChatService(
            session_factory,
            self.orchestrator,
            self.qualification,
            brand_name=self.settings.brand_name,
        )
        logger.info("Lead qualification services ready")

    async def shutdown(self):
        if self.qualification is not None:
            await self.qualification.drain()

    def reset(self):
        self.__init__()

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.chat is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "providers": [p.name for p in self.providers if p.enabled],
            "orchestrator": self.orchestrator is not None,
            "qualification": self.qualification is not None,
            "admission": self.admission is not None,
        }


# Singleton
_services = Services()


def get_services() -> Services:
    """Get the global services instance."""
    return _services


def initialize_services(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    providers: Optional[List[CompletionProvider]] = None,
):
    """Initialize all services (called at startup)."""
    _services.initialize(session_factory=session_factory, providers=providers)
