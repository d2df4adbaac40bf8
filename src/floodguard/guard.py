"""
FloodGuard service wiring.

This module contains the FloodGuard class which:
- Builds the record store, settings, classifier and dispatcher once
- Owns the eviction scheduler lifecycle
- Serves the Flask app for OneBot events and administration
- Shuts down cleanly
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from floodguard.config import Config
from floodguard.core.detector import SpamDetector
from floodguard.core.policy import SettingsHolder
from floodguard.core.scheduler import EvictionScheduler
from floodguard.core.store import RecordStore
from floodguard.handlers.message import MessageHandler
from floodguard.services.actions import ActionDispatcher, DryRunDispatcher, OneBotDispatcher
from floodguard.services.api import create_app
from floodguard.utils.logging import get_logger, set_debug

logger = get_logger(__name__)


class FloodGuard:
    """
    Group chat flood protection service.

    Every component is created here and handed to the ones that need it;
    nothing is looked up globally.

    Attributes:
        config: Process configuration
        start_time: Service start timestamp for uptime tracking
    """

    def __init__(self, config: Config, dispatcher: Optional[ActionDispatcher] = None) -> None:
        self.config = config
        self.start_time = datetime.now(timezone.utc)

        self.store = RecordStore()
        self.settings = SettingsHolder(path=config.settings_file)
        self.settings.load()
        set_debug(self.settings.current.debug)

        self.detector = SpamDetector(self.settings)
        if dispatcher is None:
            dispatcher = self._build_dispatcher(config)
        self.dispatcher = dispatcher
        self.handler = MessageHandler(self.store, self.settings, self.detector, self.dispatcher)
        self.scheduler = EvictionScheduler(self.store, self.settings, interval=config.sweep_interval)
        self.app = create_app(self)

        logger.info(
            "FloodGuard initialized (action=%s, dry_run=%s)",
            self.settings.current.action.value, config.dry_run,
        )

    @staticmethod
    def _build_dispatcher(config: Config) -> ActionDispatcher:
        if config.dry_run:
            return DryRunDispatcher()
        return OneBotDispatcher(
            config.onebot_api_url,
            access_token=config.onebot_access_token,
            timeout=config.request_timeout,
            cooldown_seconds=config.action_cooldown,
        )

    def start(self) -> None:
        self.scheduler.start()

    def close(self) -> None:
        """Stop background work, persist settings and drop history."""
        self.scheduler.stop()
        self.settings.save()
        close = getattr(self.dispatcher, "close", None)
        if close is not None:
            close()
        self.store.clear()
        logger.info("FloodGuard closed")

    def run(self) -> None:
        """Start the scheduler and serve HTTP until interrupted."""
        self.start()
        try:
            logger.info("Listening on %s:%d", self.config.host, self.config.port)
            self.app.run(host=self.config.host, port=self.config.port, threaded=True, debug=False)
        finally:
            self.close()

    @property
    def uptime(self) -> float:
        """Get service uptime in seconds."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()
