"""Service orchestrator — FoldingBotApp.

Follows the canonical kryten-py microservice pattern:
config → register handlers → connect → metrics → run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from kryten import KrytenClient

from . import __version__
from .command_handler import FoldingCommandHandler
from .config import FoldingBotConfig, load_config
from .folding_client import FoldingApiClient
from .metrics_server import FoldingMetricsServer


class FoldingBotApp:
    """Top-level application orchestrator."""

    def __init__(self, config_path: str) -> None:
        self.config_path = Path(config_path)
        self.logger = logging.getLogger("foldingbot")

        # Components (initialized in start())
        self.config: FoldingBotConfig | None = None
        self.client: KrytenClient | None = None
        self.api_client: FoldingApiClient | None = None
        self.command_handler: FoldingCommandHandler | None = None
        self.metrics_server: FoldingMetricsServer | None = None

        # State
        self._running = False
        self._start_time: float | None = None
        self._tasks: set[asyncio.Task] = set()

        # Counters (for metrics)
        self.events_processed: int = 0

    @property
    def uptime_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        return time.time() - self._start_time

    def spawn(self, handler: Callable[[Any], Awaitable[None]], event: Any) -> asyncio.Task:
        """Run one event handler as its own task.

        Each command gets its own task so a slow API call or a long-running
        command never holds up the next incoming event.
        """
        self.events_processed += 1
        task = asyncio.create_task(self._run_isolated(handler, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_isolated(self, handler: Callable[[Any], Awaitable[None]], event: Any) -> None:
        try:
            await handler(event)
        except Exception:
            self.logger.exception(
                "Event handler error for %s", getattr(event, "username", "?"),
            )

    async def start(self) -> None:
        """Start the bot — canonical kryten-py sequence."""
        self.logger.info("Starting kryten-foldingbot...")
        self._start_time = time.time()

        # 1. Load and validate config
        self.config = load_config(str(self.config_path))
        self.logger.info("Config loaded: %d channel(s)", len(self.config.channels))

        # 2. Stats API client
        self.api_client = FoldingApiClient(
            config=self.config.folding,
            logger=logging.getLogger("foldingbot.api"),
        )
        await self.api_client.start()
        self.logger.info("Stats API client started: %s", self.config.folding.api_uri)

        # 3. Create KrytenClient and the command handler
        self.client = KrytenClient(self.config)
        self.command_handler = FoldingCommandHandler(
            config=self.config,
            client=self.client,
            api_client=self.api_client,
            logger=logging.getLogger("foldingbot.command"),
        )
        self.logger.info(
            "Registered %d command(s)%s",
            len(self.command_handler.registry),
            " (development mode)" if self.config.development else "",
        )

        # 4. Register event handlers BEFORE connect
        @self.client.on("chatmsg")
        async def handle_chatmsg(event):
            self.spawn(self.command_handler.handle_chat, event)

        @self.client.on("pm")
        async def handle_pm(event):
            self.spawn(self.command_handler.handle_pm, event)

        # 5. Connect to NATS
        await self.client.connect()
        self.logger.info("Connected to NATS")

        # 6. Start metrics server
        metrics_port = self.config.metrics.port if self.config.metrics else 28290
        self.metrics_server = FoldingMetricsServer(self, port=metrics_port)
        await self.metrics_server.start()
        self.logger.info("Metrics server started on port %d", metrics_port)

        # 7. Mark running
        self._running = True
        self.logger.info("kryten-foldingbot started successfully (v%s)", __version__)

        # 8. Block on client event loop
        await self.client.run()

    async def stop(self) -> None:
        """Gracefully shut down all components in reverse order."""
        if not self._running:
            return
        self.logger.info("Shutting down kryten-foldingbot...")
        self._running = False

        # In-flight commands are abandoned on shutdown
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.metrics_server:
            await self.metrics_server.stop()
        if self.api_client:
            await self.api_client.stop()
        if self.client:
            await self.client.stop()

        self.logger.info("kryten-foldingbot stopped.")
