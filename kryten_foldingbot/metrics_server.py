"""Prometheus metrics server for kryten-foldingbot.

Subclasses BaseMetricsServer from kryten-py to expose
bot-specific metrics and health details.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kryten import BaseMetricsServer

if TYPE_CHECKING:
    from .main import FoldingBotApp


class FoldingMetricsServer(BaseMetricsServer):
    """Folding bot Prometheus metrics endpoint."""

    def __init__(self, app: FoldingBotApp, port: int = 28290) -> None:
        super().__init__(
            service_name="foldingbot",
            port=port,
            client=app.client,
            logger=app.logger,
        )
        self._app = app

    async def _collect_custom_metrics(self) -> list[str]:
        """Collect bot-specific Prometheus metrics."""
        handler = self._app.command_handler
        api = self._app.api_client

        lines: list[str] = [
            f"foldingbot_events_processed_total {self._app.events_processed}",
            f"foldingbot_commands_processed_total {handler.commands_processed}",
            f"foldingbot_busy_rejections_total {handler.guard.rejections}",
            f"foldingbot_long_running_active {int(handler.guard.busy)}",
            f"foldingbot_disabled_commands {len(handler.disabled)}",
            f"foldingbot_api_failures_total {api.failures}",
        ]
        return lines

    async def _get_health_details(self) -> dict:
        """Return health details for the /health endpoint."""
        handler = self._app.command_handler
        return {
            "channels_configured": len(self._app.config.channels),
            "commands_registered": len(handler.registry),
            "disabled_commands": sorted(handler.disabled.snapshot()),
            "long_running_active": handler.guard.busy,
        }
