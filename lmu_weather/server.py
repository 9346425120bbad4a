#!/usr/bin/env python3
"""
LMU Weather Dashboard Server
============================
Hosts the weather plugin behind a WebSocket so any dashboard can use it.

- Dashboards push telemetry ticks: {"type": "telemetry", "gameRunning": ...}
- The server broadcasts the full property table as a "properties" message
- LMU REST polling only runs while the game is being driven
"""

import asyncio
import dataclasses
import json
import logging
import time
from typing import Callable, Dict, Optional

import websockets
import websockets.exceptions

from lmu_weather import config
from lmu_weather.detector import is_lmu_running
from lmu_weather.model import TelemetryFrame
from lmu_weather.plugin import PropertyRegistry, WeatherPlugin

logger = logging.getLogger(__name__)


class DashboardServer:
    """WebSocket host: feeds telemetry to the plugin and broadcasts its properties."""

    def __init__(
        self,
        plugin: WeatherPlugin,
        registry: Optional[PropertyRegistry] = None,
        process_check: Callable[[], bool] = is_lmu_running,
    ):
        self.plugin = plugin
        self.registry = registry or PropertyRegistry()
        self.clients: set = set()
        self.last_snapshot: Optional[Dict] = None

        # Written only by refresh_process_state; telemetry handling reads the cached flag
        self.process_running = False
        self._process_check = process_check

        self.plugin.init(self.registry)

    async def refresh_process_state(self) -> bool:
        """Re-run the blocking process check on a worker thread and cache the result."""
        loop = asyncio.get_running_loop()
        running = await loop.run_in_executor(None, self._process_check)
        if running != self.process_running:
            logger.info(f"🎮 LMU process {'detected' if running else 'gone'}")
        self.process_running = running
        return running

    def handle_message(self, raw) -> Optional[TelemetryFrame]:
        """Apply one inbound message. Returns the frame, or None if it was ignored."""
        try:
            message = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring malformed message: {e}")
            return None

        if not isinstance(message, dict) or message.get("type", "telemetry") != "telemetry":
            return None

        try:
            frame = TelemetryFrame.from_message(message)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Ignoring invalid telemetry frame: {e}")
            return None

        if frame.game_running is None:
            frame = dataclasses.replace(frame, game_running=self.process_running)

        self.plugin.data_update(frame)
        return frame

    def snapshot(self) -> Dict:
        return {
            'type': 'properties',
            'timestamp': int(time.time() * 1000),
            'data': self.registry.values(),
        }

    async def _send(self, websocket, payload: str) -> bool:
        try:
            await websocket.send(payload)
        except websockets.exceptions.ConnectionClosed:
            return False
        return True

    async def broadcast(self, message: Dict):
        if not self.clients:
            return
        payload = json.dumps(message)
        for client in list(self.clients):
            if not await self._send(client, payload):
                self.clients.discard(client)

    async def handler(self, websocket):
        """One dashboard connection: send the current table, then consume telemetry until it closes."""
        self.clients.add(websocket)
        logger.info(f"📡 Dashboard connected ({len(self.clients)} total)")
        try:
            await self._send(websocket, json.dumps(self.last_snapshot or self.snapshot()))
            async for message in websocket:
                self.handle_message(message)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info(f"📡 Dashboard disconnected ({len(self.clients)} total)")


# ============================================================================
# MAIN LOOP
# ============================================================================

async def process_watch_loop(server: DashboardServer, interval: float = config.PROCESS_CHECK_INTERVAL):
    """Keep the cached LMU process flag fresh for hosts that omit gameRunning."""
    while True:
        try:
            await server.refresh_process_state()
        except Exception as e:
            logger.error(f"Process check failed: {e}", exc_info=True)
        await asyncio.sleep(interval)


async def broadcast_loop(server: DashboardServer, interval: float = config.BROADCAST_INTERVAL):
    """Push the property table to every client at a fixed interval."""
    while True:
        snapshot = server.snapshot()
        server.last_snapshot = snapshot
        await server.broadcast(snapshot)
        await asyncio.sleep(interval)


async def main():
    """Main entry point."""
    logger.info("=" * 50)
    logger.info("LMU Weather Dashboard Server")
    logger.info("=" * 50)
    logger.info(f"LMU REST API: {config.API_BASE_URL}")
    logger.info(f"Poll interval: {config.POLL_INTERVAL}s (timeout {config.REQUEST_TIMEOUT}s)")
    logger.info(f"Broadcast interval: {config.BROADCAST_INTERVAL}s")
    logger.info("=" * 50)

    plugin = WeatherPlugin()
    server = DashboardServer(plugin)

    ws_server = await websockets.serve(server.handler, config.WEBSOCKET_HOST, config.WEBSOCKET_PORT)
    logger.info(f"✅ WebSocket server started on ws://localhost:{config.WEBSOCKET_PORT}")

    try:
        await asyncio.gather(broadcast_loop(server), process_watch_loop(server))
    finally:
        await plugin.end()
        ws_server.close()
        await ws_server.wait_closed()


def run():
    config.configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested")


if __name__ == "__main__":
    run()
