"""MQTT agent exposing brightness get/set commands."""

import asyncio
import logging
import random
import signal
from typing import Optional

import aiomqtt

from wlbright.backends.brightness import MonitorController, round_percent
from wlbright.config import Settings
from wlbright.service import BrightnessService

logger = logging.getLogger(__name__)


class Agent:
    """Long-running brightness daemon driven over MQTT."""

    def __init__(self, settings: Settings, service: Optional[BrightnessService] = None):
        self.settings = settings
        self.service = service or BrightnessService(settings)

        mqtt = settings.mqtt
        self.base_topic = f"{mqtt.topic_prefix}/{mqtt.client_id}"
        self.last_brightness: dict[str, int] = {}

        self._shutdown_event = asyncio.Event()

    async def run(self) -> None:
        """Main entry point - run the agent."""
        self._setup_signal_handlers()

        try:
            await self.service.refresh_topology(force=True)

            if not self.service.directory.controllers:
                logger.error("No displays found. Exiting.")
                return

            await self._run_with_reconnect()
        except asyncio.CancelledError:
            logger.info("Agent cancelled")
        finally:
            self.service.close()
            await self.service.runner.drain()
            logger.info("Agent shutdown complete")

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_shutdown(s))

    def _handle_shutdown(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, initiating graceful shutdown...")
        self._shutdown_event.set()

    async def _run_with_reconnect(self) -> None:
        """Run MQTT loop with exponential backoff reconnection."""
        reconnect_delay = self.settings.mqtt.reconnect_interval
        max_delay = self.settings.mqtt.reconnect_max_interval

        while not self._shutdown_event.is_set():
            try:
                await self._mqtt_loop()
                reconnect_delay = self.settings.mqtt.reconnect_interval

            except aiomqtt.MqttError as e:
                if self._shutdown_event.is_set():
                    break

                logger.error(f"MQTT connection error: {e}")
                logger.info(f"Reconnecting in {reconnect_delay:.1f}s...")

                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(), timeout=reconnect_delay
                    )
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                # Exponential backoff with jitter
                reconnect_delay = min(reconnect_delay * 2, max_delay)
                reconnect_delay *= 0.5 + random.random()

            except Exception as e:
                logger.exception(f"Unexpected error: {e}")
                if not self._shutdown_event.is_set():
                    await asyncio.sleep(reconnect_delay)

    async def _mqtt_loop(self) -> None:
        mqtt = self.settings.mqtt
        password = mqtt.password.get_secret_value() if mqtt.password else None

        async with aiomqtt.Client(
            hostname=mqtt.broker,
            port=mqtt.port,
            username=mqtt.username,
            password=password,
            identifier=mqtt.client_id,
            keepalive=mqtt.keepalive,
        ) as client:
            logger.info(f"Connected to MQTT broker {mqtt.broker}:{mqtt.port}")

            await client.subscribe(f"{self.base_topic}/+/set")
            await client.subscribe(f"{self.base_topic}/+/get")

            self.last_brightness.clear()
            await self._publish_states(client)

            tasks = [
                asyncio.create_task(self._message_handler(client)),
                asyncio.create_task(self._polling_loop(client)),
            ]
            try:
                await asyncio.gather(*tasks)
            finally:
                for task in tasks:
                    task.cancel()

    async def _message_handler(self, client: aiomqtt.Client) -> None:
        async for message in client.messages:
            if self._shutdown_event.is_set():
                break

            try:
                await self._process_command(client, message)
            except Exception as e:
                logger.exception(f"Error processing message: {e}")

    async def _process_command(self, client: aiomqtt.Client, message: aiomqtt.Message) -> None:
        """Process a single get/set command.

        Topic format: {prefix}/{client_id}/{query}/{get|set}
        """
        topic = str(message.topic)
        payload = message.payload.decode() if isinstance(message.payload, bytes) else str(message.payload or "")

        logger.debug(f"Received: {topic} = {payload}")

        if not topic.startswith(self.base_topic + "/"):
            return
        query, _, action = topic[len(self.base_topic) + 1:].rpartition("/")
        if not query:
            return

        facade = self.service.facade
        if action == "get":
            result = str(await facade.get(query))
        elif action == "set":
            result = await facade.set(payload.strip(), query)
        else:
            return

        await client.publish(f"{self.base_topic}/{query}/result", result)

        if action == "set":
            await self._publish_states(client)

    async def _polling_loop(self, client: aiomqtt.Client) -> None:
        """Watch for topology changes and publish brightness changes."""
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.settings.agent.poll_interval,
                )
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass

            if await self.service.refresh_topology():
                self.last_brightness.clear()
            await self._publish_states(client)

    async def _publish_states(self, client: aiomqtt.Client) -> None:
        for controller in self.service.directory.controllers:
            await self._publish_state(client, controller)

    async def _publish_state(self, client: aiomqtt.Client, controller: MonitorController) -> None:
        name = controller.display.name
        percent = round_percent(controller.brightness)
        if self.last_brightness.get(name) == percent:
            return

        self.last_brightness[name] = percent
        await client.publish(
            f"{self.base_topic}/{name}/state",
            f"{percent / 100:.2f}",
            retain=True,
        )
        logger.debug(f"Published {name} brightness: {percent}%")
