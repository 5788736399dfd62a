from aiohttp import web
from pydantic import ValidationError
from config import Settings
from dedup_store import DedupStore
from models import RawEvent
from parse_data import decode_withdrawal_event, is_withdrawal_event
from telegram_bot import TelegramNotifier, format_withdrawal_message
from typing import Any, List, Optional, Set
import json
import logging
import asyncio

logger = logging.getLogger(__name__)


class WebhookServer:
    """
    Receives Helius webhook batches and relays withdrawals to Telegram.

    The sender always gets `{"received": true}` with status 200, whatever
    happens to the individual events.
    """

    def __init__(self, settings: Settings, store: DedupStore, notifier: TelegramNotifier):
        self.settings = settings
        self.store = store
        self.notifier = notifier
        self.app = web.Application()
        self.runner = None
        self.site = None
        self._pending: Set[asyncio.Task] = set()
        self._setup_routes()

        self.app.on_cleanup.append(self._on_cleanup)

    async def _on_cleanup(self, app):
        """Let in-flight batches finish before shutting down"""
        logger.debug("Webhook server cleaning up")
        await self.drain()

    def _setup_routes(self):
        self.app.router.add_post("/webhook", self.handle_webhook)
        self.app.router.add_get("/health", self.handle_health)

    async def handle_health(self, request):
        return web.json_response({"status": "ok"})

    async def handle_webhook(self, request):
        logger.info("Webhook received")
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unparsable webhook body: {str(e)}")
            return web.json_response({"received": True})

        events = data if isinstance(data, list) else [data]

        if self.settings.ack_before_processing:
            task = asyncio.create_task(self.process_events(events))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            await self.process_events(events)

        return web.json_response({"received": True})

    async def drain(self):
        """Wait for every batch scheduled in the background"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def process_events(self, events: List[Any]):
        logger.info(f"Processing {len(events)} events")
        for raw in events:
            try:
                await self.process_event(raw)
            except Exception as e:
                signature = raw.get('signature') if isinstance(raw, dict) else None
                logger.error(f"[Tx {signature}] Processing error: {str(e)}", exc_info=True)

    async def process_event(self, raw: Any) -> Optional[bool]:
        """
        Handle one event.

        Returns the notifier outcome for a relayed withdrawal, None when the
        event was skipped (invalid, duplicate or not a withdrawal).
        """
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object event: {type(raw).__name__}")
            return None

        try:
            event = RawEvent.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[Tx {raw.get('signature')}] Skipping malformed event: {e.error_count()} errors")
            logger.debug(str(e))
            return None

        signature = event.signature

        if await self.store.has(signature):
            logger.info(f"Duplicate transaction detected, skipping: {signature[:16]}...")
            return None

        # Recorded before sending; a crash mid-send drops the alert instead of repeating it
        if not await self.store.mark_processed(signature):
            logger.info(f"Transaction already claimed by another delivery, skipping: {signature[:16]}...")
            return None

        if not is_withdrawal_event(event):
            logger.info(f"Skipping event type: {event.type}")
            return None

        logger.info(f"Withdrawal detected: {signature[:16]}...")
        summary = decode_withdrawal_event(event)
        return await self.notifier.send(format_withdrawal_message(summary))

    async def start(self):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.settings.host, self.settings.port)
        await self.site.start()
        logger.info(f"Webhook receiver listening on port {self.settings.port}")

    async def stop(self):
        if self.runner:
            await self.runner.cleanup()
        self.runner = None
        self.site = None
        logger.info("Webhook server stopped")
