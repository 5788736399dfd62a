"""
Shared fixtures: settings, sample Helius events and in-process fakes for
the Telegram Bot API and the Upstash REST endpoint.
"""

import copy
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from config import Settings
from connection_pool import HTTPSessionManager

BOT_TOKEN = "123456:TEST-TOKEN"
CHAT_ID = "-1001234567890"
UPSTASH_TOKEN = "upstash-test-token"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

WITHDRAWAL_EVENT: Dict[str, Any] = {
    "signature": "abc123",
    "timestamp": 1700000000,
    "type": "WITHDRAW_SOL",
    "tokenTransfers": [
        {
            "fromUserAccount": "A",
            "toUserAccount": "B",
            "mint": USDC_MINT,
            "tokenAmount": 10,
        }
    ],
    "fee": 5000000,
}


def make_settings(**overrides) -> Settings:
    values = {
        "telegram_bot_token": BOT_TOKEN,
        "telegram_chat_id": CHAT_ID,
        "log_file": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings(ack_before_processing=False)


@pytest.fixture
def withdrawal_event() -> Dict[str, Any]:
    return copy.deepcopy(WITHDRAWAL_EVENT)


class FakeNotifier:
    """Records every message instead of calling Telegram"""

    def __init__(self, result: bool = True):
        self.result = result
        self.messages: List[str] = []

    async def send(self, text: str) -> bool:
        self.messages.append(text)
        return self.result


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


class FakeTelegram:
    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.status = 200
        self.reply: Any = {"ok": True, "result": {"message_id": 1}}
        self.server: TestServer = None

    @property
    def api_url(self) -> str:
        return str(self.server.make_url("/"))

    async def send_message(self, request):
        self.requests.append(await request.json())
        if isinstance(self.reply, str):
            return web.Response(text=self.reply, status=self.status)
        return web.json_response(self.reply, status=self.status)


@pytest_asyncio.fixture
async def fake_telegram():
    telegram = FakeTelegram()
    app = web.Application()
    app.router.add_post(f"/bot{BOT_TOKEN}/sendMessage", telegram.send_message)
    telegram.server = TestServer(app)
    await telegram.server.start_server()
    yield telegram
    await telegram.server.close()


class FakeUpstash:
    """Minimal Upstash REST emulation: EXISTS and SET ... EX ... NX"""

    def __init__(self):
        self.keys: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.commands: List[List[str]] = []
        self.fail_status = None
        self.server: TestServer = None

    @property
    def url(self) -> str:
        return str(self.server.make_url("/"))

    async def command(self, request):
        if request.headers.get("Authorization") != f"Bearer {UPSTASH_TOKEN}":
            return web.json_response({"error": "Unauthorized"}, status=401)
        if self.fail_status:
            return web.json_response({"error": "ERR backend unavailable"}, status=self.fail_status)

        cmd = await request.json()
        self.commands.append(cmd)
        name, key = cmd[0].upper(), cmd[1]
        if name == "EXISTS":
            return web.json_response({"result": int(key in self.keys)})
        if name == "SET":
            if "NX" in cmd and key in self.keys:
                return web.json_response({"result": None})
            self.keys[key] = cmd[2]
            if "EX" in cmd:
                self.ttls[key] = int(cmd[cmd.index("EX") + 1])
            return web.json_response({"result": "OK"})
        return web.json_response({"error": f"ERR unknown command '{name}'"}, status=400)


@pytest_asyncio.fixture
async def fake_upstash():
    upstash = FakeUpstash()
    app = web.Application()
    app.router.add_post("/", upstash.command)
    upstash.server = TestServer(app)
    await upstash.server.start_server()
    yield upstash
    await upstash.server.close()


@pytest_asyncio.fixture
async def session_manager():
    manager = HTTPSessionManager(pool_size=2, timeout=5)
    await manager.start()
    yield manager
    await manager.stop()


@pytest_asyncio.fixture
async def make_client():
    clients: List[TestClient] = []

    async def _make(webhook_server) -> TestClient:
        client = TestClient(TestServer(webhook_server.app))
        await client.start_server()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()
