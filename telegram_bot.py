import aiohttp
import asyncio
import logging
from decimal import Decimal

from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from config import Settings
from connection_pool import HTTPSessionManager
from models import WithdrawalSummary

logger = logging.getLogger(__name__)

EXPLORER_TX_URL = "https://solscan.io/tx/{signature}"


def _escape(text) -> str:
    return escape_markdown(str(text), version=2)


def _code(text) -> str:
    return f"`{escape_markdown(str(text), version=2, entity_type='code')}`"


def format_number(value: float) -> str:
    """Render 0.005 as `0.005`, 10.0 as `10` and 1e-12 as `0.000000000001`"""
    formatted = format(Decimal(str(value)), 'f')
    if '.' in formatted:
        formatted = formatted.rstrip('0').rstrip('.')
    return '0' if formatted == '-0' else formatted


def format_withdrawal_message(summary: WithdrawalSummary) -> str:
    """Build the MarkdownV2 alert for one withdrawal"""
    text = "🔔 *New Withdrawal Detected*\n\n"

    withdrawal = summary.withdrawal
    if withdrawal:
        text += (
            "*Token Transfer:*\n\n"
            f"*{_escape(withdrawal.token)}*\n"
            f"Amount: {_code(format_number(withdrawal.amount))}\n"
            f"From: {_code(withdrawal.from_account)}\n"
            f"To: {_code(withdrawal.to_account)}\n"
        )

    url = EXPLORER_TX_URL.format(signature=summary.signature)
    text += (
        f"\n💸 Fee: {_code(format_number(summary.fee) + ' SOL')}\n"
        f"\n🔗 *Transaction:*\n{_code(summary.signature)}\n"
        f"\n[View on Solscan]({escape_markdown(url, version=2, entity_type='text_link')})"
    )
    return text


class TelegramNotifier:
    """Posts alerts to a single chat through the Bot API sendMessage method."""

    def __init__(self, settings: Settings, session_manager: HTTPSessionManager):
        self.url = settings.send_message_url
        self.chat_id = settings.telegram_chat_id
        self.session_manager = session_manager

    async def send(self, text: str) -> bool:
        """Single delivery attempt. Failures are logged and reported as False."""
        payload = {
            'chat_id': self.chat_id,
            'text': text,
            'parse_mode': ParseMode.MARKDOWN_V2.value,
            'disable_web_page_preview': False
        }
        try:
            async with self.session_manager.session.post(self.url, json=payload) as response:
                result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Error sending to Telegram: {str(e)}")
            return False

        if isinstance(result, dict) and result.get('ok'):
            logger.info("Message sent to Telegram successfully")
            return True

        description = result.get('description') if isinstance(result, dict) else result
        logger.error(f"Failed to send to Telegram (HTTP {response.status}): {description}")
        return False
