from typing import Dict
from models import RawEvent, WithdrawalDetail, WithdrawalSummary
from time_utils import to_iso_timestamp
import logging

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1e9

KNOWN_TOKENS: Dict[str, str] = {
    'EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v': 'USDC',
    '2b1kV6DkPAnxd5ixfnxCpjxmKwqjjaYmCZfHsFu24GXo': 'PYUSD',
    '38wQFRuj6FezzGYegzHdqrRK7hkEkBx7wSqxDBYXpKpy': 'kPUSD-USDC',
}


def resolve_token_symbol(mint: str) -> str:
    """Known symbol for a mint, otherwise the first 8 characters of the mint."""
    return KNOWN_TOKENS.get(mint) or f"{mint[:8]}..."


def is_withdrawal_event(event: RawEvent) -> bool:
    tx_type = (event.type or '').lower()
    description = (event.description or '').lower()
    return 'withdraw' in tx_type or 'withdraw' in description


def decode_withdrawal_event(event: RawEvent) -> WithdrawalSummary:
    """
    Normalize a webhook transaction into a withdrawal summary.

    Only the first token transfer is used; any further transfers in the
    same transaction are ignored.

    Args:
        event (RawEvent): The validated transaction received from the webhook.

    Returns:
        WithdrawalSummary: signature, ISO timestamp, type, source, fee in SOL
        and the withdrawal detail (None when the transaction has no token
        transfers).
    """
    transfers = event.token_transfers or []
    withdrawal = None

    if transfers:
        transfer = transfers[0]
        withdrawal = WithdrawalDetail(
            from_account=transfer.from_account,
            to_account=transfer.to_account,
            token=resolve_token_symbol(transfer.mint),
            amount=transfer.token_amount,
            mint=transfer.mint
        )
        if len(transfers) > 1:
            logger.debug(f"[Tx {event.signature}] Ignoring {len(transfers) - 1} extra transfers")

    return WithdrawalSummary(
        signature=event.signature,
        timestamp=to_iso_timestamp(event.timestamp),
        type=event.type or 'UNKNOWN',
        source=event.source or 'Unknown',
        withdrawal=withdrawal,
        fee=(event.fee or 0) / LAMPORTS_PER_SOL
    )
