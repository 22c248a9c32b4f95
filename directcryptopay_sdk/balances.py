"""
Balance aggregation for the token picker.

Balances for all offered tokens are read concurrently; a token whose balance
cannot be read is shown as empty rather than failing the whole list.
"""
import asyncio
import logging
from typing import List, Protocol, Sequence

from .models import TokenOption, RankedToken
from .transaction import format_units

logger = logging.getLogger(__name__)


class BalanceReader(Protocol):
    """Anything that can read a token balance (see ChainReader)"""

    def get_balance(self, token: TokenOption, account: str, chain_id: int) -> int:
        ...


def _ranked(token: TokenOption, balance: int) -> RankedToken:
    return RankedToken(
        **token.model_dump(include=set(TokenOption.model_fields)),
        balance=balance,
        balance_formatted=format_units(balance, token.decimals),
        has_balance=balance > 0,
    )


async def _resolve(reader: BalanceReader, token: TokenOption, account: str, chain_id: int) -> RankedToken:
    try:
        balance = await asyncio.to_thread(reader.get_balance, token, account, chain_id)
        return _ranked(token, int(balance))
    except Exception as e:
        logger.error(f"Failed to fetch balance for {token.symbol} on chain {chain_id}: {e}")
        return _ranked(token, 0)


def rank_tokens(tokens: Sequence[RankedToken]) -> List[RankedToken]:
    """
    Order tokens for display.

    Tokens holding a balance come first, largest balance first; ties and the
    empty tokens keep their input order.
    """
    # sorted() is stable, so equal keys keep input order
    return sorted(tokens, key=lambda t: (not t.has_balance, -t.balance if t.has_balance else 0))


async def fetch_token_balances(
    tokens: Sequence[TokenOption],
    account: str,
    chain_id: int,
    reader: BalanceReader
) -> List[RankedToken]:
    """
    Resolve every token's balance concurrently and rank the result.

    Args:
        tokens: Tokens offered by the payment tool
        account: Connected wallet address
        chain_id: Chain the balances are read on
        reader: Balance source

    Returns:
        One RankedToken per input token, in display order
    """
    results = await asyncio.gather(
        *(_resolve(reader, token, account, chain_id) for token in tokens)
    )
    ranked = rank_tokens(results)
    logger.debug(
        f"Resolved {len(ranked)} balances for {account} on chain {chain_id}: "
        f"{sum(1 for t in ranked if t.has_balance)} funded"
    )
    return ranked
