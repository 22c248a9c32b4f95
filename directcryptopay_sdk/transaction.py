"""
Transaction construction for DirectCryptoPay payments.

Everything here is pure: amounts are scaled with string arithmetic and the
resulting call is returned as data for a WalletProvider to broadcast.
"""
import re
from typing import Optional

from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .models import TokenOption, NativeTransfer, ContractCall, GasEstimate, TransactionRequest

TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")

_DECIMAL_RE = re.compile(r"^(\d*)(?:\.(\d*))?$", re.ASCII)


def parse_units(amount: str, decimals: int) -> int:
    """
    Convert a human decimal string into integer base units.

    Args:
        amount: Decimal amount such as "49.99"
        decimals: Token precision

    Returns:
        Exact amount in base units

    Raises:
        ValueError: If the amount is not a plain non-negative decimal, or has
            more fractional digits than the token supports
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    if not isinstance(amount, str):
        raise ValueError(f"amount must be a decimal string, got {type(amount).__name__}")

    text = amount.strip()
    match = _DECIMAL_RE.match(text)
    if not match or text in ("", "."):
        raise ValueError(f"Invalid decimal amount: {amount!r}")

    whole, fraction = match.group(1) or "0", match.group(2) or ""
    if len(fraction) > decimals:
        # Trailing zeros beyond the precision are harmless
        if fraction[decimals:].strip("0"):
            raise ValueError(
                f"Amount {amount!r} has more than {decimals} fractional digits"
            )
        fraction = fraction[:decimals]

    return int(whole + fraction.ljust(decimals, "0"))


def format_units(value: int, decimals: int) -> str:
    """
    Render integer base units as a decimal string, trimming trailing zeros.

    Args:
        value: Amount in base units
        decimals: Token precision

    Returns:
        Decimal string such as "49.99" or "0"
    """
    negative = value < 0
    digits = str(abs(value))
    if decimals > 0:
        digits = digits.rjust(decimals + 1, "0")
        whole, fraction = digits[:-decimals], digits[-decimals:].rstrip("0")
    else:
        whole, fraction = digits, ""
    text = f"{whole}.{fraction}" if fraction else whole
    return f"-{text}" if negative else text


def encode_transfer(recipient: str, amount: int) -> str:
    """
    ABI-encode an ERC-20 transfer(recipient, amount) call.

    Returns:
        0x-prefixed calldata
    """
    args = abi_encode(["address", "uint256"], [to_checksum_address(recipient), amount])
    return "0x" + (TRANSFER_SELECTOR + args).hex()


def build_transaction(
    amount: int,
    token: TokenOption,
    recipient: str,
    chain_id: int,
    token_address: Optional[str] = None
) -> TransactionRequest:
    """
    Build the call that moves ``amount`` base units of ``token`` to ``recipient``.

    Args:
        amount: Amount in base units
        token: The token being paid with
        recipient: Merchant address
        chain_id: Chain the transaction is for
        token_address: Contract address from the payment intent; defaults to
            the token's own address

    Returns:
        NativeTransfer for native assets, ContractCall otherwise

    Raises:
        ValueError: If the amount is negative or a contract address is missing
    """
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")

    if token.is_native:
        return NativeTransfer(to=to_checksum_address(recipient), value=amount, chain_id=chain_id)

    contract = token_address or token.address
    if not contract:
        raise ValueError(f"No contract address for token {token.symbol}")
    return ContractCall(
        to=to_checksum_address(contract),
        data=encode_transfer(recipient, amount),
        chain_id=chain_id,
    )


def check_gas_threshold(
    gas_limit: int,
    max_fee_per_gas: int,
    payment_amount_wei: int,
    threshold_percent: float,
    max_priority_fee_per_gas: int = 0
) -> GasEstimate:
    """
    Compare a transaction's worst-case gas cost with the payment amount.

    Args:
        gas_limit: Gas units the transaction may use
        max_fee_per_gas: Highest price per gas unit, in wei
        payment_amount_wei: Payment amount in the same base units as gas
        threshold_percent: Warn when gas exceeds this share of the payment
        max_priority_fee_per_gas: Priority fee, reported as-is

    Returns:
        GasEstimate with exceeds_threshold set
    """
    total_cost = gas_limit * max_fee_per_gas
    if payment_amount_wei <= 0:
        exceeds = total_cost > 0
        percentage = float("inf") if exceeds else 0.0
    else:
        # total / amount > pct / 100, kept in integers up to the threshold's precision
        scaled_threshold = round(threshold_percent * 10_000)
        exceeds = total_cost * 1_000_000 > scaled_threshold * payment_amount_wei
        percentage = total_cost * 100 / payment_amount_wei

    return GasEstimate(
        gas_limit=gas_limit,
        max_fee_per_gas=max_fee_per_gas,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        total_cost_wei=total_cost,
        percentage_of_payment=percentage,
        exceeds_threshold=exceeds,
    )
