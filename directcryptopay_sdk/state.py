"""
Payment flow state machine.

Pure data and transition functions only; :mod:`directcryptopay_sdk.orchestrator`
performs the side effects and feeds results back through these functions.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Sequence, Tuple

from .exceptions import InvalidTransitionError
from .models import ToolMetadata, RankedToken, PaymentIntent, PaymentStatusRecord


class PaymentState(str, Enum):
    FETCHING_TOOL = "FETCHING_TOOL"
    CONNECT_WALLET = "CONNECT_WALLET"
    FETCHING_BALANCES = "FETCHING_BALANCES"
    SELECT_TOKEN = "SELECT_TOKEN"
    PROCESSING = "PROCESSING"
    POLLING = "POLLING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


ALLOWED_TRANSITIONS: Dict[PaymentState, FrozenSet[PaymentState]] = {
    PaymentState.FETCHING_TOOL: frozenset({
        PaymentState.CONNECT_WALLET, PaymentState.FETCHING_BALANCES,
        PaymentState.ERROR, PaymentState.CLOSED,
    }),
    PaymentState.CONNECT_WALLET: frozenset({
        PaymentState.FETCHING_BALANCES, PaymentState.ERROR, PaymentState.CLOSED,
    }),
    PaymentState.FETCHING_BALANCES: frozenset({
        PaymentState.SELECT_TOKEN, PaymentState.ERROR, PaymentState.CLOSED,
    }),
    PaymentState.SELECT_TOKEN: frozenset({
        PaymentState.PROCESSING, PaymentState.CLOSED,
    }),
    PaymentState.PROCESSING: frozenset({
        PaymentState.POLLING, PaymentState.ERROR, PaymentState.CLOSED,
    }),
    PaymentState.POLLING: frozenset({
        PaymentState.SUCCESS, PaymentState.ERROR, PaymentState.CLOSED,
    }),
    PaymentState.SUCCESS: frozenset({PaymentState.CLOSED}),
    PaymentState.ERROR: frozenset({PaymentState.FETCHING_TOOL, PaymentState.CLOSED}),
    PaymentState.CLOSED: frozenset(),
}

TERMINAL_STATES = frozenset({PaymentState.SUCCESS, PaymentState.ERROR, PaymentState.CLOSED})


@dataclass(frozen=True)
class OrchestratorState:
    """
    Everything the UI needs to render one payment attempt.
    """
    state: PaymentState = PaymentState.FETCHING_TOOL
    tool_id: str = ""
    tool: Optional[ToolMetadata] = None
    account: Optional[str] = None
    tokens: Tuple[RankedToken, ...] = ()
    selected_token: Optional[RankedToken] = None
    intent: Optional[PaymentIntent] = None
    tx_hash: Optional[str] = None
    payment_id: Optional[str] = None
    status_record: Optional[PaymentStatusRecord] = None
    error_message: Optional[str] = None
    error: Optional[BaseException] = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


def initial_state(tool_id: str) -> OrchestratorState:
    return OrchestratorState(state=PaymentState.FETCHING_TOOL, tool_id=tool_id)


def can_transition(current: PaymentState, target: PaymentState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(current: OrchestratorState, target: PaymentState, **changes: Any) -> OrchestratorState:
    """
    Move to ``target``, applying ``changes`` to the state record.

    Entering FETCHING_TOOL (the retry edge) starts a fresh attempt and drops
    everything but the tool id.

    Raises:
        InvalidTransitionError: If ``target`` is not reachable from the current state
    """
    if not can_transition(current.state, target):
        raise InvalidTransitionError(f"Cannot move from {current.state.value} to {target.value}")
    if target is PaymentState.FETCHING_TOOL:
        return replace(initial_state(current.tool_id), **changes)
    if target is not PaymentState.ERROR:
        changes.setdefault("error_message", None)
        changes.setdefault("error", None)
    return replace(current, state=target, **changes)


def fail(current: OrchestratorState, error: BaseException) -> OrchestratorState:
    """Move to ERROR carrying ``error``'s message."""
    return transition(
        current,
        PaymentState.ERROR,
        error=error,
        error_message=str(error) or type(error).__name__,
    )


def default_selection(tokens: Sequence[RankedToken]) -> Optional[RankedToken]:
    """First token with a balance, else the first token, else None."""
    for token in tokens:
        if token.has_balance:
            return token
    return tokens[0] if tokens else None


def with_balances(current: OrchestratorState, tokens: Sequence[RankedToken]) -> OrchestratorState:
    """FETCHING_BALANCES -> SELECT_TOKEN with the default token selected."""
    return transition(
        current,
        PaymentState.SELECT_TOKEN,
        tokens=tuple(tokens),
        selected_token=default_selection(tokens),
    )


def select_token(current: OrchestratorState, symbol: str) -> OrchestratorState:
    """
    Change the selected token while in SELECT_TOKEN.

    Raises:
        InvalidTransitionError: If not in SELECT_TOKEN
        ValueError: If no offered token has ``symbol``
    """
    if current.state is not PaymentState.SELECT_TOKEN:
        raise InvalidTransitionError(f"Cannot select a token in state {current.state.value}")
    for token in current.tokens:
        if token.symbol == symbol:
            return replace(current, selected_token=token)
    raise ValueError(f"Token {symbol} is not offered for this payment")


def with_account(current: OrchestratorState, account: str) -> OrchestratorState:
    """Record the connected wallet address."""
    return replace(current, account=account)


def with_intent(current: OrchestratorState, intent: PaymentIntent) -> OrchestratorState:
    return replace(current, intent=intent)


def with_tx_hash(current: OrchestratorState, tx_hash: str) -> OrchestratorState:
    return replace(current, tx_hash=tx_hash)


def with_status_record(current: OrchestratorState, record: PaymentStatusRecord) -> OrchestratorState:
    """Attach the latest backend status without changing state."""
    return replace(current, status_record=record)
