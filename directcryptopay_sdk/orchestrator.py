"""
PaymentOrchestrator - drives one payment attempt from tool lookup to a
confirmed (or failed) payment.

The orchestrator runs on a single asyncio event loop. Blocking backend and
wallet calls are pushed to worker threads, so timers and user actions keep
being serviced while a request is in flight. State changes go through the pure
functions in :mod:`directcryptopay_sdk.state`.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ._rate_limited_log import rate_limited_log
from .balances import fetch_token_balances
from .context import PaymentContext
from .exceptions import (
    ChainMismatch, InvalidTransitionError, PaymentRejected,
    PollingTimeout, WalletRejection
)
from .models import PaymentStatusRecord, SubmittedPayment
from .state import (
    OrchestratorState, PaymentState, initial_state, transition, fail,
    with_balances, with_account, with_intent, with_tx_hash, with_status_record,
    select_token as select_token_in
)
from .transaction import parse_units, build_transaction

PAYMENT_FAILED_MESSAGE = "Payment failed verification"


@dataclass
class PaymentCallbacks:
    """Optional hooks fired as the payment flow progresses"""
    on_open: Optional[Callable[[], Any]] = None
    on_close: Optional[Callable[[], Any]] = None
    on_state_change: Optional[Callable[[OrchestratorState], Any]] = None
    on_tx_submitted: Optional[Callable[[str], Any]] = None
    on_success: Optional[Callable[[PaymentStatusRecord], Any]] = None
    on_error: Optional[Callable[[BaseException], Any]] = None


class PaymentOrchestrator:
    """
    State machine driver for a single payment attempt.

    Typical use::

        orchestrator = PaymentOrchestrator(context, "tool_123", callbacks)
        await orchestrator.start()
        if orchestrator.state.state is PaymentState.CONNECT_WALLET:
            await orchestrator.connect_wallet()
        ...
        await orchestrator.confirm()
        final = await orchestrator.wait_until_settled(timeout=600)
    """

    def __init__(
        self,
        context: PaymentContext,
        tool_id: str,
        callbacks: Optional[PaymentCallbacks] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            context: Configuration and collaborators to run against
            tool_id: Payment tool being paid for
            callbacks: Optional progress hooks
            logger: Optional logger instance
        """
        if not tool_id:
            raise ValueError("tool_id is required")
        self.context = context
        self.tool_id = tool_id
        self.callbacks = callbacks or PaymentCallbacks()
        self.logger = logger or logging.getLogger(__name__)

        self._state = initial_state(tool_id)
        self._attempt = 0
        self._started = False
        self._closed = False
        self._settled = asyncio.Event()
        self._connection_task: Optional[asyncio.Task] = None
        self._status_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ #
    # Public surface
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> OrchestratorState:
        """
        Open the flow and run it until it needs the user (or fails).

        Returns:
            The state after the tool lookup and, when the wallet is already
            connected, the balance lookup
        """
        if self._started:
            return self._state
        self._started = True
        self._emit("on_open")
        self._emit("on_state_change", self._state)
        await self._fetch_tool(self._attempt)
        return self._state

    async def connect_wallet(self) -> OrchestratorState:
        """
        Ask the wallet to connect.

        A declined or abandoned connection leaves the flow in CONNECT_WALLET;
        the background connection poll keeps watching for a later connect.

        Raises:
            InvalidTransitionError: If not in CONNECT_WALLET
        """
        self._require(PaymentState.CONNECT_WALLET, "connect a wallet")
        attempt = self._attempt
        try:
            await asyncio.to_thread(self.context.wallet.connect)
        except WalletRejection as e:
            self.logger.info(f"Wallet connection declined: {e}")
            return self._state
        except Exception as e:
            self.logger.warning(f"Wallet connection did not complete: {e}")
            return self._state

        if self._is_current(attempt) and await self._wallet_connected():
            await self._on_wallet_connected(attempt)
        return self._state

    def select_token(self, symbol: str) -> OrchestratorState:
        """
        Change the token to pay with.

        Raises:
            InvalidTransitionError: If not in SELECT_TOKEN
            ValueError: If the token is not offered
        """
        self._state = select_token_in(self._state, symbol)
        return self._state

    async def confirm(self) -> OrchestratorState:
        """
        Pay with the selected token: create an intent, broadcast the
        transaction and report it to the backend. Confirmation polling then
        continues in the background.

        Returns:
            POLLING on success, ERROR otherwise. With no token to pay with
            the state is returned unchanged.

        Raises:
            InvalidTransitionError: If not in SELECT_TOKEN
        """
        self._require(PaymentState.SELECT_TOKEN, "confirm a payment")
        token = self._state.selected_token
        tool = self._state.tool
        if token is None:
            self.logger.warning("No token available to pay with")
            return self._state

        attempt = self._attempt
        self._apply(transition(self._state, PaymentState.PROCESSING))

        try:
            intent = await asyncio.to_thread(self.context.backend.create_intent, self.tool_id, token.symbol)
            if not self._is_current(attempt):
                return self._state
            if intent.is_expired():
                raise PaymentRejected(f"Payment intent {intent.id} has already expired")

            amount = parse_units(intent.amount, token.decimals)
            tx = build_transaction(
                amount,
                token,
                intent.merchant_address,
                tool.chain_id,
                token_address=None if token.is_native else intent.token_address,
            )
            self._state = with_intent(self._state, intent)

            tx_hash = await asyncio.to_thread(self.context.wallet.send_transaction, tx)
            if not self._is_current(attempt):
                return self._state
            self.logger.info(f"Payment transaction broadcast: {tx_hash}")
            self._state = with_tx_hash(self._state, tx_hash)
            self._emit("on_tx_submitted", tx_hash)

            submitted = SubmittedPayment(
                tx_hash=tx_hash,
                chain_id=tool.chain_id,
                amount_wei=amount,
                token_address=intent.token_address,
                recipient=intent.merchant_address,
                tool_id=self.tool_id,
            )
            response = await asyncio.to_thread(self.context.backend.submit_payment, submitted)
        except Exception as e:
            if self._is_current(attempt):
                self._fail(e)
            return self._state

        if not self._is_current(attempt):
            return self._state
        self._apply(transition(self._state, PaymentState.POLLING, payment_id=response.payment_id))
        self._status_task = asyncio.get_running_loop().create_task(
            self._poll_status(attempt, response.payment_id)
        )
        return self._state

    async def retry(self) -> OrchestratorState:
        """
        Start over from the tool lookup after an error.

        Raises:
            InvalidTransitionError: If not in ERROR
        """
        self._require(PaymentState.ERROR, "retry")
        self._attempt += 1
        self._settled.clear()
        self._apply(transition(self._state, PaymentState.FETCHING_TOOL))
        await self._fetch_tool(self._attempt)
        return self._state

    def close(self) -> None:
        """
        Tear the flow down. Timers stop and no callback other than on_close
        fires afterwards; requests already in flight are left to finish and
        their results are discarded.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_connection_polling()
        if self._status_task is not None and self._status_task is not asyncio.current_task():
            self._status_task.cancel()
        self._status_task = None
        self._state = transition(self._state, PaymentState.CLOSED)
        self._settled.set()
        self.logger.debug(f"Payment flow for tool {self.tool_id} closed")
        self._emit("on_close", force=True)

    async def wait_until_settled(self, timeout: Optional[float] = None) -> OrchestratorState:
        """
        Wait until the flow reaches SUCCESS, ERROR or CLOSED.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        await asyncio.wait_for(self._settled.wait(), timeout)
        return self._state

    # ------------------------------------------------------------------ #
    # Phases
    # ------------------------------------------------------------------ #

    async def _fetch_tool(self, attempt: int) -> None:
        try:
            tool = await asyncio.to_thread(self.context.backend.fetch_tool, self.tool_id)
        except Exception as e:
            if self._is_current(attempt):
                self._fail(e)
            return
        if not self._is_current(attempt):
            return

        if await self._wallet_connected():
            if not self._is_current(attempt):
                return
            self._apply(transition(self._state, PaymentState.FETCHING_BALANCES, tool=tool))
            await self._load_balances(attempt)
        elif self._is_current(attempt):
            self._apply(transition(self._state, PaymentState.CONNECT_WALLET, tool=tool))
            self._connection_task = asyncio.get_running_loop().create_task(
                self._poll_connection(attempt)
            )

    async def _poll_connection(self, attempt: int) -> None:
        interval = self.context.config.connection_poll_interval
        while self._in_state(attempt, PaymentState.CONNECT_WALLET):
            await asyncio.sleep(interval)
            if not self._in_state(attempt, PaymentState.CONNECT_WALLET):
                return
            if await self._wallet_connected():
                await self._on_wallet_connected(attempt)
                return

    async def _on_wallet_connected(self, attempt: int) -> None:
        # Both the poll and connect_wallet() can get here; only the first moves on
        if not self._in_state(attempt, PaymentState.CONNECT_WALLET):
            return
        self.logger.info("Wallet connected")
        self._apply(transition(self._state, PaymentState.FETCHING_BALANCES))
        await self._load_balances(attempt)

    async def _load_balances(self, attempt: int) -> None:
        tool = self._state.tool
        wallet = self.context.wallet
        try:
            account = await asyncio.to_thread(wallet.get_account)
            if not account.is_connected or not account.address:
                raise WalletRejection("Wallet is not connected")

            if account.chain_id != tool.chain_id:
                self.logger.info(f"Switching wallet from chain {account.chain_id} to {tool.chain_id}")
                try:
                    await asyncio.to_thread(wallet.switch_chain, tool.chain_id)
                except ChainMismatch:
                    raise
                except Exception as e:
                    raise ChainMismatch(
                        f"Failed to switch to chain {tool.chain_id}: {e}", tool.chain_id
                    ) from e

            tokens = await fetch_token_balances(
                tool.available_tokens, account.address, tool.chain_id, self.context.reader
            )
        except Exception as e:
            if self._is_current(attempt):
                self._fail(e)
            return

        if not self._is_current(attempt):
            return
        self._state = with_account(self._state, account.address)
        self._apply(with_balances(self._state, tokens))

    async def _poll_status(self, attempt: int, payment_id: str) -> None:
        interval = self.context.config.status_poll_interval
        max_polls = self.context.config.max_status_polls

        for poll in range(1, max_polls + 1):
            try:
                record = await asyncio.to_thread(
                    self.context.backend.get_payment_status, payment_id, self.tool_id
                )
            except Exception as e:
                if self._is_current(attempt):
                    self._fail(e)
                return
            if not self._is_current(attempt):
                return

            if record.status == "confirmed":
                self.logger.info(f"Payment {payment_id} confirmed")
                self._apply(transition(self._state, PaymentState.SUCCESS, status_record=record))
                self._emit("on_success", record)
                return
            if record.status == "failed":
                self._state = with_status_record(self._state, record)
                self._fail(PaymentRejected(PAYMENT_FAILED_MESSAGE))
                return

            rate_limited_log(
                f"Payment {payment_id} still pending",
                level="debug",
                logger_instance=self.logger
            )
            if poll < max_polls:
                await asyncio.sleep(interval)

        if self._is_current(attempt):
            self._fail(PollingTimeout(
                f"Payment {payment_id} was not confirmed after {max_polls} status checks"
            ))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require(self, expected: PaymentState, action: str) -> None:
        if self._closed:
            raise InvalidTransitionError(f"Cannot {action}: the payment flow is closed")
        if self._state.state is not expected:
            raise InvalidTransitionError(
                f"Cannot {action} in state {self._state.state.value}"
            )

    def _is_current(self, attempt: int) -> bool:
        return not self._closed and attempt == self._attempt

    def _in_state(self, attempt: int, expected: PaymentState) -> bool:
        return self._is_current(attempt) and self._state.state is expected

    async def _wallet_connected(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.context.wallet.is_connected))
        except Exception as e:
            self.logger.debug(f"Wallet connection check failed: {e}")
            return False

    def _cancel_connection_polling(self) -> None:
        task, self._connection_task = self._connection_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _apply(self, new_state: OrchestratorState) -> None:
        previous = self._state.state
        self._state = new_state
        if previous is PaymentState.CONNECT_WALLET and new_state.state is not PaymentState.CONNECT_WALLET:
            self._cancel_connection_polling()
        if new_state.state in (PaymentState.SUCCESS, PaymentState.ERROR):
            self._settled.set()
        self.logger.debug(f"Payment flow {self.tool_id}: {previous.value} -> {new_state.state.value}")
        self._emit("on_state_change", new_state)

    def _fail(self, error: BaseException) -> None:
        self.logger.error(f"Payment flow for tool {self.tool_id} failed: {error}")
        self._apply(fail(self._state, error))
        self._emit("on_error", error)

    def _emit(self, name: str, *args: Any, force: bool = False) -> None:
        if self._closed and not force:
            return
        callback = getattr(self.callbacks, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            self.logger.exception(f"{name} callback raised")
