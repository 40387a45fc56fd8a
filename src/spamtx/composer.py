"""Self-transfer message builders.

Every message sends from the run's own address back to itself. The simple
shape is a single ``MsgSend``; the heavy shape is a ``MsgMultiSend`` with many
outputs, which inflates per-transaction gas for load testing.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

import spamtx.constants as C
from spamtx.coins import Coin, Coins
from spamtx.config import RunConfig

log = logging.getLogger("spamtx.composer")


@dataclass(frozen=True, slots=True)
class HeavySplit:
    output_count: int
    per_output: Coins
    fallback_applied: bool = False

    @property
    def total(self) -> Coins:
        return self.per_output.mul_int(self.output_count)


@dataclass(frozen=True, slots=True)
class ComposeContext:
    address: str
    amount: Coins
    config: RunConfig


_BUILDERS: dict[str, Callable[[ComposeContext], dict]] = {}


def register_msg(msg_type: str):
    """Register a builder for a message type URL."""
    def wrap(fn: Callable[[ComposeContext], dict]):
        _BUILDERS[msg_type] = fn
        return fn
    return wrap


def calculate_output_count(config: RunConfig) -> int:
    """How many outputs a heavy transaction carries.

    An explicit count wins. Otherwise the gas limit is spent on outputs after the
    fixed overhead, and anything that leaves no room falls back to the default.
    """
    if config.heavy_address_count > 0:
        return config.heavy_address_count

    if config.gas_limit:
        estimated = (config.gas_limit - C.HEAVY_BASE_GAS) // C.HEAVY_GAS_PER_OUTPUT
        if estimated > 0:
            return estimated

    return C.DEFAULT_HEAVY_OUTPUTS


def split_amount(amount: Coins, output_count: int) -> HeavySplit:
    """Divide ``amount`` evenly over ``output_count`` outputs.

    When every share rounds down to zero each output instead gets one minimal
    unit of the first denomination. The total moved then no longer matches
    ``amount`` (5uatom over 10 outputs moves 10uatom).
    """
    per_output = amount.quo_int(output_count)
    if per_output.is_zero() and len(amount) > 0:
        per_output = Coins.of(Coin(amount[0].denom, 1))
        return HeavySplit(output_count, per_output, fallback_applied=True)
    return HeavySplit(output_count, per_output)


@register_msg(C.MSG_SEND)
def _build_send(ctx: ComposeContext) -> dict:
    return {
        "@type": C.MSG_SEND,
        "from_address": ctx.address,
        "to_address": ctx.address,
        "amount": ctx.amount.to_json(),
    }


@register_msg(C.MSG_MULTI_SEND)
def _build_multi_send(ctx: ComposeContext) -> dict:
    split = split_amount(ctx.amount, calculate_output_count(ctx.config))
    if split.fallback_applied:
        log.debug("Split of %s over %d outputs underflowed, sending %s each", ctx.amount, split.output_count, split.per_output)
    output = {"address": ctx.address, "coins": split.per_output.to_json()}
    return {
        "@type": C.MSG_MULTI_SEND,
        "inputs": [{"address": ctx.address, "coins": split.total.to_json()}],
        "outputs": [dict(output) for _ in range(split.output_count)],
    }


class TransactionComposer:
    """Builds the per-slot message for one run."""

    def __init__(self, config: RunConfig, address: str, amount: Coins):
        self.ctx = ComposeContext(address=address, amount=amount, config=config)
        self.msg_type = C.MSG_MULTI_SEND if config.heavy else C.MSG_SEND
        self.output_count = calculate_output_count(config) if config.heavy else 1

    def compose(self) -> dict:
        builder = _BUILDERS.get(self.msg_type)
        if builder is None:
            raise ValueError(f"Unsupported message type: {self.msg_type}")
        return builder(self.ctx)

    def estimate_gas(self) -> int:
        """Gas to request when the run does not set a limit."""
        if self.ctx.config.gas_limit:
            return self.ctx.config.gas_limit
        if self.msg_type == C.MSG_MULTI_SEND:
            return C.HEAVY_BASE_GAS + C.HEAVY_GAS_PER_OUTPUT * self.output_count
        return C.DEFAULT_GAS_LIMIT
