"""Coin sets as the Cosmos SDK writes them on the command line, e.g. ``1000uatom,500stake``.

Parsing follows the SDK's normalized parser: decimal amounts are accepted and
truncated to whole units, zero-valued coins are dropped, the set is sorted by
denomination and duplicates are rejected.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from spamtx.errors import AmountError

_DENOM = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"
_DEC_AMOUNT = r"[0-9]+(?:\.[0-9]+)?|\.[0-9]+"
_COIN_RE = re.compile(rf"^({_DEC_AMOUNT})\s*({_DENOM})$")


@dataclass(frozen=True, slots=True)
class Coin:
    denom: str
    amount: int

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"

    def to_json(self) -> dict:
        return {"denom": self.denom, "amount": str(self.amount)}


@dataclass(frozen=True, slots=True)
class Coins:
    coins: tuple[Coin, ...] = ()

    @classmethod
    def of(cls, *coins: Coin) -> "Coins":
        """Sanitize: drop zeros, sort by denom, refuse duplicates."""
        kept = sorted((c for c in coins if c.amount != 0), key=lambda c: c.denom)
        seen = set()
        for c in kept:
            if c.amount < 0:
                raise AmountError(f"negative coin amount: {c}")
            if c.denom in seen:
                raise AmountError(f"duplicate denomination {c.denom}")
            seen.add(c.denom)
        return cls(tuple(kept))

    def __iter__(self):
        return iter(self.coins)

    def __len__(self) -> int:
        return len(self.coins)

    def __getitem__(self, i: int) -> Coin:
        return self.coins[i]

    def __str__(self) -> str:
        return ",".join(str(c) for c in self.coins)

    def is_zero(self) -> bool:
        return all(c.amount == 0 for c in self.coins)

    def amount_of(self, denom: str) -> int:
        for c in self.coins:
            if c.denom == denom:
                return c.amount
        return 0

    def quo_int(self, divisor: int) -> "Coins":
        """Integer-divide every denomination; shares that round down to zero are dropped."""
        if divisor <= 0:
            raise ValueError(f"divisor must be positive, got {divisor}")
        return Coins.of(*(Coin(c.denom, c.amount // divisor) for c in self.coins))

    def mul_int(self, factor: int) -> "Coins":
        if factor < 0:
            raise ValueError(f"factor must not be negative, got {factor}")
        return Coins.of(*(Coin(c.denom, c.amount * factor) for c in self.coins))

    def to_json(self) -> list[dict]:
        return [c.to_json() for c in self.coins]


def parse_coins(text: str) -> Coins:
    """Parse a comma-separated coin list, truncating decimal amounts."""
    text = text.strip()
    if not text:
        return Coins()

    parsed = []
    for part in text.split(","):
        m = _COIN_RE.match(part.strip())
        if m is None:
            raise AmountError(f"invalid coin expression: {part.strip()!r}")
        raw_amount, denom = m.groups()
        try:
            amount = int(Decimal(raw_amount))  # truncates toward zero
        except InvalidOperation as e:
            raise AmountError(f"invalid coin amount: {raw_amount!r}") from e
        parsed.append(Coin(denom, amount))
    return Coins.of(*parsed)


def parse_amount(text: str) -> Coins:
    """Parse the fee specification into the amount each self-transfer moves."""
    if not text:
        raise AmountError("amount string cannot be empty")

    try:
        coins = parse_coins(text)
    except AmountError as e:
        raise AmountError(f"failed to parse coins: {e}") from e

    if coins.is_zero():
        raise AmountError("amount must be greater than zero")
    return coins
