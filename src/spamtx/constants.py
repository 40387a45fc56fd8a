from enum import StrEnum
from typing import Final

from spamtx.config import cfg

MSG_SEND: Final = "/cosmos.bank.v1beta1.MsgSend"
MSG_MULTI_SEND: Final = "/cosmos.bank.v1beta1.MsgMultiSend"


class AttemptState(StrEnum):
    PENDING         = "PENDING"
    ACCEPTED        = "ACCEPTED"
    REJECTED        = "REJECTED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class AccountLookup(StrEnum):
    EXISTS      = "EXISTS"
    NOT_FOUND   = "NOT_FOUND"
    UNREACHABLE = "UNREACHABLE"


_to = cfg["timeouts"]
SUBMIT_TIMEOUT = float(_to["submit"])
QUERY_TIMEOUT = float(_to["query"])
HTTP_TIMEOUT = float(_to["http"])

_heavy = cfg["heavy"]
DEFAULT_HEAVY_OUTPUTS = int(_heavy["default_outputs"])
HEAVY_BASE_GAS = int(_heavy["base_gas"])  # fixed tx overhead, gas units
HEAVY_GAS_PER_OUTPUT = int(_heavy["gas_per_output"])

DEFAULT_GAS_LIMIT = int(cfg["tx"]["default_gas_limit"])
LOG_SAMPLE_EVERY = int(cfg["report"]["sample_every"])

__all__ = [
    "DEFAULT_GAS_LIMIT",
    "DEFAULT_HEAVY_OUTPUTS",
    "HEAVY_BASE_GAS",
    "HEAVY_GAS_PER_OUTPUT",
    "HTTP_TIMEOUT",
    "LOG_SAMPLE_EVERY",
    "MSG_MULTI_SEND",
    "MSG_SEND",
    "QUERY_TIMEOUT",
    "SUBMIT_TIMEOUT",

    ######
    "AccountLookup",
    "AttemptState",
]
