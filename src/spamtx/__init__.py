"""Rate-controlled self-transfer transaction spammer for Cosmos SDK chains."""

__version__ = "0.1.0"
