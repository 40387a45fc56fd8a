class SpamError(Exception):
    """Base class for everything spamtx raises on purpose."""


class ConfigError(SpamError):
    pass


class NetworkResolutionError(SpamError):
    pass


class AccountNotFoundError(SpamError):
    pass


class AccountVerificationError(SpamError):
    pass


class AmountError(SpamError):
    pass


class SignerError(SpamError):
    pass


class TransportError(SpamError):
    """The node could not be reached or answered with something unusable."""
