class PriceBotError(Exception):
    pass


class UpstreamError(PriceBotError):
    """Price or catalog request failed or came back with a non-2xx status."""


class ValidationError(PriceBotError):
    """User input rejected before any state was touched."""


class PersistenceError(PriceBotError):
    """The configuration document could not be written."""
