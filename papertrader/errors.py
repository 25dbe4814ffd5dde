"""Error kinds raised by the ledger and the bot-status client."""


class PaperTraderError(Exception):
    """Base class for all PaperTrader errors."""


class ValidationError(PaperTraderError, ValueError):
    """An operation received a non-positive stake or price."""


class NotFoundError(PaperTraderError, KeyError):
    """No trade exists with the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages.
        return str(self.args[0]) if self.args else ""


class InvalidStateError(PaperTraderError):
    """The trade exists but is not in the state the operation requires."""


class UpstreamError(PaperTraderError):
    """The external bot-status API was unreachable or timed out."""
