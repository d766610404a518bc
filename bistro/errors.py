"""Domain errors.

Pricing errors are meant to reach the caller (the API turns them into a 400).
Print errors are raised by the print drivers and always caught inside
``PrintDispatcher.dispatch``.
"""


class PricingError(ValueError):
    pass


class InvalidSelection(PricingError):
    """Variation name does not match any variation of the menu item."""


class InvalidQuantity(PricingError):
    """Line quantity is not a positive integer."""


class PrintError(Exception):
    pass


class PrintTransportError(PrintError):
    """Device unreachable or I/O failure while talking to it."""


class PrintTargetUnconfigured(PrintError):
    """No address configured for the requested print station."""
