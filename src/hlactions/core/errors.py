# src/hlactions/core/errors.py

from typing import Any, Optional


class HyperliquidActionError(Exception):
    """Base class for every error raised by hlactions."""


class ValidationError(HyperliquidActionError):
    """Bad caller input, raised before any signing or network work."""


class InvalidCloidFormat(ValidationError):
    def __init__(self, value: Any):
        super().__init__(f"Invalid cloid {value!r}: expected '0x' followed by 32 hex digits")
        self.value = value


class ResolutionError(HyperliquidActionError):
    """A symbolic field (coin, position) could not be resolved."""


class UnknownCoin(ResolutionError):
    def __init__(self, coin: str):
        super().__init__(f"Unknown coin: {coin}")
        self.coin = coin


class NoMatchingPosition(ResolutionError):
    def __init__(self, coin: str):
        super().__init__(f"No matching position found for coin: {coin}")
        self.coin = coin


class SigningError(HyperliquidActionError):
    """The wallet could not sign the payload."""


class TransportError(HyperliquidActionError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
