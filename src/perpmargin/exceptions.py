"""
Custom exceptions for the margin engine.

Solver errors propagate to callers as typed failures. UnknownAssetTier is
recoverable (callers fall back to the default schedule) and price-formatting
problems never surface as exceptions at all.
"""


class MarginEngineError(Exception):
    """Base exception for margin engine errors."""

    pass


class InvalidPositionInputs(MarginEngineError, ValueError):
    """Raised when position inputs cannot produce a liquidation estimate."""

    pass


class InvalidPositionSize(InvalidPositionInputs):
    """Raised when position size is zero or negative."""

    pass


class InvalidNotional(MarginEngineError, ValueError):
    """Raised when a negative notional reaches the schedule builder."""

    pass


class DegenerateMaintenanceFraction(MarginEngineError):
    """Raised when a tier implies a maintenance fraction outside (0, 1)."""

    pass


class TierConfigurationError(MarginEngineError, ValueError):
    """Raised when a tier table or tier catalog file is malformed."""

    pass


class UnknownAssetTier(MarginEngineError, KeyError):
    """Raised when no tier table exists for an asset on a network."""

    def __init__(self, asset: str, network: str):
        self.asset = asset
        self.network = network
        super().__init__(f"No margin tiers for {asset} on {network}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidSize(MarginEngineError, ValueError):
    """Raised when an order size is malformed or too precise for its asset."""

    pass


class PrecisionConfigError(MarginEngineError, ValueError):
    """Raised when asset precision configuration is inconsistent."""

    pass


class MetadataFetchError(MarginEngineError):
    """Raised when live asset metadata cannot be fetched or parsed."""

    pass
