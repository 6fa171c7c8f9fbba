"""Find the healthiest liquidity pool for a Solana token pair."""

__version__ = "0.1.0"
