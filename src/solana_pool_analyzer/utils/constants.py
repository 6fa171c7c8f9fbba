"""Shared constants for Solana pool analysis."""

SOL_MINT = "So11111111111111111111111111111111111111112"
JUP_MINT = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

# Reference price used to convert native-denominated quotes into USD.
DEFAULT_NATIVE_PRICE_USD = 161.0

WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
WHIRLPOOLS_CONFIG_MAINNET = "2LecshUwdy9xi7meFgHtFJQNSKk4KdTrcpvaB56dP2NQ"

# Tick spacings of the fee tiers deployed under the mainnet whirlpools config.
WHIRLPOOL_TICK_SPACINGS: tuple[int, ...] = (1, 2, 4, 8, 16, 64, 96, 128, 256)

# Q64.64 fixed point scale of Whirlpool sqrt prices.
Q64 = 2**64

__all__ = [
    "SOL_MINT",
    "JUP_MINT",
    "USDC_MINT",
    "DEFAULT_NATIVE_PRICE_USD",
    "WHIRLPOOL_PROGRAM_ID",
    "WHIRLPOOLS_CONFIG_MAINNET",
    "WHIRLPOOL_TICK_SPACINGS",
    "Q64",
]
