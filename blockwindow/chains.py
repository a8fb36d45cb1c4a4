"""Chain identities known to the block window cache."""

from enum import IntEnum


class Chain(IntEnum):
    """EVM chains keyed by their chain id."""

    MAINNET = 1
    OPTIMISM = 10
    BSC = 56
    GNOSIS = 100
    POLYGON = 137
    SONIC = 146
    MANTLE = 5000
    BASE = 8453
    MODE = 34443
    ARBITRUM = 42161
    AVALANCHE = 43114
    LINEA = 59144
    SCROLL = 534352

    @classmethod
    def from_id(cls, chain_id: int) -> "Chain":
        """Look up a chain by id, raising ``ValueError`` for unknown ids."""
        try:
            return cls(int(chain_id))
        except ValueError:
            raise ValueError(f"Unknown chain ID: {chain_id}") from None

    def __str__(self) -> str:
        return self.name.lower()
