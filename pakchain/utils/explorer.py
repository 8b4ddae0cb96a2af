"""Block explorer links for verified transactions."""

from pakchain.config.constants import EXPLORER_BASE_URLS, MAINNET_CHAIN_ID


def explorer_base_url(chain_id: int, override: str | None = None) -> str:
    """
    Explorer root for a chain.

    Unknown chains fall back to the mainnet explorer.
    """
    if override:
        return override.rstrip("/")
    return EXPLORER_BASE_URLS.get(chain_id, EXPLORER_BASE_URLS[MAINNET_CHAIN_ID])


def explorer_tx_url(
    tx_hash: str, chain_id: int, override: str | None = None
) -> str:
    """
    Link to a transaction: ``{explorerBaseUrl}/tx/{hash}``.

    Examples:
        >>> explorer_tx_url("0xabc", 11155111)
        'https://sepolia.etherscan.io/tx/0xabc'
    """
    return f"{explorer_base_url(chain_id, override)}/tx/{tx_hash}"
