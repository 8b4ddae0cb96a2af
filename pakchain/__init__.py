"""PakChain Aid donation ledger."""

__version__ = "0.1.0"
