"""Chain access: gateway, transfer dispatch and transaction verification."""

from pakchain.services.blockchain.chain_gateway import (
    ChainGateway,
    Web3ChainGateway,
)
from pakchain.services.blockchain.chain_verifier import (
    ChainVerifier,
    VerificationReason,
    VerificationResult,
)
from pakchain.services.blockchain.transfer_dispatcher import (
    DispatchResult,
    TransferDispatcher,
    TransferTarget,
)

__all__ = [
    "ChainGateway",
    "ChainVerifier",
    "DispatchResult",
    "TransferDispatcher",
    "TransferTarget",
    "VerificationReason",
    "VerificationResult",
    "Web3ChainGateway",
]
