from .schemas import (
    PERMIT2_ADDRESS,
    Token,
    PermitDetails,
    AllowanceTransferPermit,
    TokenPermissions,
    SignatureTransferPermit,
    PermitTypes,
    EVMECDSASignature,
    SignedPermit,
    VerifiedPermit,
    AllowanceCheck,
    Route,
    TransactionDescriptor,
)
from .standards import get_permit_typed_data
from .constants import (
    SwapConfig,
    build_swap_config,
    load_swap_config,
    get_token,
    amount_to_value,
    value_to_amount,
)
from .signatures import (
    LocalAccountSigner,
    get_signer_from_env,
    approve_erc20,
)
from .verifies import (
    recover_typed_data_signer,
    query_erc20_allowance,
    query_permit2_allowance,
    query_permit2_nonce_bitmap,
)

__all__ = [
    "PERMIT2_ADDRESS",
    "Token",
    "PermitDetails",
    "AllowanceTransferPermit",
    "TokenPermissions",
    "SignatureTransferPermit",
    "PermitTypes",
    "EVMECDSASignature",
    "SignedPermit",
    "VerifiedPermit",
    "AllowanceCheck",
    "Route",
    "TransactionDescriptor",
    "get_permit_typed_data",
    "SwapConfig",
    "build_swap_config",
    "load_swap_config",
    "get_token",
    "amount_to_value",
    "value_to_amount",
    "LocalAccountSigner",
    "get_signer_from_env",
    "approve_erc20",
    "recover_typed_data_signer",
    "query_erc20_allowance",
    "query_permit2_allowance",
    "query_permit2_nonce_bitmap",
]
