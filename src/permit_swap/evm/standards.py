from dataclasses import dataclass, field
from typing import Dict, Any, List, Union

from .schemas import AllowanceTransferPermit, SignatureTransferPermit


# -----------------------------
# Permit2 EIP-712 Domain
# -----------------------------

@dataclass
class Permit2Domain:
    """
    EIP-712 domain of the Permit2 contract.

    Permit2 uses ``name="Permit2"`` with no ``version`` field; the chain ID
    and contract address bind a signature to one deployment.
    """
    chainId: int
    verifyingContract: str
    name: str = "Permit2"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


PERMIT2_DOMAIN_TYPE: List[Dict[str, str]] = [
    {"name": "name",              "type": "string"},
    {"name": "chainId",           "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


# -----------------------------
# Permit2: PermitSingle typed data (AllowanceTransfer)
# -----------------------------


@dataclass
class PermitSingleTypedData:
    """
    EIP-712 typed-data container for a Permit2 ``PermitSingle`` authorization.

    ``to_dict()`` produces a structure directly consumable by
    ``eth_account.Account.sign_typed_data(full_message=...)`` and
    ``eth_signTypedData_v4``.

    Attributes:
        domain:  Permit2 domain (chain + contract).
        permit:  The allowance-transfer permit being authorized.
        types:   EIP-712 type schema for ``PermitSingle`` and its nested
                 ``PermitDetails`` struct (rarely needs to be overridden).
    """

    domain: Permit2Domain
    permit: AllowanceTransferPermit

    primary_type: str = "PermitSingle"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "PermitSingle": [
                {"name": "details",     "type": "PermitDetails"},
                {"name": "spender",     "type": "address"},
                {"name": "sigDeadline", "type": "uint256"},
            ],
            "PermitDetails": [
                {"name": "token",      "type": "address"},
                {"name": "amount",     "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce",      "type": "uint48"},
            ],
        }
    )

    def values(self) -> Dict[str, Any]:
        """Return the message values keyed by their EIP-712 field names."""
        details = self.permit.details
        return {
            "details": {
                "token": details.token,
                "amount": details.amount,
                "expiration": details.expiration,
                "nonce": details.nonce,
            },
            "spender": self.permit.spender,
            "sigDeadline": self.permit.sig_deadline,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Return a dict compatible with EIP-712 structured signing.

        The returned structure follows the conventional layout consumed by
        EIP-712 signing libraries: { types, primaryType, domain, message }.
        """
        return {
            "types": {"EIP712Domain": PERMIT2_DOMAIN_TYPE, **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.values(),
        }


# -----------------------------
# Permit2: PermitTransferFrom typed data (SignatureTransfer)
# -----------------------------


@dataclass
class PermitTransferFromTypedData:
    """
    EIP-712 typed-data container for a Permit2 ``PermitTransferFrom``
    authorization.

    Types embed both ``PermitTransferFrom`` and its nested
    ``TokenPermissions`` sub-struct.
    """

    domain: Permit2Domain
    permit: SignatureTransferPermit

    primary_type: str = "PermitTransferFrom"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "PermitTransferFrom": [
                {"name": "permitted", "type": "TokenPermissions"},
                {"name": "spender",   "type": "address"},
                {"name": "nonce",     "type": "uint256"},
                {"name": "deadline",  "type": "uint256"},
            ],
            "TokenPermissions": [
                {"name": "token",  "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
        }
    )

    def values(self) -> Dict[str, Any]:
        return {
            "permitted": {
                "token": self.permit.permitted.token,
                "amount": self.permit.permitted.amount,
            },
            "spender": self.permit.spender,
            "nonce": self.permit.nonce,
            "deadline": self.permit.deadline,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": {"EIP712Domain": PERMIT2_DOMAIN_TYPE, **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.values(),
        }


Permit2TypedData = Union[PermitSingleTypedData, PermitTransferFromTypedData]


def get_permit_typed_data(
    permit: Union[AllowanceTransferPermit, SignatureTransferPermit],
    permit2_address: str,
    chain_id: int,
) -> Permit2TypedData:
    """
    Build the ``{domain, types, values}`` envelope for either permit variant.

    Signing and verification both go through this function, so the digest
    recovered during verification is computed from exactly the same
    structure that was signed.

    Args:
        permit:          Allowance- or signature-transfer permit.
        permit2_address: Permit2 contract (EIP-712 ``verifyingContract``).
        chain_id:        EVM network ID (EIP-712 ``chainId``).

    Returns:
        The typed-data container matching the permit variant.

    Raises:
        TypeError: If ``permit`` is not one of the two Permit2 variants.
    """
    domain = Permit2Domain(chainId=chain_id, verifyingContract=permit2_address)
    if isinstance(permit, AllowanceTransferPermit):
        return PermitSingleTypedData(domain=domain, permit=permit)
    if isinstance(permit, SignatureTransferPermit):
        return PermitTransferFromTypedData(domain=domain, permit=permit)
    raise TypeError(f"Unsupported permit type: {type(permit).__name__}")
