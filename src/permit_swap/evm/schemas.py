"""
EVM Swap Schema Models

Pydantic models for every artifact the swap pipeline creates.  All classes
inherit from the base schema hierarchy in ``schemas.bases``; per-swap
artifacts are frozen so a stage can never mutate what an earlier stage
produced.

Value objects:
    - Token: Immutable ERC-20 description; identity is (chain_id, address).

Permit classes (closed set, discriminated by ``permit_type``):
    - AllowanceTransferPermit: Permit2 ``PermitSingle`` (details + spender +
      sigDeadline).
    - SignatureTransferPermit: Permit2 ``PermitTransferFrom`` (permitted +
      spender + nonce + deadline).

Signature classes:
    - EVMECDSASignature: v/r/s signature with packed-hex helper.
    - SignedPermit: A permit together with the one signature produced for it.
    - VerifiedPermit: A signed permit whose signer has been recovered and
      matched against the owner.  Only ``PermitSigner.verify`` creates these.

Result classes:
    - AllowanceCheck: Outcome of the allowance gate.
    - Route: Execution plan returned by the routing service.
    - TransactionDescriptor: Ready-to-submit swap transaction.
"""

from typing import Optional, Dict, Any, Literal, Union

from typing_extensions import Annotated
from pydantic import AfterValidator, Field, field_validator
from web3 import Web3

from ..schemas.bases import FrozenModel


#: Canonical Uniswap Permit2 singleton address (same on all EVM networks).
PERMIT2_ADDRESS: str = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

UINT48_MAX: int = 2**48 - 1
UINT160_MAX: int = 2**160 - 1
UINT256_MAX: int = 2**256 - 1


def _checksum(value: str) -> str:
    if not isinstance(value, str) or not value.startswith("0x") or len(value) != 42:
        raise ValueError(f"expected a 0x-prefixed 42-character address, got {value!r}")
    return Web3.to_checksum_address(value)


#: Address string, checksummed on validation.
Address = Annotated[str, AfterValidator(_checksum)]


class Token(FrozenModel):
    """
    Immutable ERC-20 token description.

    Created once at configuration time.  Two tokens are equal when they share
    ``chain_id`` and ``address``, whatever their display metadata says.

    Attributes:
        chain_id: EVM network ID the contract lives on.
        address: Token contract address (checksummed on validation).
        decimals: Decimal precision of the smallest unit.
        symbol: Ticker symbol (e.g. ``"USDT"``).
        name: Display name (e.g. ``"USD Tether"``).

    Example::

        usdt = Token(
            chain_id=1,
            address="0xdAC17F958D2ee523a2206206994597C13D831ec7",
            decimals=6,
            symbol="USDT",
            name="USD Tether",
        )
    """

    chain_id: int = Field(..., ge=1, description="EVM network ID")
    address: Address = Field(..., description="Token contract address")
    decimals: int = Field(..., ge=0, le=255, description="Token decimals")
    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(..., description="Display name")

    @property
    def identity(self) -> tuple:
        return (self.chain_id, self.address.lower())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


# ---------------------------------------------------------------------------
# Permits
# ---------------------------------------------------------------------------


class PermitDetails(FrozenModel):
    """
    Permit2 ``PermitDetails`` struct (AllowanceTransfer).

    Attributes:
        token: ERC-20 token contract address.
        amount: Allowance granted to the spender, smallest units (uint160).
        expiration: Unix timestamp at which the Permit2 allowance lapses (uint48).
        nonce: Ordered per (owner, token, spender) nonce (uint48).
    """

    token: Address = Field(..., description="ERC-20 token contract address")
    amount: int = Field(..., ge=0, le=UINT160_MAX, description="Amount in smallest units (uint160)")
    expiration: int = Field(..., ge=0, le=UINT48_MAX, description="Allowance expiration (uint48)")
    nonce: int = Field(..., ge=0, le=UINT48_MAX, description="Ordered nonce (uint48)")


class AllowanceTransferPermit(FrozenModel):
    """
    Permit2 ``PermitSingle`` authorization (AllowanceTransfer scheme).

    Grants ``spender`` a time-bound Permit2 allowance of ``details.amount``
    over ``details.token``.  The signature itself is only accepted until
    ``sig_deadline``.

    Example::

        permit = AllowanceTransferPermit(
            details=PermitDetails(token="0xdAC1...1ec7", amount=1_000_000,
                                  expiration=1_900_000_000, nonce=0),
            spender="0x3fC9...7FAD",
            sig_deadline=1_900_000_000,
        )
    """

    permit_type: Literal["AllowanceTransfer"] = Field(
        default="AllowanceTransfer", description="Permit variant identifier"
    )
    details: PermitDetails = Field(..., description="Token, amount, expiration and nonce")
    spender: Address = Field(..., description="Router / relay allowed to use the permit")
    sig_deadline: int = Field(..., ge=0, description="Unix timestamp after which the signature is invalid")

    @property
    def token(self) -> str:
        return self.details.token

    @property
    def amount(self) -> int:
        return self.details.amount

    @property
    def nonce(self) -> int:
        return self.details.nonce

    @property
    def expiration(self) -> int:
        return self.details.expiration


class TokenPermissions(FrozenModel):
    """Permit2 ``TokenPermissions`` struct (SignatureTransfer)."""

    token: Address = Field(..., description="ERC-20 token contract address")
    amount: int = Field(..., ge=0, le=UINT256_MAX, description="Maximum transferable amount")


class SignatureTransferPermit(FrozenModel):
    """
    Permit2 ``PermitTransferFrom`` authorization (SignatureTransfer scheme).

    A one-shot transfer authorization: the nonce is an unordered bitmap
    position, and a single ``deadline`` bounds both the signature and the
    transfer.  ``expiration`` and ``sig_deadline`` are exposed as aliases
    of ``deadline`` so both variants share one read interface.
    """

    permit_type: Literal["SignatureTransfer"] = Field(
        default="SignatureTransfer", description="Permit variant identifier"
    )
    permitted: TokenPermissions = Field(..., description="Token and maximum amount")
    spender: Address = Field(..., description="Router / relay allowed to use the permit")
    nonce: int = Field(..., ge=0, le=UINT256_MAX, description="Unordered bitmap nonce")
    deadline: int = Field(..., ge=0, description="Unix timestamp after which the permit is invalid")

    @property
    def token(self) -> str:
        return self.permitted.token

    @property
    def amount(self) -> int:
        return self.permitted.amount

    @property
    def expiration(self) -> int:
        return self.deadline

    @property
    def sig_deadline(self) -> int:
        return self.deadline


# Closed set of permit variants, selected by the `permit_type` field.
PermitTypes = Annotated[
    Union[
        AllowanceTransferPermit,  # permit_type: "AllowanceTransfer"
        SignatureTransferPermit,  # permit_type: "SignatureTransfer"
    ],
    Field(discriminator="permit_type"),
]


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


class EVMECDSASignature(FrozenModel):
    """
    EVM ECDSA signature (v, r, s).

    Attributes:
        v: ECDSA recovery ID (27 or 28).
        r: Signature ``r`` component (0x-prefixed, 64 hex chars).
        s: Signature ``s`` component (0x-prefixed, 64 hex chars).

    Example::

        sig = EVMECDSASignature(v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.to_packed_hex()  # "0xaaaa...bbbb1b"
    """

    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 0x-prefixed hex)")
    s: str = Field(..., description="Signature s component (32 bytes, 0x-prefixed hex)")

    @field_validator("r", "s")
    @classmethod
    def _validate_component(cls, value: str) -> str:
        hex_str = value[2:] if value.startswith(("0x", "0X")) else value
        if len(hex_str) > 64:
            raise ValueError(f"expected at most 64 hex chars, got {len(hex_str)}")
        try:
            int(hex_str, 16)
        except ValueError:
            raise ValueError("not valid hexadecimal")
        return "0x" + hex_str.lower().zfill(64)

    @classmethod
    def from_components(cls, v: int, r: int, s: int) -> "EVMECDSASignature":
        """Build from the integer components eth_account returns."""
        return cls(v=v, r=hex(r), s=hex(s))

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        This is the ``bytes signature`` argument Permit2 and the routers
        expect.

        Returns:
            0x-prefixed 132-character hex string.
        """
        return "0x" + self.r[2:] + self.s[2:] + format(self.v, "02x")


class SignedPermit(FrozenModel):
    """
    A permit paired with the single signature produced over it.

    Attributes:
        permit: The permit exactly as signed.
        signature: Owner's signature over the permit's typed data.
        owner: Address expected to have produced ``signature``.
        chain_id: Chain ID used in the EIP-712 domain.
        permit2_address: Permit2 contract used as ``verifyingContract``.
    """

    permit: PermitTypes
    signature: EVMECDSASignature
    owner: Address
    chain_id: int = Field(..., ge=1)
    permit2_address: Address = Field(default=PERMIT2_ADDRESS)


class VerifiedPermit(FrozenModel):
    """
    A signed permit whose signer was recovered and matched against the owner.

    The route resolver only accepts this type, so a route can never be
    requested for a signature that has not been verified.
    """

    signed: SignedPermit
    recovered_signer: str

    @property
    def permit(self) -> Union[AllowanceTransferPermit, SignatureTransferPermit]:
        return self.signed.permit

    @property
    def signature(self) -> EVMECDSASignature:
        return self.signed.signature

    @property
    def owner(self) -> str:
        return self.signed.owner


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class AllowanceCheck(FrozenModel):
    """
    Outcome of the allowance gate for one swap attempt.

    Attributes:
        token: Source token contract address.
        owner: Token owner.
        spender: Permit authority holding the allowance.
        allowance: Allowance read from the token contract (re-read after
            any approval).
        approval_tx_hash: Hash of the approval transaction, when one was sent.
    """

    token: str
    owner: str
    spender: str
    allowance: int = Field(..., ge=0)
    approval_tx_hash: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.approval_tx_hash is not None


class Route(FrozenModel):
    """
    Execution plan returned by the routing service.

    Produced fresh per swap attempt and never cached.

    Attributes:
        quoted_output: Expected output amount in the destination token's
            smallest units.
        calldata: Router calldata (0x-prefixed hex).
        to: Contract the calldata targets, when the service reports it.
        value: Native currency to attach, wei.
        gas_price_wei: Gas price estimate, wei.
        gas_use_estimate: Optional gas usage estimate from the service.
    """

    quoted_output: int = Field(..., ge=0)
    calldata: str
    to: Optional[str] = None
    value: int = Field(default=0, ge=0)
    gas_price_wei: int = Field(..., ge=0)
    gas_use_estimate: Optional[int] = Field(default=None, ge=0)


class TransactionDescriptor(FrozenModel):
    """
    Ready-to-submit swap transaction.

    Terminal artifact of the pipeline; ownership ends at the hand-off to an
    external submission collaborator.

    Attributes:
        data: Router calldata, copied verbatim from the route.
        to: Router contract address.
        value: Native currency to attach, copied verbatim from the route.
        sender: Transaction ``from`` address.
        gas_price: Gas price, wei.
        gas_limit: Gas limit.
    """

    data: str
    to: Address
    value: int = Field(..., ge=0)
    sender: Address
    gas_price: int = Field(..., ge=0)
    gas_limit: int = Field(..., gt=0)

    def to_tx_params(self) -> Dict[str, Any]:
        """Render as a web3 ``TxParams`` dict for ``eth_sendTransaction``."""
        return {
            "data": self.data,
            "to": self.to,
            "value": self.value,
            "from": self.sender,
            "gasPrice": self.gas_price,
            "gas": self.gas_limit,
        }
