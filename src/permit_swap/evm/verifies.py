"""
EVM Verification and State Query Helpers

Signature recovery
------------------
recover_typed_data_signer
    Recover the address that produced an EIP-712 signature.  Recovery is
    stateless: the caller compares the result against the expected owner.

On-chain reads
--------------
query_erc20_allowance
    ERC-20 ``allowance(owner, spender)`` on the source token.

query_permit2_allowance
    Permit2 ``allowance(owner, token, spender)``; the returned ``nonce`` is
    the next AllowanceTransfer nonce.

query_permit2_nonce_bitmap
    Permit2 ``nonceBitmap(owner, wordPos)`` for unordered SignatureTransfer
    nonces.
"""

from typing import Any, Dict, Tuple

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from .schemas import EVMECDSASignature
from .ERC20_ABI import (
    get_allowance_abi,
    get_permit2_allowance_abi,
    get_permit2_nonce_bitmap_abi,
)
from ..engine.exceptions import (
    AllowanceLookupFailed,
    NonceLookupFailed,
    SignatureVerificationFailed,
)


def recover_typed_data_signer(
    typed_data: Dict[str, Any],
    signature: EVMECDSASignature,
) -> str:
    """
    Recover the signer of an EIP-712 payload.

    Args:
        typed_data: ``{types, primaryType, domain, message}`` payload, exactly
            as it was handed to the signer.
        signature: (v, r, s) components.

    Returns:
        Checksummed address of the signer.

    Raises:
        SignatureVerificationFailed: If the payload cannot be encoded or the
            signature is not recoverable.
    """
    try:
        signable = encode_typed_data(full_message=typed_data)
        return Account.recover_message(
            signable,
            vrs=(signature.v, int(signature.r, 16), int(signature.s, 16)),
        )
    except (ValueError, TypeError, KeyError, BadSignature, KeyValidationError) as exc:
        raise SignatureVerificationFailed(f"Signature recovery failed: {exc}") from exc


async def query_erc20_allowance(w3: AsyncWeb3, token_addr: str, owner: str, spender: str) -> int:
    """
    Retrieves the amount of tokens that an owner allowed a spender to withdraw.

    This function calls the 'allowance(address,address)' constant method of an ERC20
    smart contract.

    Args:
        w3 (AsyncWeb3): The Web3 instance connected to the target blockchain.
        token_addr (str): The contract address of the ERC20 token.
        owner (str): The address of the token holder.
        spender (str): The address authorized to spend the tokens.

    Returns:
        int: The remaining allowance amount in the token's base units (e.g., wei).

    Raises:
        AllowanceLookupFailed: If an address is invalid, the contract call
            fails or the node returns an error.
    """
    try:
        checksum_token = AsyncWeb3.to_checksum_address(token_addr)
        checksum_owner = AsyncWeb3.to_checksum_address(owner)
        checksum_spender = AsyncWeb3.to_checksum_address(spender)

        contract = w3.eth.contract(address=checksum_token, abi=get_allowance_abi())
        allowance = await contract.functions.allowance(checksum_owner, checksum_spender).call()
        return int(allowance)

    except (Web3Exception, ValueError) as e:
        raise AllowanceLookupFailed(
            f"Failed to query allowance for token {token_addr}. "
            f"Owner: {owner}, Spender: {spender}. Error: {e}"
        ) from e


async def query_permit2_allowance(
    w3: AsyncWeb3,
    permit2_address: str,
    owner: str,
    token: str,
    spender: str,
) -> Tuple[int, int, int]:
    """
    Read Permit2's packed allowance for (owner, token, spender).

    Returns:
        ``(amount, expiration, nonce)``.

    Raises:
        NonceLookupFailed: If the call fails.
    """
    try:
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(permit2_address),
            abi=get_permit2_allowance_abi(),
        )
        amount, expiration, nonce = await contract.functions.allowance(
            AsyncWeb3.to_checksum_address(owner),
            AsyncWeb3.to_checksum_address(token),
            AsyncWeb3.to_checksum_address(spender),
        ).call()
        return int(amount), int(expiration), int(nonce)

    except (Web3Exception, ValueError) as e:
        raise NonceLookupFailed(
            f"Failed to read Permit2 allowance for owner {owner}, token {token}, "
            f"spender {spender}. Error: {e}"
        ) from e


async def query_permit2_nonce_bitmap(
    w3: AsyncWeb3,
    permit2_address: str,
    owner: str,
    word_pos: int,
) -> int:
    """
    Read one 256-bit word of the owner's unordered nonce bitmap.

    Raises:
        NonceLookupFailed: If the call fails.
    """
    try:
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(permit2_address),
            abi=get_permit2_nonce_bitmap_abi(),
        )
        bitmap = await contract.functions.nonceBitmap(
            AsyncWeb3.to_checksum_address(owner), word_pos
        ).call()
        return int(bitmap)

    except (Web3Exception, ValueError) as e:
        raise NonceLookupFailed(
            f"Failed to read Permit2 nonce bitmap word {word_pos} for owner {owner}. Error: {e}"
        ) from e
