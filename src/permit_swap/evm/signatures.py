"""
EVM Signing Utilities

Local key custody and the two write paths the swap pipeline needs:

LocalAccountSigner
    Wraps an ``eth_account`` local account.  Signs EIP-712 typed data
    (Permit2 permits) and raw transactions (the ERC-20 approval) in-process;
    no RPC calls are made and the key never leaves the object.

approve_erc20
    Build, sign and broadcast an ERC-20 ``approve`` and wait, with a
    deadline, for its receipt.
"""

import logging
from typing import Any, Dict, Tuple

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as KeyValidationError
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.types import TxReceipt

from .schemas import EVMECDSASignature
from .ERC20_ABI import get_approve_abi
from .constants import (
    DEFAULT_APPROVAL_TIMEOUT,
    DEFAULT_APPROVAL_POLL_LATENCY,
    get_wallet_secret_from_env,
)
from ..engine.exceptions import ApprovalFailed, ConfigurationError

logger = logging.getLogger(__name__)

#: Gas limit used when ``estimate_gas`` fails (common if balance is 0).
FALLBACK_APPROVE_GAS: int = 100_000


class LocalAccountSigner:
    """
    In-process secp256k1 signer for the swap owner.

    Args:
        private_key: Hex-encoded private key (with or without ``0x`` prefix).

    Raises:
        ConfigurationError: If the key cannot be parsed.

    Example::

        signer = LocalAccountSigner("0xYOUR_PRIVATE_KEY")
        sig = signer.sign_typed_data(typed_data.to_dict())
    """

    def __init__(self, private_key: str) -> None:
        if not private_key:
            raise ConfigurationError("Private key is required for signing.")
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except (ValueError, TypeError, KeyValidationError) as exc:
            raise ConfigurationError(f"Invalid private key: {exc}") from exc

    @property
    def address(self) -> str:
        """Checksummed address derived from the key."""
        return self._account.address

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> EVMECDSASignature:
        """
        Sign an EIP-712 ``{types, primaryType, domain, message}`` payload.

        Returns:
            EVMECDSASignature: The (v, r, s) components.
        """
        signed = self._account.sign_typed_data(full_message=typed_data)
        return EVMECDSASignature.from_components(signed.v, signed.r, signed.s)

    def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        """Sign a transaction dict and return the raw encoded transaction."""
        signed_tx = self._account.sign_transaction(transaction)
        return signed_tx.raw_transaction

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"


def get_signer_from_env() -> LocalAccountSigner:
    """
    Build the owner's signer from ``WALLET_SECRET``.

    Raises:
        ConfigurationError: If the variable is unset or holds an invalid key.
    """
    private_key = get_wallet_secret_from_env()
    if not private_key:
        raise ConfigurationError("WALLET_SECRET environment variable is not set")
    return LocalAccountSigner(private_key)


async def approve_erc20(
    w3: AsyncWeb3,
    token_addr: str,
    signer: LocalAccountSigner,
    spender: str,
    amount: int,
    *,
    timeout: float = DEFAULT_APPROVAL_TIMEOUT,
    poll_latency: float = DEFAULT_APPROVAL_POLL_LATENCY,
) -> Tuple[str, TxReceipt]:
    """
    Asynchronously signs and broadcasts an ERC20 approve transaction and
    waits for it to be mined.

    Args:
        w3: An instance of AsyncWeb3.
        token_addr: The contract address of the ERC20 token.
        signer: Signer holding the owner's key.
        spender: The address authorized to spend the tokens.
        amount: The raw amount (in wei) to approve.
        timeout: Seconds to wait for the receipt.
        poll_latency: Seconds between receipt polls.

    Returns:
        A tuple of (transaction_hash_hex, transaction_receipt).

    Raises:
        ApprovalFailed: If broadcasting fails, the receipt does not arrive
            within ``timeout``, or the transaction reverted.
    """
    sender_addr = signer.address
    token_checksum = AsyncWeb3.to_checksum_address(token_addr)
    spender_checksum = AsyncWeb3.to_checksum_address(spender)
    contract = w3.eth.contract(address=token_checksum, abi=get_approve_abi())

    try:
        nonce = await w3.eth.get_transaction_count(sender_addr)
        chain_id = await w3.eth.chain_id
    except (Web3Exception, ValueError) as exc:
        raise ApprovalFailed(f"Failed to prepare approval transaction: {exc}") from exc

    tx_params: Dict[str, Any] = {
        "chainId": chain_id,
        "from": sender_addr,
        "nonce": nonce,
    }

    # Gas estimation with 10% buffer
    try:
        gas_estimate = await contract.functions.approve(
            spender_checksum, amount
        ).estimate_gas({"from": sender_addr})
        tx_params["gas"] = int(gas_estimate * 1.1)
    except (Web3Exception, ValueError) as exc:
        logger.debug("approve gas estimation failed, using %s: %s", FALLBACK_APPROVE_GAS, exc)
        tx_params["gas"] = FALLBACK_APPROVE_GAS

    # Dynamic Gas Fee Handling (EIP-1559)
    try:
        fee_history = await w3.eth.fee_history(1, "latest", [25.0])
        base_fee = fee_history["baseFeePerGas"][-1]
        priority_fee = fee_history["reward"][0][0]

        # 2x base fee absorbs base fee volatility
        tx_params["maxPriorityFeePerGas"] = priority_fee
        tx_params["maxFeePerGas"] = (base_fee * 2) + priority_fee
    except (Web3Exception, ValueError, KeyError, IndexError):
        # Legacy gas price
        try:
            tx_params["gasPrice"] = await w3.eth.gas_price
        except (Web3Exception, ValueError) as exc:
            raise ApprovalFailed(f"Failed to price approval transaction: {exc}") from exc

    try:
        transaction = await contract.functions.approve(
            spender_checksum, amount
        ).build_transaction(tx_params)
        raw_tx = signer.sign_transaction(transaction)
        tx_hash = await w3.eth.send_raw_transaction(raw_tx)
    except (Web3Exception, ValueError) as exc:
        raise ApprovalFailed(f"Failed to broadcast approval for {token_checksum}: {exc}") from exc

    tx_hex = AsyncWeb3.to_hex(tx_hash)
    logger.info("approval broadcast: token=%s spender=%s tx=%s", token_checksum, spender_checksum, tx_hex)

    try:
        receipt = await w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=poll_latency
        )
    except TimeExhausted as exc:
        raise ApprovalFailed(
            f"Approval {tx_hex} not mined within {timeout}s", tx_hash=tx_hex
        ) from exc
    except (Web3Exception, ValueError) as exc:
        raise ApprovalFailed(
            f"Failed to fetch receipt for approval {tx_hex}: {exc}", tx_hash=tx_hex
        ) from exc

    if receipt["status"] != 1:
        raise ApprovalFailed(
            f"Approval transaction failed: {tx_hex}", tx_hash=tx_hex, receipt=dict(receipt)
        )
    return tx_hex, receipt

