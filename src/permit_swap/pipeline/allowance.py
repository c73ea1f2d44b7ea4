"""
Allowance Gate

Ensures the Permit2 contract holds a sufficient ERC-20 allowance over the
owner's source token before any permit is built.  This is the only stage
that writes on-chain state.
"""

import asyncio
import logging
from typing import Dict, Tuple

from web3 import AsyncWeb3

from ..evm.constants import SwapConfig, MAX_APPROVAL_AMOUNT
from ..evm.schemas import AllowanceCheck
from ..evm.signatures import LocalAccountSigner, approve_erc20
from ..evm.verifies import query_erc20_allowance
from ..engine.exceptions import ApprovalFailed

logger = logging.getLogger(__name__)


class AllowanceGate:
    """
    Reads and, when insufficient, raises the allowance a spender holds over
    an owner's token.

    Approval writes are serialized per (owner, spender, token) so that
    concurrent attempts never broadcast overlapping approvals.  The
    allowance is always read from the chain, never cached.
    """

    def __init__(self, w3: AsyncWeb3, signer: LocalAccountSigner, config: SwapConfig) -> None:
        self._w3 = w3
        self._signer = signer
        self._config = config
        self._locks: Dict[Tuple[str, str, str], asyncio.Lock] = {}

    def _lock_for(self, owner: str, spender: str, token: str) -> asyncio.Lock:
        # Locks live as long as the gate; the triples are bounded by the configured tokens and spenders.
        key = (owner.lower(), spender.lower(), token.lower())
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def ensure_allowance(
        self,
        token: str,
        owner: str,
        spender: str,
        required_amount: int,
    ) -> AllowanceCheck:
        """
        Make sure ``spender`` may move at least ``required_amount`` of
        ``owner``'s ``token``.

        With a sufficient allowance this is a single read and no write.
        Otherwise the allowance is raised to the maximal sentinel, the
        approval is awaited, and the allowance is re-read.

        Raises:
            AllowanceLookupFailed: If the allowance cannot be read.
            ApprovalFailed: If the approval reverts, times out, or leaves the
                allowance still insufficient.
        """
        if required_amount < 0:
            raise ValueError("required_amount must be non-negative")

        async with self._lock_for(owner, spender, token):
            current = await query_erc20_allowance(self._w3, token, owner, spender)
            logger.info("allowance for %s on %s: %s (required %s)", spender, token, current, required_amount)

            if current > 0 and current >= required_amount:
                return AllowanceCheck(token=token, owner=owner, spender=spender, allowance=current)

            tx_hash, receipt = await approve_erc20(
                self._w3,
                token,
                self._signer,
                spender,
                MAX_APPROVAL_AMOUNT,
                timeout=self._config.approval_timeout,
                poll_latency=self._config.approval_poll_latency,
            )
            logger.info("approval confirmed in block %s: %s", receipt.get("blockNumber"), tx_hash)

            refreshed = await query_erc20_allowance(self._w3, token, owner, spender)
            if refreshed < required_amount:
                raise ApprovalFailed(
                    f"Allowance still {refreshed} after approval {tx_hash}; required {required_amount}",
                    tx_hash=tx_hash,
                    receipt=dict(receipt),
                )
            return AllowanceCheck(
                token=token,
                owner=owner,
                spender=spender,
                allowance=refreshed,
                approval_tx_hash=tx_hash,
            )
