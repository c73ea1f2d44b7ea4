"""
Nonce Source

Resolves the next unused Permit2 nonce, fresh from the chain on every call.
"""

import logging

from web3 import AsyncWeb3

from ..evm.constants import SwapConfig
from ..evm.verifies import query_permit2_allowance, query_permit2_nonce_bitmap
from ..engine.exceptions import NonceLookupFailed

logger = logging.getLogger(__name__)

#: Upper bound on bitmap words scanned for a free SignatureTransfer nonce.
MAX_BITMAP_WORDS: int = 16

_FULL_WORD = (1 << 256) - 1


def lowest_unset_bit(bitmap: int) -> int:
    """Index of the lowest zero bit in a 256-bit word, or -1 if the word is full."""
    if bitmap >= _FULL_WORD:
        return -1
    inverted = ~bitmap & _FULL_WORD
    return (inverted & -inverted).bit_length() - 1


class NonceSource:
    """
    Reads Permit2 nonce state.

    AllowanceTransfer nonces are ordered: the next one is the ``nonce``
    member of ``allowance(owner, token, spender)``.  SignatureTransfer nonces
    are unordered: the lowest unused bit across the owner's bitmap words.
    """

    def __init__(self, w3: AsyncWeb3, config: SwapConfig) -> None:
        self._w3 = w3
        self._config = config

    async def next_nonce(self, token: str, owner: str, spender: str) -> int:
        """
        Next valid nonce for (token, owner, spender) under the configured
        permit variant.

        Raises:
            NonceLookupFailed: If the Permit2 read fails or no free
                SignatureTransfer nonce was found within the scan bound.
        """
        if self._config.permit_variant == "SignatureTransfer":
            nonce = await self._next_unordered_nonce(owner)
        else:
            _, _, nonce = await query_permit2_allowance(
                self._w3, self._config.permit2_address, owner, token, spender
            )
        logger.info("permit2 nonce for %s: %s", owner, nonce)
        return nonce

    async def _next_unordered_nonce(self, owner: str) -> int:
        for word_pos in range(MAX_BITMAP_WORDS):
            bitmap = await query_permit2_nonce_bitmap(
                self._w3, self._config.permit2_address, owner, word_pos
            )
            bit = lowest_unset_bit(bitmap)
            if bit >= 0:
                return (word_pos << 8) | bit
        raise NonceLookupFailed(
            f"No unused Permit2 nonce in the first {MAX_BITMAP_WORDS} bitmap words for {owner}"
        )
