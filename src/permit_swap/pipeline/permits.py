"""
Permit Builder

Pure construction of Permit2 authorizations; no I/O.
"""

import time
from typing import Callable, Optional, Union

from ..evm.constants import SwapConfig
from ..evm.schemas import (
    AllowanceTransferPermit,
    PermitDetails,
    SignatureTransferPermit,
    TokenPermissions,
)


class PermitBuilder:
    """
    Builds the permit variant selected by ``SwapConfig.permit_variant``.

    Args:
        config: Swap configuration.
        clock: Returns the current UNIX time in seconds.  Defaults to
            ``time.time``.
    """

    def __init__(self, config: SwapConfig, clock: Optional[Callable[[], float]] = None) -> None:
        self._config = config
        self._clock = clock or time.time

    def build_permit(
        self,
        token: str,
        amount: int,
        spender: str,
        nonce: int,
        expiry_seconds: Optional[int] = None,
    ) -> Union[AllowanceTransferPermit, SignatureTransferPermit]:
        """
        Build an unsigned permit.

        Expiration and signature deadline share one horizon:
        ``now + expiry_seconds``.  Both are strictly in the future at
        construction.

        Args:
            token: Source token address.
            amount: Exact smallest-unit amount that will be swapped.
            spender: Router allowed to pull the tokens.
            nonce: Value from the nonce source.
            expiry_seconds: Horizon; defaults to
                ``SwapConfig.permit_expiry_seconds``.

        Raises:
            ValueError: If ``expiry_seconds`` is not positive or a field is
                out of its on-chain range.
        """
        horizon = self._config.permit_expiry_seconds if expiry_seconds is None else expiry_seconds
        if horizon <= 0:
            raise ValueError(f"expiry_seconds must be positive, got {horizon}")

        now = int(self._clock())
        deadline = now + horizon

        if self._config.permit_variant == "SignatureTransfer":
            return SignatureTransferPermit(
                permitted=TokenPermissions(token=token, amount=amount),
                spender=spender,
                nonce=nonce,
                deadline=deadline,
            )
        return AllowanceTransferPermit(
            details=PermitDetails(
                token=token,
                amount=amount,
                expiration=deadline,
                nonce=nonce,
            ),
            spender=spender,
            sig_deadline=deadline,
        )
