"""
Signer / Verifier

Signs a permit's EIP-712 typed data with the owner's key and immediately
recovers the signer from the identical structure.  Only a permit whose
recovered signer equals the owner leaves this stage, as a ``VerifiedPermit``.
"""

import logging
from typing import Any, Dict, List, Union

from ..evm.constants import SwapConfig
from ..evm.schemas import (
    AllowanceTransferPermit,
    EVMECDSASignature,
    SignatureTransferPermit,
    SignedPermit,
    VerifiedPermit,
)
from ..evm.standards import PERMIT2_DOMAIN_TYPE, get_permit_typed_data
from ..evm.signatures import LocalAccountSigner
from ..evm.verifies import recover_typed_data_signer
from ..engine.exceptions import SignatureVerificationFailed

logger = logging.getLogger(__name__)


def _primary_type(types: Dict[str, List[Dict[str, str]]]) -> str:
    """The one struct in ``types`` that no other struct references."""
    structs = [name for name in types if name != "EIP712Domain"]
    referenced = {
        member["type"]
        for name in structs
        for member in types[name]
    }
    roots = [name for name in structs if name not in referenced]
    if len(roots) != 1:
        raise SignatureVerificationFailed(
            f"Cannot determine primary type from {sorted(structs)}"
        )
    return roots[0]


def verify_typed_data(
    domain: Dict[str, Any],
    types: Dict[str, List[Dict[str, str]]],
    values: Dict[str, Any],
    signature: EVMECDSASignature,
) -> str:
    """
    Recover the signer of ``(domain, types, values)``.

    Stateless and keyless: anyone holding the message and the signature can
    call it.

    Returns:
        Checksummed signer address.

    Raises:
        SignatureVerificationFailed: If the structure cannot be encoded or
            the signature is not recoverable.
    """
    full_types = dict(types)
    full_types.setdefault("EIP712Domain", PERMIT2_DOMAIN_TYPE)
    return recover_typed_data_signer(
        {
            "types": full_types,
            "primaryType": _primary_type(full_types),
            "domain": domain,
            "message": values,
        },
        signature,
    )


class PermitSigner:
    """
    Signs and verifies Permit2 permits for the configured owner.

    The signer's key stays inside ``LocalAccountSigner``; this class only
    sees typed data and signatures.
    """

    def __init__(self, signer: LocalAccountSigner, config: SwapConfig) -> None:
        self._signer = signer
        self._config = config

    def sign(self, permit: Union[AllowanceTransferPermit, SignatureTransferPermit]) -> SignedPermit:
        """Sign ``permit`` under the Permit2 domain of the configured chain."""
        typed_data = get_permit_typed_data(permit, self._config.permit2_address, self._config.chain_id)
        signature = self._signer.sign_typed_data(typed_data.to_dict())
        return SignedPermit(
            permit=permit,
            signature=signature,
            owner=self._config.wallet_address,
            chain_id=self._config.chain_id,
            permit2_address=self._config.permit2_address,
        )

    def verify(self, signed: SignedPermit) -> VerifiedPermit:
        """
        Recover the signer of ``signed`` and compare it with its owner.

        Raises:
            SignatureVerificationFailed: If the recovered address is not the
                owner.
        """
        typed_data = get_permit_typed_data(signed.permit, signed.permit2_address, signed.chain_id)
        recovered = verify_typed_data(
            typed_data.domain.to_dict(),
            typed_data.types,
            typed_data.values(),
            signed.signature,
        )
        if recovered.lower() != signed.owner.lower():
            raise SignatureVerificationFailed(
                f"Recovered signer {recovered} does not match owner {signed.owner}",
                expected=signed.owner,
                recovered=recovered,
            )
        logger.info("permit signature verified, signer %s", recovered)
        return VerifiedPermit(signed=signed, recovered_signer=recovered)

    def sign_and_verify(
        self, permit: Union[AllowanceTransferPermit, SignatureTransferPermit]
    ) -> VerifiedPermit:
        return self.verify(self.sign(permit))
