"""
Data model, EIP-712 typed data and local signer tests.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import TypeAdapter

from permit_swap.evm.schemas import (
    PERMIT2_ADDRESS,
    AllowanceTransferPermit,
    EVMECDSASignature,
    PermitDetails,
    PermitTypes,
    SignatureTransferPermit,
    Token,
    TokenPermissions,
    UINT48_MAX,
)
from permit_swap.evm.standards import (
    PermitSingleTypedData,
    PermitTransferFromTypedData,
    get_permit_typed_data,
)
from permit_swap.evm.signatures import LocalAccountSigner, get_signer_from_env
from permit_swap.evm.verifies import recover_typed_data_signer
from permit_swap.engine.exceptions import ConfigurationError

PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
TOKEN = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
ROUTER = "0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD"


def allowance_permit(**overrides) -> AllowanceTransferPermit:
    details = dict(token=TOKEN, amount=1_000_000, expiration=1_900_000_000, nonce=0)
    details.update(overrides)
    return AllowanceTransferPermit(details=PermitDetails(**details), spender=ROUTER, sig_deadline=1_900_000_000)


class TestToken:

    def test_address_checksummed(self):
        token = Token(chain_id=1, address=TOKEN.lower(), decimals=6, symbol="USDC", name="USD Coin")
        assert token.address == TOKEN

    def test_invalid_address(self):
        with pytest.raises(ValueError):
            Token(chain_id=1, address="0xabc", decimals=6, symbol="X", name="X")

    def test_immutable(self):
        token = Token(chain_id=1, address=TOKEN, decimals=6, symbol="USDC", name="USD Coin")
        with pytest.raises(ValueError):
            token.decimals = 18


class TestPermits:

    def test_uint48_bounds(self):
        with pytest.raises(ValueError):
            allowance_permit(nonce=UINT48_MAX + 1)

    def test_discriminated_union(self):
        adapter = TypeAdapter(PermitTypes)
        parsed = adapter.validate_python(allowance_permit().to_dict())
        assert isinstance(parsed, AllowanceTransferPermit)

        transfer = SignatureTransferPermit(
            permitted=TokenPermissions(token=TOKEN, amount=5), spender=ROUTER, nonce=1, deadline=2
        )
        assert isinstance(adapter.validate_python(transfer.to_dict()), SignatureTransferPermit)

    def test_shared_read_interface(self):
        permit = allowance_permit()
        assert (permit.token, permit.amount, permit.nonce) == (TOKEN, 1_000_000, 0)
        assert permit.expiration == permit.sig_deadline == 1_900_000_000


class TestSignatureModel:

    def test_components_normalized(self):
        sig = EVMECDSASignature(v=27, r="0xAB", s="cd")
        assert sig.r == "0x" + "0" * 62 + "ab"
        assert sig.s == "0x" + "0" * 62 + "cd"

    def test_packed_hex(self):
        sig = EVMECDSASignature(v=28, r="0x" + "a" * 64, s="0x" + "b" * 64)
        assert sig.to_packed_hex() == "0x" + "a" * 64 + "b" * 64 + "1c"

    def test_bad_v(self):
        with pytest.raises(ValueError):
            EVMECDSASignature(v=1, r="0x01", s="0x01")

    def test_non_hex(self):
        with pytest.raises(ValueError):
            EVMECDSASignature(v=27, r="0xzz", s="0x01")


class TestTypedData:

    def test_permit_single_shape(self):
        typed = get_permit_typed_data(allowance_permit(), PERMIT2_ADDRESS, 1)
        assert isinstance(typed, PermitSingleTypedData)

        payload = typed.to_dict()
        assert payload["primaryType"] == "PermitSingle"
        assert payload["domain"] == {"name": "Permit2", "chainId": 1, "verifyingContract": PERMIT2_ADDRESS}
        assert [f["name"] for f in payload["types"]["PermitDetails"]] == ["token", "amount", "expiration", "nonce"]
        assert payload["message"]["details"]["amount"] == 1_000_000
        assert payload["message"]["sigDeadline"] == 1_900_000_000

    def test_permit_transfer_from_shape(self):
        transfer = SignatureTransferPermit(
            permitted=TokenPermissions(token=TOKEN, amount=5), spender=ROUTER, nonce=1, deadline=2
        )
        typed = get_permit_typed_data(transfer, PERMIT2_ADDRESS, 11155111)
        assert isinstance(typed, PermitTransferFromTypedData)
        assert typed.to_dict()["message"] == {
            "permitted": {"token": TOKEN, "amount": 5},
            "spender": ROUTER,
            "nonce": 1,
            "deadline": 2,
        }

    def test_encoding_is_deterministic(self):
        a = get_permit_typed_data(allowance_permit(), PERMIT2_ADDRESS, 1).to_dict()
        b = get_permit_typed_data(allowance_permit(), PERMIT2_ADDRESS, 1).to_dict()
        assert a == b

    def test_unsupported_permit(self):
        with pytest.raises(TypeError):
            get_permit_typed_data(object(), PERMIT2_ADDRESS, 1)


class TestLocalAccountSigner:

    def test_sign_and_recover(self):
        signer = LocalAccountSigner(PRIVATE_KEY)
        payload = get_permit_typed_data(allowance_permit(), PERMIT2_ADDRESS, 1).to_dict()

        signature = signer.sign_typed_data(payload)

        assert recover_typed_data_signer(payload, signature) == signer.address

    def test_repr_hides_key(self):
        signer = LocalAccountSigner(PRIVATE_KEY)
        assert PRIVATE_KEY[2:] not in repr(signer)
        assert signer.address in repr(signer)

    def test_invalid_key(self):
        with pytest.raises(ConfigurationError):
            LocalAccountSigner("0x1234")

    def test_empty_key(self):
        with pytest.raises(ConfigurationError):
            LocalAccountSigner("")

    def test_from_env(self):
        with patch.dict(os.environ, {"WALLET_SECRET": PRIVATE_KEY}):
            assert get_signer_from_env().address == LocalAccountSigner(PRIVATE_KEY).address

    def test_from_env_missing(self):
        with patch.dict(os.environ, {"WALLET_SECRET": ""}):
            with pytest.raises(ConfigurationError, match="WALLET_SECRET"):
                get_signer_from_env()


def test_top_level_package_exposes_models():
    import permit_swap
    from permit_swap.schemas import FrozenModel

    assert permit_swap.Token is Token
    assert issubclass(Token, FrozenModel)
