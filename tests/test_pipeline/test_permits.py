"""
Permit Builder Test Suite
"""

import time

import pytest

from test_mocks import (
    MOCK_AMOUNT,
    MOCK_NOW,
    MOCK_ROUTER_ADDRESS,
    MOCK_SOURCE_TOKEN,
    create_config,
    mock_clock,
)

from permit_swap.evm.schemas import AllowanceTransferPermit, SignatureTransferPermit, UINT160_MAX
from permit_swap.pipeline.permits import PermitBuilder


class TestAllowanceTransferPermit:

    def test_fields(self):
        builder = PermitBuilder(create_config(), clock=mock_clock)
        permit = builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, nonce=7)

        assert isinstance(permit, AllowanceTransferPermit)
        assert permit.token == MOCK_SOURCE_TOKEN.address
        assert permit.amount == MOCK_AMOUNT
        assert permit.spender == MOCK_ROUTER_ADDRESS
        assert permit.nonce == 7
        assert permit.expiration == MOCK_NOW + 1800
        assert permit.sig_deadline == MOCK_NOW + 1800

    def test_custom_horizon(self):
        builder = PermitBuilder(create_config(), clock=mock_clock)
        permit = builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, 0, expiry_seconds=60)
        assert permit.expiration == MOCK_NOW + 60

    def test_deadlines_strictly_in_future_with_real_clock(self):
        before = int(time.time())
        permit = PermitBuilder(create_config()).build_permit(
            MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, 0
        )
        assert permit.expiration > before
        assert permit.sig_deadline > before

    @pytest.mark.parametrize("horizon", [0, -1])
    def test_non_positive_horizon_rejected(self, horizon):
        builder = PermitBuilder(create_config(), clock=mock_clock)
        with pytest.raises(ValueError):
            builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, 0, expiry_seconds=horizon)

    def test_amount_over_uint160_rejected(self):
        builder = PermitBuilder(create_config(), clock=mock_clock)
        with pytest.raises(ValueError):
            builder.build_permit(MOCK_SOURCE_TOKEN.address, UINT160_MAX + 1, MOCK_ROUTER_ADDRESS, 0)

    def test_deterministic(self):
        builder = PermitBuilder(create_config(), clock=mock_clock)
        a = builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, 3)
        b = builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, 3)
        assert a == b
        assert a.to_canonical_json() == b.to_canonical_json()


class TestSignatureTransferPermit:

    def test_fields(self):
        builder = PermitBuilder(create_config(permit_variant="SignatureTransfer"), clock=mock_clock)
        permit = builder.build_permit(MOCK_SOURCE_TOKEN.address, MOCK_AMOUNT, MOCK_ROUTER_ADDRESS, nonce=259)

        assert isinstance(permit, SignatureTransferPermit)
        assert permit.permitted.token == MOCK_SOURCE_TOKEN.address
        assert permit.amount == MOCK_AMOUNT
        assert permit.nonce == 259
        assert permit.deadline == MOCK_NOW + 1800
        assert permit.expiration == permit.sig_deadline == permit.deadline
