"""
Swap Pipeline Integration Test Suite

Runs the full stage chain over the mock chain and mock routing service.
"""

import dataclasses
from unittest.mock import AsyncMock, Mock

import pytest

from test_mocks import (
    MOCK_AMOUNT,
    MOCK_DEST_TOKEN,
    MOCK_GAS_PRICE,
    MOCK_NOW,
    MOCK_OTHER_PRIVATE_KEY,
    MOCK_OWNER_ADDRESS,
    MOCK_QUOTE,
    MOCK_ROUTER_ADDRESS,
    MOCK_SOURCE_TOKEN,
    UINT256_MAX,
    MockRoutingService,
    MockWeb3Provider,
    create_config,
    create_pipeline,
    create_route_payload,
    create_signer,
)

from permit_swap.evm.constants import get_token
from permit_swap.evm.schemas import PERMIT2_ADDRESS, AllowanceTransferPermit, SignatureTransferPermit
from permit_swap.pipeline.signing import PermitSigner
from permit_swap.pipeline.swap import SwapPipeline, build_pipeline
from permit_swap.engine.exceptions import (
    ApprovalFailed,
    ConfigurationError,
    NonceLookupFailed,
    RouteNotFound,
    SignatureVerificationFailed,
)


class TestScenarios:

    @pytest.mark.asyncio
    async def test_zero_allowance_first_swap(self):
        """0 allowance, 1,000,000 units of a 6-decimal token, first-ever permit."""
        w3 = MockWeb3Provider(erc20_allowance=0, permit2_nonce=0)
        routing = MockRoutingService()
        pipeline = create_pipeline(w3, routing)

        assert MOCK_SOURCE_TOKEN.decimals == 6
        result = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, 1_000_000)

        # one approval with the maximal sentinel, confirmed
        assert w3.approve_calls == [(PERMIT2_ADDRESS, UINT256_MAX)]
        assert result.allowance.approved is True
        # first-ever nonce
        assert result.nonce == 0
        assert isinstance(result.permit, AllowanceTransferPermit)
        assert result.permit.amount == 1_000_000
        assert result.permit.spender == MOCK_ROUTER_ADDRESS
        # signature verifies to the owner
        assert result.verified.recovered_signer == MOCK_OWNER_ADDRESS
        # non-zero quote and calldata
        assert result.route.quoted_output == MOCK_QUOTE > 0
        assert result.route.calldata.startswith("0x")
        # descriptor
        assert result.transaction.value == result.route.value
        assert result.transaction.gas_limit == 1_000_000
        assert result.transaction.gas_price == MOCK_GAS_PRICE
        assert result.transaction.to == MOCK_ROUTER_ADDRESS
        assert result.transaction.sender == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approval(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX, permit2_nonce=3)
        result = await create_pipeline(w3).run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        assert w3.allowance_reads == 1
        assert w3.approve_calls == []
        assert w3.sent_transactions == []
        assert result.allowance.approved is False
        assert result.nonce == 3

    @pytest.mark.asyncio
    async def test_signature_transfer_variant(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX, nonce_bitmaps={0: 0b11})
        pipeline = create_pipeline(w3, config=create_config(permit_variant="SignatureTransfer"))

        result = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        assert isinstance(result.permit, SignatureTransferPermit)
        assert result.nonce == 2
        assert result.permit.deadline == MOCK_NOW + 1800


class TestInvariants:

    @pytest.mark.asyncio
    async def test_nonce_fresh_across_runs(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX)
        pipeline = create_pipeline(w3)

        first = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        w3.consume_permit2_nonce()
        second = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        assert first.nonce != second.nonce
        assert first.signature != second.signature

    @pytest.mark.asyncio
    async def test_unordered_nonce_fresh_across_runs(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX)
        pipeline = create_pipeline(w3, config=create_config(permit_variant="SignatureTransfer"))

        first = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        w3.consume_bitmap_nonce(first.nonce)
        second = await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        assert first.nonce != second.nonce

    @pytest.mark.asyncio
    async def test_route_amount_equals_permit_amount(self):
        routing = MockRoutingService()
        result = await create_pipeline(MockWeb3Provider(erc20_allowance=UINT256_MAX), routing).run(
            MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, 123_456
        )

        request = routing.requests[0]
        assert request.amount == request.permit_amount == result.permit.amount == 123_456
        assert request.permit_signature == result.signature.to_packed_hex()

    @pytest.mark.asyncio
    async def test_deadlines_in_future(self):
        result = await create_pipeline(MockWeb3Provider(erc20_allowance=UINT256_MAX)).run(
            MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT
        )
        assert result.permit.expiration > MOCK_NOW
        assert result.permit.sig_deadline > MOCK_NOW


class TestFatalShortCircuit:

    @pytest.mark.asyncio
    async def test_signature_failure_stops_before_route_and_assembly(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX)
        config = create_config()
        pipeline = create_pipeline(w3, config=config)

        route_resolver = Mock()
        route_resolver.find_route = AsyncMock()
        assembler = Mock()
        deps = dataclasses.replace(
            pipeline.deps,
            signer=PermitSigner(create_signer(MOCK_OTHER_PRIVATE_KEY), config),
            route_resolver=route_resolver,
            assembler=assembler,
        )

        with pytest.raises(SignatureVerificationFailed):
            await SwapPipeline(deps).run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        route_resolver.find_route.assert_not_called()
        assembler.assemble.assert_not_called()

    @pytest.mark.asyncio
    async def test_approval_failure_stops_before_nonce(self):
        w3 = MockWeb3Provider(erc20_allowance=0, approve_status=0)
        routing = MockRoutingService()

        with pytest.raises(ApprovalFailed):
            await create_pipeline(w3, routing).run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)

        assert routing.requests == []

    @pytest.mark.asyncio
    async def test_nonce_failure_propagates(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX)
        w3.fail_permit2_reads = True
        routing = MockRoutingService()

        with pytest.raises(NonceLookupFailed):
            await create_pipeline(w3, routing).run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        assert routing.requests == []

    @pytest.mark.asyncio
    async def test_zero_quote_stops_before_assembly(self):
        w3 = MockWeb3Provider(erc20_allowance=UINT256_MAX)
        pipeline = create_pipeline(w3, MockRoutingService(create_route_payload(quote=0)))
        assembler = Mock()
        pipeline.deps = dataclasses.replace(pipeline.deps, assembler=assembler)

        with pytest.raises(RouteNotFound):
            await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        assembler.assemble.assert_not_called()

    @pytest.mark.asyncio
    async def test_allowance_raise_persists_after_later_failure(self):
        w3 = MockWeb3Provider(erc20_allowance=0)
        pipeline = create_pipeline(w3, MockRoutingService(create_route_payload(quote=0)))

        with pytest.raises(RouteNotFound):
            await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        assert w3.erc20_allowance == UINT256_MAX

        pipeline.deps.route_resolver._service.payload = create_route_payload()
        await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, MOCK_AMOUNT)
        assert len(w3.approve_calls) == 1


class TestRequestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, 1.5, True, "100"])
    async def test_invalid_amount(self, amount):
        pipeline = create_pipeline(MockWeb3Provider())
        with pytest.raises(ValueError):
            await pipeline.run(MOCK_SOURCE_TOKEN, MOCK_DEST_TOKEN, amount)

    @pytest.mark.asyncio
    async def test_same_token(self):
        with pytest.raises(ValueError):
            await create_pipeline(MockWeb3Provider()).run(MOCK_SOURCE_TOKEN, MOCK_SOURCE_TOKEN, MOCK_AMOUNT)

    @pytest.mark.asyncio
    async def test_token_on_other_chain(self):
        mainnet_weth = get_token(1, "WETH")
        with pytest.raises(ConfigurationError):
            await create_pipeline(MockWeb3Provider()).run(MOCK_SOURCE_TOKEN, mainnet_weth, MOCK_AMOUNT)

    def test_signer_must_match_wallet(self):
        with pytest.raises(ConfigurationError):
            build_pipeline(MockWeb3Provider(), create_signer(MOCK_OTHER_PRIVATE_KEY), create_config())
