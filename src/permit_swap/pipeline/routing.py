"""
Route Resolver

Asks an external routing service for swap calldata, an output quote and a
gas price estimate.  The optimizer itself is a black box behind the
``RoutingService`` interface; ``UniswapRoutingClient`` talks to the Uniswap
routing HTTP API.
"""

import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..evm.constants import SwapConfig, value_to_amount
from ..evm.schemas import Route, Token, VerifiedPermit
from ..engine.exceptions import AmountMismatch, AssemblyError, RouteNotFound

logger = logging.getLogger(__name__)

#: Only exact-input trades are supported: the permit fixes the input amount.
EXACT_INPUT = "exactIn"


class RouteRequest(BaseModel):
    """
    Everything the routing service needs for one swap attempt.

    Attributes:
        source: Token sold.
        dest: Token bought.
        amount: Exact input amount, smallest units.
        trade_type: ``"exactIn"``.
        recipient: Receiver of the output tokens.
        slippage_tolerance: Percent.
        deadline: Absolute UNIX timestamp for the swap.
        router_variant: ``"UNIVERSAL"`` or ``"SWAP_ROUTER_02"``.
        permit_nonce / permit_expiration / permit_amount / permit_sig_deadline:
            Fields of the signed permit.
        permit_signature: Packed 65-byte signature (hex).
    """

    model_config = ConfigDict(frozen=True)

    source: Token
    dest: Token
    amount: int = Field(..., gt=0)
    trade_type: str = EXACT_INPUT
    recipient: str
    slippage_tolerance: Decimal
    deadline: int
    router_variant: str
    permit_nonce: int
    permit_expiration: int
    permit_amount: int
    permit_sig_deadline: int
    permit_signature: str


class RoutingService(ABC):
    """Black-box route optimizer."""

    @abstractmethod
    async def route(self, request: RouteRequest) -> Dict[str, Any]:
        """
        Return ``{quote, methodParameters{calldata, value, to}, gasPriceWei}``.

        Raises:
            RouteNotFound: If the service reports an error or no route.
        """


class UniswapRoutingClient(RoutingService):
    """
    Routing service backed by the Uniswap routing HTTP API (``GET /quote``).

    Args:
        api_url: Full quote endpoint URL.
        client: Optional shared ``httpx.AsyncClient``; one is created per
            request when omitted.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.api_url = api_url
        self._client = client
        self._timeout = timeout
        self._clock = clock or time.time

    def build_params(self, request: RouteRequest) -> Dict[str, Any]:
        """Map a ``RouteRequest`` onto the API's query parameters."""
        return {
            "tokenInAddress": request.source.address,
            "tokenInChainId": request.source.chain_id,
            "tokenOutAddress": request.dest.address,
            "tokenOutChainId": request.dest.chain_id,
            "amount": str(request.amount),
            "type": request.trade_type,
            "recipient": request.recipient,
            "slippageTolerance": str(request.slippage_tolerance),
            "deadline": max(1, request.deadline - int(self._clock())),
            "enableUniversalRouter": "true" if request.router_variant == "UNIVERSAL" else "false",
            "permitSignature": request.permit_signature,
            "permitNonce": str(request.permit_nonce),
            "permitExpiration": str(request.permit_expiration),
            "permitAmount": str(request.permit_amount),
            "permitSigDeadline": str(request.permit_sig_deadline),
        }

    async def route(self, request: RouteRequest) -> Dict[str, Any]:
        params = self.build_params(request)
        try:
            if self._client is not None:
                response = await self._client.get(self.api_url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(self.api_url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RouteNotFound(
                f"Routing service returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RouteNotFound(f"Routing service request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise AssemblyError(f"Routing service returned non-JSON body: {exc}") from exc
        if not isinstance(payload, dict):
            raise AssemblyError(f"Routing service returned {type(payload).__name__}, expected an object")
        return payload


def _parse_int(value: Any, field: str) -> int:
    """Accept ints, decimal strings and 0x-prefixed hex strings."""
    if isinstance(value, bool):
        raise AssemblyError(f"Route field '{field}' is not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        except ValueError:
            pass
    raise AssemblyError(f"Route field '{field}' is not an integer: {value!r}")


def parse_route(payload: Dict[str, Any]) -> Route:
    """
    Convert a routing service payload into a ``Route``.

    Raises:
        RouteNotFound: If the quote is zero.
        AssemblyError: If a required field is missing or malformed.
    """
    if "quote" not in payload:
        raise AssemblyError("Route response has no 'quote'")
    quoted_output = _parse_int(payload["quote"], "quote")
    if quoted_output <= 0:
        raise RouteNotFound("Routing service quoted zero output")

    method_parameters = payload.get("methodParameters")
    if not isinstance(method_parameters, dict):
        raise AssemblyError("Route response has no 'methodParameters'")
    calldata = method_parameters.get("calldata")
    if not isinstance(calldata, str) or not calldata.startswith("0x"):
        raise AssemblyError(f"Route calldata is missing or not hex: {calldata!r}")

    gas_use = payload.get("gasUseEstimate")
    value = _parse_int(method_parameters.get("value", 0), "methodParameters.value")
    gas_price_wei = _parse_int(payload.get("gasPriceWei"), "gasPriceWei")
    gas_use_estimate = _parse_int(gas_use, "gasUseEstimate") if gas_use is not None else None
    try:
        return Route(
            quoted_output=quoted_output,
            calldata=calldata,
            to=method_parameters.get("to"),
            value=value,
            gas_price_wei=gas_price_wei,
            gas_use_estimate=gas_use_estimate,
        )
    except ValueError as exc:
        raise AssemblyError(f"Malformed route response: {exc}") from exc


class RouteResolver:
    """
    Requests a route for a verified permit.

    Only a ``VerifiedPermit`` is accepted, so no route is ever requested for
    an unverified signature.
    """

    def __init__(
        self,
        service: RoutingService,
        config: SwapConfig,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._service = service
        self._config = config
        self._clock = clock or time.time

    async def find_route(
        self,
        source: Token,
        dest: Token,
        amount: int,
        verified: VerifiedPermit,
        trade_type: str = EXACT_INPUT,
        recipient: Optional[str] = None,
        slippage_tolerance: Optional[Decimal] = None,
        deadline: Optional[int] = None,
    ) -> Route:
        """
        Ask the routing service for a route spending exactly the permitted
        amount.

        Args:
            source: Token sold; must be the permit's token.
            dest: Token bought.
            amount: Input amount; must equal the permit amount.
            verified: The permit and signature from the signer stage.
            trade_type: Only ``"exactIn"``.
            recipient: Defaults to the owner.
            slippage_tolerance: Percent; defaults to the configured value.
            deadline: Absolute swap deadline; defaults to
                ``now + route_deadline_seconds``.

        Raises:
            AmountMismatch: If ``amount`` or ``source`` differs from the permit.
            RouteNotFound: If the service errors or quotes zero output.
            AssemblyError: If the response is malformed.
        """
        if trade_type != EXACT_INPUT:
            raise ValueError(f"Unsupported trade type {trade_type!r}; only {EXACT_INPUT!r} is supported")

        permit = verified.permit
        if amount != permit.amount:
            raise AmountMismatch(
                f"Route amount {amount} differs from permitted amount {permit.amount}"
            )
        if source.address.lower() != permit.token.lower():
            raise AmountMismatch(
                f"Route source token {source.address} differs from permitted token {permit.token}"
            )

        request = RouteRequest(
            source=source,
            dest=dest,
            amount=amount,
            trade_type=trade_type,
            recipient=recipient or verified.owner,
            slippage_tolerance=(
                self._config.slippage_tolerance if slippage_tolerance is None else slippage_tolerance
            ),
            deadline=deadline or int(self._clock()) + self._config.route_deadline_seconds,
            router_variant=self._config.router_variant,
            permit_nonce=permit.nonce,
            permit_expiration=permit.expiration,
            permit_amount=permit.amount,
            permit_sig_deadline=permit.sig_deadline,
            permit_signature=verified.signature.to_packed_hex(),
        )

        route = parse_route(await self._service.route(request))
        logger.info(
            "route found: %s %s -> %s %s, calldata %d bytes",
            value_to_amount(value=amount, decimals=source.decimals), source.symbol,
            value_to_amount(value=route.quoted_output, decimals=dest.decimals), dest.symbol,
            (len(route.calldata) - 2) // 2,
        )
        return route
