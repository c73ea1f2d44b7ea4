"""
Transaction Assembler

Turns a route into a ready-to-submit transaction descriptor.  Nothing is
transmitted here.
"""

import logging
from typing import Optional

from ..evm.constants import SwapConfig
from ..evm.schemas import Route, TransactionDescriptor
from ..engine.exceptions import AssemblyError

logger = logging.getLogger(__name__)


class TransactionAssembler:
    """Builds ``TransactionDescriptor`` objects for the configured router."""

    def __init__(self, config: SwapConfig) -> None:
        self._config = config

    def assemble(
        self,
        route: Route,
        destination: Optional[str] = None,
        sender: Optional[str] = None,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> TransactionDescriptor:
        """
        Combine route calldata and gas parameters into a descriptor.

        Calldata and value are copied verbatim from ``route``.  The gas price
        is the route's estimate unless ``gas_price`` is given; the gas limit
        is ``SwapConfig.gas_limit`` unless ``gas_limit`` is given.

        Args:
            route: Route from the resolver.
            destination: Router contract; defaults to the configured router.
            sender: Transaction sender; defaults to the configured wallet.
            gas_limit: Gas limit override.
            gas_price: Gas price override, wei.

        Raises:
            AssemblyError: If the calldata is not hex, the route targets a
                contract other than ``destination``, or an override is invalid.
        """
        destination = destination or self._config.router_address
        sender = sender or self._config.wallet_address

        data = route.calldata
        if not data.startswith("0x") or len(data) % 2 != 0:
            raise AssemblyError(f"Route calldata is not 0x-prefixed even-length hex: {data[:18]}...")
        try:
            bytes.fromhex(data[2:])
        except ValueError as exc:
            raise AssemblyError(f"Route calldata is not valid hex: {exc}") from exc

        if route.to is not None and route.to.lower() != destination.lower():
            raise AssemblyError(
                f"Route targets {route.to}, expected router {destination}"
            )

        try:
            descriptor = TransactionDescriptor(
                data=data,
                to=destination,
                value=route.value,
                sender=sender,
                gas_price=route.gas_price_wei if gas_price is None else gas_price,
                gas_limit=self._config.gas_limit if gas_limit is None else gas_limit,
            )
        except ValueError as exc:
            raise AssemblyError(f"Invalid transaction parameters: {exc}") from exc

        logger.info(
            "transaction assembled: to=%s value=%s gas=%s gasPrice=%s",
            descriptor.to, descriptor.value, descriptor.gas_limit, descriptor.gas_price,
        )
        logger.debug("transaction descriptor: %s", descriptor.to_canonical_json())
        return descriptor
