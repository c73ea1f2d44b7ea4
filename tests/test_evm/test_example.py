"""
Example script token selection across every supported chain.
"""

import importlib.util
from pathlib import Path

import pytest

from permit_swap.evm.constants import SUPPORTED_CHAIN_IDS

EXAMPLE_PATH = Path(__file__).resolve().parents[2] / "example" / "swap_example.py"


@pytest.fixture(scope="module")
def swap_example():
    spec = importlib.util.spec_from_file_location("swap_example", EXAMPLE_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.parametrize("chain_id", SUPPORTED_CHAIN_IDS)
def test_swap_pair_resolves_on_every_chain(swap_example, chain_id):
    source, dest = swap_example.swap_pair(chain_id)

    assert source.chain_id == dest.chain_id == chain_id
    assert dest.symbol == "WETH"
    assert source != dest


def test_swap_pair_uses_usdt_where_registered(swap_example):
    source, _ = swap_example.swap_pair(5)
    assert source.symbol == "USDT"
