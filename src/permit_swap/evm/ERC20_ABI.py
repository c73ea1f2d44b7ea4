"""
ERC20 + Permit2 Smart Contract ABI Module

Minimal ABI fragments for the contract calls the swap pipeline makes:
ERC-20 ``allowance`` / ``approve`` on the source token, and the Permit2
``allowance`` / ``nonceBitmap`` views used to derive permit nonces.

Usage:
    from .ERC20_ABI import (
        get_allowance_abi,
        get_approve_abi,
        get_permit2_allowance_abi,
        get_permit2_nonce_bitmap_abi,
    )

    # Read the allowance Permit2 holds over the owner's token
    allowance_abi = get_allowance_abi()

    # Read the AllowanceTransfer nonce for (owner, token, spender)
    permit2_abi = get_permit2_allowance_abi()
"""

from typing import Dict, Any, List


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `allowance(owner, spender)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `allowance` function.

    Example:
        abi = get_allowance_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        allowance = await contract.functions.allowance(owner, spender).call()
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `approve(spender, amount)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `approve` function.
    Example:
        abi = get_approve_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        tx = await contract.functions.approve(spender, amount).build_transaction({...})
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_permit2_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for Permit2 ``allowance(owner, token, spender)``.

    The AllowanceTransfer half of Permit2 keeps a packed record per
    (owner, token, spender)::

        struct PackedAllowance { uint160 amount; uint48 expiration; uint48 nonce; }

    The ``nonce`` member is the next nonce a ``PermitSingle`` must carry.

    Returns:
        List[Dict[str, Any]]: ABI containing the ``allowance`` view.
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "token", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [
                {"name": "amount", "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce", "type": "uint48"},
            ],
        }
    ]


def get_permit2_nonce_bitmap_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for Permit2 ``nonceBitmap(owner, wordPos)``.

    SignatureTransfer nonces are unordered: each owner has a mapping of
    256-bit words, and a nonce ``n`` is consumed by flipping bit ``n & 0xff``
    of word ``n >> 8``.

    Returns:
        List[Dict[str, Any]]: ABI containing the ``nonceBitmap`` view.
    """
    return [
        {
            "name": "nonceBitmap",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "wordPos", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]
