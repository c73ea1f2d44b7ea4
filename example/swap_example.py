from permit_swap import build_pipeline_from_env, get_token, amount_to_value
from permit_swap.evm.constants import SEPOLIA_CHAIN_ID

# Reads RPC_URL, WALLET_ADDRESS, WALLET_SECRET and optionally UNISWAP_ROUTER,
# PERMIT_VARIANT, ROUTING_API_URL from the environment (or a .env file).


def swap_pair(chain_id):
    # Sepolia has no registered USDT
    source_symbol = "USDC" if chain_id == SEPOLIA_CHAIN_ID else "USDT"
    return get_token(chain_id, source_symbol), get_token(chain_id, "WETH")


async def main():
    pipeline = await build_pipeline_from_env()
    source, dest = swap_pair(pipeline.config.chain_id)

    return await pipeline.run(source, dest, amount_to_value(amount="1.5", decimals=source.decimals))


if __name__ == "__main__":
    import asyncio
    result = asyncio.run(main())
    print("Quoted output:", result.route.quoted_output)
    print("Transaction:", result.transaction.to_tx_params())
