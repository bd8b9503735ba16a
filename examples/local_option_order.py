"""Local Option Order Example.

This example builds a dual-signed option order against a local node, stores
it in the relayer, and prints the ``fillOrderArgs`` a taker would send.

Prerequisites:
1. pip install options-relayer-sdk
2. A local node with the limit order protocol and OptionNFT deployed
3. Set environment variables (see the ``options_relayer_sdk.config`` docstring)
   plus PRIVATE_KEY, UNDERLYING_ASSET, STRIKE_ASSET and DUMMY_TOKEN_ADDRESS

Usage:
    python local_option_order.py
"""

import asyncio
import os
import time

from dotenv import load_dotenv

load_dotenv()


async def main():
    from options_relayer_sdk import (
        LocalTypedDataSigner,
        OptionOrderRequest,
        OptionsRelayer,
        configure_logging,
        load_config_from_env,
    )
    from options_relayer_sdk.orders import parse_units
    from options_relayer_sdk.orders.wire import fill_args_to_wire

    required = ["PRIVATE_KEY", "UNDERLYING_ASSET", "STRIKE_ASSET", "DUMMY_TOKEN_ADDRESS"]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(f"Missing required environment variables: {', '.join(missing)}")
        return

    config = load_config_from_env()
    configure_logging(config.log_level)

    print("=" * 60)
    print("  OPTION ORDER ON A LOCAL NODE")
    print("=" * 60)

    signer = LocalTypedDataSigner(os.environ["PRIVATE_KEY"])
    async with OptionsRelayer.from_config(config, signer=signer) as relayer:
        print(f"\n[1] Maker: {await signer.get_address()}")

        request = OptionOrderRequest(
            underlying_asset=os.environ["UNDERLYING_ASSET"],
            strike_asset=os.environ["STRIKE_ASSET"],
            dummy_token_address=os.environ["DUMMY_TOKEN_ADDRESS"],
            strike_price=parse_units("2000", 6),
            option_amount=parse_units("1", 18),
            premium=parse_units("50", 6),
            expiry=int(time.time()) + 7 * 86400,
        )

        print("\n[2] Building and storing order...")
        stored = await relayer.create_order(request)
        print(f"    Order hash: {stored.order_hash}")
        print(f"    Option salt: {stored.complete_order.salt}")
        print(f"    Option digest: 0x{stored.complete_order.option_digest.hex()}")

        print("\n[3] Fill arguments for a taker:")
        fill_args = await relayer.prepare_fill(stored.order_hash, request.option_amount)
        for key, value in fill_args_to_wire(fill_args).items():
            print(f"    {key}: {value}")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
