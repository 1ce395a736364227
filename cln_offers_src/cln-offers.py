#!/usr/bin/env python3
"""
Core Lightning plugin managing BOLT12 offers and invoice requests.
To run install the project (pip install .), then set plugin=/path/to/cln-offers.py in the CLN config
or start it with `lightning-cli plugin start /path/to/cln-offers.py`.
"""

import asyncio
import sys
import traceback
from offers.cln_offers_provider import CLNOffersProvider


async def main():
    """main function starting the plugin"""
    try:
        offers_provider = CLNOffersProvider()
        await offers_provider.run()
    except Exception as e:
        # will show e in the CLN logs
        print(f"ERROR: cln-offers plugin crashed: {e}\n{traceback.format_exc()}",
              file=sys.stderr)

if __name__ == "__main__":
    asyncio.run(main())
