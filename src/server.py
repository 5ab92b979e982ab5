"""Protean Engine runner for the bulk buy domain.

Only needed when event processing is asynchronous (PROTEAN_ENV=production):
the Engine reads campaign events from the broker and runs the CampaignBoard
projector and the purchasing event handler.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import asyncio

from protean.server.engine import Engine


async def run():
    from bulkbuy.domain import bulkbuy

    bulkbuy.init()
    await Engine(bulkbuy).run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
