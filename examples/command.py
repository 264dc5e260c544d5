"""Sends a command to an RCON server."""
import asyncio
import logging

import fbrconpy as rcon

IP_ADDR = "XXX.XXX.XXX.XXX"
PORT = 47200
PASSWORD = "PASSWORD"

log = logging.getLogger("fbrconpy")
log.setLevel(logging.DEBUG)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s:%(levelname)s:%(name)s: %(message)s"))
log.addHandler(handler)

client = rcon.RCONClient()


async def main():
    async with client.connect(IP_ADDR, PORT, PASSWORD):
        print(await client.version())
        for player in await client.list_players():
            print(player)


if __name__ == "__main__":
    asyncio.run(main())
