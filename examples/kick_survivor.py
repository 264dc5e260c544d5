"""Kicks players that join with the "Survivor" name."""
import asyncio
import math
import re

import fbrconpy as rcon

IP_ADDR = "XXX.XXX.XXX.XXX"
PORT = 47200
PASSWORD = "PASSWORD"

client = rcon.RCONClient()


@client.dispatch.on_event
async def on_event(name: str, args: list[str]):
    if name != "player.onJoin" or not args:
        return

    player = args[0]
    if re.match(r"Survivor(?: \(\d+\))?", player) is not None:
        await client.send_command(
            ["admin.kickPlayer", player, "Name 'Survivor' not allowed"]
        )


async def main():
    async with client.connect(IP_ADDR, PORT, PASSWORD):
        await asyncio.sleep(math.inf)


if __name__ == "__main__":
    asyncio.run(main())
