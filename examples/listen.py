"""Listens to an RCON server for events."""

import asyncio
import logging
import math

import fbrconpy as rcon

IP_ADDR = "XXX.XXX.XXX.XXX"
PORT = 47200
PASSWORD = "PASSWORD"

log = logging.getLogger("fbrconpy")
log.setLevel(logging.DEBUG)
handler = logging.StreamHandler()
handler.setFormatter(
    logging.Formatter("%(asctime)s:%(levelname)s:%(name)s: %(message)s")
)
log.addHandler(handler)

client = rcon.RCONClient()


@client.dispatch.on_login
async def on_login():
    print("on_login")


@client.dispatch.on_ready
async def on_ready():
    print(f"on_ready: {len(client.commands)} commands, {len(client.vars)} vars")


@client.dispatch.on_event
async def on_event(name: str, args: list[str]):
    print("on_event:", name, args)


@client.dispatch.on_command
async def server_response_to_command(response: list[str]):
    print("on_command:", response)


async def main():
    async with client.connect(IP_ADDR, PORT, PASSWORD):
        await asyncio.sleep(math.inf)


if __name__ == "__main__":
    asyncio.run(main())
