"""Provides an interactive prompt for sending commands."""

import asyncio
import logging

import fbrconpy as rcon

IP_ADDR = "XXX.XXX.XXX.XXX"
PORT = 47200
PASSWORD = "PASSWORD"

log = logging.getLogger("fbrconpy")
log.setLevel(logging.WARNING)
handler = logging.StreamHandler()
handler.setFormatter(
    logging.Formatter("%(asctime)s:%(levelname)s:%(name)s: %(message)s")
)
log.addHandler(handler)

client = rcon.RCONClient()


async def ainput():
    return await asyncio.to_thread(input)


@client.dispatch.on_ready
async def on_ready():
    print(", ".join(client.commands))


@client.dispatch.on_event
async def on_event(name: str, args: list[str]):
    if name == "player.onChat" and len(args) >= 2:
        print(f"{args[0]}: {args[1]}")
    else:
        print(name, *args)


async def main():
    async with client.connect(IP_ADDR, PORT, PASSWORD):
        while True:
            command = await ainput()

            if command.lower() == "#players":
                for p in await client.list_players():
                    print(p)
            elif command.lower() == "#quit":
                await client.quit()
                break
            else:
                try:
                    response = await client.send_command(command)
                except rcon.RCONCommandError as e:
                    print(e)
                else:
                    print(response)


if __name__ == "__main__":
    asyncio.run(main())
