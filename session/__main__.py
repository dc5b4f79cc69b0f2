import argparse
import asyncio
import logging

from .models import HostConfig
from .protocol import (
    MessageType,
    NextGameReady,
    PlayerReady,
    ProceedTurn,
    TokenSelect,
    TurnReady,
    create_message,
)
from .server import HostServer

HELP = "Commands: start, ready, go, take <n>, proceed, next"


async def _operator(server: HostServer) -> None:
    # Host-side console; seat commands only apply when the host plays too.
    loop = asyncio.get_running_loop()
    host_id = server.config.host_id
    while True:
        line = await loop.run_in_executor(None, input, "")
        command, _, arg = line.strip().partition(" ")
        command = command.lower()
        if command == "start":
            await server.start_match()
            continue
        if not server.config.host_name:
            print(HELP)
            continue
        if command == "ready":
            await server.submit_local(create_message(MessageType.PLAYER_READY, PlayerReady(host_id, True)))
        elif command == "go":
            await server.submit_local(create_message(MessageType.TURN_READY, TurnReady(host_id)))
        elif command == "take" and arg.isdigit():
            await server.submit_local(create_message(MessageType.TOKEN_ACTION, TokenSelect(host_id, int(arg))))
        elif command == "proceed":
            await server.submit_local(create_message(MessageType.PROCEED_TURN, ProceedTurn(host_id)))
        elif command == "next":
            await server.submit_local(create_message(MessageType.NEXT_GAME_READY, NextGameReady(host_id)))
        else:
            print(HELP)


async def _serve(server: HostServer) -> None:
    await asyncio.gather(server.start(), _operator(server))


def main() -> None:
    parser = argparse.ArgumentParser(description="Rank tokens host server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--host-name", default=None, help="Seat the host as a player with this name")
    parser.add_argument("--auto-start", action="store_true", help="Start once every lobby player is ready")
    parser.add_argument("--join-timeout", type=float, default=5.0, help="Seconds to wait for JOIN_REQUEST")
    parser.add_argument("--seed", type=int, default=None, help="Seed for shuffles and card backs")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    config = HostConfig(
        host=args.host,
        port=args.port,
        host_name=args.host_name,
        auto_start=args.auto_start,
        join_timeout_s=args.join_timeout,
        seed=args.seed,
    )

    server = HostServer(config)
    asyncio.run(_serve(server))


if __name__ == "__main__":
    main()
