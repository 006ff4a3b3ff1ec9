import argparse
import asyncio
import sys

import httpx
from dotenv import load_dotenv

from mystic_relay.app_config import load_json_config, parse_app_config
from mystic_relay.client import ClientSession, HttpConnector, Message, MessageStore, Role
from mystic_relay.logging_config import setup_logging

_ROLE_PREFIX = {
    Role.USER: "you> ",
    Role.RESPONDER: "mystic> ",
}


class ConsoleRenderer:
    """Prints responder messages as they stream in.

    Only the new tail of a growing message is written. When a message is
    rewritten (final text or failure notice) it is printed again in full.
    """

    def __init__(self, out=None):
        self._out = out or sys.stdout
        self._printed: dict[int, str] = {}

    def __call__(self, event: str, index: int, message: Message | None) -> None:
        if event == "reset":
            self._printed.clear()
            return
        if message is None or message.role is not Role.RESPONDER:
            return

        printed = self._printed.get(index)
        if printed is None:
            self._write("\n" + _ROLE_PREFIX[message.role] + message.content)
        elif message.content.startswith(printed):
            self._write(message.content[len(printed):])
        else:
            self._write("\n" + _ROLE_PREFIX[message.role] + message.content)
        self._printed[index] = message.content

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()


async def run_chat(base_url: str, endpoint_path: str, side_payload_delay: float) -> None:
    store = MessageStore()
    store.subscribe(ConsoleRenderer())

    timeout = httpx.Timeout(10.0, read=None)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        session = ClientSession(
            HttpConnector(client, endpoint_path),
            store,
            side_payload_delay=side_payload_delay,
        )
        try:
            await session.start_conversation()
            await session.wait()
            print("\n")

            while True:
                try:
                    user_input = input("you> ")
                except (EOFError, KeyboardInterrupt):
                    break

                trimmed = user_input.strip()
                if trimmed in ("exit", "quit"):
                    break
                if trimmed == "/new":
                    await session.start_conversation()
                elif not await session.submit(trimmed):
                    continue

                await session.wait()
                print("\n")
        finally:
            await session.aclose()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    config = parse_app_config(load_json_config())

    parser = argparse.ArgumentParser(description="Chat with the mystic fortune teller over SSE.")
    parser.add_argument("--url", default=f"http://{config.host}:{config.port}", help="relay base URL")
    parser.add_argument("--path", default=config.endpoint_path, help="fortune endpoint path")
    args = parser.parse_args(argv)

    setup_logging(level=config.log_level, profile="chat")

    print("mystic-chat (type 'exit' to quit, '/new' for a new reading)")
    asyncio.run(run_chat(args.url, args.path, config.side_payload_delay_seconds))


if __name__ == "__main__":
    main()
