import asyncio
import logging
import sys

from calcbot_session import ChatSession


async def main(verbose: bool = False) -> int:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    session = ChatSession(lambda text: print(f"bot> {text}"))
    session.open()
    await session.drain()

    while True:
        try:
            msg = await asyncio.to_thread(input, "> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if msg.strip() in ("quit", "exit"):
            break
        session.submit(msg)
        # Input stays gated until the bot has answered
        await session.drain()

    await session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main("-v" in sys.argv[1:])))
