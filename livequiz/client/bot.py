"""Scripted players (and optionally an admin) for smoke-testing a coordinator.

    livequiz-bot --players 20 --quiz quiz.json --interval 5

Each bot player joins under ``<prefix><n>`` and answers every question with a
random option. With ``--quiz`` an admin bot loads the question set, advances
every ``--interval`` seconds and prints the final leaderboard.
"""
import argparse
import asyncio
import json
import logging
import random
from pathlib import Path

from .common import AdminSession, PlayerSession, random_strategy
from .ws_client import WSClient

logger = logging.getLogger(__name__)


async def run_player(url: str, session: PlayerSession, ended: asyncio.Event):
    async def on_event(message: dict):
        await session.on_event(message)
        if session.ended:
            ended.set()

    client = WSClient(url, on_event, handshake=session.handshake())
    session.send = client.send
    task = asyncio.create_task(client.start())
    try:
        await ended.wait()
    finally:
        client.stop()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


async def run_admin(url: str, session: AdminSession, questions: list, interval: float, ended: asyncio.Event):
    async def on_event(message: dict):
        await session.on_event(message)
        if session.ended:
            ended.set()

    client = WSClient(url, on_event, handshake=session.handshake())
    session.send = client.send
    task = asyncio.create_task(client.start())
    try:
        if not await client.wait_until_connected(timeout=10):
            raise ConnectionError(f"Could not reach {url}")
        await session.start_quiz(questions)
        while not session.ended:
            await asyncio.sleep(interval)
            await session.next_question()
            # give the final quiz_ended frame a moment to arrive
            await asyncio.sleep(0.2)
    finally:
        client.stop()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


async def run(args) -> list:
    rng = random.Random(args.seed)
    ended = asyncio.Event()

    async def _noop(payload: dict):
        return None

    players = [
        PlayerSession(
            send=_noop,
            name=f"{args.prefix}{i + 1}",
            strategy=random_strategy(rng, args.skip_rate),
        )
        for i in range(args.players)
    ]
    tasks = [asyncio.create_task(run_player(args.url, p, ended)) for p in players]

    admin = None
    if args.quiz:
        questions = json.loads(Path(args.quiz).read_text())
        admin = AdminSession(send=_noop, passphrase=args.passphrase)
        # let players register before the first question goes out
        await asyncio.sleep(1.0)
        tasks.append(asyncio.create_task(run_admin(args.url, admin, questions, args.interval, ended)))

    await asyncio.gather(*tasks)
    return admin.leaders if admin else players[0].leaders if players else []


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="LiveQuiz scripted clients")
    parser.add_argument("--url", default="ws://localhost:3001/", help="Coordinator WebSocket URL")
    parser.add_argument("--players", "-n", type=int, default=5, help="Number of bot players")
    parser.add_argument("--prefix", default="bot-", help="Player name prefix")
    parser.add_argument("--quiz", help="JSON file with a question list; enables the admin bot")
    parser.add_argument("--passphrase", default=None, help="Admin passphrase")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between questions")
    parser.add_argument("--skip-rate", type=float, default=0.0, help="Chance a bot skips a question")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s [BOT] %(message)s')
    leaders = asyncio.run(run(args))
    for rank, entry in enumerate(leaders, start=1):
        print(f"{rank:>3}. {entry['name']:<20} {entry['score']:>3}  {entry['time']:.2f}s")


if __name__ == "__main__":
    main()
