"""Leaderboard: a ranked view derived from the answer ledger and the roster."""
from typing import List

from .answer_ledger import AnswerLedger
from .connection_registry import ConnectionRegistry
from .quiz_types import LeaderboardEntry


class LeaderboardAggregator:
    """Holds no state of its own; every snapshot is recomputed from the ledger."""

    def __init__(self, registry: ConnectionRegistry, ledger: AnswerLedger) -> None:
        self.registry = registry
        self.ledger = ledger

    def snapshot(self) -> List[LeaderboardEntry]:
        """Rank players by correct answers, then answer time, then join order.

        ``time`` is the summed elapsed seconds of a player's correct answers,
        so among equal scores the faster player ranks higher.
        """
        score = {pid: 0 for pid in self.registry.players}
        elapsed = {pid: 0.0 for pid in self.registry.players}
        for record in self.ledger.all_records():
            if record.player_id not in score or not record.correct:
                continue
            score[record.player_id] += 1
            elapsed[record.player_id] += record.elapsed

        entries = [
            LeaderboardEntry(
                player_id=p.player_id,
                name=p.name,
                score=score[p.player_id],
                time=elapsed[p.player_id],
                order=p.order,
            )
            for p in self.registry.players.values()
        ]
        return sorted(entries, key=lambda e: (-e.score, e.time, e.order))
