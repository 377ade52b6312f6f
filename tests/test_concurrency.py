from __future__ import annotations

import random
import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from quotadraw.db.engine import get_sessionmaker, make_engine
from quotadraw.draw import CampaignStore, DrawEngine, ResetController
from quotadraw.models import Base
from quotadraw.workflows import campaign_progress, create_campaign, list_draw_results, replace_outcomes


class ConcurrentDrawTests(unittest.TestCase):
    """Draws from a thread pool against a file database shared by every thread."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(self.tmpdir.name) / "draws.db"
        self.engine = make_engine(f"sqlite+pysqlite:///{db_path}")
        Base.metadata.create_all(self.engine)
        self.store = CampaignStore(get_sessionmaker(self.engine), max_attempts=5)
        self.draws = DrawEngine(self.store, rng=random.Random(13))

        with self.store.transaction() as session:
            campaign = create_campaign(
                session, name="Rush hour", game_type="wheel", total_winners=12
            )
            replace_outcomes(
                session,
                campaign.id,
                [
                    {"label": "Ten", "order": 0, "amount": 10, "max_wins": 5},
                    {"label": "Twenty", "order": 1, "amount": 20, "max_wins": 3},
                    {"label": "Sticker", "order": 2, "max_wins": 4},
                ],
                rng=random.Random(21),
            )
            self.campaign_id = campaign.id

    def tearDown(self) -> None:
        self.engine.dispose()
        self.tmpdir.cleanup()

    def _draw_many(self, count: int):
        with ThreadPoolExecutor(max_workers=6) as pool:
            futures = [pool.submit(self.draws.draw, self.campaign_id) for _ in range(count)]
            return [f.result() for f in futures]

    def test_each_sequence_position_is_consumed_once(self):
        evaluations = self._draw_many(12)

        self.assertTrue(all(not e.exhausted for e in evaluations))
        positions = sorted(e.winner.sequence_position for e in evaluations)
        self.assertEqual(positions, list(range(12)))
        self.assertEqual(sorted(e.current_winners for e in evaluations), list(range(1, 13)))

        with self.store.transaction() as session:
            progress = campaign_progress(session, self.campaign_id)
            results = list_draw_results(session, self.campaign_id)

        self.assertEqual(progress.current_winners, 12)
        self.assertEqual(progress.current_spent, 5 * 10 + 3 * 20)
        for outcome in progress.outcomes:
            self.assertEqual(outcome.current_wins, outcome.max_wins)
        self.assertEqual(len(results), 12)

        # Every quota is spent and nothing is unconstrained.
        self.assertTrue(self.draws.draw(self.campaign_id).exhausted)

    def test_oversubscribed_draws_never_exceed_quota(self):
        evaluations = self._draw_many(20)

        winners = [e for e in evaluations if not e.exhausted]
        self.assertEqual(len(winners), 12)
        self.assertEqual(len(evaluations) - len(winners), 8)

        with self.store.transaction() as session:
            progress = campaign_progress(session, self.campaign_id)
        for outcome in progress.outcomes:
            self.assertLessEqual(outcome.current_wins, outcome.max_wins)
        self.assertEqual(progress.current_winners, 12)

    def test_reset_and_draws_interleave_cleanly(self):
        resets = ResetController(self.store, rng=random.Random(3))
        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(self.draws.draw, self.campaign_id) for _ in range(6)]
            futures.append(pool.submit(resets.reset, self.campaign_id))
            futures += [pool.submit(self.draws.draw, self.campaign_id) for _ in range(6)]
            for future in futures:
                future.result()

        with self.store.transaction() as session:
            progress = campaign_progress(session, self.campaign_id)
            results = list_draw_results(session, self.campaign_id)

        # Whatever the interleaving, counters agree with the surviving history.
        self.assertEqual(progress.current_winners, len(results))
        self.assertEqual(progress.current_spent, sum(r.amount for r in results))
        self.assertEqual(
            sum(o.current_wins for o in progress.outcomes),
            sum(len(r.picks) for r in results),
        )
        self.assertEqual(progress.slots[0].current_sequence_index, len(results))


if __name__ == "__main__":
    unittest.main()
