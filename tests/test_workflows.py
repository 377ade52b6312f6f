from __future__ import annotations

import random
import unittest

from sqlalchemy import func, select

from quotadraw.db.engine import get_sessionmaker, make_engine
from quotadraw.draw import CampaignStore, DrawEngine
from quotadraw.errors import CampaignNotFound, InvalidConfiguration, OutcomeNotFound
from quotadraw.models import (
    Base,
    Campaign,
    DrawPick,
    DrawResult,
    GameType,
    Outcome,
    OutcomeSet,
)
from quotadraw.workflows import (
    activate_campaign,
    add_outcome,
    campaign_progress,
    create_campaign,
    delete_campaign,
    get_active_campaign,
    list_draw_results,
    remove_outcome,
    replace_outcomes,
    update_campaign,
    update_outcome,
)


class WorkflowTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.store = CampaignStore(get_sessionmaker(self.engine), max_attempts=3)
        self.draws = DrawEngine(self.store, rng=random.Random(17))

    def tearDown(self) -> None:
        self.engine.dispose()

    def _wheel(self, outcomes=None, **kwargs) -> int:
        with self.store.transaction() as session:
            campaign = create_campaign(
                session,
                name=kwargs.pop("name", "Wheel"),
                game_type=GameType.WHEEL,
                **kwargs,
            )
            if outcomes:
                replace_outcomes(session, campaign.id, outcomes)
            return campaign.id

    def _set_state(self, campaign_id: int, slot: int = 0):
        with self.store.transaction() as session:
            outcome_set = session.get(Campaign, campaign_id).outcome_set(slot)
            return list(outcome_set.rotation_sequence), outcome_set.current_sequence_index

    def _count(self, model) -> int:
        with self.store.transaction() as session:
            return session.scalar(select(func.count()).select_from(model))


class CampaignLifecycleTests(WorkflowTestCase):
    def test_create_campaign_makes_one_set_per_slot(self):
        with self.store.transaction() as session:
            wheel = create_campaign(session, name=" Wheel ", game_type="wheel")
            triple = create_campaign(session, name="Triple", game_type="three_dice")

            self.assertEqual(wheel.name, "Wheel")
            self.assertEqual([s.slot for s in wheel.outcome_sets], [0])
            self.assertEqual([s.slot for s in triple.outcome_sets], [0, 1, 2])
            self.assertEqual(triple.picks_per_draw, 3)
            self.assertTrue(all(s.rotation_sequence == [] for s in triple.outcome_sets))
            self.assertEqual(wheel.current_winners, 0)
            self.assertEqual(wheel.current_spent, 0)

    def test_only_one_active_campaign_per_game_type(self):
        with self.store.transaction() as session:
            first = create_campaign(session, name="First", game_type="wheel")
            dice = create_campaign(session, name="Dice", game_type="dice")
            second = create_campaign(session, name="Second", game_type="wheel")

            self.assertFalse(first.is_active)
            self.assertTrue(second.is_active)
            self.assertTrue(dice.is_active)
            self.assertIs(get_active_campaign(session, "wheel"), second)

            activate_campaign(session, first.id)
            self.assertTrue(first.is_active)
            self.assertFalse(second.is_active)
            self.assertIs(get_active_campaign(session, GameType.WHEEL), first)
            self.assertIs(get_active_campaign(session, "dice"), dice)
            self.assertIsNone(get_active_campaign(session, "three_dice"))

    def test_create_campaign_rejects_bad_input(self):
        with self.store.transaction() as session:
            with self.assertRaises(InvalidConfiguration) as ctx:
                create_campaign(session, name="Roulette", game_type="roulette")
            self.assertIn("wheel", ctx.exception.details["allowed"])
            with self.assertRaises(InvalidConfiguration):
                create_campaign(session, name="  ", game_type="wheel")
            with self.assertRaises(InvalidConfiguration):
                create_campaign(session, name="Neg", game_type="wheel", total_winners=-1)
            with self.assertRaises(InvalidConfiguration):
                get_active_campaign(session, "roulette")

    def test_update_campaign(self):
        campaign_id = self._wheel(
            [{"label": "A", "order": 0, "amount": 10, "max_wins": 3}], total_winners=3
        )
        self.draws.draw(campaign_id)
        self.assertEqual(self._set_state(campaign_id)[1], 1)

        with self.store.transaction() as session:
            update_campaign(session, campaign_id, name="Renamed", total_amount=900)
        self.assertEqual(self._set_state(campaign_id)[1], 1)

        with self.store.transaction() as session:
            campaign = update_campaign(session, campaign_id, total_winners=10)
            self.assertEqual(campaign.name, "Renamed")
            self.assertEqual(campaign.total_amount, 900)
            self.assertEqual(campaign.total_winners, 10)
        # Informational targets leave the award order and cursor alone.
        self.assertEqual(self._set_state(campaign_id), ([0, 0, 0], 1))
        self.assertEqual(self.draws.draw(campaign_id).winner.sequence_position, 1)

        with self.store.transaction() as session:
            with self.assertRaises(InvalidConfiguration):
                update_campaign(session, campaign_id, game_type="dice")
            with self.assertRaises(CampaignNotFound):
                update_campaign(session, 777, name="Nope")

    def test_delete_campaign_removes_everything(self):
        campaign_id = self._wheel(
            [
                {"label": "A", "order": 0, "amount": 10, "max_wins": 1},
                {"label": "B", "order": 1},
            ]
        )
        self.draws.draw(campaign_id)
        self.draws.draw(campaign_id)

        with self.store.transaction() as session:
            delete_campaign(session, campaign_id)

        for model in (Campaign, OutcomeSet, Outcome, DrawResult, DrawPick):
            self.assertEqual(self._count(model), 0, model.__name__)

        with self.store.transaction() as session:
            with self.assertRaises(CampaignNotFound):
                delete_campaign(session, campaign_id)


class OutcomeConfigurationTests(WorkflowTestCase):
    def test_add_outcome_regenerates_slot(self):
        campaign_id = self._wheel()
        with self.store.transaction() as session:
            add_outcome(session, campaign_id, label="A", order=0, amount=100, max_wins=2)
        self.assertEqual(self._set_state(campaign_id), ([0, 0], 0))

        self.draws.draw(campaign_id)
        self.assertEqual(self._set_state(campaign_id)[1], 1)

        with self.store.transaction() as session:
            outcome = add_outcome(
                session, campaign_id, label="B", order=1, amount=500, max_wins=1,
                color="#ff0000", rng=random.Random(1),
            )
            self.assertEqual(outcome.color, "#ff0000")
            self.assertEqual(outcome.current_wins, 0)

        sequence, cursor = self._set_state(campaign_id)
        self.assertEqual(sorted(sequence), [0, 0, 1])
        self.assertEqual(cursor, 0)

    def test_add_outcome_validation(self):
        campaign_id = self._wheel([{"label": "A", "order": 0}])
        with self.store.transaction() as session:
            dice = create_campaign(session, name="Die", game_type="dice")
            dice_id = dice.id

        bad_inputs = [
            dict(label="Cash", order=1, amount=100),
            dict(label="Cash", order=1, amount=100, max_wins=0),
            dict(label="Dup", order=0),
            dict(label="", order=1),
            dict(label="Neg", order=1, amount=-5, max_wins=1),
            dict(label="Neg", order=1, max_wins=-1),
            dict(label="Neg", order=-1),
            dict(label="Other slot", order=1, slot=1),
            dict(label="No order", order=None),
            dict(label="Text order", order="1"),
            dict(label="Flag order", order=True),
            dict(label="Text amount", order=1, amount="10", max_wins=1),
            dict(label="Float quota", order=1, max_wins=1.5),
            dict(label=None, order=1),
        ]
        for kwargs in bad_inputs:
            with self.subTest(kwargs=kwargs):
                with self.store.transaction() as session:
                    with self.assertRaises(InvalidConfiguration):
                        add_outcome(session, campaign_id, **kwargs)

        with self.store.transaction() as session:
            with self.assertRaises(InvalidConfiguration):
                add_outcome(session, dice_id, label="Seventh face", order=6)
            add_outcome(session, dice_id, label="Sixth face", order=5)
            with self.assertRaises(CampaignNotFound):
                add_outcome(session, 31337, label="Ghost", order=0)

    def test_update_outcome(self):
        campaign_id = self._wheel(
            [
                {"label": "A", "order": 0, "amount": 100, "max_wins": 2},
                {"label": "B", "order": 1},
            ]
        )
        with self.store.transaction() as session:
            outcome_a = session.get(Campaign, campaign_id).outcome_set(0).outcomes[0]
            a_id = outcome_a.id
        self.draws.draw(campaign_id)

        with self.store.transaction() as session:
            update_outcome(session, a_id, color="gold")
        self.assertEqual(self._set_state(campaign_id)[1], 1)

        with self.store.transaction() as session:
            updated = update_outcome(session, a_id, max_wins=4, amount=150)
            self.assertEqual(updated.max_wins, 4)
            self.assertEqual(updated.amount, 150)
            self.assertEqual(updated.current_wins, 1)
        self.assertEqual(self._set_state(campaign_id), ([0, 0, 0, 0], 0))

        with self.store.transaction() as session:
            with self.assertRaises(InvalidConfiguration):
                update_outcome(session, a_id, max_wins=0)
            with self.assertRaises(InvalidConfiguration):
                update_outcome(session, a_id, order=1)
            with self.assertRaises(InvalidConfiguration):
                update_outcome(session, a_id, order=None)
            with self.assertRaises(InvalidConfiguration):
                update_outcome(session, a_id, max_wins="4")
            with self.assertRaises(InvalidConfiguration):
                update_outcome(session, a_id, current_wins=0)
            with self.assertRaises(OutcomeNotFound):
                update_outcome(session, 999, label="Ghost")

    def test_max_wins_cannot_drop_below_recorded_wins(self):
        campaign_id = self._wheel([{"label": "Pin", "order": 0, "max_wins": 3}])
        self.draws.draw(campaign_id)
        self.draws.draw(campaign_id)

        with self.store.transaction() as session:
            pin_id = session.get(Campaign, campaign_id).outcomes[0].id
            with self.assertRaises(InvalidConfiguration) as ctx:
                update_outcome(session, pin_id, max_wins=1)
            self.assertEqual(ctx.exception.details, {"current_wins": 2})
            update_outcome(session, pin_id, max_wins=2)

    def test_remove_outcome_keeps_history_labels(self):
        campaign_id = self._wheel(
            [
                {"label": "A", "order": 0, "amount": 100, "max_wins": 1},
                {"label": "B", "order": 1, "max_wins": 2},
            ]
        )
        evaluation = self.draws.draw(campaign_id)
        removed_id = evaluation.winner.outcome_id
        removed_label = evaluation.winner.label

        with self.store.transaction() as session:
            remove_outcome(session, removed_id, rng=random.Random(6))

        sequence, cursor = self._set_state(campaign_id)
        remaining_order = 1 if removed_label == "A" else 0
        self.assertTrue(sequence)
        self.assertTrue(all(entry == remaining_order for entry in sequence))
        self.assertEqual(cursor, 0)

        with self.store.transaction() as session:
            (result,) = list_draw_results(session, campaign_id)
            self.assertEqual(result.label, removed_label)
            self.assertIsNone(result.picks[0].outcome_id)
            with self.assertRaises(OutcomeNotFound):
                remove_outcome(session, removed_id)

    def test_replace_outcomes(self):
        campaign_id = self._wheel(
            [
                {"label": "Old", "order": 0, "amount": 5, "max_wins": 1},
                {"label": "Older", "order": 1},
            ]
        )
        with self.store.transaction() as session:
            created = replace_outcomes(
                session,
                campaign_id,
                [
                    {"label": "New", "order": 0, "amount": 50, "max_wins": 2},
                    {"label": "Newer", "order": 1, "max_wins": 1, "color": "#00ff00"},
                    {"label": "Newest", "order": 2},
                ],
                rng=random.Random(2),
            )
            self.assertEqual([o.label for o in created], ["New", "Newer", "Newest"])

        with self.store.transaction() as session:
            campaign = session.get(Campaign, campaign_id)
            self.assertEqual([o.label for o in campaign.outcomes], ["New", "Newer", "Newest"])
            self.assertEqual(sorted(campaign.rotation_sequence), [0, 0, 1])
            self.assertEqual(campaign.quota_total, 3)

    def test_replace_outcomes_validates_whole_batch_first(self):
        campaign_id = self._wheel([{"label": "Keep", "order": 0}])
        batches = [
            [{"label": "X", "order": 0}, {"label": "Y", "order": 0}],
            [{"label": "X", "order": 0}, {"label": "Cash", "order": 1, "amount": 9}],
            [{"label": "X"}],
            [{"label": "X", "order": 0, "weight": 3}],
        ]
        for batch in batches:
            with self.subTest(batch=batch):
                with self.store.transaction() as session:
                    with self.assertRaises(InvalidConfiguration):
                        replace_outcomes(session, campaign_id, batch)

        with self.store.transaction() as session:
            labels = [o.label for o in session.get(Campaign, campaign_id).outcomes]
        self.assertEqual(labels, ["Keep"])

    def test_three_dice_slots_are_independent(self):
        with self.store.transaction() as session:
            campaign = create_campaign(session, name="Triple", game_type="three_dice")
            replace_outcomes(
                session, campaign.id, [{"label": "Six", "order": 5, "amount": 6, "max_wins": 2}],
                slot=1,
            )
            with self.assertRaises(InvalidConfiguration):
                replace_outcomes(session, campaign.id, [{"label": "X", "order": 0}], slot=3)

            self.assertEqual(campaign.outcome_set(0).rotation_sequence, [])
            self.assertEqual(campaign.outcome_set(1).rotation_sequence, [5, 5])
            self.assertEqual(campaign.outcome_set(2).rotation_sequence, [])


class ReportingTests(WorkflowTestCase):
    def test_list_draw_results_newest_first(self):
        campaign_id = self._wheel(
            [
                {"label": "A", "order": 0, "amount": 10, "max_wins": 2},
                {"label": "B", "order": 1},
            ]
        )
        result_ids = [self.draws.draw(campaign_id).result_id for _ in range(4)]

        with self.store.transaction() as session:
            results = list_draw_results(session, campaign_id)
            self.assertEqual([r.id for r in results], list(reversed(result_ids)))
            limited = list_draw_results(session, campaign_id, limit=2)
            self.assertEqual([r.id for r in limited], result_ids[:1:-1])
            self.assertEqual(list_draw_results(session, 999), [])
            with self.assertRaises(ValueError):
                list_draw_results(session, campaign_id, limit=-1)

    def test_campaign_progress(self):
        campaign_id = self._wheel(
            [
                {"label": "A", "order": 0, "amount": 100, "max_wins": 2},
                {"label": "B", "order": 1, "amount": 500, "max_wins": 1},
                {"label": "C", "order": 2},
            ],
            total_winners=10,
            total_amount=1000,
        )
        self.draws.draw(campaign_id)
        self.draws.draw(campaign_id)

        with self.store.transaction() as session:
            progress = campaign_progress(session, campaign_id)
            with self.assertRaises(CampaignNotFound):
                campaign_progress(session, 4040)

        self.assertEqual(progress.game_type, "wheel")
        self.assertTrue(progress.is_active)
        self.assertEqual(progress.current_winners, 2)
        self.assertEqual(progress.total_winners, 10)
        self.assertEqual(progress.quota_total, 3)
        self.assertEqual(progress.remaining_budget, 1000 - progress.current_spent)
        self.assertEqual(progress.slots[0].sequence_length, 3)
        self.assertEqual(progress.slots[0].sequence_remaining, 1)
        by_label = {o.label: o for o in progress.outcomes}
        self.assertIsNone(by_label["C"].remaining_wins)
        self.assertEqual(
            by_label["A"].current_wins + by_label["B"].current_wins, 2
        )
        self.assertEqual(
            by_label["A"].remaining_wins + by_label["B"].remaining_wins, 1
        )


if __name__ == "__main__":
    unittest.main()
