import random
import unittest
from collections import Counter

from quotadraw.draw import fisher_yates_shuffle, generate_rotation_sequence
from quotadraw.models import Outcome, OutcomeSet


def _outcome(order, max_wins=None, amount=None, label=None):
    return Outcome(
        label=label or f"outcome-{order}",
        order=order,
        amount=amount,
        max_wins=max_wins,
    )


class GenerateRotationSequenceTests(unittest.TestCase):
    def test_each_quota_appears_exactly_max_wins_times(self):
        outcomes = [
            _outcome(0, max_wins=2, amount=100),
            _outcome(1, max_wins=1, amount=500),
            _outcome(2, max_wins=5),
        ]
        sequence = generate_rotation_sequence(outcomes, rng=random.Random(3))

        self.assertEqual(len(sequence), 8)
        self.assertEqual(Counter(sequence), Counter({0: 2, 1: 1, 2: 5}))

    def test_unconstrained_outcomes_are_left_out(self):
        outcomes = [
            _outcome(0, max_wins=None),
            _outcome(1, max_wins=0),
            _outcome(2, max_wins=3, amount=10),
        ]
        sequence = generate_rotation_sequence(outcomes, rng=random.Random(3))
        self.assertEqual(sequence, [2, 2, 2])

    def test_no_quota_bearing_outcomes_gives_empty_sequence(self):
        self.assertEqual(generate_rotation_sequence([]), [])
        self.assertEqual(
            generate_rotation_sequence([_outcome(0), _outcome(1, max_wins=0)]), []
        )

    def test_same_seed_same_sequence(self):
        outcomes = [_outcome(i, max_wins=i + 1) for i in range(5)]
        first = generate_rotation_sequence(outcomes, rng=random.Random(42))
        second = generate_rotation_sequence(list(reversed(outcomes)), rng=random.Random(42))
        self.assertEqual(first, second)

    def test_outcome_set_regenerate_rewinds_cursor(self):
        outcome_set = OutcomeSet(
            slot=0,
            outcomes=[_outcome(0, max_wins=2, amount=100), _outcome(1, max_wins=1, amount=500)],
        )
        outcome_set.current_sequence_index = 2

        sequence = outcome_set.regenerate(random.Random(1))

        self.assertEqual(sorted(sequence), [0, 0, 1])
        self.assertEqual(outcome_set.rotation_sequence, sequence)
        self.assertEqual(outcome_set.current_sequence_index, 0)
        self.assertEqual(outcome_set.sequence_remaining, 3)


class FisherYatesShuffleTests(unittest.TestCase):
    def test_shuffle_is_a_permutation(self):
        items = list(range(50))
        fisher_yates_shuffle(items, random.Random(9))
        self.assertEqual(sorted(items), list(range(50)))

    def test_short_inputs_are_untouched(self):
        empty: list[int] = []
        single = [7]
        fisher_yates_shuffle(empty, random.Random(0))
        fisher_yates_shuffle(single, random.Random(0))
        self.assertEqual(empty, [])
        self.assertEqual(single, [7])

    def test_every_permutation_is_roughly_equally_likely(self):
        rng = random.Random(2024)
        counts: Counter = Counter()
        rounds = 6000
        for _ in range(rounds):
            items = ["A", "B", "C"]
            fisher_yates_shuffle(items, rng)
            counts[tuple(items)] += 1

        self.assertEqual(len(counts), 6)
        for permutation, seen in counts.items():
            # Expected 1000 per permutation; the bound is more than 6 sigma wide.
            self.assertTrue(800 < seen < 1200, f"{permutation} drawn {seen} times")


if __name__ == "__main__":
    unittest.main()
