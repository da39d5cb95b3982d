import random
import unittest

import numpy as np

from dueling import (
    BulletinBoard,
    CandidateSet,
    ClassicalMatchers,
    DuelArbiter,
    GSVMatcher,
    InvalidArgumentError,
    LocalBulletinBoard,
    PeriodAnalyzer,
    ResultExtractor,
    StageEngine,
    WitnessBuilder,
    build_combined_sequence,
    search,
)


def codes(s):
    return np.array([ord(c) for c in s], dtype=np.int64)


class SearchScenarioTests(unittest.TestCase):
    def test_periodic_pattern_overlapping_matches(self):
        self.assertEqual(search("ABABABABAB", "ABAB"), [0, 2, 4, 6])

    def test_repeated_aperiodic_block(self):
        self.assertEqual(search("ABABACABABAC", "ABABAC"), [0, 6])

    def test_aperiodic_pattern(self):
        self.assertEqual(search("xyzabcdefghiabcdef", "abcdef"), [3, 12])

    def test_single_character_pattern(self):
        self.assertEqual(search("abababa", "a"), [0, 2, 4, 6])

    def test_no_match(self):
        self.assertEqual(search("abcdefg", "xyz"), [])

    def test_overlapping_period_three(self):
        self.assertEqual(search("ABCABCABCABC", "ABCABC"), [0, 3, 6])
        self.assertEqual(search("abcabcabcabcabc", "abcabc"), [0, 3, 6, 9])

    def test_match_after_partial_prefix(self):
        self.assertEqual(search("abacababacab", "ababacab"), [4])
        self.assertEqual(search("ABABACABAB", "ABABAC"), [0])

    def test_unary_text(self):
        self.assertEqual(search("aaaaaaaaaa", "aaa"), list(range(8)))

    def test_pattern_equals_text(self):
        self.assertEqual(search("GATTACA", "GATTACA"), [0])

    def test_match_at_end_of_text(self):
        self.assertEqual(search("xxxxabcab", "abcab"), [4])

    def test_stage_progression_lengths(self):
        for pattern in ("A", "AB", "ABCD", "ABCDEFGH", "ABCDEFGHIJKLMNOP"):
            text = "XYZ" + pattern + "XYZ" + pattern + "XYZ"
            with self.subTest(pattern=pattern):
                self.assertEqual(search(text, pattern), [3, 6 + len(pattern)])

    def test_classic_failure_function_cases(self):
        cases = [
            ("abcabcdabcabcabc", "abcabcabc", [7]),
            ("COCOCACOLA", "COCACOLA", [2]),
            ("ANANAANANAS", "ANANAS", [5]),
            ("abcabcabcabcd", "abcabcd", [6]),
            ("gcatcgcagagagtatacagtacg", "gcagagag", [5]),
            ("gcatcgcagagagtatacagtgcacgaaaaaaaaa", "gcagagag", [5]),
            ("ABABABABABABC", "ABABABC", [6]),
        ]
        for text, pattern, expected in cases:
            with self.subTest(pattern=pattern):
                self.assertEqual(search(text, pattern), expected)


class InputHandlingTests(unittest.TestCase):
    def test_empty_inputs(self):
        self.assertEqual(search("", ""), [])
        self.assertEqual(search("abc", ""), [])
        self.assertEqual(search("", "abc"), [])

    def test_pattern_longer_than_text(self):
        self.assertEqual(search("ab", "abc"), [])

    def test_single_characters(self):
        self.assertEqual(search("a", "a"), [0])
        self.assertEqual(search("a", "b"), [])
        self.assertEqual(search("aa", "a"), [0, 1])

    def test_none_arguments_raise(self):
        with self.assertRaises(InvalidArgumentError):
            search(None, "abc")
        with self.assertRaises(InvalidArgumentError):
            search("abc", None)
        with self.assertRaises(InvalidArgumentError):
            search(None, None)

    def test_error_is_a_value_error(self):
        with self.assertRaises(ValueError):
            search(None, "a")

    def test_mixed_bytes_and_text_raise(self):
        with self.assertRaises(InvalidArgumentError):
            search(b"abc", "a")
        with self.assertRaises(InvalidArgumentError):
            search("abc", b"a")

    def test_bytes_and_character_lists(self):
        self.assertEqual(search(b"ABABABABAB", b"ABAB"), [0, 2, 4, 6])
        self.assertEqual(search(list("ABABABABAB"), ["A", "B", "A", "B"]), [0, 2, 4, 6])

    def test_non_ascii_characters(self):
        self.assertEqual(search("αβαβγαβ", "αβ"), [0, 2, 5])

    def test_repeated_calls_are_identical(self):
        matcher = GSVMatcher()
        first = matcher.search("abaababaabaab", "abaab")
        second = matcher.search("abaababaabaab", "abaab")
        self.assertEqual(first, second)
        self.assertEqual(first, [0, 5, 8])


class PeriodAnalyzerTests(unittest.TestCase):
    def test_smallest_period(self):
        expected = {"abab": 2, "aaaa": 1, "abcab": 3, "abcd": 4, "a": 1, "ABABAC": 6, "aabaa": 3}
        for pattern, period in expected.items():
            with self.subTest(pattern=pattern):
                self.assertEqual(PeriodAnalyzer.smallest_period(codes(pattern)), period)

    def test_empty_pattern_period(self):
        self.assertEqual(PeriodAnalyzer.smallest_period(codes("")), 0)

    def test_failure_table(self):
        self.assertEqual(PeriodAnalyzer.failure_table(codes("gcagagag")).tolist(),
                         [0, 0, 0, 1, 0, 1, 0, 1])

    def test_duel_threshold(self):
        self.assertEqual(PeriodAnalyzer.duel_threshold(2, 4), 2)
        self.assertEqual(PeriodAnalyzer.duel_threshold(6, 6), 3)
        self.assertEqual(PeriodAnalyzer.duel_threshold(1, 1), 0)


class WitnessBuilderTests(unittest.TestCase):
    def test_witness_offsets(self):
        table = WitnessBuilder.build(codes("ABABAC"), 3)
        self.assertEqual(table.offset(1), 0)
        self.assertEqual(table.offset(2), 3)
        self.assertFalse(table.degenerate)

    def test_witness_property_holds(self):
        pattern = codes("abcabcab")
        pi = PeriodAnalyzer.duel_threshold(PeriodAnalyzer.smallest_period(pattern), pattern.size)
        table = WitnessBuilder.build(pattern, pi)
        for delta in range(1, pi):
            h = table.offset(delta)
            self.assertNotEqual(pattern[h], pattern[h + delta])

    def test_out_of_range_shift_has_no_witness(self):
        table = WitnessBuilder.build(codes("abcdef"), 3)
        self.assertIsNone(table.offset(0))
        self.assertIsNone(table.offset(3))

    def test_degenerate_shifts_are_recorded(self):
        table = WitnessBuilder.build(codes("aaaa"), 3)
        self.assertEqual(table.degenerate, {1, 2})
        self.assertIsNone(table.offset(1))
        self.assertIsNone(table.offset(2))


class CandidateSetTests(unittest.TestCase):
    def test_seed_two_character_prefix(self):
        pattern = codes("ab")
        z = build_combined_sequence(pattern, codes("abxab"))
        candidates = CandidateSet(z.size)
        candidates.seed(z, pattern)
        self.assertEqual(candidates.positions().tolist(), [0, 3, 6])

    def test_seed_single_character(self):
        pattern = codes("a")
        z = build_combined_sequence(pattern, codes("aba"))
        candidates = CandidateSet(z.size)
        candidates.seed(z, pattern)
        self.assertEqual(candidates.positions().tolist(), [0, 2, 4])

    def test_snapshot_is_read_only(self):
        candidates = CandidateSet(4)
        candidates.alive[:] = True
        frozen = candidates.snapshot()
        candidates.discard(1)
        self.assertTrue(frozen[1])
        with self.assertRaises(ValueError):
            frozen[0] = False

    def test_local_bulletin_board(self):
        frozen = np.array([False, True, True, False, False, False, True, True], dtype=bool)
        lbb = LocalBulletinBoard.from_snapshot(frozen, 2)
        self.assertEqual(lbb.first.tolist(), [1, 2, -1, 6])
        self.assertEqual(lbb.representatives().tolist(), [1, 2, 6])

    def test_result_extraction(self):
        candidates = CandidateSet(8)
        candidates.alive[[0, 3, 6]] = True
        self.assertEqual(ResultExtractor.extract(candidates, 2), [0, 3])


class DuelArbiterTests(unittest.TestCase):
    def setUp(self):
        self.pattern = codes("ABABAC")
        self.z = build_combined_sequence(self.pattern, codes("ABABAC"))
        self.arbiter = DuelArbiter(self.z, self.pattern, WitnessBuilder.build(self.pattern, 3))

    def test_true_occurrence_wins(self):
        self.assertEqual(self.arbiter.duel(7, 9), (True, False))
        self.assertEqual(self.arbiter.duel(0, 1), (True, False))

    def test_neither_matches(self):
        self.assertEqual(self.arbiter.duel(11, 12), (False, False))

    def test_witness_past_end_drops_both(self):
        self.assertEqual(self.arbiter.duel(10, 12), (False, False))

    def test_distance_without_witness_is_a_no_op(self):
        self.assertEqual(self.arbiter.duel(7, 10), (True, True))
        self.assertEqual(self.arbiter.unresolved, 1)

    def test_sweep_keeps_true_occurrence(self):
        candidates = CandidateSet(self.z.size)
        candidates.alive[[7, 8, 9]] = True
        standing, duels = self.arbiter.sweep([7, 8, 9], candidates)
        self.assertEqual(standing, [7])
        self.assertEqual(candidates.positions().tolist(), [7])
        self.assertEqual(duels, 2)


class StageEngineTests(unittest.TestCase):
    def test_number_of_stages(self):
        expected = {1: 0, 2: 1, 3: 2, 4: 2, 5: 3, 8: 3, 9: 4, 16: 4, 17: 5}
        for m, stages in expected.items():
            self.assertEqual(StageEngine.num_stages(m), stages)

    def test_reports_cover_every_stage(self):
        for pattern in ("a", "ab", "abc", "abcdefgh", "abcdefghi"):
            _, reports = GSVMatcher().search_with_reports("zz" + pattern, pattern)
            self.assertEqual([r.stage for r in reports],
                             list(range(1, max(1, StageEngine.num_stages(len(pattern))) + 1)))
            self.assertEqual(reports[0].case, "seed")

    def test_periodic_termination(self):
        matches, reports = GSVMatcher().search_with_reports("xx" + "ab" * 8, "ab" * 5)
        self.assertEqual(matches, [2, 4, 6, 8])
        self.assertEqual([r.case for r in reports],
                         ["seed", "regular", "regular", "periodic-terminate"])

    def test_periodic_continuation(self):
        matches, reports = GSVMatcher().search_with_reports("a" * 20, "a" * 16)
        self.assertEqual(matches, [0, 1, 2, 3, 4])
        self.assertEqual([r.case for r in reports],
                         ["seed", "regular", "periodic-continue", "periodic-continue"])

    def test_candidate_counts_never_grow(self):
        rng = random.Random(7)
        for _ in range(50):
            pattern = "".join(rng.choice("ab") for _ in range(rng.randint(3, 20)))
            text = "".join(rng.choice("ab") for _ in range(rng.randint(0, 80)))
            _, reports = GSVMatcher().search_with_reports(text, pattern)
            survivors = [r.survivors for r in reports]
            self.assertEqual(survivors, sorted(survivors, reverse=True))

    def test_stage_parameters(self):
        pattern = codes("abcdefghij")
        z = build_combined_sequence(pattern, codes("abcdefghij"))
        witness = WitnessBuilder.build(pattern, 5)
        engine = StageEngine(z, pattern, witness, BulletinBoard(pi=5))
        candidates = CandidateSet(z.size)
        candidates.seed(z, pattern)
        report = engine.run_stage(4, candidates)
        self.assertEqual((report.prefix_len, report.next_prefix_len, report.block_size), (8, 10, 4))

    def test_missing_witness_duels_are_reported(self):
        pattern = codes("aaaa")
        z = build_combined_sequence(pattern, codes("aaaaaa"))
        # pi above the true period leaves shifts 1 and 2 without a witness.
        witness = WitnessBuilder.build(pattern, 3)
        engine = StageEngine(z, pattern, witness, BulletinBoard(pi=3))
        candidates = CandidateSet(z.size)
        candidates.seed(z, pattern)
        reports = engine.run(candidates)
        self.assertEqual([r.stage for r in reports], [2])
        self.assertEqual(reports[0].unresolved, 2)
        self.assertEqual(reports[0].both_matched, 0)
        self.assertEqual(ResultExtractor.extract(candidates, 4), [0, 1, 2])

    def test_clean_search_reports_no_invariant_violations(self):
        _, reports = GSVMatcher().search_with_reports("ABABACABABAC", "ABABAC")
        self.assertTrue(all(r.both_matched == 0 and r.unresolved == 0 for r in reports))


class RandomizedAgreementTests(unittest.TestCase):
    """Compare every matcher against the naive scan on random inputs."""

    def _check(self, text, pattern):
        expected = ClassicalMatchers.naive_search(text, pattern)
        matches, reports = GSVMatcher().search_with_reports(text, pattern)
        self.assertEqual(matches, expected, (text, pattern))
        self.assertEqual(sum(r.both_matched for r in reports), 0, (text, pattern))
        self.assertEqual(sum(r.unresolved for r in reports), 0, (text, pattern))
        self.assertEqual(ClassicalMatchers.kmp_search(text, pattern), expected, (text, pattern))
        self.assertEqual(ClassicalMatchers.mp_search(text, pattern), expected, (text, pattern))

    def test_random_small_alphabets(self):
        rng = random.Random(12345)
        for _ in range(300):
            alphabet = rng.choice(["ab", "abc", "a"])
            pattern = "".join(rng.choice(alphabet) for _ in range(rng.randint(1, 12)))
            text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 120)))
            self._check(text, pattern)

    def test_random_periodic_patterns(self):
        rng = random.Random(2024)
        for _ in range(200):
            base = "".join(rng.choice("ab") for _ in range(rng.randint(1, 4)))
            reps = rng.randint(2, 8)
            pattern = (base * reps)[:rng.randint(len(base), len(base) * reps)]
            text = list((base * 40)[:rng.randint(0, 150)])
            for _ in range(rng.randint(0, 3)):
                if text:
                    text[rng.randrange(len(text))] = rng.choice("abc")
            self._check("".join(text), pattern)

    def test_results_are_valid_offsets(self):
        rng = random.Random(99)
        for _ in range(100):
            pattern = "".join(rng.choice("acgt") for _ in range(rng.randint(1, 6)))
            text = "".join(rng.choice("acgt") for _ in range(rng.randint(0, 200)))
            matches = search(text, pattern)
            self.assertEqual(matches, sorted(set(matches)))
            for offset in matches:
                self.assertTrue(0 <= offset <= len(text) - len(pattern))
                self.assertEqual(text[offset:offset + len(pattern)], pattern)


if __name__ == "__main__":
    unittest.main()
