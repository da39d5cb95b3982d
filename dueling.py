#!/usr/bin/env python3
"""
Dueling String Matcher

Sequential simulation of the parallel string matching algorithm from:
  Z. Galil, "Optimal Parallel Algorithms for String Matching",
  Information and Control 67, 144-157 (1985)
  (the Galil-Seiferas-Vishkin "dueling" scheme)

Implements:
1. Period analysis of the pattern and the duel threshold pi = min(period, m/2)
2. Witness tables used to arbitrate between candidates closer than pi
3. Candidate elimination over z = P $ T in ceil(log2 m) prefix-doubling stages,
   each stage taking either the periodic case or the regular (dueling) case

Also provides the classical Morris-Pratt and Knuth-Morris-Pratt scans, a naive
reference scan, and a FASTA-aware command line driver.
"""

import numpy as np
from typing import List, Tuple, Dict, Optional, Set, Sequence, Union
import argparse
from dataclasses import dataclass, field
from multiprocessing import Pool, cpu_count
from pathlib import Path
import time
import re


# Codes of real characters are non-negative, so -1 never occurs in P or T.
SENTINEL = -1

# Upper bound on the number of z cells gathered at once by the extension test.
_GATHER_LIMIT = 1 << 20

CharSequence = Union[str, bytes, bytearray, Sequence[str]]


class InvalidArgumentError(ValueError):
    """Raised when a text or pattern argument is missing or unusable."""


def _natural_sort_key(value: str):
    """Return a tuple usable for natural sorting (e.g., seq2 before seq10)."""
    if value is None:
        return ()

    parts = re.split(r'(\d+)', str(value))
    key_parts: List[Tuple[int, object]] = []
    for part in parts:
        if not part:
            continue
        if part.isdigit():
            key_parts.append((0, int(part)))
        else:
            key_parts.append((1, part.lower()))
    return tuple(key_parts)


def _encode(seq: CharSequence) -> np.ndarray:
    """Encode a character sequence as an int64 array of non-negative codes."""
    if isinstance(seq, (bytes, bytearray)):
        return np.frombuffer(bytes(seq), dtype=np.uint8).astype(np.int64)
    if isinstance(seq, str):
        return np.fromiter((ord(c) for c in seq), dtype=np.int64, count=len(seq))
    if not isinstance(seq, (list, tuple)):
        raise InvalidArgumentError(f"Unsupported sequence type: {type(seq).__name__}")

    codes = []
    for item in seq:
        if not isinstance(item, str) or len(item) != 1:
            raise InvalidArgumentError(f"Expected single characters, got {item!r}")
        codes.append(ord(item))
    return np.array(codes, dtype=np.int64)


def _validate(text: Optional[CharSequence], pattern: Optional[CharSequence]) -> Tuple[np.ndarray, np.ndarray]:
    """Check both arguments and return (text_codes, pattern_codes)."""
    if text is None or pattern is None:
        raise InvalidArgumentError("Text and pattern cannot be None")

    text_is_bytes = isinstance(text, (bytes, bytearray))
    pattern_is_bytes = isinstance(pattern, (bytes, bytearray))
    if text_is_bytes != pattern_is_bytes:
        raise InvalidArgumentError("Text and pattern must both be bytes or both be characters")

    return _encode(text), _encode(pattern)


def build_combined_sequence(pattern_codes: np.ndarray, text_codes: np.ndarray) -> np.ndarray:
    """Build z = P $ T as a read-only code array of length m + 1 + n."""
    z = np.concatenate((pattern_codes, np.array([SENTINEL], dtype=np.int64), text_codes))
    z.setflags(write=False)
    return z


# ============================================================================
# Pattern preprocessing
# ============================================================================

class PeriodAnalyzer:
    """Shortest period of a pattern and the duel threshold derived from it."""

    @staticmethod
    def failure_table(codes: Union[np.ndarray, Sequence[int]]) -> np.ndarray:
        """Longest proper prefix-suffix length for every prefix of the pattern.

        table[i] is the length of the longest proper prefix of P[0..i] that is
        also a suffix of it.
        """
        seq = codes.tolist() if isinstance(codes, np.ndarray) else list(codes)
        m = len(seq)
        table = [0] * m
        j = 0
        for i in range(1, m):
            while j > 0 and seq[i] != seq[j]:
                j = table[j - 1]
            if seq[i] == seq[j]:
                j += 1
            table[i] = j
        return np.array(table, dtype=np.int64)

    @staticmethod
    def smallest_period(codes: np.ndarray) -> int:
        """Return the smallest p such that P[i] == P[i mod p] for all i."""
        m = int(codes.size)
        if m <= 1:
            return m

        table = PeriodAnalyzer.failure_table(codes)
        period = m - int(table[-1])
        if not np.array_equal(codes, codes[np.arange(m) % period]):
            return m
        return period

    @staticmethod
    def duel_threshold(period: int, m: int) -> int:
        """pi = min(period, floor(m/2)); candidates closer than pi must duel."""
        return min(period, m // 2)


@dataclass
class WitnessTable:
    """Witness offsets for shifts 1 <= delta < pi.

    offsets[delta] = h with P[h] != P[h + delta]. offsets[0] is unused.
    Shifts without a witness are listed in ``degenerate``.
    """
    pi: int
    offsets: np.ndarray
    degenerate: Set[int] = field(default_factory=set)

    def offset(self, delta: int) -> Optional[int]:
        """Witness for ``delta``, or None when no usable witness exists."""
        if delta < 1 or delta >= self.pi or delta in self.degenerate:
            return None
        return int(self.offsets[delta])


class WitnessBuilder:
    """Builds the witness table used by the duel arbiter."""

    @staticmethod
    def build(codes: np.ndarray, pi: int) -> WitnessTable:
        m = int(codes.size)
        offsets = np.zeros(max(pi, 1), dtype=np.int64)
        degenerate: Set[int] = set()

        for delta in range(1, pi):
            mismatches = np.flatnonzero(codes[:m - delta] != codes[delta:])
            if mismatches.size:
                offsets[delta] = mismatches[0]
            else:
                # Only reachable when pi exceeds the true period.
                degenerate.add(delta)

        return WitnessTable(pi=pi, offsets=offsets, degenerate=degenerate)


# ============================================================================
# Candidate bookkeeping
# ============================================================================

@dataclass
class BulletinBoard:
    """Parameters shared across stages: period size, L and pi."""
    pi: int
    period_size: int = 0
    L: int = 0


@dataclass
class LocalBulletinBoard:
    """First surviving candidate of every block (-1 for an empty block)."""
    block_size: int
    first: np.ndarray

    @classmethod
    def from_snapshot(cls, frozen: np.ndarray, block_size: int) -> "LocalBulletinBoard":
        num_blocks = -(-int(frozen.size) // block_size)
        first = np.full(num_blocks, -1, dtype=np.int64)
        positions = np.flatnonzero(frozen)
        if positions.size:
            blocks, index = np.unique(positions // block_size, return_index=True)
            first[blocks] = positions[index]
        return cls(block_size=block_size, first=first)

    def representatives(self) -> np.ndarray:
        return self.first[self.first >= 0]


class CandidateSet:
    """Boolean vector over z; True at i means the pattern may start at i.

    Bits are only ever cleared during a search.
    """

    def __init__(self, size: int):
        self.alive = np.zeros(size, dtype=bool)

    def __len__(self) -> int:
        return int(self.alive.size)

    def __contains__(self, pos: int) -> bool:
        return 0 <= pos < self.alive.size and bool(self.alive[pos])

    def count(self) -> int:
        return int(np.count_nonzero(self.alive))

    def positions(self, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        """Ascending candidate positions in z[start:stop]."""
        return np.flatnonzero(self.alive[start:stop]) + start

    def snapshot(self) -> np.ndarray:
        """Read-only copy of the current state, used as a stage barrier."""
        frozen = self.alive.copy()
        frozen.setflags(write=False)
        return frozen

    def discard(self, pos: int):
        self.alive[pos] = False

    def discard_many(self, positions: np.ndarray):
        self.alive[positions] = False

    def seed(self, z: np.ndarray, pattern: np.ndarray):
        """Stage 1: mark every position matching the first two pattern characters."""
        if pattern.size == 1:
            self.alive[:] = z == pattern[0]
            return
        n_z = z.size
        self.alive[:n_z - 1] = (z[:-1] == pattern[0]) & (z[1:] == pattern[1])


# ============================================================================
# Dueling
# ============================================================================

class DuelArbiter:
    """Pairwise elimination of close candidates using the witness table.

    For candidates i < j at distance delta with witness h, both look at the
    same cell z[j + h]: j expects P[h], i expects P[h + delta]. Since those
    characters differ, at most one of them can be a real occurrence.
    """

    def __init__(self, z: np.ndarray, pattern: np.ndarray, witness: WitnessTable):
        self.z = z
        self.pattern = pattern
        self.witness = witness
        self.both_matched = 0
        self.unresolved = 0

    def duel(self, i: int, j: int) -> Tuple[bool, bool]:
        """Return (keep_i, keep_j) for candidates i < j."""
        delta = j - i
        h = self.witness.offset(delta)
        if h is None:
            self.unresolved += 1
            return True, True

        pos = j + h
        if pos >= self.z.size:
            # Neither window fits inside z.
            return False, False

        c = self.z[pos]
        i_matches = bool(c == self.pattern[h + delta])
        j_matches = bool(c == self.pattern[h])
        if i_matches and j_matches:
            self.both_matched += 1
        return i_matches, j_matches

    def sweep(self, positions: Sequence[int], candidates: CandidateSet) -> Tuple[List[int], int]:
        """Duel every candidate against the still-standing ones closer than pi.

        Returns the standing candidates (ascending) and the number of duels.
        """
        standing: List[int] = []
        duels = 0
        pi = self.witness.pi
        for c in positions:
            c = int(c)
            alive = True
            while standing and c - standing[-1] < pi:
                keep_prev, keep_c = self.duel(standing[-1], c)
                duels += 1
                if not keep_prev:
                    candidates.discard(standing.pop())
                if not keep_c:
                    candidates.discard(c)
                    alive = False
                    break
                if keep_prev:
                    break
            if alive:
                standing.append(c)
        return standing, duels


# ============================================================================
# Stage engine
# ============================================================================

@dataclass
class StageReport:
    """Summary of one elimination stage."""
    stage: int
    case: str
    prefix_len: int
    next_prefix_len: int
    block_size: int
    duels: int = 0
    survivors: int = 0
    both_matched: int = 0
    unresolved: int = 0


class StageEngine:
    """Runs stages 2..S of the elimination over a CandidateSet.

    Stage s verifies prefix lengths 2^(s-1) -> 2^s. Every read that decides the
    case of a stage comes from a snapshot of the previous stage; writes only
    clear candidates.
    """

    def __init__(self, z: np.ndarray, pattern: np.ndarray, witness: WitnessTable,
                 board: BulletinBoard, show_progress: bool = False):
        self.z = z
        self.pattern = pattern
        self.m = int(pattern.size)
        self.witness = witness
        self.board = board
        self.arbiter = DuelArbiter(z, pattern, witness)
        self.show_progress = show_progress

    @staticmethod
    def num_stages(m: int) -> int:
        """ceil(log2 m); 0 for a single-character pattern."""
        return (m - 1).bit_length() if m > 0 else 0

    def run(self, candidates: CandidateSet) -> List[StageReport]:
        reports = []
        for stage in range(2, self.num_stages(self.m) + 1):
            report = self.run_stage(stage, candidates)
            reports.append(report)
            if self.show_progress:
                print(f"  stage {report.stage}: {report.case:<18} prefix {report.prefix_len}->"
                      f"{report.next_prefix_len} block {report.block_size} "
                      f"duels {report.duels} survivors {report.survivors}"
                      f"{' unresolved ' + str(report.unresolved) if report.unresolved else ''}")
        return reports

    def run_stage(self, stage: int, candidates: CandidateSet) -> StageReport:
        m = self.m
        prefix_len = min(1 << (stage - 1), m)
        next_prefix_len = min(1 << stage, m)
        block_size = max(1, 1 << (stage - 2))
        report = StageReport(stage=stage, case="converged", prefix_len=prefix_len,
                             next_prefix_len=next_prefix_len, block_size=block_size)

        both_matched = self.arbiter.both_matched
        unresolved = self.arbiter.unresolved
        frozen = candidates.snapshot()
        lbb = LocalBulletinBoard.from_snapshot(frozen, block_size)

        if prefix_len >= m:
            report.survivors = candidates.count()
            return report

        if self._test_for_periodic_case(frozen, block_size, prefix_len):
            self._periodic_case(frozen, candidates, prefix_len, next_prefix_len, report)
        else:
            self._regular_case(frozen, candidates, lbb, prefix_len, next_prefix_len, report)

        report.survivors = candidates.count()
        report.both_matched = self.arbiter.both_matched - both_matched
        report.unresolved = self.arbiter.unresolved - unresolved
        return report

    def _test_for_periodic_case(self, frozen: np.ndarray, block_size: int, prefix_len: int) -> bool:
        """Periodic when the first block holds candidate 0 and a second one."""
        first_block = np.flatnonzero(frozen[:block_size])
        if first_block.size >= 2 and first_block[0] == 0:
            period_size = int(first_block[1])
            self.board.period_size = period_size
            self.board.L = -(-prefix_len // period_size) * period_size
            return True

        self.board.period_size = 0
        self.board.L = 0
        return False

    # ── periodic case ────────────────────────────────────────────────────

    def _periodic_reach(self, period_size: int) -> np.ndarray:
        """reach[t] = first t' >= t where z[t'] != z[t' - period_size].

        The array has one extra slot so reach[len(z)] == len(z).
        """
        n_z = self.z.size
        repeats = np.zeros(n_z, dtype=bool)
        repeats[period_size:] = self.z[period_size:] == self.z[:-period_size]
        breaks = np.where(repeats, n_z, np.arange(n_z))
        reach = np.minimum.accumulate(breaks[::-1])[::-1]
        return np.append(reach, n_z)

    def _periodic_case(self, frozen: np.ndarray, candidates: CandidateSet,
                       prefix_len: int, next_prefix_len: int, report: StageReport):
        period_size = self.board.period_size
        L = self.board.L

        def present(pos: int) -> bool:
            return pos < frozen.size and bool(frozen[pos])

        if present(period_size) and present(L):
            # Companions at j + period_size and j + L; the second implies the first.
            report.case = "periodic-continue"
            extent = L + prefix_len
        else:
            report.case = "periodic-terminate"
            important_pos = L
            k = 1
            while k * period_size <= L:
                if not present(k * period_size):
                    important_pos = (k - 1) * period_size
                    break
                k += 1
            extent = max(important_pos + prefix_len, next_prefix_len)

        # A companion at j + o exists when z keeps period_size-periodic from j
        # through j + o + prefix_len.
        reach = self._periodic_reach(period_size)
        positions = np.flatnonzero(frozen)
        ends = positions + extent
        keep = ends <= self.z.size
        keep[keep] = reach[positions[keep] + period_size] >= ends[keep]
        candidates.discard_many(positions[~keep])

    # ── regular case ─────────────────────────────────────────────────────

    def _extension_test(self, positions: np.ndarray, prefix_len: int, next_prefix_len: int) -> np.ndarray:
        """Mask of positions whose window matches P[prefix_len:next_prefix_len]."""
        keep = np.zeros(positions.size, dtype=bool)
        width = next_prefix_len - prefix_len
        if positions.size == 0 or width <= 0:
            keep[:] = width <= 0
            return keep

        expected = self.pattern[prefix_len:next_prefix_len]
        offsets = np.arange(prefix_len, next_prefix_len)
        fits = np.flatnonzero(positions + next_prefix_len <= self.z.size)
        rows = max(1, _GATHER_LIMIT // width)
        for start in range(0, fits.size, rows):
            chunk = fits[start:start + rows]
            window = self.z[positions[chunk, None] + offsets]
            keep[chunk] = np.all(window == expected, axis=1)
        return keep

    def _regular_case(self, frozen: np.ndarray, candidates: CandidateSet, lbb: LocalBulletinBoard,
                      prefix_len: int, next_prefix_len: int, report: StageReport):
        report.case = "regular"
        block_size = lbb.block_size

        # Settle crowded blocks so each carries one representative forward.
        unsettled: List[int] = []
        positions = np.flatnonzero(frozen)
        if positions.size:
            blocks, starts, counts = np.unique(positions // block_size,
                                               return_index=True, return_counts=True)
            for block, start, count in zip(blocks.tolist(), starts.tolist(), counts.tolist()):
                if count < 2:
                    continue
                members = positions[start:start + count]
                if block == 0:
                    unsettled.extend(int(p) for p in members[1:])
                    continue
                standing, duels = self.arbiter.sweep(members, candidates)
                report.duels += duels
                lbb.first[block] = standing[0] if standing else -1
                unsettled.extend(standing[1:])

        # Extension test on representatives and whatever a duel could not settle.
        to_test = np.union1d(lbb.representatives(), np.array(unsettled, dtype=np.int64))
        keep = self._extension_test(to_test, prefix_len, next_prefix_len)
        failed = to_test[~keep]
        candidates.discard_many(failed)
        lbb.first[np.isin(lbb.first, failed)] = -1

        # Dueling between surviving candidates closer than pi.
        _, duels = self.arbiter.sweep(candidates.positions(), candidates)
        report.duels += duels


# ============================================================================
# Result extraction and top-level matcher
# ============================================================================

class ResultExtractor:
    """Maps surviving candidates in the text region of z back to text offsets."""

    @staticmethod
    def extract(candidates: CandidateSet, m: int) -> List[int]:
        n_z = len(candidates)
        positions = candidates.positions(m + 1, n_z - m + 1)
        return (positions - (m + 1)).tolist()


class GSVMatcher:
    """Galil-Seiferas-Vishkin dueling matcher (sequential simulation)."""

    def __init__(self, show_progress: bool = False):
        """
        Args:
            show_progress: Print preprocessing details and one line per stage
        """
        self.show_progress = show_progress

    def search(self, text: CharSequence, pattern: CharSequence) -> List[int]:
        """Return all zero-based offsets where ``pattern`` occurs in ``text``."""
        matches, _ = self.search_with_reports(text, pattern)
        return matches

    def search_with_reports(self, text: CharSequence,
                            pattern: CharSequence) -> Tuple[List[int], List[StageReport]]:
        """Like search(), also returning one StageReport per stage."""
        text_codes, pattern_codes = _validate(text, pattern)
        m = int(pattern_codes.size)
        n = int(text_codes.size)
        if m == 0 or n < m:
            return [], []

        z = build_combined_sequence(pattern_codes, text_codes)
        period = PeriodAnalyzer.smallest_period(pattern_codes)
        pi = PeriodAnalyzer.duel_threshold(period, m)
        witness = WitnessBuilder.build(pattern_codes, pi)

        if self.show_progress:
            print(f"Pattern length {m}, text length {n}: period {period}, pi {pi}, "
                  f"{StageEngine.num_stages(m)} stage(s)")
            if witness.degenerate:
                print(f"  WARNING: no witness for shifts {sorted(witness.degenerate)}; "
                      f"those duels are skipped")

        candidates = CandidateSet(z.size)
        candidates.seed(z, pattern_codes)
        reports = [StageReport(stage=1, case="seed", prefix_len=0,
                               next_prefix_len=min(2, m), block_size=1,
                               survivors=candidates.count())]
        if self.show_progress:
            print(f"  stage 1: seed               survivors {reports[0].survivors}")

        engine = StageEngine(z, pattern_codes, witness, BulletinBoard(pi=pi),
                             show_progress=self.show_progress)
        reports.extend(engine.run(candidates))

        if self.show_progress:
            both_matched = sum(r.both_matched for r in reports)
            unresolved = sum(r.unresolved for r in reports)
            if both_matched:
                print(f"  WARNING: {both_matched} duel(s) left both candidates standing")
            if unresolved:
                print(f"  WARNING: {unresolved} duel(s) skipped for lack of a witness")

        return ResultExtractor.extract(candidates, m), reports


def search(text: CharSequence, pattern: CharSequence) -> List[int]:
    """Find all occurrences of ``pattern`` in ``text`` with the dueling matcher.

    Raises:
        InvalidArgumentError: if either argument is None or they mix bytes and text
    """
    return GSVMatcher().search(text, pattern)


# ============================================================================
# Classical matchers (Morris-Pratt, Knuth-Morris-Pratt, naive)
# ============================================================================

class ClassicalMatchers:
    """Single-pass failure-function matchers and a naive reference scan."""

    @staticmethod
    def _prepare(text: CharSequence, pattern: CharSequence) -> Optional[Tuple[List[int], List[int]]]:
        text_codes, pattern_codes = _validate(text, pattern)
        if pattern_codes.size == 0 or text_codes.size < pattern_codes.size:
            return None
        return text_codes.tolist(), pattern_codes.tolist()

    @staticmethod
    def mp_table(pattern: CharSequence) -> List[int]:
        """Morris-Pratt table: longest proper prefix-suffix of P[0..i]."""
        if pattern is None:
            raise InvalidArgumentError("Pattern cannot be None")
        return PeriodAnalyzer.failure_table(_encode(pattern)).tolist()

    @staticmethod
    def kmp_table(pattern: CharSequence) -> List[int]:
        """Knuth-Morris-Pratt table of length m + 1.

        table[j] is the border to fall back to after a mismatch at P[j],
        skipping borders that would compare the same character again; -1 means
        the window moves past the mismatching text character.
        """
        if pattern is None:
            raise InvalidArgumentError("Pattern cannot be None")
        codes = _encode(pattern).tolist()
        m = len(codes)
        if m == 0:
            return []

        mp = PeriodAnalyzer.failure_table(codes).tolist()
        table = [0] * (m + 1)
        table[0] = -1
        table[m] = mp[m - 1]
        for j in range(1, m):
            t = mp[j - 1]
            while t > 0 and codes[j] == codes[t]:
                t = mp[t - 1]
            if t > 0:
                table[j] = t
            elif codes[j] == codes[0]:
                table[j] = -1
            else:
                table[j] = 0
        return table

    @staticmethod
    def mp_search(text: CharSequence, pattern: CharSequence) -> List[int]:
        prepared = ClassicalMatchers._prepare(text, pattern)
        if prepared is None:
            return []
        t, p = prepared
        n, m = len(t), len(p)
        table = PeriodAnalyzer.failure_table(p).tolist()

        results = []
        matched = 0
        for i in range(n):
            if m - matched > n - i:
                break
            while matched > 0 and p[matched] != t[i]:
                matched = table[matched - 1]
            if p[matched] == t[i]:
                matched += 1
            if matched == m:
                results.append(i - m + 1)
                matched = table[matched - 1]
        return results

    @staticmethod
    def kmp_search(text: CharSequence, pattern: CharSequence) -> List[int]:
        prepared = ClassicalMatchers._prepare(text, pattern)
        if prepared is None:
            return []
        t, p = prepared
        n, m = len(t), len(p)
        table = ClassicalMatchers.kmp_table(pattern)

        results = []
        i = 0
        j = 0
        while i <= n - m:
            while j < m and t[i + j] == p[j]:
                j += 1
            if j == m:
                results.append(i)
                i = i + j - table[j]
                j = table[j]
                continue
            i = i + j - table[j]
            j = max(0, table[j])
        return results

    @staticmethod
    def naive_search(text: CharSequence, pattern: CharSequence) -> List[int]:
        """O(nm) scan, used as the reference for every other matcher."""
        prepared = ClassicalMatchers._prepare(text, pattern)
        if prepared is None:
            return []
        t, p = prepared
        m = len(p)
        return [i for i in range(len(t) - m + 1) if t[i:i + m] == p]


ALGORITHMS = {
    "gsv": search,
    "kmp": ClassicalMatchers.kmp_search,
    "mp": ClassicalMatchers.mp_search,
    "naive": ClassicalMatchers.naive_search,
}


# ============================================================================
# Record-level driver
# ============================================================================

@dataclass
class MatchHit:
    """One occurrence of the pattern inside a named record."""
    record: str
    start: int
    end: int
    pattern: str
    algorithm: str

    def to_bed(self) -> str:
        """Convert to BED format."""
        return f"{self.record}\t{self.start}\t{self.end}\t{self.pattern}\t{self.algorithm}"


def _search_record_worker(args) -> List[MatchHit]:
    """Worker for parallel record processing.

    Args:
        args: Tuple of (record, sequence, pattern, algorithm)

    Returns:
        List of MatchHit objects for this record
    """
    record, seq, pattern, algorithm = args
    offsets = ALGORITHMS[algorithm](seq, pattern)
    return [MatchHit(record, start, start + len(pattern), pattern, algorithm) for start in offsets]


def _jobs_count(value: str) -> int:
    """argparse type for --jobs: -1 (sequential), 0 (all CPUs) or a positive count."""
    try:
        jobs = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid job count: {value!r}")
    if jobs < -1:
        raise argparse.ArgumentTypeError(f"job count must be -1, 0 or positive, got {jobs}")
    return jobs


def _format_elapsed(elapsed: float) -> str:
    return f"{int(elapsed // 60)}m {int(elapsed % 60)}s" if elapsed >= 60 else f"{int(elapsed)}s"


def _print_progress(done: int, total: int, start_time: float, label: str):
    bar_length = 40
    filled = int(bar_length * done / total) if total else bar_length
    bar = '█' * filled + '░' * (bar_length - filled)
    progress_pct = done / total * 100 if total else 100.0
    elapsed_str = _format_elapsed(time.time() - start_time)
    print(f"\r[{bar}] {progress_pct:.1f}% ({done}/{total}) {label} - {elapsed_str}", end='', flush=True)


class MatchFinder:
    """Loads records from a FASTA or plain-text file and searches each one."""

    def __init__(self, input_file: str, pattern: str, algorithm: str = "gsv",
                 show_progress: bool = False, ignore_case: bool = False):
        """
        Args:
            input_file: FASTA file (records start with '>') or plain text file
            pattern: Pattern to search for
            algorithm: One of ALGORITHMS ("gsv", "kmp", "mp", "naive")
            show_progress: Show progress information
            ignore_case: Upper-case records and pattern before searching
        """
        if algorithm not in ALGORITHMS:
            raise InvalidArgumentError(f"Unknown algorithm: {algorithm}")
        if pattern is None:
            raise InvalidArgumentError("Pattern cannot be None")

        self.input_file = input_file
        self.pattern = pattern.upper() if ignore_case else pattern
        self.algorithm = algorithm
        self.show_progress = show_progress
        self.ignore_case = ignore_case
        self.records: Dict[str, str] = {}

    @staticmethod
    def _hit_sort_key(hit: MatchHit):
        return (_natural_sort_key(hit.record), hit.start)

    def load_records(self) -> Dict[str, str]:
        """Load records from the input file.

        FASTA headers name the records; a file without headers becomes one
        record named after the file stem.
        """
        with open(self.input_file, 'r') as f:
            content = f.read()

        records: Dict[str, str] = {}
        if content.lstrip().startswith('>'):
            current = None
            chunks: List[str] = []
            for line in content.splitlines():
                line = line.strip()
                if line.startswith('>'):
                    if current is not None:
                        records[current] = ''.join(chunks)
                    current = line[1:].split()[0] if line[1:].split() else f"record{len(records) + 1}"
                    chunks = []
                elif line:
                    chunks.append(line)
            if current is not None:
                records[current] = ''.join(chunks)
        else:
            records[Path(self.input_file).stem] = content.rstrip('\r\n')

        if self.ignore_case:
            records = {name: seq.upper() for name, seq in records.items()}

        self.records = records
        return records

    def _tasks(self):
        return [(name, seq, self.pattern, self.algorithm) for name, seq in self.records.items()]

    def find_matches(self) -> List[MatchHit]:
        """Sequential search over all loaded records."""
        tasks = self._tasks()
        hits: List[MatchHit] = []
        start_time = time.time()
        for idx, task in enumerate(tasks, 1):
            hits.extend(_search_record_worker(task))
            if self.show_progress:
                _print_progress(idx, len(tasks), start_time, "records searched")
        if self.show_progress and tasks:
            print()

        hits.sort(key=self._hit_sort_key)
        return hits

    def find_matches_parallel(self, n_jobs: Optional[int] = None) -> List[MatchHit]:
        """
        Search records with multiprocessing, one task per record.

        Args:
            n_jobs: Number of worker processes (None = all CPU cores)
        """
        tasks = self._tasks()
        if not tasks:
            return []
        if n_jobs is None:
            n_jobs = min(cpu_count(), len(tasks))

        if self.show_progress:
            print(f"Parallel mode: Using {n_jobs} CPU cores for {len(tasks)} records")

        hits: List[MatchHit] = []
        start_time = time.time()
        with Pool(n_jobs) as pool:
            completed = 0
            for result in pool.imap_unordered(_search_record_worker, tasks):
                hits.extend(result)
                completed += 1
                if self.show_progress:
                    _print_progress(completed, len(tasks), start_time, "records searched")
        if self.show_progress:
            print()

        hits.sort(key=self._hit_sort_key)
        return hits

    def save_results(self, hits: List[MatchHit], output_file: str):
        """Save hits to a tab-separated BED-style file."""
        with open(output_file, 'w') as f:
            f.write("# Pattern occurrences (BED format, 0-based half-open)\n")
            f.write("# record\tstart\tend\tpattern\talgorithm\n")
            for hit in sorted(hits, key=self._hit_sort_key):
                f.write(hit.to_bed() + "\n")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Exact pattern search with the Galil-Seiferas-Vishkin dueling algorithm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Find every occurrence of a motif in a FASTA file
  python dueling.py GATTACA genome.fa -o hits.bed

  # Use the classical KMP scan instead, on all CPU cores
  python dueling.py GATTACA genome.fa --algorithm kmp --jobs 0
        """
    )
    parser.add_argument("pattern", help="Pattern to search for")
    parser.add_argument("input", help="FASTA or plain text file")
    parser.add_argument("-o", "--output", default="matches.bed", help="Output file (default: matches.bed)")
    parser.add_argument("--algorithm", choices=sorted(ALGORITHMS), default="gsv",
                        help="Matching algorithm (default: gsv)")
    parser.add_argument("--jobs", type=_jobs_count, default=-1,
                        help="Number of parallel CPU cores (default: -1=sequential, 0=use all CPUs)")
    parser.add_argument("--progress", action="store_true", help="Show progress bars")
    parser.add_argument("--ignore-case", action="store_true", help="Case-insensitive search")

    args = parser.parse_args(argv)

    if args.jobs == 0:
        parallel_info = f"all {cpu_count()} CPU cores"
    elif args.jobs == -1:
        parallel_info = "disabled (sequential)"
    else:
        parallel_info = f"{args.jobs} CPU cores"

    print(f"Dueling Pattern Matcher")
    print(f"{'=' * 60}")
    print(f"Input:        {args.input}")
    print(f"Output:       {args.output}")
    print(f"Pattern:      {args.pattern} ({len(args.pattern)} chars)")
    print(f"Algorithm:    {args.algorithm}")
    print(f"Parallelism:  {parallel_info}")
    print(f"Ignore case:  {'yes' if args.ignore_case else 'no'}")
    print()

    finder = MatchFinder(
        args.input,
        args.pattern,
        algorithm=args.algorithm,
        show_progress=args.progress,
        ignore_case=args.ignore_case,
    )
    records = finder.load_records()
    print(f"Loaded {len(records)} record(s), {sum(len(s) for s in records.values()):,} characters")

    if args.jobs == -1:
        hits = finder.find_matches()
    else:
        hits = finder.find_matches_parallel(n_jobs=None if args.jobs == 0 else args.jobs)

    finder.save_results(hits, args.output)

    print(f"\n{'=' * 60}")
    print(f"Completed! Found {len(hits)} occurrence(s).")
    print(f"Results saved to {args.output}")


if __name__ == "__main__":
    main()
