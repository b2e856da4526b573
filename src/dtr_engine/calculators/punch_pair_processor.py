"""Turns a day's raw scans into work and break intervals."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from dtr_engine.calculators.types import (
    BreakInterval,
    ExpectedEvent,
    MatchResult,
    Punch,
    PunchPairResult,
    PunchRecordCandidate,
    PunchType,
    WorkInterval,
    minutes_between,
    normalize_direction,
)
from dtr_engine.config import DtrPolicy

logger = logging.getLogger(__name__)


def _sorted(punches: Iterable[Punch]) -> list[Punch]:
    return sorted(punches, key=lambda punch: punch.sort_key)


def _distance_minutes(punch: Punch, event: ExpectedEvent) -> int:
    return int(abs((punch.logged_at - event.expected_at).total_seconds()) // 60)


@dataclass
class _PairingState:
    """Accumulator folded over time-sorted punches."""

    open_in: Punch | None = None
    open_break_out: Punch | None = None
    pairs: list[WorkInterval] = field(default_factory=list)
    break_pairs: list[BreakInterval] = field(default_factory=list)
    unpaired_out: Punch | None = None
    first_in: Punch | None = None
    last_out: Punch | None = None


class PunchPairProcessor:
    """Pairs scans into work/break intervals, tolerant of noisy input.

    All methods are pure: they take and return immutable Punch values and
    never touch the stored scans.
    """

    def __init__(self, policy: DtrPolicy | None = None):
        self.policy = policy or DtrPolicy()

    @staticmethod
    def normalize_direction(raw: str | None) -> PunchType:
        """Map a device direction code onto the closed PunchType set."""
        return normalize_direction(raw)

    def collapse_duplicate_scans(
        self,
        punches: Iterable[Punch],
        threshold_minutes: int | None = None,
    ) -> list[Punch]:
        """Drop direction-less double taps.

        A direction-less scan closer than the threshold to the previously
        kept direction-less scan is dropped in favour of the earlier one.
        Scans with an explicit direction are always kept and break the chain.
        """
        if threshold_minutes is None:
            threshold_minutes = self.policy.duplicate_scan_threshold_minutes

        kept: list[Punch] = []
        previous_unknown: Punch | None = None

        for punch in _sorted(punches):
            if punch.direction.is_known:
                kept.append(punch)
                previous_unknown = None
                continue

            if previous_unknown is not None:
                gap = minutes_between(previous_unknown.logged_at, punch.logged_at)
                if gap < threshold_minutes:
                    continue

            kept.append(punch)
            previous_unknown = punch

        return kept

    def match_to_schedule(
        self,
        punches: Iterable[Punch],
        expected_events: Sequence[ExpectedEvent],
        tolerance_minutes: int | None = None,
    ) -> MatchResult:
        """Give direction-less scans the direction of the schedule event they match.

        With two or more scans and none carrying a direction, the first scan
        claims the first expected In and the last scan the last expected Out;
        a boundary claim outside tolerance is counted in ``unconfirmed_count``.
        Each remaining event then claims the nearest unclaimed scan within
        tolerance (earliest scan on ties). If every event was claimed,
        leftover direction-less scans are dropped; otherwise they get
        alternating directions. Either way they are counted in
        ``dropped_count``.
        """
        if tolerance_minutes is None:
            tolerance_minutes = self.policy.match_tolerance_minutes

        ordered = _sorted(punches)
        directions = [punch.direction for punch in ordered]
        unknown = [i for i, direction in enumerate(directions) if not direction.is_known]
        consumed: set[int] = set()
        unconfirmed = 0

        if len(unknown) == len(ordered) and len(unknown) > 1:
            first_in_event = next(
                (i for i, event in enumerate(expected_events) if event.direction is PunchType.IN),
                None,
            )
            last_out_event = next(
                (
                    i
                    for i in reversed(range(len(expected_events)))
                    if expected_events[i].direction is PunchType.OUT
                ),
                None,
            )
            for scan_index, event_index, direction in (
                (unknown[0], first_in_event, PunchType.IN),
                (unknown[-1], last_out_event, PunchType.OUT),
            ):
                if event_index is None:
                    continue
                directions[scan_index] = direction
                consumed.add(event_index)
                if _distance_minutes(ordered[scan_index], expected_events[event_index]) > tolerance_minutes:
                    unconfirmed += 1

        for event_index, event in enumerate(expected_events):
            if event_index in consumed:
                continue

            best: int | None = None
            best_distance = tolerance_minutes + 1
            for i in unknown:
                if directions[i].is_known:
                    continue
                distance = _distance_minutes(ordered[i], event)
                if distance < best_distance:
                    best, best_distance = i, distance

            if best is not None:
                directions[best] = event.direction
                consumed.add(event_index)

        unmatched = [i for i in unknown if not directions[i].is_known]

        if len(consumed) == len(expected_events):
            if unmatched:
                logger.debug("Dropping %d scan(s) not matched to any schedule event", len(unmatched))
            dropped = set(unmatched)
            return MatchResult(
                punches=tuple(
                    punch.with_direction(directions[i])
                    for i, punch in enumerate(ordered)
                    if i not in dropped
                ),
                dropped_count=len(unmatched),
                unconfirmed_count=unconfirmed,
            )

        expecting_in = True
        for i, direction in enumerate(directions):
            if direction.is_known:
                expecting_in = direction.is_out_type
                continue
            directions[i] = PunchType.IN if expecting_in else PunchType.OUT
            expecting_in = not expecting_in

        return MatchResult(
            punches=tuple(punch.with_direction(directions[i]) for i, punch in enumerate(ordered)),
            dropped_count=len(unmatched),
            unconfirmed_count=unconfirmed,
        )

    def infer_directions(self, punches: Iterable[Punch]) -> list[Punch]:
        """Alternate In/Out over direction-less scans, starting with In.

        Explicit directions resynchronise the alternation: after an out-type
        scan the next inferred scan is an In.
        """
        resolved: list[Punch] = []
        expecting_in = True

        for punch in _sorted(punches):
            if punch.direction.is_known:
                expecting_in = punch.direction.is_out_type
                resolved.append(punch)
                continue
            resolved.append(punch.with_direction(PunchType.IN if expecting_in else PunchType.OUT))
            expecting_in = not expecting_in

        return resolved

    def process(self, punches: Iterable[Punch]) -> PunchPairResult:
        """Pair time-sorted punches in a single left-to-right pass.

        Work pairs and break pairs are tracked independently. A second In
        while one is open closes the open one with a missing Out; an Out with
        nothing open is recorded as unpaired. Whatever is still open at the
        end is closed with a missing counterpart.
        """
        state = _PairingState()
        for punch in _sorted(punches):
            self._step(state, punch)

        unpaired_in = state.open_in
        if state.open_in is not None:
            state.pairs.append(WorkInterval(state.open_in, None))
        if state.open_break_out is not None:
            state.break_pairs.append(BreakInterval(state.open_break_out, None))

        return PunchPairResult(
            pairs=tuple(state.pairs),
            break_pairs=tuple(state.break_pairs),
            unpaired_in=unpaired_in,
            unpaired_out=state.unpaired_out,
            first_in=state.first_in.logged_at if state.first_in else None,
            last_out=state.last_out.logged_at if state.last_out else None,
        )

    def _step(self, state: _PairingState, punch: Punch) -> None:
        direction = punch.direction
        if direction is PunchType.UNKNOWN:
            direction = PunchType.IN if state.open_in is None else PunchType.OUT
            punch = punch.with_direction(direction)

        if direction is PunchType.IN:
            if state.first_in is None:
                state.first_in = punch
            if state.open_in is not None:
                state.pairs.append(WorkInterval(state.open_in, None))
            state.open_in = punch

        elif direction is PunchType.OUT:
            state.last_out = punch
            if state.open_in is not None:
                state.pairs.append(WorkInterval(state.open_in, punch))
                state.open_in = None
            else:
                state.unpaired_out = punch

        elif direction is PunchType.BREAK_OUT:
            if state.open_break_out is not None:
                state.break_pairs.append(BreakInterval(state.open_break_out, None))
            state.open_break_out = punch

        elif direction is PunchType.BREAK_IN:
            state.break_pairs.append(BreakInterval(state.open_break_out, punch))
            state.open_break_out = None

    def calculate_total_work_minutes(self, pairs: Iterable[WorkInterval]) -> int:
        """Sum of Out minus In over complete pairs."""
        return sum(pair.minutes for pair in pairs)

    def calculate_break_minutes(self, pairs: Sequence[WorkInterval]) -> int:
        """Gaps between one pair's Out and the next pair's In."""
        total = 0
        for current, following in zip(pairs, pairs[1:]):
            if current.punch_out is not None:
                total += minutes_between(current.punch_out.logged_at, following.punch_in.logged_at)
        return total

    def calculate_actual_break_minutes(self, break_pairs: Iterable[BreakInterval]) -> int:
        """Sum of BreakIn minus BreakOut over complete break pairs."""
        return sum(pair.minutes for pair in break_pairs)

    def get_punch_records(
        self,
        pairs: Iterable[WorkInterval],
        break_pairs: Iterable[BreakInterval] = (),
    ) -> list[PunchRecordCandidate]:
        """Flatten pairs back into chronologically ordered punch rows."""
        records: list[PunchRecordCandidate] = []

        for pair in pairs:
            records.append(PunchRecordCandidate(pair.punch_in.scan_id, PunchType.IN, pair.punch_in.logged_at))
            if pair.punch_out is not None:
                records.append(
                    PunchRecordCandidate(pair.punch_out.scan_id, PunchType.OUT, pair.punch_out.logged_at)
                )

        for break_pair in break_pairs:
            if break_pair.punch_out is not None:
                records.append(
                    PunchRecordCandidate(
                        break_pair.punch_out.scan_id, PunchType.BREAK_OUT, break_pair.punch_out.logged_at
                    )
                )
            if break_pair.punch_in is not None:
                records.append(
                    PunchRecordCandidate(
                        break_pair.punch_in.scan_id, PunchType.BREAK_IN, break_pair.punch_in.logged_at
                    )
                )

        records.sort(key=lambda record: record.punched_at)
        return records
