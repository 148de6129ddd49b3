"""
Slot catalog and duration matcher
Splits the daily slot grid into break-free blocks and finds runs of
consecutive slots whose total length matches a session duration.
"""

from dataclasses import dataclass
from datetime import datetime, time
from functools import lru_cache

import config


@dataclass(frozen=True)
class TimeSlot:
    start: time
    end: time

    @property
    def minutes(self):
        return slot_minutes((self.start, self.end))

    @property
    def label(self):
        return f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"

    def __str__(self):
        return self.label


@dataclass(frozen=True)
class ContinuousBlock:
    name: str
    slots: tuple


@dataclass(frozen=True)
class SlotCombination:
    block: str
    slots: tuple
    total_minutes: int
    target_minutes: int

    @property
    def start(self):
        return self.slots[0].start

    @property
    def end(self):
        return self.slots[-1].end

    @property
    def label(self):
        return f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"


def slot_minutes(slot):
    s, e = slot
    return (e.hour * 60 + e.minute) - (s.hour * 60 + s.minute)


def parse_slot_label(label):
    """'09:00 - 10:00' -> TimeSlot(09:00, 10:00)"""
    start, end = [part.strip() for part in label.split('-')]
    return TimeSlot(datetime.strptime(start, '%H:%M').time(),
                    datetime.strptime(end, '%H:%M').time())


def build_catalog(slots=None):
    pairs = config.TIME_SLOTS if slots is None else slots
    catalog = [s if isinstance(s, TimeSlot) else TimeSlot(*s) for s in pairs]
    for prev, cur in zip(catalog, catalog[1:]):
        if cur.start < prev.end:
            raise ValueError(f"Slots {prev} and {cur} overlap")
    return tuple(catalog)


def build_blocks(slots=None, names=None):
    """Partition the catalog into maximal runs without a break between slots"""
    catalog = build_catalog(slots)
    names = config.BLOCK_NAMES if names is None else names
    runs = []
    for slot in catalog:
        if runs and runs[-1][-1].end == slot.start:
            runs[-1].append(slot)
        else:
            runs.append([slot])
    blocks = []
    for idx, run in enumerate(runs):
        name = names[idx] if idx < len(names) else f"block-{idx + 1}"
        blocks.append(ContinuousBlock(name, tuple(run)))
    return tuple(blocks)


TIME_SLOTS = build_catalog()
BLOCKS = build_blocks()


def find_combinations(blocks, target_minutes, tolerance=config.SLOT_TOLERANCE_MIN):
    """
    Every run of consecutive slots inside one block whose total is within
    `tolerance` minutes of `target_minutes`. Each start index contributes at
    most its first match; a start index is dropped once the running total
    passes target + tolerance.
    """
    combinations = []
    for block in blocks:
        for start_idx in range(len(block.slots)):
            total = 0
            for end_idx in range(start_idx, len(block.slots)):
                total += block.slots[end_idx].minutes
                if abs(total - target_minutes) <= tolerance:
                    combinations.append(SlotCombination(
                        block=block.name,
                        slots=block.slots[start_idx:end_idx + 1],
                        total_minutes=total,
                        target_minutes=target_minutes,
                    ))
                    break
                if total > target_minutes + tolerance:
                    break
    return combinations


@lru_cache(maxsize=None)
def _cached_combinations(blocks, target_minutes, tolerance):
    return tuple(find_combinations(blocks, target_minutes, tolerance))


def combinations_for(target_minutes, blocks=None, tolerance=config.SLOT_TOLERANCE_MIN):
    """Memoised combinations for the standard blocks (or any given blocks)"""
    blocks = BLOCKS if blocks is None else tuple(blocks)
    return list(_cached_combinations(blocks, target_minutes, tolerance))


def consecutive_windows(blocks=None, max_len=3):
    """The longest run (2..max_len slots) starting at each position of each block"""
    blocks = BLOCKS if blocks is None else blocks
    windows = []
    for block in blocks:
        for start_idx in range(len(block.slots) - 1):
            n = min(max_len, len(block.slots) - start_idx)
            run = block.slots[start_idx:start_idx + n]
            windows.append(SlotCombination(block.name, run, sum(s.minutes for s in run), 0))
    return windows


def adjacent_pairs(day, slots=None):
    """Any two neighbouring catalog slots on `day`, skipping elective slots"""
    catalog = TIME_SLOTS if slots is None else build_catalog(slots)
    available = [s for s in catalog if not is_elective_slot(day, s)]
    pairs = []
    for first, second in zip(available, available[1:]):
        pairs.append(SlotCombination('any', (first, second), first.minutes + second.minutes, 0))
    return pairs


def elective_slots(day):
    return [TimeSlot(*pair) for pair in config.ELECTIVE_SLOTS.get(day, [])]


def is_elective_slot(day, slot):
    return slot in elective_slots(day)


def overlaps(a, b):
    return a.start < b.end and b.start < a.end
