"""
Occupancy tracking for faculty, rooms and student groups.
Keys are (identity, day-or-date, slot, epoch); epochs never see each other.
"""

from collections import namedtuple

import config

FACULTY = 'faculty'
ROOM = 'room'
GROUP = 'group'
KINDS = (FACULTY, ROOM, GROUP)

SlotKey = namedtuple('SlotKey', ['identity', 'day', 'slot', 'epoch'])


class ConflictIndex:

    def __init__(self):
        self._held = {kind: {} for kind in KINDS}

    def _keys(self, day, slots, epoch, faculty=(), rooms=(), groups=()):
        claims = ((FACULTY, faculty), (ROOM, rooms), (GROUP, groups))
        return [(kind, SlotKey(identity, day, slot, epoch))
                for kind, identities in claims
                for identity in identities
                for slot in slots]

    def is_free(self, kind, identity, day, slot, epoch):
        return SlotKey(identity, day, slot, epoch) not in self._held[kind]

    def holder_of(self, kind, identity, day, slot, epoch):
        return self._held[kind].get(SlotKey(identity, day, slot, epoch))

    def can_reserve(self, day, slots, epoch, faculty=(), rooms=(), groups=()):
        return all(key not in self._held[kind]
                   for kind, key in self._keys(day, slots, epoch, faculty, rooms, groups))

    def try_reserve(self, day, slots, epoch, faculty=(), rooms=(), groups=(), holder=True):
        """Reserve every (identity, slot) pair or nothing at all"""
        keys = self._keys(day, slots, epoch, faculty, rooms, groups)
        if any(key in self._held[kind] for kind, key in keys):
            return False
        for kind, key in keys:
            self._held[kind][key] = holder
        return True

    def seed(self, kind, identity, day, slots, epoch, holder=config.ELECTIVE_RESERVED):
        """Mark slots held unconditionally (used for elective windows)"""
        for slot in slots:
            self._held[kind][SlotKey(identity, day, slot, epoch)] = holder

    def occupied(self, kind):
        return dict(self._held[kind])

    def __len__(self):
        return sum(len(held) for held in self._held.values())
