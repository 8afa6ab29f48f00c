"""
Actor registry capability consumed by the detection resolver.

The sensor only ever calls ``lookup(actor)``; ``ActorRegistry`` is a small
dict-backed implementation of that capability for simulations and tests.
Any object with the same ``lookup`` method can be injected instead.
"""

from dataclasses import dataclass, field
from enum import IntEnum
import threading


class SemanticTag(IntEnum):
    """City object labels attached to actors. ``NONE`` means unclassified."""
    NONE = 0
    BUILDINGS = 1
    FENCES = 2
    OTHER = 3
    PEDESTRIANS = 4
    POLES = 5
    ROAD_LINES = 6
    ROADS = 7
    SIDEWALKS = 8
    VEGETATION = 9
    VEHICLES = 10
    WALLS = 11
    TRAFFIC_SIGNS = 12
    SKY = 13
    GROUND = 14
    BRIDGE = 15
    RAIL_TRACK = 16
    GUARD_RAIL = 17
    TRAFFIC_LIGHT = 18
    STATIC = 19
    DYNAMIC = 20
    WATER = 21
    TERRAIN = 22


@dataclass(frozen=True)
class ActorInfo:
    """
    Registry entry for one actor.

    :param identifier:    Unique, non-negative actor id (0 is reserved for "no object").
    :param semantic_tags: Set of SemanticTag labels carried by the actor.
    """
    identifier: int
    semantic_tags: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        if int(self.identifier) < 0:
            raise ValueError("identifier must be >= 0.")
        # Frozen dataclass, so normalized values go through object.__setattr__
        object.__setattr__(self, "identifier", int(self.identifier))
        object.__setattr__(self, "semantic_tags", frozenset(SemanticTag(tag) for tag in self.semantic_tags))


class ActorRegistry:
    """
    Thread-safe mapping from actor references to ActorInfo entries.

    Actors are keyed by identity, so any hashable or unhashable object can be
    registered (scene objects, handles, plain strings).
    """

    def __init__(self):
        self._entries = {}  # id(actor) -> (actor, ActorInfo)
        self._lock = threading.Lock()
        self._next_id = 1   # 0 is reserved for "no object"

    def register(self, actor, semantic_tags=(), identifier=None):
        """
        Add an actor and return its ActorInfo.

        When identifier is None the next free id is allocated, starting at 1.
        """
        with self._lock:
            if identifier is None:
                identifier = self._next_id
            info = ActorInfo(identifier=identifier, semantic_tags=frozenset(semantic_tags))
            self._next_id = max(self._next_id, info.identifier + 1)
            self._entries[id(actor)] = (actor, info)
            return info

    def unregister(self, actor):
        """
        Remove an actor. Unknown actors are ignored.

        :param actor: Actor reference passed to register().
        """
        with self._lock:
            self._entries.pop(id(actor), None)

    def lookup(self, actor):
        """Return the ActorInfo registered for actor, or None."""
        with self._lock:
            entry = self._entries.get(id(actor))
        # id() values are reused after garbage collection; check identity too
        if entry is None or entry[0] is not actor:
            return None
        return entry[1]

    def __len__(self):
        with self._lock:
            return len(self._entries)
