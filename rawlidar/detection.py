"""
Detection Resolver

Turns one raw world-space hit into a sensor-local RawDetection with
incidence cosine and object classification. Pure given its inputs, so it is
safe to call from any thread once the hit buffer of a tick is complete.
"""

from dataclasses import dataclass
import logging

import numpy as np

from .math_utils import _normalize
from .registry import SemanticTag

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RawDetection:
    """
    One resolved point of the raw point cloud.

    Two detections compare equal when every field matches exactly; the point
    is compared element-wise.

    :param point:         Hit position in the sensor frame [m].
    :param cos_inc_angle: Cosine between the reversed beam and the surface normal, in [-1, 1].
    :param object_idx:    Registry id of the hit actor, 0 when unknown.
    :param object_tag:    Semantic label of the hit actor, SemanticTag.NONE when unknown or ambiguous.
    """
    point: np.ndarray              # [m] sensor-frame position
    cos_inc_angle: float           # [-1..1] incidence cosine
    object_idx: int = 0            # registry id, 0 = no object
    object_tag: SemanticTag = SemanticTag.NONE

    def __eq__(self, other):
        if not isinstance(other, RawDetection):
            return NotImplemented
        return (
            np.array_equal(np.asarray(self.point), np.asarray(other.point))
            and self.cos_inc_angle == other.cos_inc_angle
            and self.object_idx == other.object_idx
            and self.object_tag == other.object_tag
        )

    __hash__ = None  # mutable record


def resolve_object(actor, registry):
    """
    Map a hit actor to (object_idx, object_tag).

    No actor, or an actor unknown to the registry, gives (0, NONE). A known
    actor keeps its registry id; its tag is only reported when it carries
    exactly one semantic label, otherwise NONE.

    Registry failures stay local to the hit: a lookup that raises, or an
    entry without a usable id, is logged and resolved as (0, NONE). A single
    label outside SemanticTag keeps the id and reports NONE.

    :param actor:    Actor reference carried by the hit, or None.
    :param registry: Object providing ``lookup(actor) -> ActorInfo | None``, or None.
    :return: (object_idx, object_tag) tuple.
    """
    if actor is None:
        return 0, SemanticTag.NONE

    # Ask the registry; any failure of the external lookup counts as "unknown actor"
    try:
        info = registry.lookup(actor) if registry is not None else None
        identifier = None if info is None else int(info.identifier)
        tags = () if info is None else tuple(info.semantic_tags)
    except Exception as exc:
        logger.warning("Actor registry lookup failed for %r: %r", actor, exc)
        return 0, SemanticTag.NONE

    if info is None:
        logger.debug("Hit actor %r is not in the actor registry.", actor)
        return 0, SemanticTag.NONE

    # Ambiguous (zero or several labels) classifications are not resolved
    if len(tags) != 1:
        return identifier, SemanticTag.NONE

    try:
        return identifier, SemanticTag(tags[0])
    except ValueError:
        logger.warning("Actor %r carries an unknown semantic label %r.", actor, tags[0])
        return identifier, SemanticTag.NONE


def compute_raw_detection(hit, sensor_transform, registry):
    """
    Resolve a raw hit into a RawDetection.

    :param hit:              Object with ``point``, ``normal`` and ``actor`` attributes (world frame).
    :param sensor_transform: SensorTransform of the sensor at the time of the tick.
    :param registry:         Object providing ``lookup(actor) -> ActorInfo | None``.
    :return: RawDetection.
    """
    hit_point = np.asarray(hit.point, dtype=float)
    local_point = sensor_transform.inverse_transform_position(hit_point)

    incidence = -_normalize(hit_point - sensor_transform.location)
    cos_inc = float(np.clip(np.dot(incidence, np.asarray(hit.normal, dtype=float)), -1.0, 1.0))

    object_idx, object_tag = resolve_object(getattr(hit, "actor", None), registry)
    return RawDetection(point=local_point, cos_inc_angle=cos_inc, object_idx=object_idx, object_tag=object_tag)
