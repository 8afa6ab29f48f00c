"""
Scene Geometry and Line Query Utilities

Reference implementation of the world capability consumed by the ray
caster. It contains:

A shared/exclusive SceneLock so a batch of ray queries can run while the
scene is protected against structural changes.
Ray-traceable primitives (Plane, Sphere, AxisAlignedBox), each optionally
bound to an actor reference and a collision-channel bit mask.
A Scene container answering closest-hit line queries between two points.

Query results are Hit records holding the world-space impact point [m], the
surface normal facing the incoming ray [unit], the distance along the ray
[m] and the actor owning the surface (None for unowned geometry).
"""

from contextlib import contextmanager
from dataclasses import dataclass
import threading
from typing import Any, Optional

import numpy as np

from .math_utils import _as_vector3, _normalize, eps

ALL_CHANNELS = 0xFFFFFFFF  # collision mask responding to every trace channel
LIDAR_TRACE_CHANNEL = 1 << 1  # trace channel used by laser queries


@dataclass
class Hit:
    """
    Blocking hit returned by a line query.

    :param point:    World-space impact point [m].
    :param normal:   Unit surface normal, flipped to face the ray origin.
    :param distance: Distance from the query origin to the impact point [m].
    :param actor:    Actor owning the surface, or None.
    """
    point: np.ndarray
    normal: np.ndarray
    distance: float
    actor: Optional[Any] = None


class SceneLock:
    """
    Shared/exclusive lock.

    Any number of readers may hold the lock together; a writer holds it
    alone. Waiting writers block new readers so structural updates are not
    starved by back-to-back scan ticks.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def lock_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def unlock_read(self):
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("unlock_read called without a matching lock_read.")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def lock_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def unlock_write(self):
        with self._cond:
            if not self._writer:
                raise RuntimeError("unlock_write called without a matching lock_write.")
            self._writer = False
            self._cond.notify_all()

    @property
    def readers(self):
        with self._cond:
            return self._readers

    @contextmanager
    def read_locked(self):
        self.lock_read()
        try:
            yield self
        finally:
            self.unlock_read()

    @contextmanager
    def write_locked(self):
        self.lock_write()
        try:
            yield self
        finally:
            self.unlock_write()


class SceneObject:
    """
    Base class for ray-traceable geometry.

    :param actor:          Actor reference reported in hits (may be None).
    :param collision_mask: Bit mask of trace channels this surface blocks.
    """

    def __init__(self, actor=None, collision_mask=ALL_CHANNELS):
        self.actor = actor
        self.collision_mask = int(collision_mask)

    def intersect(self, origin, direction, t_max):
        """
        Closest intersection along a unit ray within (eps, t_max].

        :return: (distance, point, normal) or None.
        """
        raise NotImplementedError


class Plane(SceneObject):
    """
    Infinite plane through ``point`` with surface normal ``normal``.

    t = dot(point - origin, n) / dot(direction, n); the reported normal is
    flipped to face the incoming ray.
    """

    def __init__(self, point, normal, actor=None, collision_mask=ALL_CHANNELS):
        super().__init__(actor=actor, collision_mask=collision_mask)
        self.point = _as_vector3(point, "point")
        self.normal = _normalize(_as_vector3(normal, "normal"))

    def intersect(self, origin, direction, t_max):
        denom = float(np.dot(direction, self.normal))
        if abs(denom) < eps:
            return None  # parallel to the plane
        t = float(np.dot(self.point - origin, self.normal)) / denom
        if not (eps < t <= t_max):
            return None
        facing = self.normal if denom < 0.0 else -self.normal
        return t, origin + t * direction, facing


class Sphere(SceneObject):
    """Solid sphere; closest root of |origin + t*d - center|^2 = r^2."""

    def __init__(self, center, radius, actor=None, collision_mask=ALL_CHANNELS):
        super().__init__(actor=actor, collision_mask=collision_mask)
        self.center = _as_vector3(center, "center")
        self.radius = float(radius)
        if self.radius <= eps:
            raise ValueError("Sphere radius must be > 0.")

    def intersect(self, origin, direction, t_max):
        oc = origin - self.center
        b = float(np.dot(oc, direction))
        c = float(np.dot(oc, oc)) - self.radius * self.radius
        disc = b * b - c
        if disc < 0.0:
            return None
        root = np.sqrt(disc)
        for t in (-b - root, -b + root):
            if eps < t <= t_max:
                point = origin + t * direction
                normal = _normalize(point - self.center)
                if np.dot(normal, direction) > 0.0:
                    normal = -normal  # origin inside the sphere
                return float(t), point, normal
        return None


class AxisAlignedBox(SceneObject):
    """Axis-aligned box between ``min_corner`` and ``max_corner`` (slab method)."""

    def __init__(self, min_corner, max_corner, actor=None, collision_mask=ALL_CHANNELS):
        super().__init__(actor=actor, collision_mask=collision_mask)
        self.min_corner = _as_vector3(min_corner, "min_corner")
        self.max_corner = _as_vector3(max_corner, "max_corner")
        if np.any(self.max_corner <= self.min_corner):
            raise ValueError("max_corner must be strictly greater than min_corner on all axes.")

    def intersect(self, origin, direction, t_max):
        with np.errstate(divide="ignore", invalid="ignore"):
            inv_dir = 1.0 / direction
            t0 = (self.min_corner - origin) * inv_dir
            t1 = (self.max_corner - origin) * inv_dir
        # 0 * inf on an axis the ray runs along; the slab is either all-in or all-out
        inside = (origin >= self.min_corner) & (origin <= self.max_corner)
        t0 = np.where(np.isnan(t0), np.where(inside, -np.inf, np.inf), t0)
        t1 = np.where(np.isnan(t1), np.where(inside, np.inf, -np.inf), t1)

        t_near = np.minimum(t0, t1)
        t_far = np.maximum(t0, t1)
        t_enter = float(np.max(t_near))
        t_exit = float(np.min(t_far))
        if t_exit < t_enter or t_exit <= eps:
            return None

        if t_enter > eps:
            t, axis = t_enter, int(np.argmax(t_near))
        else:
            t, axis = t_exit, int(np.argmin(t_far))  # origin inside the box
        if t > t_max:
            return None

        normal = np.zeros(3, dtype=float)
        normal[axis] = -np.sign(direction[axis])  # face the incoming ray
        return t, origin + t * direction, normal


class Scene:
    """
    World capability: a set of SceneObjects answering closest-hit line queries.

    Structural changes (add/remove) take the SceneLock exclusively. Queries do
    not lock on their own; the caller holds the read lock for the whole batch
    through lock_read()/unlock_read().
    """

    def __init__(self, objects=None):
        self.lock = SceneLock()
        self._objects = []
        for obj in objects or ():
            self._check(obj)
            self._objects.append(obj)

    @staticmethod
    def _check(obj):
        if not isinstance(obj, SceneObject):
            raise TypeError("Scene accepts SceneObject instances.")

    @property
    def objects(self):
        return tuple(self._objects)

    def add(self, obj):
        self._check(obj)
        with self.lock.write_locked():
            self._objects.append(obj)

    def remove(self, obj):
        with self.lock.write_locked():
            self._objects.remove(obj)

    def lock_read(self):
        self.lock.lock_read()

    def unlock_read(self):
        self.lock.unlock_read()

    def line_query(self, origin, end, ignore_actor=None, channel_mask=ALL_CHANNELS):
        """
        Closest blocking hit on the segment origin -> end.

        :param origin:       Segment start in world space [m].
        :param end:          Segment end in world space [m].
        :param ignore_actor: Surfaces owned by this actor are skipped.
        :param channel_mask: Only surfaces whose collision mask shares a bit respond.
        :return: Hit or None.
        """
        origin = _as_vector3(origin, "origin")
        segment = _as_vector3(end, "end") - origin
        length = float(np.linalg.norm(segment))
        if length <= eps:
            return None
        direction = segment / length

        best = None
        best_t = length
        for obj in self._objects:
            if not (obj.collision_mask & channel_mask):
                continue
            if ignore_actor is not None and obj.actor is ignore_actor:
                continue
            result = obj.intersect(origin, direction, best_t)
            if result is None:
                continue
            t, point, normal = result
            best_t = t
            best = Hit(point=point, normal=normal, distance=t, actor=obj.actor)
        return best
