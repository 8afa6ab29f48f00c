"""
Fixtures shared by the rawlidar tests: a planar wall scene, an actor
registry, and the four-channel reference configuration.
"""

import pytest

from rawlidar.physics import Plane, Scene
from rawlidar.registry import ActorRegistry, SemanticTag

from .helpers import WALL_DISTANCE, make_config


@pytest.fixture
def wall_actor():
    return object()


@pytest.fixture
def wall_scene(wall_actor):
    """Infinite wall at x = WALL_DISTANCE facing the sensor at the origin."""
    return Scene([Plane(point=[WALL_DISTANCE, 0.0, 0.0], normal=[-1.0, 0.0, 0.0], actor=wall_actor)])


@pytest.fixture
def registry(wall_actor):
    reg = ActorRegistry()
    reg.register(wall_actor, semantic_tags={SemanticTag.WALLS}, identifier=42)
    return reg


@pytest.fixture
def four_channel_config():
    """4 channels, FOV [10, -10] deg, 10 m range, 400 pts/s, 10 Hz."""
    return make_config(
        channels=4,
        upper_fov=10.0,
        lower_fov=-10.0,
        range=10.0,
        points_per_second=400,
        rotation_frequency=10.0,
        max_workers=4,
    )
