"""
Rigid sensor pose (location + orientation) in the world frame.
"""

import numpy as np

from .math_utils import _as_rotation_matrix, _as_vector3, _forward_vector, _rotation_from_euler


class SensorTransform:
    """
    Rigid body transform mapping sensor-frame coordinates into the world frame.

        p_world = rotation @ p_sensor + location

    :param location: Sensor origin in world space [m]. Defaults to the world origin.
    :param rotation: 3x3 rotation matrix (sensor -> world). Defaults to identity.
    """

    def __init__(self, location=None, rotation=None):
        self.location = np.zeros(3, dtype=float) if location is None else _as_vector3(location, "location")
        self.rotation = np.eye(3, dtype=float) if rotation is None else _as_rotation_matrix(rotation, "rotation")

    @classmethod
    def from_euler(cls, location=None, roll=0.0, pitch=0.0, yaw=0.0):
        """Build a transform from a location and a (roll, pitch, yaw) rotator in degrees."""
        return cls(location=location, rotation=_rotation_from_euler(roll=roll, pitch=pitch, yaw=yaw))

    def transform_position(self, point):
        """Sensor frame -> world frame."""
        return self.rotation @ _as_vector3(point, "point") + self.location

    def inverse_transform_position(self, point):
        """World frame -> sensor frame. The rotation is orthonormal, so its inverse is its transpose."""
        return self.rotation.T @ (_as_vector3(point, "point") - self.location)

    def beam_direction(self, vertical_angle, horizontal_angle):
        """
        World-space unit direction of a laser at the given sensor-relative angles.

        The laser rotator (pitch = vertical angle, yaw = horizontal angle) is
        composed with the sensor orientation: the laser rotation is applied
        first, the body rotation second.

        :param vertical_angle:   [deg]
        :param horizontal_angle: [deg]
        """
        return self.rotation @ _forward_vector(vertical_angle, horizontal_angle)

    def __repr__(self):
        return f"SensorTransform(location={self.location.tolist()}, rotation={self.rotation.tolist()})"
