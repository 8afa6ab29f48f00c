"""
Math Utilities Module

Small numeric helpers shared by the scan pipeline: input validation for
vectors and rotation matrices, safe normalization, round-half-away-from-zero,
and the rotator convention used to turn (pitch, yaw, roll) angles into
rotation matrices and beam directions.

Frame convention used throughout the package (right handed):
    +x forward, +y left, +z up.
    yaw   rotates about +z (positive turns from +x towards +y)
    pitch rotates the forward axis upwards (positive points towards +z)
    roll  rotates about the forward axis
All public angles are given in degrees.
"""

import numpy as np

# Small numerical tolerance to prevent division by zero on degenerate vectors.
eps = 1e-12  # [dimensionless]


def _as_vector3(value, name):
    """
    Convert an array-like input into a flat float vector of 3 elements.

    :param value: Array-like input (list, tuple, numpy array).
    :param name:  Parameter name used in the error message.
    :return: numpy array of shape (3,), dtype float64.
    :raises ValueError: If the input does not contain exactly 3 elements.
    """
    vec = np.asarray(value, dtype=float).reshape(-1)
    if vec.size != 3:
        raise ValueError(f"{name} must be a 3D vector.")
    return vec


def _as_rotation_matrix(value, name):
    """
    Convert an array-like input into a 3x3 float matrix.

    Only the shape is checked; orthogonality is the caller's responsibility.

    :raises ValueError: If the resulting shape is not (3, 3).
    """
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError(f"{name} must be a 3x3 rotation matrix.")
    return matrix


def _normalize(vec, fallback=(1.0, 0.0, 0.0)):
    """
    Scale a vector to unit length.

    Vectors shorter than eps cannot be normalized; the (normalized) fallback
    is returned for them instead.

    :param vec:      Input vector.
    :param fallback: Direction used when vec has near-zero norm.
    :return: Unit-length numpy vector.
    :raises ValueError: If both vec and fallback have near-zero norm.
    """
    vec = np.asarray(vec, dtype=float)
    norm = np.linalg.norm(vec)
    if norm < eps:
        fallback = np.asarray(fallback, dtype=float)
        fallback_norm = np.linalg.norm(fallback)
        if fallback_norm < eps:
            raise ValueError("Fallback vector must be non-zero.")
        return fallback / fallback_norm
    return vec / norm


def _round_half_from_zero(value):
    """Round to the nearest integer, ties going away from zero (2.5 -> 3, -2.5 -> -3)."""
    value = float(value)
    return int(np.sign(value) * np.floor(abs(value) + 0.5))


def _rotation_from_euler(roll=0.0, pitch=0.0, yaw=0.0):
    """
    Build the body -> world rotation matrix for a (roll, pitch, yaw) rotator.

    R = Rz(yaw) @ Ry(-pitch) @ Rx(roll)

    Pitch enters with a negative sign because a right-handed rotation about
    +y tips the forward axis downwards, while a positive pitch points up.

    :param roll:  [deg]
    :param pitch: [deg]
    :param yaw:   [deg]
    :return: 3x3 numpy rotation matrix.
    """
    r, p, y = np.deg2rad([roll, pitch, yaw])

    cr, sr = np.cos(r), np.sin(r)
    cp, sp = np.cos(-p), np.sin(-p)
    cy, sy = np.cos(y), np.sin(y)

    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cr, -sr], [0.0, sr, cr]])
    rot_y = np.array([[cp, 0.0, sp], [0.0, 1.0, 0.0], [-sp, 0.0, cp]])
    rot_z = np.array([[cy, -sy, 0.0], [sy, cy, 0.0], [0.0, 0.0, 1.0]])
    return rot_z @ rot_y @ rot_x


def _forward_vector(pitch, yaw):
    """
    Unit forward direction of a rotator with the given pitch and yaw [deg].

        x = cos(pitch) * cos(yaw)
        y = cos(pitch) * sin(yaw)
        z = sin(pitch)
    """
    p, y = np.deg2rad([pitch, yaw])
    return np.array([np.cos(p) * np.cos(y), np.cos(p) * np.sin(y), np.sin(p)], dtype=float)
