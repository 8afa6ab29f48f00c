class RawLidarConfig:
    # Defaults of a 32-channel rotating sensor. Override by subclassing, or
    # pass any object with the same attributes.

    # Laser array, lasers spread linearly from upper_fov down to lower_fov
    channels = 32  # number of vertical lasers
    upper_fov = 10.0  # [deg], angle of the first (top) channel
    lower_fov = -30.0  # [deg], angle of the last (bottom) channel

    # Rotating scan. A tick of dt seconds takes
    # round(points_per_second * dt / channels) samples per channel and sweeps
    # 360 * rotation_frequency * dt degrees.
    range = 10.0  # [m], maximum ray length
    points_per_second = 56000  # total horizontal samples per second, all channels
    rotation_frequency = 10.0  # [Hz], head revolutions per second

    # Ray casting
    max_workers = None  # thread pool size, None lets the executor decide
