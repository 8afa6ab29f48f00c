"""
Shared test helpers for the rawlidar test suite.

Provides plot embedding for the HTML report, config construction, and world
wrappers that count, fail, or track lock usage around a real Scene.
"""

import base64
import io
import threading

from rawlidar.Config import RawLidarConfig

WALL_DISTANCE = 5.0  # [m] wall in front of the sensor along +x


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    Does nothing when the pytest-html plugin is not loaded.

    :param request: the pytest ``request`` fixture
    :param fig:     ``matplotlib.figure.Figure`` to embed
    :param name:    label shown beside the image
    """
    # Render the figure into a PNG buffer
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    # pytest-html may not be installed
    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        # Inline the PNG as Base64 and append it to the node's extras
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra


def make_config(**overrides):
    """RawLidarConfig subclass with the given attributes overridden."""
    return type("TestLidarConfig", (RawLidarConfig,), dict(overrides))


class InstrumentedWorld:
    """
    Wraps a world and records how it is used by the sensor.

    :param world:    Wrapped world (Scene).
    :param fail_on:  Predicate ``fail_on(origin, end) -> bool``; matching queries raise RuntimeError.
    """

    def __init__(self, world, fail_on=None):
        self.world = world
        self.fail_on = fail_on
        self.queries = 0
        self.hits = 0
        self.failures = 0
        self.lock_reads = 0
        self.unlock_reads = 0
        self.queries_outside_lock = 0
        self.ignored_actors = set()
        self.channel_masks = set()
        self._held = 0
        self._lock = threading.Lock()

    def lock_read(self):
        self.world.lock_read()
        with self._lock:
            self.lock_reads += 1
            self._held += 1

    def unlock_read(self):
        with self._lock:
            self.unlock_reads += 1
            self._held -= 1
        self.world.unlock_read()

    def line_query(self, origin, end, ignore_actor=None, channel_mask=None):
        with self._lock:
            self.queries += 1
            if self._held <= 0:
                self.queries_outside_lock += 1
            self.ignored_actors.add(id(ignore_actor))
            self.channel_masks.add(channel_mask)
        if self.fail_on is not None and self.fail_on(origin, end):
            with self._lock:
                self.failures += 1
            raise RuntimeError("simulated physics query failure")
        hit = self.world.line_query(origin, end, ignore_actor=ignore_actor, channel_mask=channel_mask)
        if hit is not None:
            with self._lock:
                self.hits += 1
        return hit
