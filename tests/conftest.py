"""
Pytest configuration and HTML report hooks for the rawlidar test suite.

Every run writes a pytest-html report to tests/test_reports/. The report
gains two columns: the human readable metadata of the
@pytest.mark.test_meta(description=..., goal=..., passing_criteria=...)
marker, and any plots a test attached through
helpers.attach_plot_to_html_report().
"""

import sys
from html import escape
from pathlib import Path

import pytest

# Project root, so the rawlidar package imports without installation
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

REPORT_DIR = ROOT / "tests" / "test_reports"


def _report_name_from_args(args):
    """
    Name the report after the single test module being run, if there is one.

    ``pytest tests/test_rawlidar/test_detection.py`` -> report_detection.html,
    anything else -> report_all.html.
    """
    modules = set()
    for arg in args:
        text = str(arg)
        if text.startswith("-"):
            continue
        path = Path(text.split("::", 1)[0])
        if path.suffix == ".py" and path.name.startswith("test_"):
            modules.add(path.stem.lower())

    if len(modules) == 1:
        name = next(iter(modules)).removeprefix("test_")
        if name:
            return f"report_{name}.html"
    return "report_all.html"


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    # An explicit --html on the command line wins
    if any(str(arg).startswith("--html") for arg in config.invocation_params.args):
        return

    REPORT_DIR.mkdir(parents=True, exist_ok=True)
    config.option.htmlpath = str(REPORT_DIR / _report_name_from_args(config.invocation_params.args))


def pytest_html_results_table_header(cells):
    cells.insert(3, '<th class="col-testmeta">Test Description</th>')
    cells.insert(4, '<th class="col-plot">Plot</th>')


def _format_test_meta(report):
    meta = getattr(report, "test_meta", None)
    if not meta:
        return '<div style="color:#666;">n/a</div>'

    rows = (
        ("Test Description", meta.get("description", "")),
        ("Test Goal", meta.get("goal", "")),
        ("Passing Criteria", meta.get("passing_criteria", "")),
    )
    body = "".join(f"<div><strong>{label}:</strong> {escape(str(text))}</div>" for label, text in rows)
    return f'<div style="min-width:340px;max-width:520px;line-height:1.35;">{body}</div>'


def _format_plots(report):
    images = []
    for extra in getattr(report, "extras", []):
        content = extra.get("content")
        if extra.get("format_type") != "image" or not content:
            continue
        images.append(
            f'<a href="{content}" target="_blank" rel="noopener noreferrer">'
            f'<img src="{content}" alt="plot" '
            f'style="max-width:320px;height:auto;display:block;margin:4px 0;cursor:zoom-in;" />'
            f"</a>"
        )
    return "".join(images)


def pytest_html_results_table_row(report, cells):
    cells.insert(3, f'<td class="col-testmeta">{_format_test_meta(report)}</td>')
    cells.insert(4, f'<td class="col-plot">{_format_plots(report)}</td>')


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Copy the test_meta marker and any attached plots onto the call-phase report."""
    outcome = yield
    report = outcome.get_result()
    if report.when != "call":
        return

    marker = item.get_closest_marker("test_meta")
    if marker:
        report.test_meta = {
            key: marker.kwargs.get(key, "") for key in ("description", "goal", "passing_criteria")
        }

    item_extra = getattr(item, "extra", None)
    if not item_extra:
        return

    extras = getattr(report, "extras", [])
    extras.extend(dict(extra) for extra in item_extra)
    report.extras = extras
    # older pytest-html versions read report.extra
    if hasattr(report, "extra"):
        report.extra = extras
