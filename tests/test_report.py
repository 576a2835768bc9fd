import holoviews as hv
import pandas as pd
import panel as pn
import pytest

from phenostan.model.stan.stan_model import read_model_code
from phenostan.report import build_report, save_report
from phenostan.utils import slugify


@pytest.fixture
def sections():
    return {
        "Parameter Recovery": [
            "Some *markdown*.",
            pd.DataFrame({"x": [1, 2]}),
            hv.Curve([(0, 0), (1, 1)]),
        ],
        "Prior Predictive Check": ["More text."],
    }


def test_slugify():
    assert slugify("Step 2: Parameter Recovery") == "step-2-parameter-recovery"
    assert slugify("  Prior -- Sensitivity  ") == "prior-sensitivity"


def test_build_report_has_contents_and_anchors(sections):
    report = build_report(sections, title="Test Report")
    assert isinstance(report, pn.Column)

    toc = report[1].object
    assert "[Parameter Recovery](#parameter-recovery)" in toc
    assert "[Prior Predictive Check](#prior-predictive-check)" in toc

    headers = [
        obj.object
        for obj in report.objects
        if isinstance(obj.object, str) and obj.object.startswith("<h2")
    ]
    assert '<h2 id="parameter-recovery">Parameter Recovery</h2>' in headers
    assert '<h2 id="prior-predictive-check">Prior Predictive Check</h2>' in headers
    assert any(isinstance(obj, pn.pane.DataFrame) for obj in report.objects)


def test_build_report_shows_stan_code_first(sections):
    code = read_model_code()
    report = build_report(sections, stan_code=code)
    assert "1. [Model](#model)" in report[1].object
    assert report[2].object == '<h2 id="model">Model</h2>'

    # The program is shown verbatim (HTML escaped)
    assert "generated quantities" in report[3].object
    assert "y_rep" in report[3].object
    assert "&lt;lower=0&gt;" in report[3].object


def test_build_report_repeated_titles_get_unique_anchors():
    report = build_report({"Fit": ["a"], "fit": ["b"]})
    assert "(#fit)" in report[1].object
    assert "(#fit-2)" in report[1].object


def test_build_report_requires_sections():
    with pytest.raises(ValueError):
        build_report({})


def test_save_report(sections, tmp_path):
    path = tmp_path / "out" / "report.html"
    written = save_report(build_report(sections), str(path), title="Test")
    assert written == str(path)
    assert path.exists()
    assert path.stat().st_size > 0


def test_save_report_requires_html(sections, tmp_path):
    with pytest.raises(ValueError):
        save_report(build_report(sections), str(tmp_path / "report.txt"))
