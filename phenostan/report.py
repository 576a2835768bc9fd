# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Assembly of the workflow report.

The report is a single Panel layout with a title, a table of contents linking to
anchored section headers, the Stan program shown verbatim, and one section per
step of the workflow. Sections hold anything Panel can render: Markdown strings,
DataFrames, and HoloViews plots. The report can be viewed in a notebook or saved
as a self-contained HTML file.
"""

from __future__ import annotations

import html
import os.path

from typing import Any, Optional, Sequence

import pandas as pd
import panel as pn

from phenostan import utils

# Heading shown above the Stan program
MODEL_SECTION_TITLE = "Model"


def _unique_anchors(titles: Sequence[str]) -> list[str]:
    """Build one anchor per title, numbering repeated titles."""
    anchors, counts = [], {}
    for title in titles:
        anchor = utils.slugify(title) or "section"
        counts[anchor] = counts.get(anchor, 0) + 1
        if counts[anchor] > 1:
            anchor = f"{anchor}-{counts[anchor]}"
        anchors.append(anchor)
    return anchors


def _to_pane(obj: Any) -> pn.viewable.Viewable:
    """Convert a section component to a Panel object."""
    if isinstance(obj, pd.DataFrame):
        return pn.pane.DataFrame(obj, sizing_mode="stretch_width", max_height=500)
    return pn.panel(obj)


def stan_code_pane(stan_code: str) -> pn.pane.HTML:
    """Show a Stan program verbatim.

    :param stan_code: Source of the Stan program
    :type stan_code: str

    :returns: Preformatted HTML pane holding the escaped source
    :rtype: pn.pane.HTML
    """
    return pn.pane.HTML(
        f"<pre><code>{html.escape(stan_code)}</code></pre>",
        sizing_mode="stretch_width",
    )


def build_report(
    sections: dict[str, Sequence[Any]],
    title: str = "PhenoStan Workflow Report",
    stan_code: Optional[str] = None,
) -> pn.Column:
    """Assemble a report with a table of contents.

    :param sections: Ordered mapping from section title to the components of
        that section (Markdown strings, DataFrames, HoloViews plots, or any other
        object Panel can render)
    :type sections: dict[str, Sequence[Any]]
    :param title: Title of the report. Defaults to "PhenoStan Workflow Report".
    :type title: str
    :param stan_code: Source of the Stan program. If given, it is shown verbatim
        in a "Model" section ahead of the other sections. Defaults to None.
    :type stan_code: Optional[str]

    :returns: The report
    :rtype: pn.Column

    :raises ValueError: If there are no sections and no Stan code
    """
    # Put the model first if provided
    sections = dict(sections)
    if stan_code is not None:
        sections = {
            MODEL_SECTION_TITLE: [stan_code_pane(stan_code)],
            **{k: v for k, v in sections.items() if k != MODEL_SECTION_TITLE},
        }
    if len(sections) == 0:
        raise ValueError("A report needs at least one section.")

    # Table of contents
    anchors = _unique_anchors(list(sections))
    toc = pn.pane.Markdown(
        "## Contents\n\n"
        + "\n".join(
            f"{i}. [{name}](#{anchor})"
            for i, (name, anchor) in enumerate(zip(sections, anchors), start=1)
        )
    )

    # Headers and contents of each section
    body = []
    for (name, components), anchor in zip(sections.items(), anchors):
        body.append(pn.pane.HTML(f'<h2 id="{anchor}">{html.escape(name)}</h2>'))
        body.extend(_to_pane(component) for component in components)

    return pn.Column(
        pn.pane.Markdown(f"# {title}"), toc, *body, sizing_mode="stretch_width"
    )


def save_report(
    report: pn.viewable.Viewable, path: str, title: Optional[str] = None
) -> str:
    """Save a report as a self-contained HTML file.

    :param report: Report built by :py:func:`build_report`
    :type report: pn.viewable.Viewable
    :param path: Destination path. Must end in ".html".
    :type path: str
    :param title: Title of the HTML page. Defaults to None (Panel's default).
    :type title: Optional[str]

    :returns: The path written
    :rtype: str

    :raises ValueError: If the path does not end in ".html"
    """
    if not path.endswith(".html"):
        raise ValueError(f"Report path must end in '.html'. Got {path}.")
    if dirname := os.path.dirname(path):
        os.makedirs(dirname, exist_ok=True)

    # Inline resources make the page viewable offline
    report.save(path, title=title, resources="inline")
    return path
