# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Form flattening driver.

Flattening runs in this order:
1. Remove optional content configuration from the catalog
2. Select and embed the form font (once per document)
3. Rebuild field appearances with that font
4. Draw every widget's appearance into its page content
5. Remove every field
6. Strip interactive entries from /AcroForm
"""

import asyncio
import logging
from dataclasses import dataclass

from pikepdf import Pdf

from ..appearance import update_field_appearances
from ..fonts.resolver import FontConfig, resolve_form_font
from ..fonts.source import FontSource
from ..form import Form
from ..outcomes import (
    DiagnosticsSink,
    FieldEvent,
    FieldEventKind,
    FlattenReport,
    LoggingSink,
    WidgetOutcome,
)
from .cleanup import finalize_acroform, remove_optional_content
from .pages import PageIndex, locate_page
from .selection import select_appearance
from .widgets import flatten_widget, rotate_in_place

logger = logging.getLogger(__name__)

__all__ = [
    "FlattenOptions",
    "PageIndex",
    "flatten_form",
    "flatten_form_sync",
    "flatten_widget",
    "locate_page",
    "rotate_in_place",
    "select_appearance",
]


@dataclass
class FlattenOptions:
    """Options for flatten_form().

    Attributes:
        refresh_existing: Rebuild text and choice appearances that already
            exist, so values are drawn with the form font.
    """

    refresh_existing: bool = True


class _ReportingSink:
    """Feeds events to the report and forwards them to the caller's sink."""

    def __init__(self, report: FlattenReport, sink: DiagnosticsSink) -> None:
        self._report = report
        self._sink = sink

    def record(self, event: WidgetOutcome | FieldEvent) -> None:
        self._report.add(event)
        self._sink.record(event)


async def flatten_form(
    pdf: Pdf,
    *,
    font_config: FontConfig | None = None,
    font_source: FontSource | None = None,
    options: FlattenOptions | None = None,
    sink: DiagnosticsSink | None = None,
) -> FlattenReport:
    """Bakes every widget appearance into page content and removes the form.

    The document is modified in place. Per-widget and per-field failures
    are reported to sink and in the returned report; they do not stop
    the operation.

    Args:
        pdf: Opened pikepdf PDF object.
        font_config: Font locations (defaults to the bundled fonts).
        font_source: Font byte provider (defaults to DefaultFontSource).
        options: Flatten options.
        sink: Receives widget outcomes and field events (defaults to
            logging).

    Returns:
        FlattenReport summarizing the operation.

    Raises:
        FontAcquisitionError: If the form font cannot be fetched.
        FontEmbeddingError: If the form font cannot be embedded.
    """
    options = options or FlattenOptions()
    report = FlattenReport()
    events = _ReportingSink(report, sink or LoggingSink())

    remove_optional_content(pdf)

    form = Form(pdf)
    report.fields_total = len(form)
    if len(form) == 0:
        logger.info("Document has no form fields")
        finalize_acroform(pdf)
        return report

    resolved = await resolve_form_font(pdf, form, font_config, font_source, events)
    report.font_name = resolved.font.base_name
    report.used_cjk_font = resolved.cjk

    update_field_appearances(
        pdf,
        form,
        resolved.font,
        refresh_existing=options.refresh_existing,
        sink=events,
    )

    pages = PageIndex(pdf)
    isolated: set[tuple[int, int]] = set()
    for field in form:
        for widget in field.widgets:
            events.record(flatten_widget(pdf, field, widget, pages, isolated))

    for field in form:
        try:
            form.remove_field(field)
            report.fields_removed += 1
        except Exception as e:
            events.record(
                FieldEvent(field.full_name, FieldEventKind.REMOVAL_FAILED, str(e))
            )

    finalize_acroform(pdf)

    logger.info(
        "Flattened %d widget(s) of %d field(s), %d skipped",
        report.widgets_flattened,
        report.fields_total,
        report.widgets_skipped,
    )
    return report


def flatten_form_sync(pdf: Pdf, **kwargs) -> FlattenReport:
    """Runs flatten_form() to completion for synchronous callers.

    Must not be called from a running event loop.
    """
    return asyncio.run(flatten_form(pdf, **kwargs))
