# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Drawing of one widget's appearance into its page content."""

import logging

import pikepdf
from pikepdf import ContentStreamInstruction, Name, Operator, Page, Pdf

from ..form import FormField, WidgetAnnotation
from ..outcomes import SkipReason, WidgetOutcome
from ..utils import safe_objgen
from .pages import PageIndex, locate_page
from .selection import select_appearance

logger = logging.getLogger(__name__)

# Prefix of the XObject resource names given to flattened appearances
XOBJECT_PREFIX = "FlatWidget"


def rotate_in_place(
    rotation: int, width: float, height: float
) -> list[ContentStreamInstruction]:
    """Returns the operators that rotate a width x height box in place.

    The rotated content is shifted back so it still starts at the
    origin. A rotation of 0 needs no operators.

    Args:
        rotation: Clockwise-normalized angle, one of 0, 90, 180, 270.
        width: Box width.
        height: Box height.

    Returns:
        Zero or one ``cm`` instruction.
    """
    rotation %= 360
    if rotation == 90:
        matrix = [0, 1, -1, 0, height, 0]
    elif rotation == 180:
        matrix = [-1, 0, 0, -1, width, height]
    elif rotation == 270:
        matrix = [0, -1, 1, 0, 0, width]
    elif rotation == 0:
        return []
    else:
        raise ValueError(f"Unsupported rotation: {rotation}")
    return [ContentStreamInstruction(matrix, Operator("cm"))]


def draw_xobject_instructions(
    xobject_name: Name,
    x: float,
    y: float,
    width: float,
    height: float,
    rotation: int = 0,
) -> list[ContentStreamInstruction]:
    """Returns the operators that paint an XObject at (x, y).

    ``q``, translate, rotate-in-place, ``Do``, ``Q``.
    """
    return [
        ContentStreamInstruction([], Operator("q")),
        ContentStreamInstruction([1, 0, 0, 1, x, y], Operator("cm")),
        *rotate_in_place(rotation, width, height),
        ContentStreamInstruction([xobject_name], Operator("Do")),
        ContentStreamInstruction([], Operator("Q")),
    ]


def isolate_page_content(page: Page) -> None:
    """Wraps the existing page content in ``q ... Q``.

    Graphics state left unbalanced by the original content would
    otherwise displace content appended after it.
    """
    if page.obj.get("/Contents") is None:
        return
    page.contents_add(b"q\n", prepend=True)
    page.contents_add(b"\nQ\n", prepend=False)


def flatten_widget(
    pdf: Pdf,
    field: FormField,
    widget: WidgetAnnotation,
    pages: PageIndex,
    isolated: set[tuple[int, int]] | None = None,
) -> WidgetOutcome:
    """Draws a widget's appearance into the content of its page.

    Failures leave the widget un-flattened and are reported in the
    returned outcome; they are never raised.

    Args:
        pdf: Opened pikepdf PDF object.
        field: The widget's field.
        widget: The widget annotation.
        pages: Page index of the document.
        isolated: Objgens of pages whose original content is already
            wrapped in ``q ... Q``; updated in place.

    Returns:
        WidgetOutcome describing what happened.
    """
    name = field.full_name
    widget_id = widget.objgen

    try:
        if widget.is_hidden:
            return WidgetOutcome.skipped(name, widget_id, SkipReason.HIDDEN)

        page = locate_page(pages, widget)
        if page is None:
            return WidgetOutcome.skipped(name, widget_id, SkipReason.NO_PAGE)

        appearance = select_appearance(field, widget)
        if appearance is None:
            return WidgetOutcome.skipped(name, widget_id, SkipReason.NO_APPEARANCE)

        # No XObject is registered for a widget without a valid /Rect
        rect = widget.rect()
        xobject_name = page.add_resource(
            appearance, Name.XObject, prefix=XOBJECT_PREFIX
        )
        # Rotation of the widget is already part of its appearance /Matrix
        instructions = draw_xobject_instructions(
            xobject_name, rect.x, rect.y, rect.width, rect.height, rotation=0
        )

        if isolated is not None:
            page_id = safe_objgen(page.obj)
            if page_id not in isolated:
                isolate_page_content(page)
                isolated.add(page_id)

        page.contents_add(
            pdf.make_stream(pikepdf.unparse_content_stream(instructions)),
            prepend=False,
        )
    except Exception as e:
        return WidgetOutcome.skipped(name, widget_id, SkipReason.FAILED, str(e))

    return WidgetOutcome.done(name, widget_id)
