# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Lookup of the page that displays a widget."""

import logging

from pikepdf import Array, Page, Pdf

from ..form import WidgetAnnotation
from ..utils import DIRECT_OBJGEN, safe_objgen

logger = logging.getLogger(__name__)


class PageIndex:
    """Maps page and annotation object identities to pages.

    The annotation index is built on first use and reused for every
    widget of the same flatten operation.
    """

    def __init__(self, pdf: Pdf) -> None:
        self._pages: list[Page] = list(pdf.pages)
        self._by_objgen: dict[tuple[int, int], Page] = {}
        for page in self._pages:
            objgen = safe_objgen(page.obj)
            if objgen != DIRECT_OBJGEN:
                self._by_objgen.setdefault(objgen, page)
        self._by_annotation: dict[tuple[int, int], Page] | None = None

    def page_for_objgen(self, objgen: tuple[int, int]) -> Page | None:
        return self._by_objgen.get(objgen)

    def page_for_annotation(self, objgen: tuple[int, int]) -> Page | None:
        """Returns the first page whose /Annots holds the annotation."""
        if objgen == DIRECT_OBJGEN:
            return None
        if self._by_annotation is None:
            self._by_annotation = self._build_annotation_index()
        return self._by_annotation.get(objgen)

    def _build_annotation_index(self) -> dict[tuple[int, int], Page]:
        index: dict[tuple[int, int], Page] = {}
        for page in self._pages:
            annots = page.obj.get("/Annots")
            if not isinstance(annots, Array):
                continue
            for annot in annots:
                objgen = safe_objgen(annot)
                if objgen != DIRECT_OBJGEN:
                    index.setdefault(objgen, page)
        logger.debug(
            "Indexed %d annotation(s) across %d page(s)",
            len(index),
            len(self._pages),
        )
        return index


def locate_page(index: PageIndex, widget: WidgetAnnotation) -> Page | None:
    """Finds the page a widget is drawn on.

    The page named by the widget's /P entry wins when it belongs to the
    document; otherwise the first page listing the widget in /Annots.

    Args:
        index: Page index of the document.
        widget: The widget annotation.

    Returns:
        The page, or None when no page references the widget.
    """
    page_ref = widget.page_ref()
    if page_ref is not None:
        page = index.page_for_objgen(page_ref)
        if page is not None:
            return page
    return index.page_for_annotation(widget.objgen)
