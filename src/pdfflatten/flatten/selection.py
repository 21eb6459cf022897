# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Choice of the appearance stream a widget is flattened with."""

import logging

from pikepdf import Dictionary, Name, Stream

from ..form import OFF_STATE, ButtonField, FormField, WidgetAnnotation

logger = logging.getLogger(__name__)


def select_appearance(field: FormField, widget: WidgetAnnotation) -> Stream | None:
    """Returns the normal appearance stream to draw for a widget.

    A single /AP /N stream is used as-is. A state dictionary is only
    meaningful for check boxes and radio buttons: the state named by the
    field value is used, falling back to the Off state. All widgets of a
    field therefore show the same state.

    Args:
        field: The widget's field.
        widget: The widget annotation.

    Returns:
        The appearance stream, or None when the widget has no usable
        appearance.
    """
    try:
        normal = widget.normal_appearance()
        if isinstance(normal, Stream):
            return normal
        if not isinstance(normal, Dictionary) or not isinstance(field, ButtonField):
            return None

        state = normal.get(Name("/" + field.appearance_key()))
        if state is None:
            state = normal.get(Name("/" + OFF_STATE))
        return state if isinstance(state, Stream) else None
    except Exception:
        logger.debug(
            "Cannot read appearance of widget %s", widget.objgen, exc_info=True
        )
        return None
