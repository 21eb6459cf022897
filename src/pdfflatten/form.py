# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""AcroForm model: fields, widgets and field removal.

Fields are read from ``/AcroForm /Fields`` by walking ``/Kids``
depth-first. Only terminal fields (those whose kids are widgets rather
than named child fields) are exposed; intermediate nodes only carry
inheritable attributes and are pruned when their last kid is removed.
"""

import logging
from typing import Any, NamedTuple

import pikepdf
from pikepdf import Array, Dictionary, Name, Pdf

from .utils import DIRECT_OBJGEN, resolve_indirect, safe_objgen

logger = logging.getLogger(__name__)

# Field flags (/Ff), ISO 32000-1 Tables 226, 228, 230
FF_MULTILINE = 1 << 12
FF_PASSWORD = 1 << 13
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16
FF_COMBO = 1 << 17
FF_COMB = 1 << 24

# Annotation flags (/F)
ANNOT_FLAG_HIDDEN = 1 << 1

# Literal text value of a checked check box
CHECKED_TEXT = "checked"

OFF_STATE = "Off"


class Rectangle(NamedTuple):
    """Normalized widget rectangle in default user space."""

    x: float
    y: float
    width: float
    height: float


def get_inheritable(node: Any, key: str, acroform: Any = None) -> Any:
    """Retrieve an inheritable attribute from the field hierarchy.

    Walks the /Parent chain, then falls back to AcroForm defaults.

    Args:
        node: Field or widget dictionary.
        key: The key to look up (e.g. "/FT", "/DA", "/V").
        acroform: The document's /AcroForm dictionary (optional).

    Returns:
        The value if found, otherwise None.
    """
    visited: set[tuple[int, int]] = set()
    current = node
    while current is not None:
        objgen = safe_objgen(current)
        if objgen != DIRECT_OBJGEN:
            if objgen in visited:
                break
            visited.add(objgen)

        val = current.get(key)
        if val is not None:
            return val

        parent = current.get("/Parent")
        if parent is None:
            break
        current = resolve_indirect(parent)

    if acroform is not None:
        return acroform.get(key)
    return None


def pdf_text(value: Any) -> str:
    """Convert a PDF string or name value to Python text."""
    if value is None:
        return ""
    if isinstance(value, Name):
        return str(value)[1:]
    if isinstance(value, pikepdf.Stream):
        return value.read_bytes().decode("utf-8", "replace")
    return str(value)


class WidgetAnnotation:
    """One widget annotation of a field."""

    def __init__(self, obj: Dictionary, field: "FormField") -> None:
        self.obj = obj
        self.field = field

    def __repr__(self) -> str:
        return f"WidgetAnnotation({self.field.full_name!r}, objgen={self.objgen})"

    @property
    def objgen(self) -> tuple[int, int]:
        return safe_objgen(self.obj)

    @property
    def flags(self) -> int:
        f = self.obj.get("/F")
        return int(f) if f is not None else 0

    @property
    def is_hidden(self) -> bool:
        return bool(self.flags & ANNOT_FLAG_HIDDEN)

    def rect(self) -> Rectangle:
        """Return the normalized annotation rectangle.

        Raises:
            ValueError: If /Rect is missing or not four numbers.
        """
        raw = self.obj.get("/Rect")
        if raw is None or not isinstance(raw, Array) or len(raw) != 4:
            raise ValueError(f"Widget {self.objgen} has no usable /Rect")
        x1, y1, x2, y2 = (float(v) for v in raw)
        return Rectangle(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))

    def page_ref(self) -> tuple[int, int] | None:
        """Return the objgen of the page named by /P, if it is a reference."""
        p = self.obj.get("/P")
        if p is None:
            return None
        objgen = safe_objgen(p)
        return objgen if objgen != DIRECT_OBJGEN else None

    def normal_appearance(self) -> Any:
        """Return /AP /N (a stream, a state dictionary, or None)."""
        ap = self.obj.get("/AP")
        if ap is None or not isinstance(ap, Dictionary):
            return None
        return ap.get("/N")

    def state_names(self) -> list[str]:
        """Return the appearance state names of /AP /N, if it is a dictionary."""
        n = self.normal_appearance()
        if not isinstance(n, Dictionary):
            return []
        return [str(k)[1:] for k in n.keys()]


class FormField:
    """Base class of terminal form fields.

    Attributes:
        obj: The field dictionary.
        acroform: The document's /AcroForm dictionary.
        widgets: Widget annotations of the field.
    """

    kind = "field"

    def __init__(self, obj: Dictionary, acroform: Dictionary | None = None) -> None:
        self.obj = obj
        self.acroform = acroform
        self.widgets = [WidgetAnnotation(w, self) for w in _widget_dicts(obj)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r})"

    def get_inheritable(self, key: str) -> Any:
        return get_inheritable(self.obj, key, self.acroform)

    @property
    def objgen(self) -> tuple[int, int]:
        return safe_objgen(self.obj)

    @property
    def flags(self) -> int:
        ff = self.get_inheritable("/Ff")
        return int(ff) if ff is not None else 0

    @property
    def full_name(self) -> str:
        """Fully qualified field name (partial names joined by ".")."""
        parts: list[str] = []
        visited: set[tuple[int, int]] = set()
        current = self.obj
        while current is not None:
            objgen = safe_objgen(current)
            if objgen != DIRECT_OBJGEN:
                if objgen in visited:
                    break
                visited.add(objgen)
            t = current.get("/T")
            if t is not None:
                parts.append(str(t))
            parent = current.get("/Parent")
            current = resolve_indirect(parent) if parent is not None else None
        return ".".join(reversed(parts))

    @property
    def value(self) -> Any:
        return self.get_inheritable("/V")

    def text_value(self) -> str:
        """Return the field's value as text (empty when it has none)."""
        return ""

    def render_text(self) -> str:
        """Return every character an appearance of this field may draw."""
        return self.text_value()


class TextField(FormField):
    kind = "text"

    @property
    def is_multiline(self) -> bool:
        return bool(self.flags & FF_MULTILINE)

    @property
    def is_comb(self) -> bool:
        return bool(self.flags & FF_COMB) and self.max_len is not None

    @property
    def is_password(self) -> bool:
        return bool(self.flags & FF_PASSWORD)

    @property
    def max_len(self) -> int | None:
        m = self.get_inheritable("/MaxLen")
        return int(m) if m is not None else None

    def text_value(self) -> str:
        return pdf_text(self.value)

    def render_text(self) -> str:
        return "*" if self.is_password else self.text_value()


class ChoiceField(FormField):
    kind = "choice"

    @property
    def is_combo(self) -> bool:
        return bool(self.flags & FF_COMBO)

    def options(self) -> list[tuple[str, str]]:
        """Return the (export value, display text) pairs of /Opt."""
        opt = self.get_inheritable("/Opt")
        result: list[tuple[str, str]] = []
        if opt is None or not isinstance(opt, Array):
            return result
        for item in opt:
            item = resolve_indirect(item)
            if isinstance(item, Array) and len(item) >= 2:
                result.append((pdf_text(item[0]), pdf_text(item[1])))
            else:
                text = pdf_text(item)
                result.append((text, text))
        return result

    def selected(self) -> list[str]:
        v = self.value
        if v is None:
            return []
        if isinstance(v, Array):
            return [pdf_text(resolve_indirect(item)) for item in v]
        return [pdf_text(v)]

    def text_value(self) -> str:
        return " ".join(self.selected())

    def render_text(self) -> str:
        return " ".join([self.text_value(), *(d for _, d in self.options())])


class ButtonField(FormField):
    """Base of check boxes and radio groups, which select a named state."""

    def state_value(self) -> str | None:
        """Return the current state name from /V, or None when unset."""
        v = self.value
        if v is None:
            return None
        return pdf_text(v) or None

    def appearance_key(self) -> str:
        """Return the /AP /N state key selected by the field value."""
        return self.state_value() or OFF_STATE

    def on_states(self) -> list[str]:
        states: list[str] = []
        for widget in self.widgets:
            for name in widget.state_names():
                if name != OFF_STATE and name not in states:
                    states.append(name)
        return states


class CheckBoxField(ButtonField):
    kind = "checkbox"

    def is_checked(self) -> bool:
        state = self.state_value()
        return state is not None and state != OFF_STATE

    def text_value(self) -> str:
        return CHECKED_TEXT if self.is_checked() else ""

    def render_text(self) -> str:
        return ""


class RadioGroupField(ButtonField):
    kind = "radio"

    def text_value(self) -> str:
        state = self.state_value()
        return state if state is not None and state != OFF_STATE else ""

    def render_text(self) -> str:
        return ""


class PushButtonField(FormField):
    kind = "pushbutton"

    def caption(self) -> str:
        captions = []
        for widget in self.widgets:
            mk = widget.obj.get("/MK")
            if isinstance(mk, Dictionary) and mk.get("/CA") is not None:
                captions.append(pdf_text(mk.get("/CA")))
        return " ".join(captions)

    def render_text(self) -> str:
        return self.caption()


class SignatureField(FormField):
    kind = "signature"


def make_field(obj: Dictionary, acroform: Dictionary | None = None) -> FormField:
    """Create the field variant matching /FT and /Ff of a terminal field."""
    ft = get_inheritable(obj, "/FT", acroform)
    ff = get_inheritable(obj, "/Ff", acroform)
    flags = int(ff) if ff is not None else 0
    ft_str = str(ft) if ft is not None else None

    if ft_str == "/Tx":
        return TextField(obj, acroform)
    if ft_str == "/Ch":
        return ChoiceField(obj, acroform)
    if ft_str == "/Btn":
        if flags & FF_PUSHBUTTON:
            return PushButtonField(obj, acroform)
        if flags & FF_RADIO:
            return RadioGroupField(obj, acroform)
        return CheckBoxField(obj, acroform)
    if ft_str == "/Sig":
        return SignatureField(obj, acroform)
    return FormField(obj, acroform)


def _is_named_field(node: Any) -> bool:
    return isinstance(node, Dictionary) and node.get("/T") is not None


def _widget_dicts(obj: Dictionary) -> list[Dictionary]:
    kids = obj.get("/Kids")
    if isinstance(kids, Array) and len(kids) > 0:
        resolved = [resolve_indirect(k) for k in kids]
        return [
            k for k in resolved if isinstance(k, Dictionary) and not _is_named_field(k)
        ]
    # Merged field and widget dictionary
    if obj.get("/Rect") is not None or obj.get("/Subtype") == Name.Widget:
        return [obj]
    return []


class Form:
    """Terminal fields of a document's interactive form."""

    def __init__(self, pdf: Pdf) -> None:
        self.pdf = pdf
        acroform = pdf.Root.get("/AcroForm")
        self.acroform: Dictionary | None = (
            acroform if isinstance(acroform, Dictionary) else None
        )
        self.fields: list[FormField] = self._collect_fields()

    def __iter__(self):
        return iter(list(self.fields))

    def __len__(self) -> int:
        return len(self.fields)

    def get_field(self, full_name: str) -> FormField | None:
        for field in self.fields:
            if field.full_name == full_name:
                return field
        return None

    def _collect_fields(self) -> list[FormField]:
        if self.acroform is None:
            return []
        roots = self.acroform.get("/Fields")
        if not isinstance(roots, Array):
            return []

        fields: list[FormField] = []
        visited: set[tuple[int, int]] = set()

        def walk(node: Any) -> None:
            node = resolve_indirect(node)
            if not isinstance(node, Dictionary):
                return
            objgen = safe_objgen(node)
            if objgen != DIRECT_OBJGEN:
                if objgen in visited:
                    return
                visited.add(objgen)

            kids = node.get("/Kids")
            child_fields = (
                [k for k in kids if _is_named_field(resolve_indirect(k))]
                if isinstance(kids, Array)
                else []
            )
            if child_fields:
                for kid in child_fields:
                    walk(kid)
            else:
                fields.append(make_field(node, self.acroform))

        for root in roots:
            walk(root)
        logger.debug("Form has %d terminal fields", len(fields))
        return fields

    def remove_field(self, field: FormField) -> None:
        """Remove a field, its widgets and any parents it leaves empty.

        Raises:
            ValueError: If the field is not part of this form.
        """
        if field not in self.fields:
            raise ValueError(f"Field {field.full_name!r} is not part of this form")

        widget_ids = {w.objgen for w in field.widgets} - {DIRECT_OBJGEN}
        widget_ids.add(field.objgen)
        widget_ids.discard(DIRECT_OBJGEN)
        self._remove_annotations(widget_ids)

        self._detach(field.obj)
        self.fields.remove(field)
        logger.debug("Removed field %r", field.full_name)

    def _remove_annotations(self, annot_ids: set[tuple[int, int]]) -> None:
        if not annot_ids:
            return
        for page in self.pdf.pages:
            annots = page.obj.get("/Annots")
            if not isinstance(annots, Array):
                continue
            for i in reversed(range(len(annots))):
                if safe_objgen(annots[i]) in annot_ids:
                    del annots[i]

    def _detach(self, node: Dictionary) -> None:
        """Remove node from its parent's /Kids (or /Fields), pruning upwards."""
        visited: set[tuple[int, int]] = set()
        while True:
            target = safe_objgen(node)
            if target in visited:
                return
            visited.add(target)

            parent = node.get("/Parent")
            if parent is None:
                fields = self.acroform.get("/Fields") if self.acroform else None
                if isinstance(fields, Array):
                    _remove_from_array(fields, target)
                return

            node = resolve_indirect(parent)
            kids = node.get("/Kids")
            if isinstance(kids, Array):
                _remove_from_array(kids, target)
                if len(kids) > 0:
                    return


def _remove_from_array(array: Array, objgen: tuple[int, int]) -> None:
    if objgen == DIRECT_OBJGEN:
        raise ValueError("Direct field objects cannot be detached")
    for i in reversed(range(len(array))):
        if safe_objgen(array[i]) == objgen:
            del array[i]
