# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Tests for flatten/widgets.py: drawing appearances into page content."""

import pikepdf
import pytest
from conftest import (
    add_checkbox,
    add_text_field,
    make_appearance,
    make_pdf_with_page,
)
from pikepdf import Array, Name

from pdfflatten.flatten import PageIndex, flatten_widget, rotate_in_place
from pdfflatten.flatten.widgets import (
    XOBJECT_PREFIX,
    draw_xobject_instructions,
    isolate_page_content,
)
from pdfflatten.form import Form
from pdfflatten.outcomes import SkipReason


def _operators(page) -> list[str]:
    return [str(inst.operator) for inst in pikepdf.parse_content_stream(page)]


def _instructions(page, operator: str) -> list:
    return [
        inst
        for inst in pikepdf.parse_content_stream(page)
        if str(inst.operator) == operator
    ]


def _flatten_all(pdf):
    form = Form(pdf)
    pages = PageIndex(pdf)
    isolated: set = set()
    return [
        flatten_widget(pdf, field, widget, pages, isolated)
        for field in form
        for widget in field.widgets
    ]


class TestRotateInPlace:
    """Tests for rotate_in_place()."""

    def test_zero(self):
        assert rotate_in_place(0, 10, 20) == []
        assert rotate_in_place(360, 10, 20) == []

    @pytest.mark.parametrize(
        "rotation,expected",
        [
            (90, [0, 1, -1, 0, 20, 0]),
            (180, [-1, 0, 0, -1, 10, 20]),
            (270, [0, -1, 1, 0, 0, 10]),
            (-90, [0, -1, 1, 0, 0, 10]),
        ],
    )
    def test_matrices(self, rotation, expected):
        instructions = rotate_in_place(rotation, 10, 20)
        assert len(instructions) == 1
        assert str(instructions[0].operator) == "cm"
        assert [float(v) for v in instructions[0].operands] == expected

    def test_unsupported_angle(self):
        with pytest.raises(ValueError):
            rotate_in_place(45, 10, 20)


class TestDrawInstructions:
    """Tests for draw_xobject_instructions()."""

    def test_operator_sequence(self):
        instructions = draw_xobject_instructions(Name("/X0"), 100, 200, 20, 20)
        assert [str(i.operator) for i in instructions] == ["q", "cm", "Do", "Q"]
        assert [float(v) for v in instructions[1].operands] == [1, 0, 0, 1, 100, 200]
        assert instructions[2].operands[0] == Name("/X0")

    def test_rotation_adds_cm(self):
        instructions = draw_xobject_instructions(Name("/X0"), 0, 0, 20, 10, 90)
        assert [str(i.operator) for i in instructions] == [
            "q",
            "cm",
            "cm",
            "Do",
            "Q",
        ]


class TestIsolatePageContent:
    """Tests for isolate_page_content()."""

    def test_wraps_existing_content(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        page.obj.Contents = pdf.make_stream(b"1 0 0 RG q 2 w")
        isolate_page_content(page)
        assert _operators(page) == ["q", "RG", "q", "w", "Q"]

    def test_page_without_content(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        isolate_page_content(page)
        assert "/Contents" not in page.obj


class TestFlattenWidget:
    """Tests for flatten_widget()."""

    def test_checkbox_drawn_at_rect(self):
        pdf = make_pdf_with_page()
        add_checkbox(pdf, pdf.pages[0], "agree", value="Yes")

        outcomes = _flatten_all(pdf)

        assert len(outcomes) == 1
        assert outcomes[0].flattened
        assert outcomes[0].field_name == "agree"

        page = pdf.pages[0]
        cm = _instructions(page, "cm")
        assert [float(v) for v in cm[0].operands] == [1, 0, 0, 1, 100, 200]

        do = _instructions(page, "Do")
        assert len(do) == 1
        xobject_name = do[0].operands[0]
        assert str(xobject_name).startswith("/" + XOBJECT_PREFIX)

        xobject = page.obj.Resources.XObject[xobject_name]
        field_obj = pdf.Root.AcroForm.Fields[0]
        assert xobject.objgen == field_obj.AP.N.Yes.objgen

    def test_unchecked_uses_off_state(self):
        pdf = make_pdf_with_page()
        add_checkbox(pdf, pdf.pages[0], "agree", value="Off")
        _flatten_all(pdf)
        page = pdf.pages[0]
        name = _instructions(page, "Do")[0].operands[0]
        xobject = page.obj.Resources.XObject[name]
        assert xobject.objgen == pdf.Root.AcroForm.Fields[0].AP.N.Off.objgen

    def test_hidden_widget_skipped(self):
        pdf = make_pdf_with_page()
        ap = make_appearance(pdf, 200, 20)
        add_text_field(pdf, pdf.pages[0], "h", "v", ap=ap, extra={"/F": 2})

        outcomes = _flatten_all(pdf)

        assert outcomes[0].reason is SkipReason.HIDDEN
        assert "/Contents" not in pdf.pages[0].obj

    def test_no_appearance_skipped(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "t", "v")
        outcomes = _flatten_all(pdf)
        assert outcomes[0].reason is SkipReason.NO_APPEARANCE

    def test_no_page_skipped(self):
        pdf = make_pdf_with_page()
        ap = make_appearance(pdf, 200, 20)
        add_text_field(pdf, pdf.pages[0], "t", "v", ap=ap, set_p=False)
        pdf.pages[0].obj.Annots = Array()
        outcomes = _flatten_all(pdf)
        assert outcomes[0].reason is SkipReason.NO_PAGE

    def test_failure_isolated_to_widget(self):
        """A widget with a broken /Rect fails alone; its neighbours flatten."""
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        for name, rect in [
            ("first", (10, 10, 110, 30)),
            ("broken", (10, 50, 110)),
            ("third", (10, 90, 110, 110)),
        ]:
            add_text_field(
                pdf, page, name, "v", rect=rect, ap=make_appearance(pdf, 100, 20)
            )

        outcomes = _flatten_all(pdf)

        assert [o.flattened for o in outcomes] == [True, False, True]
        assert outcomes[1].reason is SkipReason.FAILED
        assert outcomes[1].detail
        assert len(_instructions(page, "Do")) == 2
        assert len(page.obj.Resources.XObject) == 2

    def test_original_content_isolated_once(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        page.obj.Contents = pdf.make_stream(b"q 3 w")  # unbalanced
        for i in range(2):
            add_text_field(
                pdf,
                page,
                f"t{i}",
                "v",
                rect=(10, 10 + 40 * i, 110, 30 + 40 * i),
                ap=make_appearance(pdf, 100, 20),
            )

        _flatten_all(pdf)

        ops = _operators(page)
        assert ops[:3] == ["q", "q", "w"]
        assert ops[3] == "Q"
        assert ops.count("q") == ops.count("Q") + 1
        assert ops.count("Do") == 2

    def test_widgets_on_separate_pages(self):
        pdf = make_pdf_with_page(2)
        for i, page in enumerate(pdf.pages):
            add_text_field(pdf, page, f"p{i}", "v", ap=make_appearance(pdf, 200, 20))

        outcomes = _flatten_all(pdf)

        assert all(o.flattened for o in outcomes)
        for page in pdf.pages:
            assert len(_instructions(page, "Do")) == 1
