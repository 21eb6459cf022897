# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Per-widget and per-field outcomes of a flatten operation."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class SkipReason(Enum):
    """Why a widget was left un-flattened."""

    NO_PAGE = "no_page"
    NO_APPEARANCE = "no_appearance"
    HIDDEN = "hidden"
    FAILED = "failed"


class FieldEventKind(Enum):
    VALUE_READ_FAILED = "value_read_failed"
    APPEARANCE_FAILED = "appearance_failed"
    REMOVAL_FAILED = "removal_failed"


@dataclass(frozen=True)
class WidgetOutcome:
    """Result of flattening one widget.

    Attributes:
        field_name: Fully qualified name of the owning field.
        widget_objgen: Object identity of the widget annotation.
        flattened: True if the appearance was drawn into page content.
        reason: Why the widget was skipped (None when flattened).
        detail: Error message for FAILED outcomes.
    """

    field_name: str
    widget_objgen: tuple[int, int]
    flattened: bool
    reason: SkipReason | None = None
    detail: str = ""

    @classmethod
    def done(cls, field_name: str, widget_objgen: tuple[int, int]) -> "WidgetOutcome":
        return cls(field_name, widget_objgen, True)

    @classmethod
    def skipped(
        cls,
        field_name: str,
        widget_objgen: tuple[int, int],
        reason: SkipReason,
        detail: str = "",
    ) -> "WidgetOutcome":
        return cls(field_name, widget_objgen, False, reason, detail)


@dataclass(frozen=True)
class FieldEvent:
    """A recoverable per-field failure."""

    field_name: str
    kind: FieldEventKind
    detail: str = ""


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Receives widget outcomes and field events as they happen."""

    def record(self, event: WidgetOutcome | FieldEvent) -> None: ...


class LoggingSink:
    """Writes skipped widgets and field failures to the module logger."""

    def record(self, event: WidgetOutcome | FieldEvent) -> None:
        if isinstance(event, WidgetOutcome):
            if event.flattened:
                logger.debug(
                    "Flattened widget %s of field %r",
                    event.widget_objgen,
                    event.field_name,
                )
            elif event.reason is SkipReason.FAILED:
                logger.warning(
                    "Error flattening widget %s of field %r: %s",
                    event.widget_objgen,
                    event.field_name,
                    event.detail,
                )
            else:
                logger.info(
                    "Skipped widget %s of field %r: %s",
                    event.widget_objgen,
                    event.field_name,
                    event.reason.value if event.reason else "unknown",
                )
        else:
            logger.warning(
                "Field %r: %s %s",
                event.field_name,
                event.kind.value,
                event.detail,
            )


class CollectingSink:
    """Stores every event in order."""

    def __init__(self) -> None:
        self.events: list[WidgetOutcome | FieldEvent] = []

    def record(self, event: WidgetOutcome | FieldEvent) -> None:
        self.events.append(event)

    @property
    def widget_outcomes(self) -> list[WidgetOutcome]:
        return [e for e in self.events if isinstance(e, WidgetOutcome)]

    @property
    def field_events(self) -> list[FieldEvent]:
        return [e for e in self.events if isinstance(e, FieldEvent)]


@dataclass
class FlattenReport:
    """Aggregate of one flatten operation.

    Attributes:
        font_name: /BaseFont of the form font that was embedded.
        used_cjk_font: True if the CJK font was selected.
        fields_total: Number of fields in the form before flattening.
        fields_removed: Number of fields removed.
        widgets_flattened: Number of widgets drawn into page content.
        skipped: Count of skipped widgets per reason.
        field_events: Recoverable per-field failures.
    """

    font_name: str = ""
    used_cjk_font: bool = False
    fields_total: int = 0
    fields_removed: int = 0
    widgets_flattened: int = 0
    skipped: Counter = field(default_factory=Counter)
    field_events: list[FieldEvent] = field(default_factory=list)

    def add(self, event: WidgetOutcome | FieldEvent) -> None:
        if isinstance(event, WidgetOutcome):
            if event.flattened:
                self.widgets_flattened += 1
            elif event.reason is not None:
                self.skipped[event.reason] += 1
        else:
            self.field_events.append(event)

    @property
    def widgets_skipped(self) -> int:
        return sum(self.skipped.values())
