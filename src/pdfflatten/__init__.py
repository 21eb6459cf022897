# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""pdfflatten - Bake PDF form field appearances into static page content."""

from importlib.metadata import PackageNotFoundError, version

from .converter import (
    FlattenResult,
    flatten_directory,
    flatten_files,
    flatten_pdf,
)
from .exceptions import (
    FlattenError,
    FontAcquisitionError,
    FontEmbeddingError,
    PDFFlattenError,
    UnsupportedPDFError,
)
from .flatten import FlattenOptions, flatten_form, flatten_form_sync
from .fonts import FontConfig
from .outcomes import (
    CollectingSink,
    DiagnosticsSink,
    FlattenReport,
    LoggingSink,
    SkipReason,
)

try:
    __version__ = version("pdfflatten")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "__version__",
    "flatten_form",
    "flatten_form_sync",
    "flatten_pdf",
    "flatten_files",
    "flatten_directory",
    "FlattenOptions",
    "FlattenResult",
    "FlattenReport",
    "FontConfig",
    "SkipReason",
    "DiagnosticsSink",
    "LoggingSink",
    "CollectingSink",
    "PDFFlattenError",
    "FlattenError",
    "FontAcquisitionError",
    "FontEmbeddingError",
    "UnsupportedPDFError",
]
