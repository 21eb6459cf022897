# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Custom exceptions for pdfflatten."""


class PDFFlattenError(Exception):
    """Base exception for all pdfflatten errors."""


class FlattenError(PDFFlattenError):
    """Error during form flattening."""


class FontAcquisitionError(PDFFlattenError):
    """Font bytes could not be fetched from their source."""


class FontEmbeddingError(PDFFlattenError):
    """Font could not be embedded."""


class UnsupportedPDFError(PDFFlattenError):
    """PDF format is not supported."""
