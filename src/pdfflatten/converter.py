# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""File-level form flattening: open, flatten, save, batch."""

# Standard Library
import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

# Third Party
import pikepdf
from tqdm import tqdm

# Local
from .exceptions import (
    FlattenError,
    FontAcquisitionError,
    FontEmbeddingError,
    UnsupportedPDFError,
)
from .flatten import FlattenOptions, flatten_form
from .fonts.resolver import FontConfig
from .fonts.source import FontSource
from .outcomes import DiagnosticsSink, FieldEventKind, FlattenReport, SkipReason
from .utils import is_pdf_encrypted

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_flattened"

# Skip reason -> warning message mappings for flatten_pdf().
_SKIP_WARNINGS: list[tuple[SkipReason, str]] = [
    (SkipReason.NO_PAGE, "widget(s) not on any page"),
    (SkipReason.NO_APPEARANCE, "widget(s) without appearance"),
    (SkipReason.HIDDEN, "hidden widget(s) dropped"),
    (SkipReason.FAILED, "widget(s) failed to flatten"),
]

_FIELD_WARNINGS: list[tuple[FieldEventKind, str]] = [
    (FieldEventKind.VALUE_READ_FAILED, "field value(s) unreadable"),
    (FieldEventKind.APPEARANCE_FAILED, "field appearance(s) not rebuilt"),
    (FieldEventKind.REMOVAL_FAILED, "field(s) could not be removed"),
]


@dataclass
class FlattenResult:
    """Result of flattening one PDF file.

    Attributes:
        success: True if the output was written.
        input_path: Path to the input PDF.
        output_path: Path to the flattened PDF.
        report: Details of the flatten operation.
        warnings: Human-readable summary of skipped widgets and fields.
        processing_time: Processing time in seconds.
        error: Error message if success=False.
    """

    success: bool
    input_path: Path
    output_path: Path
    report: FlattenReport | None = None
    warnings: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    error: str | None = None


def generate_output_path(
    input_path: Path,
    output_dir: Path | None = None,
) -> Path:
    """Generates the output path for a flattened PDF.

    Args:
        input_path: Path to the input PDF.
        output_dir: Optional output directory.

    Returns:
        Path for the flattened PDF.
    """
    output_name = f"{input_path.stem}{OUTPUT_SUFFIX}.pdf"
    if output_dir is not None:
        return output_dir / output_name
    return input_path.parent / output_name


def _report_warnings(report: FlattenReport) -> list[str]:
    warnings: list[str] = []
    for reason, message in _SKIP_WARNINGS:
        count = report.skipped.get(reason, 0)
        if count > 0:
            warnings.append(f"{count} {message}")
    for kind, message in _FIELD_WARNINGS:
        count = sum(1 for e in report.field_events if e.kind is kind)
        if count > 0:
            warnings.append(f"{count} {message}")
    return warnings


def flatten_pdf(
    input_path: Path,
    output_path: Path,
    *,
    font_config: FontConfig | None = None,
    font_source: FontSource | None = None,
    options: FlattenOptions | None = None,
    sink: DiagnosticsSink | None = None,
) -> FlattenResult:
    """Flattens the interactive form of a PDF file.

    Args:
        input_path: Path to the input PDF.
        output_path: Path for the flattened PDF (may equal input_path).
        font_config: Font locations (defaults to the bundled fonts).
        font_source: Font byte provider.
        options: Flatten options.
        sink: Receives widget outcomes and field events.

    Returns:
        FlattenResult with status and details.

    Raises:
        FlattenError: If flattening fails.
        UnsupportedPDFError: If the PDF is encrypted.
        FontAcquisitionError: If the form font cannot be fetched.
        FontEmbeddingError: If the form font cannot be embedded.
    """
    start_time = time.perf_counter()
    pdf: pikepdf.Pdf | None = None

    logger.info("Starting flattening: %s -> %s", input_path, output_path)

    try:
        overwrite = input_path.resolve() == output_path.resolve()
        pdf = pikepdf.open(input_path, allow_overwriting_input=overwrite)
        if is_pdf_encrypted(pdf):
            raise UnsupportedPDFError(
                f"PDF is encrypted and cannot be flattened: {input_path}"
            )

        report = asyncio.run(
            flatten_form(
                pdf,
                font_config=font_config,
                font_source=font_source,
                options=options,
                sink=sink,
            )
        )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Saving flattened PDF: %s", output_path)
        pdf.save(output_path)
        pdf.close()
        pdf = None

        processing_time = time.perf_counter() - start_time
        logger.info(
            "Flattening successful: %s (%.2f seconds)",
            output_path,
            processing_time,
        )
        return FlattenResult(
            success=True,
            input_path=input_path,
            output_path=output_path,
            report=report,
            warnings=_report_warnings(report),
            processing_time=processing_time,
        )

    except pikepdf.PasswordError as e:
        raise UnsupportedPDFError(
            f"PDF is encrypted and cannot be flattened: {input_path}"
        ) from e

    except pikepdf.PdfError as e:
        error_msg = f"PDF processing error: {e}"
        logger.error(error_msg)
        raise FlattenError(error_msg) from e

    except (UnsupportedPDFError, FontAcquisitionError, FontEmbeddingError):
        # Re-raise specific errors unchanged
        raise

    except FlattenError:
        raise

    except (FileNotFoundError, PermissionError):
        raise

    except Exception as e:
        error_msg = f"Unexpected error during flattening: {e}"
        logger.error(error_msg)
        raise FlattenError(error_msg) from e

    finally:
        # Close PDF if still open (e.g. after an exception)
        if pdf is not None:
            try:
                pdf.close()
            except Exception:
                pass


def flatten_files(
    file_pairs: list[tuple[Path, Path]],
    *,
    font_config: FontConfig | None = None,
    font_source: FontSource | None = None,
    options: FlattenOptions | None = None,
    force_overwrite: bool = False,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> list[FlattenResult]:
    """Flattens a list of PDF files.

    Shared base for flatten_directory().

    Args:
        file_pairs: List of (input_path, output_path) tuples.
        font_config: Font locations.
        font_source: Font byte provider.
        options: Flatten options.
        force_overwrite: If True, existing output files are overwritten.
            If False, existing outputs are skipped with an error result.
        on_progress: Optional callback(current_idx, total, filename) called
            before each file.

    Returns:
        List of FlattenResult for all processed files.
    """
    results: list[FlattenResult] = []
    total = len(file_pairs)

    for idx, (input_path, output_path) in enumerate(file_pairs):
        if on_progress is not None:
            on_progress(idx, total, input_path.name)

        # Overwrite protection
        if output_path.exists() and not force_overwrite:
            logger.warning(
                "Skipping %s: Output file already exists (%s)",
                input_path.name,
                output_path,
            )
            results.append(
                FlattenResult(
                    success=False,
                    input_path=input_path,
                    output_path=output_path,
                    error="Output file already exists",
                )
            )
            continue

        try:
            results.append(
                flatten_pdf(
                    input_path,
                    output_path,
                    font_config=font_config,
                    font_source=font_source,
                    options=options,
                )
            )
        except (
            FlattenError,
            UnsupportedPDFError,
            FontAcquisitionError,
            FontEmbeddingError,
            OSError,
        ) as e:
            logger.error("Error for %s: %s", input_path.name, e)
            results.append(
                FlattenResult(
                    success=False,
                    input_path=input_path,
                    output_path=output_path,
                    error=str(e),
                )
            )

    return results


def flatten_directory(
    input_dir: Path,
    output_dir: Path | None = None,
    *,
    recursive: bool = False,
    show_progress: bool = True,
    font_config: FontConfig | None = None,
    font_source: FontSource | None = None,
    options: FlattenOptions | None = None,
    force_overwrite: bool = False,
) -> list[FlattenResult]:
    """Flattens all PDFs in a directory.

    Args:
        input_dir: Input directory with PDF files.
        output_dir: Optional output directory. If None, files are saved
            next to their input with the ``_flattened`` suffix.
        recursive: If True, subdirectories are included.
        show_progress: If True, a progress bar is shown.
        font_config: Font locations.
        font_source: Font byte provider.
        options: Flatten options.
        force_overwrite: If True, existing output files are overwritten.

    Returns:
        List of FlattenResult for all processed files.

    Raises:
        FlattenError: If the input directory does not exist.
    """
    if not input_dir.is_dir():
        raise FlattenError(f"Directory does not exist: {input_dir}")

    pattern = "**/*.pdf" if recursive else "*.pdf"
    pdf_files = sorted(input_dir.glob(pattern))

    # When output goes to the same directory, exclude previous outputs
    if output_dir is None:
        pdf_files = [p for p in pdf_files if not p.stem.endswith(OUTPUT_SUFFIX)]

    if not pdf_files:
        logger.warning("No PDF files found in: %s", input_dir)
        return []

    logger.info(
        "Found: %d PDF file(s) in %s%s",
        len(pdf_files),
        input_dir,
        " (recursive)" if recursive else "",
    )

    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)

    file_pairs: list[tuple[Path, Path]] = []
    for pdf_file in pdf_files:
        if output_dir is not None and recursive:
            rel_path = pdf_file.relative_to(input_dir)
            out_subdir = output_dir / rel_path.parent
            out_subdir.mkdir(parents=True, exist_ok=True)
            out_path = generate_output_path(pdf_file, out_subdir)
        else:
            out_path = generate_output_path(pdf_file, output_dir)
        file_pairs.append((pdf_file, out_path))

    progress_bar = None
    if show_progress:
        progress_bar = tqdm(
            total=len(file_pairs),
            desc="Flattening",
            unit="file",
            ncols=80,
        )

    def _on_progress(current_idx: int, total: int, filename: str) -> None:
        if progress_bar is not None:
            progress_bar.update(1)
            progress_bar.set_postfix_str(filename)

    results = flatten_files(
        file_pairs,
        font_config=font_config,
        font_source=font_source,
        options=options,
        force_overwrite=force_overwrite,
        on_progress=_on_progress if show_progress else None,
    )

    if progress_bar is not None:
        progress_bar.close()

    successful = sum(1 for r in results if r.success)
    logger.info(
        "Directory flattening completed: %d successful, %d failed",
        successful,
        len(results) - successful,
    )
    return results
