# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Click-based CLI for pdfflatten.

This module provides the command-line interface for
flattening the interactive forms of PDF files.
"""

# Standard Library
import logging
import sys
from pathlib import Path

# Third Party
import click
from colorama import Fore, Style, init

# Local
from . import __version__
from .converter import (
    FlattenResult,
    flatten_directory,
    flatten_pdf,
    generate_output_path,
)
from .exceptions import (
    FlattenError,
    FontAcquisitionError,
    FontEmbeddingError,
    UnsupportedPDFError,
)
from .flatten import FlattenOptions
from .fonts.constants import CJK_FONT_LOCATION, DEFAULT_FONT_LOCATION
from .fonts.resolver import FontConfig
from .utils import setup_logging

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_FILE_NOT_FOUND = 2
EXIT_FLATTEN_FAILED = 3
EXIT_PERMISSION_ERROR = 5

logger = logging.getLogger(__name__)


def print_success(msg: str) -> None:
    """Prints a success message in green.

    Args:
        msg: The message to output.
    """
    click.echo(f"{Fore.GREEN}✓{Style.RESET_ALL} {msg}")


def print_error(msg: str) -> None:
    """Prints an error message in red.

    Args:
        msg: The error message to output.
    """
    click.echo(f"{Fore.RED}✗ Error:{Style.RESET_ALL} {msg}", err=True)


def print_warning(msg: str) -> None:
    """Prints a warning in yellow.

    Args:
        msg: The warning to output.
    """
    click.echo(f"{Fore.YELLOW}⚠{Style.RESET_ALL} {msg}")


def _print_result(result: FlattenResult, quiet: bool) -> None:
    """Prints the flatten result in a formatted way.

    Args:
        result: The flatten result.
        quiet: If True, only output errors.
    """
    if result.success:
        if not quiet:
            report = result.report
            flattened = report.widgets_flattened if report else 0
            print_success(
                f"Flattened: {result.input_path.name} -> "
                f"{result.output_path.name} ({flattened} widget(s), "
                f"{result.processing_time:.2f}s)"
            )
            for warning in result.warnings:
                print_warning(warning)
    else:
        print_error(f"{result.input_path.name}: {result.error}")


@click.command()
@click.argument("input_path", required=False, type=click.Path(exists=True))
@click.argument("output", required=False, type=click.Path())
@click.option(
    "--font",
    "font",
    envvar="PDFFLATTEN_FONT",
    default=DEFAULT_FONT_LOCATION,
    show_default=True,
    help="Font for field values (path, URL or package: resource)",
)
@click.option(
    "--cjk-font",
    "cjk_font",
    envvar="PDFFLATTEN_CJK_FONT",
    default=CJK_FONT_LOCATION,
    show_default=True,
    help="Font used when any field value contains CJK text",
)
@click.option(
    "--keep-appearances",
    is_flag=True,
    help="Keep existing text field appearances instead of rebuilding them",
)
@click.option(
    "-r",
    "--recursive",
    is_flag=True,
    help="Process directories recursively",
)
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Overwrite existing files",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Only output errors",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Detailed output",
)
@click.version_option(version=__version__)
def main(
    input_path: str | None,
    output: str | None,
    font: str,
    cjk_font: str,
    keep_appearances: bool,
    recursive: bool,
    force: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Flattens the interactive form of PDF files.

    INPUT is the path to the input PDF or a directory.
    OUTPUT is optionally the path for the flattened PDF.
    """
    # Initialize colorama for Windows compatibility
    init()

    if input_path is None:
        click.echo(click.get_current_context().get_help())
        sys.exit(EXIT_GENERAL_ERROR)

    setup_logging(verbose=verbose, quiet=quiet)

    input_path_obj = Path(input_path)
    font_config = FontConfig(default_font=font, cjk_font=cjk_font)
    options = FlattenOptions(refresh_existing=not keep_appearances)

    try:
        if input_path_obj.is_file():
            exit_code = _flatten_single_file(
                input_path_obj, output, font_config, options, force, quiet
            )
        elif input_path_obj.is_dir():
            exit_code = _flatten_directory(
                input_path_obj,
                output,
                font_config,
                options,
                force,
                recursive,
                quiet,
            )
        else:
            print_error(f"Invalid path: {input_path}")
            exit_code = EXIT_FILE_NOT_FOUND

    except FileNotFoundError as e:
        print_error(str(e))
        exit_code = EXIT_FILE_NOT_FOUND
    except PermissionError as e:
        print_error(f"Access denied: {e}")
        exit_code = EXIT_PERMISSION_ERROR
    except (
        FlattenError,
        UnsupportedPDFError,
        FontAcquisitionError,
        FontEmbeddingError,
    ) as e:
        print_error(str(e))
        exit_code = EXIT_FLATTEN_FAILED
    except Exception as e:
        logger.exception("Unexpected error")
        print_error(f"Unexpected error: {e}")
        exit_code = EXIT_GENERAL_ERROR

    sys.exit(exit_code)


def _flatten_single_file(
    input_path: Path,
    output: str | None,
    font_config: FontConfig,
    options: FlattenOptions,
    force: bool,
    quiet: bool,
) -> int:
    """Flattens a single PDF file.

    Returns:
        Exit code.
    """
    output_path = Path(output) if output else generate_output_path(input_path)

    if output_path.exists() and not force:
        print_error(
            f"Output file already exists: {output_path}. Use --force to overwrite."
        )
        return EXIT_GENERAL_ERROR

    if not quiet:
        click.echo(f"Flattening {input_path.name}...")

    result = flatten_pdf(
        input_path,
        output_path,
        font_config=font_config,
        options=options,
    )
    _print_result(result, quiet)

    return EXIT_SUCCESS if result.success else EXIT_FLATTEN_FAILED


def _flatten_directory(
    input_dir: Path,
    output: str | None,
    font_config: FontConfig,
    options: FlattenOptions,
    force: bool,
    recursive: bool,
    quiet: bool,
) -> int:
    """Flattens all PDFs in a directory.

    Returns:
        Exit code.
    """
    output_dir = Path(output) if output else None

    if not quiet:
        mode = "recursive" if recursive else "non-recursive"
        click.echo(f"Flattening directory {input_dir} ({mode})...")

    results = flatten_directory(
        input_dir,
        output_dir,
        recursive=recursive,
        show_progress=not quiet,
        font_config=font_config,
        options=options,
        force_overwrite=force,
    )

    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]

    if not quiet:
        click.echo()
        click.echo("Summary:")
        print_success(f"{len(successful)} file(s) successfully flattened")
        if failed:
            print_error(f"{len(failed)} file(s) failed")
            for result in failed:
                click.echo(f"  - {result.input_path.name}: {result.error}", err=True)

    return EXIT_FLATTEN_FAILED if failed else EXIT_SUCCESS


if __name__ == "__main__":
    main()
