"""Batch runner: resolve package locations and process them one by one.

A failing package never stops the batch. The only batch-wide failure is
a remote signer session that cannot be established.
"""

from __future__ import annotations

__all__ = ["BatchResult", "resolve_packages", "run_sign", "run_verify"]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..core.package import Package, PackageFormat
from ..errors import InvalidFileTypeError, PackageSignError
from .workflows import (
    ExitCode,
    Outcome,
    PackageOutcome,
    sign_composite_package,
    sign_package,
    verify_package,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from ..network.document_signer import DocumentSigner
    from .workflows import WorkflowContext

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Per-package outcomes in processing order.

    ``aborted`` is set when the batch stopped before processing packages.
    """

    outcomes: tuple[PackageOutcome, ...] = ()
    aborted: Outcome | None = None
    message: str | None = None

    @property
    def all_succeeded(self) -> bool:
        return self.aborted is None and all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> list[PackageOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def exit_code(self) -> ExitCode:
        if self.aborted is Outcome.UNEXPECTED_EXCEPTION:
            return ExitCode.UNEXPECTED_EXCEPTION
        return ExitCode.OK if self.all_succeeded else ExitCode.FAIL


def resolve_packages(location: Path, package_format: PackageFormat) -> list[Path]:
    """
    Turn a file or directory into the ordered list of packages to process.

    Directories are searched shallowly for simple packages and recursively
    for composite ones.

    Raises:
        InvalidFileTypeError: If a file location has the wrong extension.
        PackageSignError: If the location does not exist.
    """
    if location.is_dir():
        pattern = f"*{package_format.extension}"
        if package_format.recursive_search:
            found = location.rglob(pattern)
        else:
            found = location.glob(pattern)
        packages = sorted(path for path in found if path.is_file() and package_format.matches(path))
        _logger.debug("Found %d package(s) in %s", len(packages), location)
        return packages
    if location.is_file():
        if not package_format.matches(location):
            raise InvalidFileTypeError(
                f"{location.name}: expected a {package_format.extension} file"
            )
        return [location]
    raise PackageSignError(f"Package location is neither a file nor a directory: {location}")


def _prepare_output(output_dir: Path | None) -> None:
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)


def run_sign(
    packages: Sequence[Path],
    package_format: PackageFormat,
    output_dir: Path | None,
    context: WorkflowContext,
    document_signer: DocumentSigner | None = None,
) -> BatchResult:
    """
    Sign every package in order.

    Composite packages need ``document_signer``; one session is opened for
    the whole batch and closed after the last package.
    """
    try:
        _prepare_output(output_dir)
        if package_format is PackageFormat.SIMPLE:
            if output_dir is None:
                raise PackageSignError("An output directory is required for simple packages.")
            outcomes = [
                sign_package(Package(path, package_format), output_dir, context)
                for path in packages
            ]
            return BatchResult(tuple(outcomes))

        if document_signer is None:
            raise PackageSignError("Composite packages need a remote document signer.")
        credentials = context.credentials
        if not credentials.has_document_signer:
            raise PackageSignError("Signing service username and password are required.")
        with document_signer.session(
            credentials.signing_username, credentials.signing_password, credentials.signing_domain
        ) as session:
            outcomes = [
                sign_composite_package(Package(path, package_format), session, output_dir, context)
                for path in packages
            ]
        return BatchResult(tuple(outcomes))
    except PackageSignError as e:
        _logger.error("Signing batch failed: %s", e)
        return BatchResult(aborted=Outcome.FAIL, message=str(e))
    except Exception as e:  # noqa: BLE001 -- batch boundary
        _logger.exception("Failed the signing of packages")
        return BatchResult(aborted=Outcome.UNEXPECTED_EXCEPTION, message=str(e))


def run_verify(
    packages: Sequence[Path], package_format: PackageFormat, context: WorkflowContext
) -> BatchResult:
    """Verify every package in order."""
    try:
        outcomes = [verify_package(Package(path, package_format), context) for path in packages]
    except Exception as e:  # noqa: BLE001 -- batch boundary
        _logger.exception("Failed the verification of packages")
        return BatchResult(aborted=Outcome.UNEXPECTED_EXCEPTION, message=str(e))
    return BatchResult(tuple(outcomes))
