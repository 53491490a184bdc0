"""Tests for packagesign.ui.batch -- package discovery and batch runs."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from packagesign.config.credentials import CredentialSet
from packagesign.core.package import PackageFormat
from packagesign.errors import AuthError, InvalidFileTypeError, PackageSignError
from packagesign.ui.batch import BatchResult, resolve_packages, run_sign, run_verify
from packagesign.ui.workflows import ExitCode, Outcome, PackageOutcome

# ── resolve_packages ─────────────────────────────────────────────


def test_resolve_single_file(package_factory):
    path = package_factory("App")
    assert resolve_packages(path, PackageFormat.SIMPLE) == [path]


def test_resolve_file_wrong_extension(package_factory):
    path = package_factory("Proto", PackageFormat.COMPOSITE)
    with pytest.raises(InvalidFileTypeError):
        resolve_packages(path, PackageFormat.SIMPLE)


def test_resolve_missing_location(tmp_path):
    with pytest.raises(PackageSignError, match="neither a file nor a directory"):
        resolve_packages(tmp_path / "missing", PackageFormat.SIMPLE)


def test_resolve_simple_is_shallow_and_sorted(tmp_path, package_factory):
    root = tmp_path / "in"
    b = package_factory("B", directory=root)
    a = package_factory("A", directory=root)
    package_factory("Nested", directory=root / "sub")
    package_factory("Proto", PackageFormat.COMPOSITE, directory=root)
    (root / "notes.txt").write_text("ignore me")

    assert resolve_packages(root, PackageFormat.SIMPLE) == [a, b]


def test_resolve_composite_is_recursive(tmp_path, package_factory):
    root = tmp_path / "in"
    top = package_factory("Top", PackageFormat.COMPOSITE, directory=root)
    nested = package_factory("Deep", PackageFormat.COMPOSITE, directory=root / "x" / "y")
    package_factory("App", directory=root)

    assert sorted(resolve_packages(root, PackageFormat.COMPOSITE)) == sorted([top, nested])


def test_resolve_empty_directory(tmp_path):
    assert resolve_packages(tmp_path, PackageFormat.SIMPLE) == []


# ── BatchResult ──────────────────────────────────────────────────


def test_batch_exit_codes(tmp_path):
    ok = PackageOutcome(tmp_path / "a.dmapp", Outcome.OK)
    failed = PackageOutcome(tmp_path / "b.dmapp", Outcome.FAIL)
    assert BatchResult().exit_code is ExitCode.OK
    assert BatchResult((ok,)).exit_code is ExitCode.OK
    assert BatchResult((ok, failed)).exit_code is ExitCode.FAIL
    assert BatchResult(aborted=Outcome.FAIL).exit_code is ExitCode.FAIL
    assert BatchResult(aborted=Outcome.UNEXPECTED_EXCEPTION).exit_code is ExitCode.UNEXPECTED_EXCEPTION


# ── run_sign ─────────────────────────────────────────────────────


def test_batch_isolation(tmp_path, package_factory, signer, fake_key_service, context_factory):
    root = tmp_path / "in"
    good_a = package_factory("A", directory=root)
    broken = root / "B.dmapp"
    broken.write_bytes(b"not a zip")
    good_c = package_factory("C", directory=root)
    out = tmp_path / "out"
    context = context_factory(fake_key_service(signer.signature_info))

    result = run_sign([good_a, broken, good_c], PackageFormat.SIMPLE, out, context)

    assert [o.outcome for o in result.outcomes] == [Outcome.OK, Outcome.FAIL, Outcome.OK]
    assert result.exit_code is ExitCode.FAIL
    assert (out / "A.dmapp").exists()
    assert (out / "C.dmapp").exists()
    assert not (out / "B.dmapp").exists()


def test_run_sign_creates_output_directory(tmp_path, package_factory, signer, fake_key_service, context_factory):
    out = tmp_path / "deep" / "out"
    context = context_factory(fake_key_service(signer.signature_info))
    result = run_sign([package_factory("App")], PackageFormat.SIMPLE, out, context)
    assert result.exit_code is ExitCode.OK
    assert (out / "App.dmapp").exists()


def test_run_sign_empty_list(tmp_path, signer, fake_key_service, context_factory):
    context = context_factory(fake_key_service(signer.signature_info))
    result = run_sign([], PackageFormat.SIMPLE, tmp_path / "out", context)
    assert result.outcomes == ()
    assert result.exit_code is ExitCode.OK


def test_run_sign_simple_needs_output(package_factory, signer, fake_key_service, context_factory):
    context = context_factory(fake_key_service(signer.signature_info))
    result = run_sign([package_factory("App")], PackageFormat.SIMPLE, None, context)
    assert result.aborted is Outcome.FAIL


def test_run_sign_composite_uses_one_session(
    tmp_path, package_factory, signer, fake_key_service, fake_document_signer, context_factory
):
    root = tmp_path / "in"
    packages = [
        package_factory(name, PackageFormat.COMPOSITE, directory=root) for name in ("A", "B", "C")
    ]
    document_signer = fake_document_signer()
    context = context_factory(fake_key_service(signer.signature_info))

    result = run_sign(packages, PackageFormat.COMPOSITE, None, context, document_signer)

    assert result.exit_code is ExitCode.OK
    assert document_signer.opened == [("builder", "hunter2", "DOMAIN")]
    assert document_signer.closed == 1
    assert len(document_signer.fake_session.documents) == 3


def test_run_sign_composite_session_failure(
    package_factory, signer, fake_key_service, fake_document_signer, context_factory
):
    document_signer = fake_document_signer(connect_error=AuthError("Authentication failed"))
    context = context_factory(fake_key_service(signer.signature_info))
    package = package_factory("Proto", PackageFormat.COMPOSITE)

    result = run_sign([package], PackageFormat.COMPOSITE, None, context, document_signer)

    assert result.aborted is Outcome.FAIL
    assert result.outcomes == ()
    assert result.exit_code is ExitCode.FAIL


def test_run_sign_composite_without_signer_credentials(
    package_factory, signer, fake_key_service, fake_document_signer, context_factory
):
    document_signer = fake_document_signer()
    context = context_factory(fake_key_service(signer.signature_info), creds=CredentialSet())
    package = package_factory("Proto", PackageFormat.COMPOSITE)

    result = run_sign([package], PackageFormat.COMPOSITE, None, context, document_signer)

    assert result.aborted is Outcome.FAIL
    assert document_signer.opened == []


def test_run_sign_unexpected_batch_error(tmp_path, package_factory, signer, fake_key_service, context_factory):
    context = context_factory(fake_key_service(signer.signature_info))
    with patch("packagesign.ui.batch.sign_package", side_effect=RuntimeError("boom")):
        result = run_sign([package_factory("App")], PackageFormat.SIMPLE, tmp_path / "out", context)
    assert result.aborted is Outcome.UNEXPECTED_EXCEPTION
    assert result.exit_code is ExitCode.UNEXPECTED_EXCEPTION


# ── run_verify ───────────────────────────────────────────────────


def test_run_verify_mixed(tmp_path, package_factory, signer, fake_key_service, context_factory):
    context = context_factory(fake_key_service(signer.signature_info))
    out = tmp_path / "out"
    signed = run_sign([package_factory("A")], PackageFormat.SIMPLE, out, context).outcomes[0]
    unsigned = package_factory("B")

    result = run_verify([signed.output_path, unsigned], PackageFormat.SIMPLE, context)

    assert [o.outcome for o in result.outcomes] == [Outcome.OK, Outcome.FAIL]
    assert result.exit_code is ExitCode.FAIL
