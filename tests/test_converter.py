"""Tests for packagesign.core.converter -- package/container conversion."""

from __future__ import annotations

import zipfile

import pytest
from defusedxml import ElementTree

from packagesign.constants import MANIFEST_VERSION, SIGNATURE_ENTRY
from packagesign.core.converter import (
    build_manifest,
    from_signable,
    inject_manifest,
    strip_signature,
    to_signable,
)
from packagesign.core.package import PackageFormat
from packagesign.errors import ManifestWriteError, UnsupportedFormatError

_NS = "{http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd}"


def test_to_signable_copies_without_touching_input(tmp_path, package_factory):
    package = package_factory("App")
    before = package.read_bytes()
    scratch = tmp_path / "scratch"
    scratch.mkdir()

    container = to_signable(package, scratch, PackageFormat.SIMPLE)

    assert container == scratch / "App.nupkg"
    assert container.read_bytes() == before
    assert package.read_bytes() == before


def test_to_signable_rejects_wrong_format(tmp_path, package_factory):
    package = package_factory("Proto", PackageFormat.COMPOSITE)
    with pytest.raises(UnsupportedFormatError):
        to_signable(package, tmp_path, PackageFormat.SIMPLE)


def test_build_manifest_fields():
    root = ElementTree.fromstring(build_manifest("My<App>", publisher="ACME & Co"))
    metadata = root.find(f"{_NS}metadata")
    assert metadata.findtext(f"{_NS}id") == "My<App>_Signed"
    assert metadata.findtext(f"{_NS}description") == "My<App>_Signed"
    assert metadata.findtext(f"{_NS}version") == MANIFEST_VERSION
    assert metadata.findtext(f"{_NS}authors") == "ACME & Co"


def test_inject_manifest_adds_single_entry(tmp_path, package_factory):
    container = tmp_path / "App.nupkg"
    container.write_bytes(package_factory("App").read_bytes())
    with zipfile.ZipFile(container) as archive:
        original = archive.namelist()

    entry = inject_manifest(container)

    assert entry == "App.nuspec"
    with zipfile.ZipFile(container) as archive:
        assert archive.namelist() == [*original, "App.nuspec"]
        assert b"App_Signed" in archive.read("App.nuspec")


def test_inject_manifest_twice_fails(tmp_path, package_factory):
    container = tmp_path / "App.nupkg"
    container.write_bytes(package_factory("App").read_bytes())
    inject_manifest(container)
    with pytest.raises(ManifestWriteError, match="already contains"):
        inject_manifest(container)


def test_inject_manifest_corrupt_container(tmp_path):
    container = tmp_path / "Broken.nupkg"
    container.write_bytes(b"this is not a zip archive")
    with pytest.raises(ManifestWriteError):
        inject_manifest(container)
    assert container.read_bytes() == b"this is not a zip archive"


def test_from_signable_publishes_under_output_name(tmp_path):
    container = tmp_path / "App.nupkg"
    container.write_bytes(b"PK-data")
    out = tmp_path / "out"
    out.mkdir()

    result = from_signable(container, out, "App.dmapp")

    assert result == out / "App.dmapp"
    assert result.read_bytes() == b"PK-data"
    assert [p.name for p in out.iterdir()] == ["App.dmapp"]


def test_from_signable_rejects_non_container(tmp_path):
    source = tmp_path / "App.zip"
    source.write_bytes(b"x")
    with pytest.raises(UnsupportedFormatError):
        from_signable(source, tmp_path, "App.dmapp")


def test_strip_signature_removes_signature_and_manifest(tmp_path, package_factory):
    container = tmp_path / "App.nupkg"
    container.write_bytes(package_factory("App").read_bytes())
    with zipfile.ZipFile(container) as archive:
        original = archive.namelist()
    inject_manifest(container)
    with zipfile.ZipFile(container, "a") as archive:
        archive.writestr(SIGNATURE_ENTRY, b"old signature")

    assert strip_signature(container)

    with zipfile.ZipFile(container) as archive:
        assert archive.namelist() == original
    assert [p.name for p in tmp_path.iterdir() if p.suffix == ".tmp"] == []
    inject_manifest(container)


def test_strip_signature_unsigned_is_noop(tmp_path, package_factory):
    container = tmp_path / "App.nupkg"
    container.write_bytes(package_factory("App").read_bytes())
    before = container.read_bytes()

    assert not strip_signature(container)
    assert container.read_bytes() == before


def test_strip_signature_corrupt_container(tmp_path):
    container = tmp_path / "Broken.nupkg"
    container.write_bytes(b"this is not a zip archive")
    with pytest.raises(ManifestWriteError, match="Broken.nupkg"):
        strip_signature(container)
