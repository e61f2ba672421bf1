"""
Shared test configuration and fixtures for docconvert tests.
"""

import os
import stat
from io import BytesIO
from pathlib import Path
from typing import Callable

import docx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from docconvert.config import ServiceConfig


# A one page PDF, enough for signature checks
MINIMAL_PDF = (
    b"%PDF-1.4\n"
    b"1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj\n"
    b"3 0 obj<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]>>endobj\n"
    b"xref\n0 4\n0000000000 65535 f \n"
    b"trailer<</Size 4/Root 1 0 R>>\nstartxref\n0\n%%EOF\n"
)

MINIMAL_RTF = b"{\\rtf1\\ansi\\deff0 {\\fonttbl {\\f0 Times;}}\\f0 Hello RTF\\par}"

# OLE2 header followed by padding; antiword rejects it but the signature matches
MINIMAL_DOC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 504


# ===== FIXTURE FACTORIES =====

class FixtureFactory:
    """Builders for documents and fake converter binaries."""

    @staticmethod
    def create_docx(paragraphs=("Hello DOCX",), header: str = None, footer: str = None) -> bytes:
        document = docx.Document()
        for text in paragraphs:
            document.add_paragraph(text)
        section = document.sections[0]
        if header:
            section.header.paragraphs[0].text = header
        if footer:
            section.footer.paragraphs[0].text = footer
        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def create_fake_binary(directory: Path, name: str, script: str) -> Path:
        """Write an executable shell script standing in for a converter."""
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("#!/bin/sh\n" + script, encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path


# ===== STANDARD FIXTURES =====

@pytest.fixture(scope="session")
def session_temp_dir(tmp_path_factory):
    """Artifact directory shared by the session client."""
    return tmp_path_factory.mktemp("artifacts")


@pytest.fixture
def temp_dir(tmp_path):
    """Per-test artifact directory."""
    path = tmp_path / "artifacts"
    path.mkdir()
    return path


@pytest.fixture
def bin_dir(tmp_path):
    """Directory for fake converter binaries."""
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def service_config(temp_dir, bin_dir):
    """Config pointing Poppler, Pandoc and antiword at the fake binary directory."""
    return ServiceConfig(
        temp_dir=temp_dir,
        poppler_bin_path=str(bin_dir),
        pandoc_binary=str(bin_dir / "pandoc"),
        antiword_binary=str(bin_dir / "antiword"),
        process_timeout_sec=5,
    )


# Client fixtures
@pytest.fixture(scope="session")
def client(session_temp_dir):
    """FastAPI test client for synchronous tests."""
    app = create_app(ServiceConfig(temp_dir=session_temp_dir))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_client() -> Callable[..., TestClient]:
    """Factory for clients over an app with a custom config."""
    clients = []

    def factory(config: ServiceConfig) -> TestClient:
        test_client = TestClient(create_app(config))
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.__exit__(None, None, None)


# ===== PAYLOAD FIXTURES =====

@pytest.fixture
def pdf_payload():
    return MINIMAL_PDF


@pytest.fixture
def rtf_payload():
    return MINIMAL_RTF


@pytest.fixture
def doc_payload():
    return MINIMAL_DOC


@pytest.fixture
def docx_payload():
    return FixtureFactory.create_docx(
        paragraphs=("First paragraph", "Second paragraph"),
        header="Running header",
        footer="Running footer",
    )


@pytest.fixture
def fixture_factory():
    return FixtureFactory


@pytest.fixture
def list_artifacts() -> Callable[[Path], list]:
    """Files left in an artifact directory."""
    def listing(directory: Path) -> list:
        return sorted(os.listdir(directory)) if directory.exists() else []
    return listing
