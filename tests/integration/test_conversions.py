"""
Integration tests for the conversion endpoints against the real converters.

Each test is skipped when the binary it needs is not installed. Binary
locations come from the same environment variables the service reads.
"""

import dataclasses
import os
import shutil

import pytest
from bs4 import BeautifulSoup
from fastapi.testclient import TestClient

from app import create_app
from docconvert.config import DOCX_MEDIA_TYPE, get_config

CONFIG = get_config()


def requires(binary: str):
    return pytest.mark.skipif(shutil.which(binary) is None, reason=f"{binary} is not installed")


def build_pdf(text: str) -> bytes:
    """A valid single page PDF with one line of Helvetica text."""
    stream = f"BT /F1 24 Tf 72 700 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<</Type/Catalog/Pages 2 0 R>>",
        b"<</Type/Pages/Kids[3 0 R]/Count 1>>",
        b"<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]/Contents 4 0 R"
        b"/Resources<</Font<</F1 5 0 R>>>>>>",
        b"<</Length " + str(len(stream)).encode() + b">>stream\n" + stream + b"\nendstream",
        b"<</Type/Font/Subtype/Type1/BaseFont/Helvetica>>",
    ]
    body = b"%PDF-1.4\n"
    offsets = []
    for number, obj in enumerate(objects, start=1):
        offsets.append(len(body))
        body += f"{number} 0 obj".encode() + obj + b"endobj\n"
    xref = len(body)
    body += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode()
    for offset in offsets:
        body += f"{offset:010d} 00000 n \n".encode()
    body += f"trailer<</Size {len(objects) + 1}/Root 1 0 R>>\nstartxref\n{xref}\n%%EOF\n".encode()
    return body


@pytest.fixture(scope="module")
def artifact_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("integration-artifacts")


@pytest.fixture(scope="module")
def live_client(artifact_dir):
    app = create_app(dataclasses.replace(CONFIG, temp_dir=artifact_dir, bearer_tokens=frozenset()))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def no_artifacts_left(artifact_dir):
    yield
    assert os.listdir(artifact_dir) == []


class TestConversionEndpoints:
    """Every conversion route against its real converter."""

    @requires(CONFIG.poppler_binary("pdftohtml"))
    def test_pdf_to_html(self, live_client: TestClient):
        response = live_client.post(
            "/pdf/html",
            content=build_pdf("Hello PDF"),
            headers={"Content-Type": "application/pdf"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "text/html; charset=utf-8"

        soup = BeautifulSoup(response.text, "html.parser")
        assert len(soup.find_all("title")) <= 1
        assert "Hello PDF" in soup.get_text()
        assert len(soup.find_all("style")) <= 1
        for image in soup.find_all("img"):
            assert image["src"].startswith("data:image/")

    @requires(CONFIG.poppler_binary("pdftohtml"))
    def test_pdf_to_html_malformed(self, live_client: TestClient):
        response = live_client.post(
            "/pdf/html",
            content=b"%PDF-1.4\nthis is not a real document\n",
            headers={"Content-Type": "application/pdf"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FILE"

    @requires(CONFIG.poppler_binary("pdftotext"))
    def test_pdf_to_txt(self, live_client: TestClient):
        response = live_client.post(
            "/pdf/txt",
            content=build_pdf("Hello PDF"),
            headers={"Content-Type": "application/pdf"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert "Hello PDF" in response.text

    @requires(CONFIG.poppler_binary("pdftotext"))
    def test_pdf_to_txt_html_meta(self, live_client: TestClient):
        response = live_client.post(
            "/pdf/txt?generateHtmlMetaFile=true",
            content=build_pdf("Hello PDF"),
            headers={"Content-Type": "application/pdf", "Accept": "text/html"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Hello PDF" in response.text

    @requires(CONFIG.pandoc_binary)
    def test_rtf_to_html(self, live_client: TestClient, rtf_payload):
        response = live_client.post("/rtf/html", content=rtf_payload, headers={"Content-Type": "application/rtf"})
        assert response.status_code == 200

        soup = BeautifulSoup(response.text, "html.parser")
        assert soup.title.get_text().startswith("docconvert_rtf-to-html_")
        assert "Hello RTF" in soup.body.get_text()

    @requires(CONFIG.pandoc_binary)
    def test_rtf_to_txt(self, live_client: TestClient, rtf_payload):
        response = live_client.post("/rtf/txt", content=rtf_payload, headers={"Content-Type": "text/rtf"})
        assert response.status_code == 200
        assert response.text.strip() == "Hello RTF"

    @requires(CONFIG.antiword_binary)
    def test_doc_to_txt_rejects_empty_compound_file(self, live_client: TestClient, doc_payload):
        response = live_client.post("/doc/txt", content=doc_payload, headers={"Content-Type": "application/msword"})
        assert response.status_code in (400, 500)
        assert "error" in response.json()

    def test_docx_round_trip(self, live_client: TestClient, docx_payload):
        html_response = live_client.post("/docx/html", content=docx_payload, headers={"Content-Type": DOCX_MEDIA_TYPE})
        text_response = live_client.post("/docx/txt", content=docx_payload, headers={"Content-Type": DOCX_MEDIA_TYPE})

        assert html_response.status_code == 200
        assert text_response.status_code == 200
        html_text = BeautifulSoup(html_response.text, "html.parser").get_text()
        for paragraph in ("First paragraph", "Second paragraph"):
            assert paragraph in html_text
            assert paragraph in text_response.text
