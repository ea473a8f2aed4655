from __future__ import annotations

import io
import zipfile
from xml.sax.saxutils import escape

import fitz
import pytest

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
)

PACKAGE_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="word/document.xml"/>'
    "</Relationships>"
)


def build_pdf(pages: list[list[tuple[float, str, float]]]) -> bytes:
    """One PDF page per entry; each item is ``(top_down_y, text, font_size)`` at x=72."""
    doc = fitz.open()
    try:
        for items in pages:
            page = doc.new_page(width=612, height=792)
            for y, text, size in items:
                page.insert_text((72, y), text, fontsize=size)
        return doc.tobytes()
    finally:
        doc.close()


def build_docx(paragraphs: list[str]) -> bytes:
    body = "".join(
        f'<w:p><w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r></w:p>' for text in paragraphs
    )
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{body}</w:body></w:document>"
    )
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("[Content_Types].xml", CONTENT_TYPES)
        archive.writestr("_rels/.rels", PACKAGE_RELS)
        archive.writestr("word/document.xml", document)
    return buf.getvalue()


POLICY_PAGE = [
    (100, "Information Security Policy", 18),
    (160, "This policy applies to all staff members.", 11),
    (175, "It covers laptops, phones and removable media.", 11),
    (190, "Exceptions require written approval.", 11),
    (300, "1. Lock your screen when you step away.", 11),
    (315, "2. Report lost devices within one hour.", 11),
    (330, "3. Never share passwords with colleagues.", 11),
]


@pytest.fixture
def policy_pdf() -> bytes:
    return build_pdf([POLICY_PAGE, [(100, "Second page text that is long enough.", 11)]])


@pytest.fixture
def policy_docx() -> bytes:
    return build_docx(
        [
            "Scope of the policy:",
            "- item one is listed here",
            "- item two is listed here",
        ]
    )


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from citelens.main import app
    from citelens.services.debounce import HoverDebouncer

    with TestClient(app) as test_client:
        app.state.debouncer = HoverDebouncer(0)
        yield test_client
