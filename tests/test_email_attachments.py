"""Attachment resolution: content types, naming, ordering, read failures."""

import base64

import pytest

from email_attachments import (
    DEFAULT_CONTENT_TYPE,
    MIME_TYPES,
    content_type_for,
    resolve_attachments,
)
from email_errors import AttachmentReadError
from email_schemas import AttachmentRequest


@pytest.mark.parametrize("extension,expected", sorted(MIME_TYPES.items()))
def test_known_extensions(extension, expected):
    assert content_type_for(f"/data/file{extension}") == expected
    assert content_type_for(f"/data/FILE{extension.upper()}") == expected


@pytest.mark.parametrize("path", ["/data/setup.exe", "/data/README", "/data/archive.tar.gz", ""])
def test_unknown_extensions_fall_back(path):
    assert content_type_for(path) == DEFAULT_CONTENT_TYPE


@pytest.mark.asyncio
async def test_resolves_csv(tmp_path):
    report = tmp_path / "r.csv"
    report.write_text("a,b\n1,2\n")

    [attachment] = await resolve_attachments([AttachmentRequest(file_path=str(report))])

    assert attachment.name == "r.csv"
    assert attachment.content_type == "text/csv"
    assert base64.b64decode(attachment.content) == b"a,b\n1,2\n"
    assert attachment.to_postmark() == {
        "Name": "r.csv", "Content": attachment.content, "ContentType": "text/csv",
    }


@pytest.mark.asyncio
async def test_preserves_order_and_name_overrides(tmp_path):
    paths = []
    for name in ("c.pdf", "a.png", "b.bin"):
        path = tmp_path / name
        path.write_bytes(b"\x00\x01")
        paths.append(str(path))

    attachments = await resolve_attachments([
        AttachmentRequest(file_path=paths[0]),
        AttachmentRequest(file_path=paths[1], file_name="logo.png"),
        AttachmentRequest(file_path=paths[2]),
    ])

    assert [a.name for a in attachments] == ["c.pdf", "logo.png", "b.bin"]
    assert [a.content_type for a in attachments] == [
        "application/pdf", "image/png", DEFAULT_CONTENT_TYPE,
    ]


@pytest.mark.asyncio
async def test_missing_file_aborts_batch(tmp_path):
    present = tmp_path / "ok.txt"
    present.write_text("fine")

    with pytest.raises(AttachmentReadError) as exc:
        await resolve_attachments([
            AttachmentRequest(file_path=str(present)),
            AttachmentRequest(file_path=str(tmp_path / "missing.txt")),
        ])
    assert "missing.txt" in str(exc.value)


@pytest.mark.asyncio
async def test_directory_is_unreadable(tmp_path):
    with pytest.raises(AttachmentReadError):
        await resolve_attachments([AttachmentRequest(file_path=str(tmp_path))])


@pytest.mark.asyncio
async def test_empty_request_list():
    assert await resolve_attachments([]) == []
