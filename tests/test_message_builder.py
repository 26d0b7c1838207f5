"""
Tests for assembling the relay submission payload.
"""

import json

import pytest

from mail_relay.attachments import UploadTask
from mail_relay.message_builder import MessageBuilder, MessageBuilderError
from utils.config import MB


@pytest.fixture
def builder():
    return MessageBuilder("relay.test")


def finished_task(attachment, link):
    return UploadTask(
        attachment_id=attachment.attachment_id,
        attachment_name=attachment.name,
        progress_percent=100,
        result_link=link,
    )


def test_text_fields(builder):
    outbound = builder.build("office", ["a@x.com", "b@x.com"], "Hello", "Body text")

    assert outbound.data["from"] == "office@relay.test"
    assert outbound.data["to"] == "a@x.com,b@x.com"
    assert outbound.data["subject"] == "Hello"
    assert outbound.data["message"] == "Body text"
    assert json.loads(outbound.data["driveLinks"]) == []
    assert outbound.files == []


def test_missing_subject_sent_empty(builder):
    outbound = builder.build("office", ["a@x.com"], None, "Body")
    assert outbound.data["subject"] == ""


def test_inline_and_hosted_files(builder, make_file):
    small = make_file("notes.txt", size=1024, mime_type="text/plain")
    large = make_file("video.mp4", size=int(12.5 * MB), mime_type="video/mp4")

    outbound = builder.build(
        "office",
        ["a@x.com"],
        "Files",
        "See attached",
        attachments=[small],
        hosted=[(large, finished_task(large, "https://drive.example/video"))],
    )

    assert outbound.files == [("files", ("notes.txt", small.content, "text/plain"))]
    assert json.loads(outbound.data["driveLinks"]) == [
        {"filename": "video.mp4", "link": "https://drive.example/video", "size": "12.50"}
    ]


def test_no_recipients(builder):
    with pytest.raises(MessageBuilderError):
        builder.build("office", [], "Hi", "Body")


def test_invalid_sender_prefix(builder):
    with pytest.raises(MessageBuilderError):
        builder.build("bad prefix", ["a@x.com"], "Hi", "Body")


def test_large_file_cannot_go_inline(builder, make_file):
    with pytest.raises(MessageBuilderError):
        builder.build("office", ["a@x.com"], "Hi", "Body", attachments=[make_file("big.pdf", size=8 * MB)])


def test_unfinished_upload_rejected(builder, make_file):
    large = make_file("big.pdf", size=8 * MB)
    task = UploadTask(large.attachment_id, large.name, progress_percent=40)

    with pytest.raises(MessageBuilderError):
        builder.build("office", ["a@x.com"], "Hi", "Body", hosted=[(large, task)])
