"""
Smoke tests for the Streamlit composition screen (no relay token, so no
network traffic), plus the page's rendering helpers.
"""

import asyncio

import pytest
from streamlit.testing.v1 import AppTest

import app as page
from mail_relay import AttachmentManager, Recipient
from utils.config import MB


@pytest.fixture
def app(monkeypatch):
    monkeypatch.delenv("MAIL_RELAY_TOKEN", raising=False)
    at = AppTest.from_file("../app.py", default_timeout=30)
    at.secrets["relay"] = {"token": ""}
    return at.run()


def test_renders_signed_out(app):
    assert not app.exception
    assert "Not signed in" in app.warning[0].value


def test_enter_adds_recipient(app):
    app.text_input(key="recipient_input").input("a@x.com").run()

    assert not app.exception
    assert app.session_state["form"].recipients.emails() == ["a@x.com"]
    assert app.text_input(key="recipient_input").value == ""


def test_pasted_list_adds_all(app):
    app.text_input(key="recipient_input").input("a@x.com, b@x.com; c@x.com").run()

    assert app.session_state["form"].recipients.emails() == ["a@x.com", "b@x.com", "c@x.com"]


def test_send_without_recipients_is_blocked(app):
    app.button(key="send").click().run()

    assert not app.exception
    assert app.error[0].value == "At least one recipient is required"


def test_comma_space_adds_recipient(app):
    app.text_input(key="recipient_input").input("a@x.com, ").run()

    assert not app.exception
    assert app.session_state["form"].recipients.emails() == ["a@x.com"]
    assert not app.error


def test_token_read_from_environment(monkeypatch):
    monkeypatch.setenv("MAIL_RELAY_TOKEN", "env-secret")

    assert page.get_token() == "env-secret"


def test_suggestion_label_bolds_match():
    recipient = Recipient(email="dana@x.com", display_name="Dana")

    assert page.suggestion_label(recipient, "dan") == "**Dan**a <**dan**a@x.com>"
    assert page.suggestion_label(recipient, "") == "Dana <dana@x.com>"


class FakeBar:

    def __init__(self):
        self.values = []

    def progress(self, value, text=None):
        self.values.append(value)


@pytest.mark.asyncio
async def test_progress_updater_moves_bar(make_file, uploader):
    manager = AttachmentManager(uploader=uploader)
    big = make_file("big.pdf", size=12 * MB)
    manager.add_files([big])
    for _ in range(5):
        await asyncio.sleep(0)

    bar = FakeBar()
    manager.on_change = page.progress_updater(manager, {big.attachment_id: bar})
    uploader.progress(big, 40, 100)
    uploader.progress(big, 40, 100)
    uploader.finish(big, "https://drive.example/big")
    await manager.wait_for_uploads()

    assert bar.values == [40, 100]
