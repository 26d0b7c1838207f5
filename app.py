import asyncio
import logging

import streamlit as st

from mail_relay import (
    Attachment,
    AttachmentManager,
    CredentialProvider,
    FormState,
    RecipientDirectory,
    RecipientSet,
    RelayAPIClient,
    RelayAPIError,
    SubmissionAssembler,
    filter_prefixes,
    highlight_segments,
    relay_uploader,
)
from utils.config import (
    ALLOWED_MIME_TYPES,
    MAX_FILE_SIZE_MB,
    MAX_FILES,
    SENDER_DOMAIN,
    RelaySettings,
)

logger = logging.getLogger(__name__)


def get_token() -> str:
    """
    Get the relay session token.

    Read from MAIL_RELAY_TOKEN first, then from .streamlit/secrets.toml
    ([relay] token = "...").
    """
    credentials = CredentialProvider.from_env()
    if credentials.has_token:
        return credentials.token
    try:
        return st.secrets["relay"]["token"]
    except (KeyError, AttributeError, FileNotFoundError):
        return ""


def run_async(coro):
    return asyncio.run(coro)


def make_client(token: str) -> RelayAPIClient:
    return RelayAPIClient(credentials=CredentialProvider(token=token or None), settings=RelaySettings())


@st.cache_data(ttl=300)
def load_allowed_prefixes(token: str) -> list[str]:
    if not token:
        return []

    async def fetch() -> list[str]:
        async with make_client(token) as client:
            return await client.fetch_allowed_prefixes()

    try:
        return run_async(fetch())
    except RelayAPIError as e:
        logger.error("Failed to fetch allowed emails: %s", e)
        return []


def get_form() -> FormState:
    if "form" not in st.session_state:
        st.session_state.form = FormState(
            recipients=RecipientSet(),
            attachments=AttachmentManager(max_files=MAX_FILES),
        )
        st.session_state.suggestions = []
    return st.session_state.form


def search_directory(token: str, query: str) -> None:
    async def search():
        async with make_client(token) as client:
            directory = RecipientDirectory(client)
            await directory.search(query)
            return directory.suggestions if directory.is_open else []

    st.session_state.suggestions = run_async(search())
    st.session_state.suggestion_query = query


def suggestion_label(recipient, query: str) -> str:
    """Suggestion button text with the typed query in bold."""
    return "".join(
        f"**{segment}**" if is_match else segment
        for segment, is_match in highlight_segments(recipient.label(), query)
    )


def inject_custom_css():
    st.markdown("""
    <style>
        .main-header h1 { margin: 0; font-weight: 700; }
        .recipient-chip {
            display: inline-block;
            padding: 2px 10px;
            margin: 2px;
            border-radius: 12px;
            background: #e8f0fe;
            color: #1a73e8;
        }
    </style>
    """, unsafe_allow_html=True)


def render_header():
    st.markdown("""
    <div class="main-header">
        <h1>Mail Relay</h1>
    </div>
    """, unsafe_allow_html=True)


def render_sender_section(form: FormState, token: str) -> None:
    allowed = load_allowed_prefixes(token)
    query = st.text_input("Search sender", key="sender_search", placeholder="Type to filter")
    options = filter_prefixes(allowed, query)

    if not options:
        st.caption("No sender addresses available")
        return

    index = options.index(form.sender_prefix) if form.sender_prefix in options else 0
    form.sender_prefix = st.selectbox(
        "From",
        options=options,
        index=index,
        format_func=lambda prefix: f"{prefix}@{SENDER_DOMAIN}",
    )


def render_recipients_section(form: FormState, token: str) -> None:
    def on_recipient_input():
        buffer = st.session_state.recipient_input
        if any(sep in buffer.strip(" ,") for sep in (",", ";")):
            form.recipients.paste(buffer)
            st.session_state.recipient_input = ""
            if form.recipients.error:
                form.set_error(form.recipients.error)
            return

        remaining, result = form.recipients.handle_input(buffer)
        if result is None:
            # Text inputs only report on Enter/blur
            remaining, result = form.recipients.handle_enter(buffer)
        st.session_state.recipient_input = remaining
        if result is not None and not result.ok:
            form.set_error(result.message)
        if token:
            search_directory(token, remaining)

    st.text_input(
        "To",
        key="recipient_input",
        placeholder="name@example.com",
        help="Press Enter, comma or space to add a recipient",
        on_change=on_recipient_input,
    )

    for recipient in form.recipients:
        col_chip, col_remove = st.columns([6, 1])
        col_chip.markdown(f'<span class="recipient-chip">{recipient.label()}</span>', unsafe_allow_html=True)
        if col_remove.button("✕", key=f"remove_recipient_{recipient.email}"):
            form.recipients.remove(recipient.email)
            st.rerun()

    query = st.session_state.get("suggestion_query", "")
    for recipient in st.session_state.get("suggestions", []):
        col_pick, col_delete = st.columns([6, 1])
        if col_pick.button(suggestion_label(recipient, query), key=f"suggest_{recipient.email}"):
            result = form.recipients.select_suggestion(recipient)
            if not result.ok:
                form.set_error(result.message)
            st.session_state.suggestions = []
            st.rerun()
        if col_delete.button("🗑", key=f"delete_{recipient.email}"):
            run_async(_delete_directory_entry(token, recipient.email))
            st.session_state.suggestions = [
                r for r in st.session_state.suggestions if r.email != recipient.email
            ]
            st.rerun()


async def _delete_directory_entry(token: str, email: str) -> bool:
    async with make_client(token) as client:
        return await RecipientDirectory(client).delete(email)


def render_content_section(form: FormState) -> None:
    form.subject = st.text_input("Subject", value=form.subject)
    form.message = st.text_area("Message", value=form.message, height=240)


def render_attachments_section(form: FormState, token: str) -> None:
    st.markdown("**📎 Attachments**")

    uploaded = st.file_uploader(
        "Add files",
        accept_multiple_files=True,
        type=None,
        help=f"Up to {MAX_FILES} files, {MAX_FILE_SIZE_MB}MB each",
        key=f"uploader_{st.session_state.get('uploader_round', 0)}",
    )

    if uploaded:
        files = [Attachment.from_upload(f.name, f.getvalue(), f.type) for f in uploaded]
        run_async(_add_files(form, token, files))
        # Fresh widget so the same files are not added again on rerun
        st.session_state.uploader_round = st.session_state.get("uploader_round", 0) + 1
        st.rerun()

    for message in form.attachments.upload_errors.values():
        st.error(message)
    form.attachments.upload_errors.clear()

    for attachment in form.attachments.attachments:
        col_name, col_remove = st.columns([6, 1])
        task = form.attachments.tasks.get(attachment.attachment_id)
        label = f"{attachment.name} ({attachment.size_mb:.1f}MB)"
        if task is not None:
            col_name.progress(task.progress_percent, text=label)
        else:
            col_name.caption(label)
        if col_remove.button("✕", key=f"remove_file_{attachment.attachment_id}"):
            form.attachments.remove_attachment(attachment.attachment_id)
            st.rerun()

    st.caption("Allowed: " + ", ".join(sorted(ALLOWED_MIME_TYPES)))


async def _add_files(form: FormState, token: str, files: list[Attachment]) -> None:
    async with make_client(token) as client:
        form.attachments.uploader = relay_uploader(client)
        result = form.attachments.add_files(files)
        if not result.ok:
            form.set_error(result.message)
            return

        bars = {
            task.attachment_id: st.progress(0, text=f"Uploading {task.attachment_name}")
            for task in form.attachments.pending_uploads()
        }
        form.attachments.on_change = progress_updater(form.attachments, bars)
        try:
            await form.attachments.wait_for_uploads()
        finally:
            form.attachments.on_change = None


def progress_updater(manager: AttachmentManager, bars: dict):
    """Change callback that moves each upload's progress bar."""
    shown = {attachment_id: -1 for attachment_id in bars}

    def update() -> None:
        for attachment_id, bar in bars.items():
            task = manager.tasks.get(attachment_id)
            if task is None or task.progress_percent == shown[attachment_id]:
                continue
            shown[attachment_id] = task.progress_percent
            bar.progress(task.progress_percent, text=f"Uploading {task.attachment_name}")

    return update


async def _submit(form: FormState, token: str):
    async with make_client(token) as client:
        return await SubmissionAssembler(client, domain=SENDER_DOMAIN).submit(form)


def render_messages(form: FormState) -> None:
    if form.error:
        st.error(form.error)
        form.clear_error()
    if form.success_message:
        st.success(form.success_message)
        # Shown once; the next rerun drops it
        form.success_message = None


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    st.set_page_config(page_title="Mail Relay", page_icon="📧", layout="centered")
    inject_custom_css()
    render_header()

    token = get_token()
    if not token:
        st.warning("⚠️ Not signed in. Add a token to .streamlit/secrets.toml")

    form = get_form()

    render_sender_section(form, token)
    render_recipients_section(form, token)
    render_content_section(form)
    render_attachments_section(form, token)

    if st.button("🚀 Send Email", type="primary", use_container_width=True, key="send"):
        with st.spinner("📤 Sending email..."):
            run_async(_submit(form, token))

    render_messages(form)


if __name__ == "__main__":
    main()
