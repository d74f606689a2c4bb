"""NiceGUI chat interface driven by streaming session updates."""

import logging

import httpx
from fastapi import Request
from nicegui import context, ui

from docchat.client.auth import CookieTokenAuth, StaticTokenAuth, TokenAuth
from docchat.client.chat import ChatClient
from docchat.client.config import get_client_config
from docchat.client.documents import DocumentsAPIError, DocumentsClient
from docchat.models.conversation import InMemoryConversation
from docchat.models.schemas import Message, Role, SessionState
from docchat.streaming.session import ChatSessionController, SessionActiveError, StreamingSession

logger = logging.getLogger(__name__)

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; }
    .chat-shell { background: white; border-radius: 12px; box-shadow: 0 2px 8px rgba(0, 0, 0, 0.1); }
    .bubble-user { background: #4f46e5; color: white; border-radius: 18px 18px 4px 18px; }
    .bubble-assistant { background: #f3f4f6; color: #1f2937; border-radius: 18px 18px 18px 4px; }
    .bubble-streaming { border: 1px dashed #a5b4fc; }
</style>
"""


def _token_source(request: Request) -> TokenAuth:
    config = get_client_config()
    if config.access_token:
        return StaticTokenAuth(config.access_token)
    return CookieTokenAuth(httpx.Cookies(dict(request.cookies)))


async def release_page(controller: ChatSessionController, http_client: httpx.AsyncClient) -> None:
    """Stop any running answer and close the page's connection pool."""
    session = controller.active
    if session is not None:
        session.cancel()
        await session.wait()
    await http_client.aclose()
    logger.debug("Chat page disconnected, HTTP client closed")


@ui.page("/")
def chat_page(request: Request) -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)

    config = get_client_config()
    auth = _token_source(request)
    http_client = httpx.AsyncClient(timeout=config.request_timeout)
    conversation = InMemoryConversation()
    controller = ChatSessionController(
        ChatClient(config, http_client),
        conversation,
        auth,
    )
    documents = DocumentsClient(config, http_client, token=auth.get_bearer_token())
    document_titles: dict[str, str] = {}

    messages_container: ui.column
    error_box: ui.row
    error_label: ui.label
    input_field: ui.textarea
    document_select: ui.select
    send_btn: ui.button
    stop_btn: ui.button

    def render_message(msg: Message) -> ui.markdown:
        is_user = msg.role is Role.USER
        align = "justify-end" if is_user else "justify-start"
        bubble = "bubble-user" if is_user else "bubble-assistant"
        if msg.is_streaming:
            bubble += " bubble-streaming"
        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[70%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    body = ui.markdown(msg.content or "...").classes("text-sm")
                if msg.document_refs:
                    names = ", ".join(document_titles.get(ref, ref) for ref in sorted(msg.document_refs))
                    ui.label(f"Documents: {names}").classes("text-[10px] text-gray-400")
                ui.label(msg.created_at.astimezone().strftime("%I:%M %p")).classes(
                    "text-[10px] text-gray-400"
                )
        return body

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            if not len(conversation):
                ui.label("Start a conversation").classes("text-lg text-gray-400 self-center")
            for msg in conversation.get_messages():
                render_message(msg)

    def show_error(text: str) -> None:
        error_label.set_text(text)
        error_box.set_visibility(True)

    def set_busy(busy: bool) -> None:
        send_btn.set_enabled(not busy)
        stop_btn.set_visibility(busy)

    async def follow(session: StreamingSession) -> None:
        body: ui.markdown | None = None
        async for update in session.updates():
            if update.state is SessionState.STREAMING and update.message is not None:
                if body is None:
                    with messages_container:
                        body = render_message(update.message)
                else:
                    body.set_content(update.message.content)
            elif update.state.is_terminal:
                refresh_messages()
                if update.error is not None:
                    show_error(update.error.message)
                    ui.notify(update.error.message, type="negative")
        set_busy(False)

    async def send_message() -> None:
        text = input_field.value or ""
        try:
            session = controller.start(text, document_select.value or [])
        except SessionActiveError:
            ui.notify("Wait for the current answer or stop it first", type="warning")
            return
        if session is None:
            return

        input_field.value = ""
        error_box.set_visibility(False)
        set_busy(True)
        refresh_messages()
        await follow(session)

    def stop_generation() -> None:
        if controller.active is not None:
            controller.active.cancel()

    def new_chat() -> None:
        stop_generation()
        conversation.clear()
        refresh_messages()

    async def load_documents() -> None:
        try:
            for doc in await documents.list_documents():
                document_titles[doc.id] = doc.display_name
        except DocumentsAPIError as e:
            logger.warning(f"Could not load documents: {e}")
            return
        document_select.set_options(document_titles)

    # === UI Layout ===
    with ui.column().classes("w-full max-w-3xl mx-auto chat-shell p-4 gap-3").style(
        "height: calc(100vh - 4rem)"
    ):
        with ui.row().classes("w-full items-center justify-between"):
            ui.label("Document Chat").classes("text-lg font-semibold")
            ui.button(icon="add", on_click=new_chat).props("flat round")

        with ui.scroll_area().classes("flex-grow w-full bg-gray-50"):
            messages_container = ui.column().classes("w-full gap-4 p-4")

        with ui.row().classes("w-full items-center bg-red-50 p-2") as error_box:
            error_label = ui.label().classes("text-red-600 flex-grow")
            ui.button("Dismiss", on_click=lambda: error_box.set_visibility(False)).props("flat dense")
        error_box.set_visibility(False)

        document_select = ui.select({}, multiple=True, label="Attach documents").classes("w-full")

        with ui.row().classes("w-full gap-3 items-end"):
            input_field = (
                ui.textarea(placeholder="Ask about your documents...")
                .props("autogrow dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated")
            stop_btn = ui.button(icon="stop", on_click=stop_generation).props("round flat color=negative")
            stop_btn.set_visibility(False)

    refresh_messages()
    ui.timer(0, load_documents, once=True)
    context.client.on_disconnect(lambda: release_page(controller, http_client))
