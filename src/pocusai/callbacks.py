"""Dash callbacks wiring the layout to the per-tab clients.

Every callback resolves the browser's :class:`~pocusai.clients.Client` from
the ``device_id`` and ``tab_id`` stores. The handler functions below hold the
logic and take the client directly; the Dash closures only unpack inputs.
Conversation handlers do nothing unless the tab is signed in.
"""

import logging
from typing import Optional, Tuple

from dash import ALL, Input, Output, State, callback_context, no_update

from .clients import Client
from .engine import OrchestratorStateError
from .layout import REMEMBER_USERNAME, STAY_SIGNED_IN
from .models import ADULT_MODE, PEDIATRIC_MODE, Profile

logger = logging.getLogger(__name__)

TOKENS = [State("device_id", "data"), State("tab_id", "data")]

RENDER_OUTPUTS = [
    Output("messages_container", "children", allow_duplicate=True),
    Output("quick_actions", "children", allow_duplicate=True),
    Output("mode_panel", "hidden", allow_duplicate=True),
    Output("chat_panel", "hidden", allow_duplicate=True),
    Output("conversations_list", "children", allow_duplicate=True),
]

VIEW_OUTPUTS = [
    Output("auth_view", "hidden", allow_duplicate=True),
    Output("app_view", "hidden", allow_duplicate=True),
    Output("admin_view", "hidden", allow_duplicate=True),
]

ADMIN_OUTPUTS = [
    Output("admin_feedback", "children", allow_duplicate=True),
    Output("admin_stats", "children", allow_duplicate=True),
    Output("admin_users", "children", allow_duplicate=True),
    Output("admin_analytics", "children", allow_duplicate=True),
]

AUTH_SCREEN = (False, True, True)
APP_SCREEN = (True, False, True)
ADMIN_SCREEN = (True, True, False)


def _no_update(outputs) -> Tuple:
    return (no_update,) * len(outputs)


def _active(client: Optional[Client]) -> bool:
    return client is not None and client.signed_in


def render(app, client: Client) -> Tuple:
    """Returns values for RENDER_OUTPUTS from the client's orchestrator."""
    orchestrator = client.orchestrator
    layout = app.layout_builder
    # Shortcuts are only offered before the first exchange.
    actions = orchestrator.quick_actions() if len(orchestrator.messages) == 1 else []
    return (
        layout.build_messages(orchestrator.messages),
        layout.build_quick_actions(actions),
        orchestrator.mode is not None,
        orchestrator.mode is None,
        layout.build_session_list(client.sessions.list_sessions(), orchestrator.session_id),
    )


# --- identity ---
def restore_identity(app, client: Optional[Client]) -> Tuple:
    """VIEW_OUTPUTS + remembered username + RENDER_OUTPUTS for a page load."""
    if client is None:
        return AUTH_SCREEN + (no_update,) + _no_update(RENDER_OUTPUTS)
    username = client.auth.remembered_username()
    if not client.signed_in:
        return AUTH_SCREEN + (username,) + _no_update(RENDER_OUTPUTS)
    return APP_SCREEN + (username,) + render(app, client)


def login(app, client: Optional[Client], username, password, options) -> Tuple:
    """VIEW_OUTPUTS + feedback + RENDER_OUTPUTS."""
    if client is None:
        return _no_update(VIEW_OUTPUTS) + ("Please reload the page.",) + _no_update(RENDER_OUTPUTS)
    options = options or []
    result = client.auth.login(
        username or "",
        password or "",
        remember_username=REMEMBER_USERNAME in options,
        stay_signed_in=STAY_SIGNED_IN in options,
    )
    if not result.success:
        return _no_update(VIEW_OUTPUTS) + (result.message,) + _no_update(RENDER_OUTPUTS)
    return APP_SCREEN + ("",) + render(app, client)


def signup(app, username, email, password, occupation, introduction, purpose, referral) -> str:
    if not (username and email and password):
        return "Username, email and password are required."
    profile = Profile(
        occupation=occupation or None,
        introduction=introduction or None,
        purpose=purpose or None,
        referral=referral or None,
    )
    return app.auth.signup(username, email, password, profile).message


def logout(app, client: Optional[Client]) -> Tuple:
    """RENDER_OUTPUTS + VIEW_OUTPUTS."""
    if client is None:
        return _no_update(RENDER_OUTPUTS) + _no_update(VIEW_OUTPUTS)
    client.orchestrator.logout()
    return render(app, client) + AUTH_SCREEN


# --- conversation ---
def select_mode(app, client: Optional[Client], mode: str) -> Tuple:
    if not _active(client):
        return _no_update(RENDER_OUTPUTS)
    try:
        client.orchestrator.select_mode(mode)
    except OrchestratorStateError as e:
        logger.info("Ignored mode change: %s", e)
        return _no_update(RENDER_OUTPUTS)
    return render(app, client)


def send_message(app, client: Optional[Client], triggered, n_clicks, quick_clicks, user_input, image) -> Tuple:
    """RENDER_OUTPUTS + cleared textarea value + cleared upload contents."""
    unchanged = _no_update(RENDER_OUTPUTS) + (no_update, no_update)
    if not _active(client):
        return unchanged

    orchestrator = client.orchestrator
    if isinstance(triggered, dict):
        actions = orchestrator.quick_actions()
        index = triggered.get("index")
        if not any(quick_clicks or []) or not isinstance(index, int) or not 0 <= index < len(actions):
            return unchanged
        text = actions[index].query
        image = None
    else:
        if not n_clicks or not user_input or not user_input.strip():
            return unchanged
        text = user_input.strip()

    try:
        orchestrator.send_user_turn(text, image)
    except OrchestratorStateError as e:
        logger.info("Ignored message: %s", e)
        return unchanged
    return render(app, client) + ("", None)


def new_conversation(app, client: Optional[Client]) -> Tuple:
    if not _active(client):
        return _no_update(RENDER_OUTPUTS)
    try:
        client.orchestrator.start_new_conversation()
    except OrchestratorStateError:
        return _no_update(RENDER_OUTPUTS)
    return render(app, client)


def switch_conversation(app, client: Optional[Client], session_id: str) -> Tuple:
    if not _active(client):
        return _no_update(RENDER_OUTPUTS)
    session = client.sessions.get_session(session_id)
    if session is None:
        return _no_update(RENDER_OUTPUTS)
    try:
        client.orchestrator.load_session(session)
    except OrchestratorStateError:
        return _no_update(RENDER_OUTPUTS)
    return render(app, client)


def change_language(app, client: Optional[Client], language: str) -> Tuple:
    if not _active(client):
        return _no_update(RENDER_OUTPUTS)
    client.orchestrator.set_language(language)
    return render(app, client)


# --- administration ---
def admin_render(app, client: Client, search, status, feedback="") -> Tuple:
    """ADMIN_OUTPUTS for the console's current view."""
    console = client.admin
    layout = app.layout_builder
    try:
        users = console.list_users(search=search or "", status=status or "all")
        return (
            feedback,
            layout.build_stats(console.stats()),
            layout.build_user_rows(users),
            layout.build_analytics(console.analytics()),
        )
    except PermissionError as e:
        return (str(e), [], [], [])


def admin_sign_in(app, client: Optional[Client], username, password, search, status) -> Tuple:
    """Login panel hidden + dashboard hidden + ADMIN_OUTPUTS."""
    if client is None:
        return (no_update, no_update) + _no_update(ADMIN_OUTPUTS)
    if not client.admin.sign_in(username or "", password or ""):
        return (False, True, "Invalid Admin Credentials", [], [], [])
    return (True, False) + admin_render(app, client, search, status)


def admin_action(app, client: Optional[Client], triggered, search, status) -> Tuple:
    """Applies a toggle or delete identified by ``triggered``, then re-renders."""
    if client is None or not client.admin.is_authorized:
        return _no_update(ADMIN_OUTPUTS)
    feedback = ""
    if isinstance(triggered, dict):
        try:
            if triggered["type"] == "admin-toggle":
                client.admin.toggle_status(triggered["id"])
            elif triggered["type"] == "admin-delete":
                client.admin.delete_user(triggered["id"])
        except PermissionError as e:
            return (str(e), [], [], [])
        except ValueError as e:
            feedback = str(e)
    return admin_render(app, client, search, status, feedback)


def register_callbacks(app):
    def client_for(device_id, tab_id) -> Optional[Client]:
        return app.clients.get(device_id, tab_id)

    @app.callback(
        VIEW_OUTPUTS + [Output("username_input", "value")] + RENDER_OUTPUTS,
        [
            Input("url_location", "pathname"),
            Input("device_id", "data"),
            Input("tab_id", "data"),
        ],
        prevent_initial_call="initial_duplicate",
    )
    def on_page_load(pathname, device_id, tab_id):
        return restore_identity(app, client_for(device_id, tab_id))

    @app.callback(
        VIEW_OUTPUTS + [Output("auth_feedback", "children", allow_duplicate=True)] + RENDER_OUTPUTS,
        [Input("login_button", "n_clicks")],
        [
            State("username_input", "value"),
            State("password_input", "value"),
            State("login_options", "value"),
        ]
        + TOKENS,
        prevent_initial_call=True,
    )
    def on_login(n_clicks, username, password, options, device_id, tab_id):
        if not n_clicks:
            return _no_update(VIEW_OUTPUTS) + (no_update,) + _no_update(RENDER_OUTPUTS)
        return login(app, client_for(device_id, tab_id), username, password, options)

    @app.callback(
        Output("auth_feedback", "children", allow_duplicate=True),
        [Input("signup_button", "n_clicks")],
        [
            State("username_input", "value"),
            State("email_input", "value"),
            State("password_input", "value"),
            State("occupation_input", "value"),
            State("introduction_input", "value"),
            State("purpose_input", "value"),
            State("referral_input", "value"),
        ],
        prevent_initial_call=True,
    )
    def on_signup(n_clicks, username, email, password, occupation, introduction, purpose, referral):
        if not n_clicks:
            return no_update
        return signup(app, username, email, password, occupation, introduction, purpose, referral)

    @app.callback(
        RENDER_OUTPUTS,
        [Input("adult_button", "n_clicks"), Input("pediatric_button", "n_clicks")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_select_mode(adult_clicks, pediatric_clicks, device_id, tab_id):
        if not (adult_clicks or pediatric_clicks):
            return _no_update(RENDER_OUTPUTS)
        mode = ADULT_MODE if callback_context.triggered_id == "adult_button" else PEDIATRIC_MODE
        return select_mode(app, client_for(device_id, tab_id), mode)

    @app.callback(
        RENDER_OUTPUTS
        + [
            Output("input_textarea", "value"),
            Output("image_upload", "contents"),
        ],
        [
            Input("submit_button", "n_clicks"),
            Input({"type": "quick-action", "index": ALL}, "n_clicks"),
        ],
        [State("input_textarea", "value"), State("image_upload", "contents")] + TOKENS,
        running=[(Output("submit_button", "disabled"), True, False)],
        prevent_initial_call=True,
    )
    def on_send(n_clicks, quick_clicks, user_input, image, device_id, tab_id):
        return send_message(
            app,
            client_for(device_id, tab_id),
            callback_context.triggered_id,
            n_clicks,
            quick_clicks,
            user_input,
            image,
        )

    @app.callback(
        RENDER_OUTPUTS,
        [Input("new_conversation_button", "n_clicks")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_new_conversation(n_clicks, device_id, tab_id):
        if not n_clicks:
            return _no_update(RENDER_OUTPUTS)
        return new_conversation(app, client_for(device_id, tab_id))

    @app.callback(
        RENDER_OUTPUTS,
        [Input({"type": "convo-item", "id": ALL}, "n_clicks")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_switch_conversation(n_clicks, device_id, tab_id):
        if not any(n_clicks):
            return _no_update(RENDER_OUTPUTS)
        session_id = callback_context.triggered_id["id"]
        return switch_conversation(app, client_for(device_id, tab_id), session_id)

    @app.callback(
        RENDER_OUTPUTS,
        [Input("language_dropdown", "value")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_change_language(language, device_id, tab_id):
        return change_language(app, client_for(device_id, tab_id), language)

    @app.callback(
        RENDER_OUTPUTS + VIEW_OUTPUTS,
        [Input("logout_button", "n_clicks")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_logout(n_clicks, device_id, tab_id):
        if not n_clicks:
            return _no_update(RENDER_OUTPUTS) + _no_update(VIEW_OUTPUTS)
        return logout(app, client_for(device_id, tab_id))

    @app.callback(
        VIEW_OUTPUTS,
        [Input("admin_link", "n_clicks")],
        prevent_initial_call=True,
    )
    def on_open_admin(n_clicks):
        if not n_clicks:
            return _no_update(VIEW_OUTPUTS)
        return ADMIN_SCREEN

    @app.callback(
        VIEW_OUTPUTS
        + [
            Output("admin_login_panel", "hidden", allow_duplicate=True),
            Output("admin_dashboard", "hidden", allow_duplicate=True),
        ],
        [Input("admin_back_button", "n_clicks")],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_close_admin(n_clicks, device_id, tab_id):
        if not n_clicks:
            return _no_update(VIEW_OUTPUTS) + (no_update, no_update)
        client = client_for(device_id, tab_id)
        if client is not None:
            client.admin.sign_out()
        screen = APP_SCREEN if _active(client) else AUTH_SCREEN
        return screen + (False, True)

    @app.callback(
        [
            Output("admin_login_panel", "hidden", allow_duplicate=True),
            Output("admin_dashboard", "hidden", allow_duplicate=True),
        ]
        + ADMIN_OUTPUTS,
        [Input("admin_login_button", "n_clicks")],
        [
            State("admin_username_input", "value"),
            State("admin_password_input", "value"),
            State("admin_search_input", "value"),
            State("admin_status_filter", "value"),
        ]
        + TOKENS,
        prevent_initial_call=True,
    )
    def on_admin_sign_in(n_clicks, username, password, search, status, device_id, tab_id):
        if not n_clicks:
            return (no_update, no_update) + _no_update(ADMIN_OUTPUTS)
        return admin_sign_in(app, client_for(device_id, tab_id), username, password, search, status)

    @app.callback(
        ADMIN_OUTPUTS,
        [
            Input("admin_search_input", "value"),
            Input("admin_status_filter", "value"),
            Input({"type": "admin-toggle", "id": ALL}, "n_clicks"),
            Input({"type": "admin-delete", "id": ALL}, "n_clicks"),
        ],
        TOKENS,
        prevent_initial_call=True,
    )
    def on_admin_action(search, status, toggle_clicks, delete_clicks, device_id, tab_id):
        triggered = callback_context.triggered_id
        if isinstance(triggered, dict):
            clicks = toggle_clicks if triggered["type"] == "admin-toggle" else delete_clicks
            # Re-rendered rows fire with zero clicks.
            if not any(clicks or []):
                return _no_update(ADMIN_OUTPUTS)
        return admin_action(app, client_for(device_id, tab_id), triggered, search, status)
