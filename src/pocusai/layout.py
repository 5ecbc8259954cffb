"""Layout builders for the Dash user interface."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

import dash_bootstrap_components as dbc
from dash import dcc, html
from dash.development.base_component import Component as DashComponent

from .admin import STATUS_FILTERS
from .clients import new_token
from .constants import APP_NAME, SUPPORTED_LANGUAGES, QuickAction
from .models import APPROVED, USER_ROLE, ChatSession, Message, UsageCounters, User

# Component IDs the callbacks rely on.
REQUIRED_IDS = {
    "url_location",
    "device_id",
    "tab_id",
    "auth_view",
    "app_view",
    "username_input",
    "password_input",
    "email_input",
    "occupation_input",
    "introduction_input",
    "purpose_input",
    "referral_input",
    "login_options",
    "login_button",
    "signup_button",
    "auth_feedback",
    "language_dropdown",
    "mode_panel",
    "adult_button",
    "pediatric_button",
    "chat_panel",
    "messages_container",
    "quick_actions",
    "image_upload",
    "input_textarea",
    "submit_button",
    "conversations_list",
    "new_conversation_button",
    "logout_button",
    "admin_link",
    "admin_view",
    "admin_login_panel",
    "admin_username_input",
    "admin_password_input",
    "admin_login_button",
    "admin_feedback",
    "admin_dashboard",
    "admin_search_input",
    "admin_status_filter",
    "admin_stats",
    "admin_users",
    "admin_analytics",
    "admin_back_button",
}

REMEMBER_USERNAME = "remember"
STAY_SIGNED_IN = "stay"


def collect_ids(component) -> Set[str]:
    """Returns every string id found in a component tree."""
    ids = set()
    component_id = getattr(component, "id", None)
    if isinstance(component_id, str):
        ids.add(component_id)

    children = getattr(component, "children", None)
    if children is None:
        return ids
    if not isinstance(children, (list, tuple)):
        children = [children]
    for child in children:
        if isinstance(child, DashComponent):
            ids |= collect_ids(child)
    return ids


class Layout(ABC):
    """Interface for building the Dash component layout."""

    @abstractmethod
    def build_layout(self) -> DashComponent:
        """Constructs and returns the entire Dash component tree for the UI."""
        pass

    @abstractmethod
    def build_messages(self, messages: List[Message]) -> List[DashComponent]:
        """Converts messages into renderable components."""
        pass

    def build_quick_actions(self, actions: Iterable[QuickAction]) -> List[DashComponent]:
        return [
            html.Button(
                action.label,
                id={"type": "quick-action", "index": index},
                n_clicks=0,
            )
            for index, action in enumerate(actions)
        ]

    def build_session_list(
        self, sessions: List[ChatSession], current_id: Optional[str] = None
    ) -> List[DashComponent]:
        newest_first = sorted(sessions, key=lambda s: s.timestamp, reverse=True)
        return [
            html.Div(
                session.title,
                id={"type": "convo-item", "id": session.id},
                n_clicks=0,
                className="active" if session.id == current_id else "",
            )
            for session in newest_first
        ]

    def build_user_rows(self, users: List[User]) -> List[DashComponent]:
        """One table row per account; administrator rows carry no actions."""
        if not users:
            return [html.Tr(html.Td("No matching users.", colSpan=5))]
        rows = []
        for user in users:
            approved = user.status == APPROVED
            actions = []
            if not user.is_admin:
                actions = [
                    html.Button(
                        "Revoke" if approved else "Approve",
                        id={"type": "admin-toggle", "id": user.id},
                        n_clicks=0,
                    ),
                    html.Button(
                        "Delete",
                        id={"type": "admin-delete", "id": user.id},
                        n_clicks=0,
                    ),
                ]
            details = [user.introduction, user.purpose, user.referral]
            rows.append(
                html.Tr(
                    [
                        html.Td([html.Div(user.username), html.Small(" / ".join(d for d in details if d))]),
                        html.Td(user.email),
                        html.Td(user.occupation or "N/A"),
                        html.Td(user.status),
                        html.Td(actions),
                    ],
                    id=f"user-row-{user.id}",
                )
            )
        return rows

    def build_stats(self, stats: Dict[str, int]) -> List[DashComponent]:
        return [
            html.Span(f"{label.title()}: {stats[label]}", className="me-3")
            for label in ("total", "approved", "pending")
        ]

    def build_analytics(self, counters: UsageCounters) -> List[DashComponent]:
        topics = sorted(counters.topic_counts.items(), key=lambda item: item[1], reverse=True)
        children = [
            html.P(f"Total messages: {counters.total_messages}"),
            html.P(f"Last active: {counters.last_active.isoformat(timespec='minutes')}"),
        ]
        children.extend(html.Div(f"{topic}: {count} msgs") for topic, count in topics)
        return children

    def get_external_stylesheets(self) -> List[str]:
        return []

    def get_external_scripts(self) -> List[str]:
        return []

    def validate(self, component: DashComponent) -> None:
        missing = REQUIRED_IDS - collect_ids(component)
        if missing:
            raise ValueError(
                f"Layout is missing required component IDs: {', '.join(sorted(missing))}"
            )


class Bootstrap(Layout):
    """The default layout, built with dash-bootstrap-components."""

    def get_external_stylesheets(self) -> List[str]:
        return [dbc.themes.BOOTSTRAP, dbc.icons.BOOTSTRAP]

    def build_layout(self) -> DashComponent:
        return html.Div(
            [
                dcc.Location(id="url_location", refresh=False),
                # Stored values in the browser take precedence over these defaults.
                dcc.Store(id="device_id", storage_type="local", data=new_token()),
                dcc.Store(id="tab_id", storage_type="session", data=new_token()),
                self.build_auth_view(),
                self.build_app_view(),
                self.build_admin_view(),
            ]
        )

    def build_auth_view(self) -> DashComponent:
        return html.Div(
            id="auth_view",
            className="container py-5",
            style={"maxWidth": "420px"},
            children=[
                html.H3(APP_NAME, className="text-center mb-4"),
                dbc.Input(id="username_input", placeholder="Username", className="mb-2"),
                dbc.Input(
                    id="password_input",
                    type="password",
                    placeholder="Password",
                    className="mb-2",
                ),
                dbc.Checklist(
                    id="login_options",
                    options=[
                        {"label": "Remember username", "value": REMEMBER_USERNAME},
                        {"label": "Stay signed in", "value": STAY_SIGNED_IN},
                    ],
                    value=[],
                    inline=True,
                    className="mb-3",
                ),
                dbc.Button("Log in", id="login_button", color="primary", className="w-100"),
                html.Hr(),
                dbc.Input(id="email_input", type="email", placeholder="Email (signup)", className="mb-2"),
                dbc.Input(id="occupation_input", placeholder="Occupation (signup)", className="mb-2"),
                dbc.Textarea(id="introduction_input", placeholder="Introduction (signup)", className="mb-2"),
                dbc.Input(id="purpose_input", placeholder="Purpose of use (signup)", className="mb-2"),
                dbc.Input(id="referral_input", placeholder="How did you hear about us? (signup)", className="mb-2"),
                dbc.Button("Sign up", id="signup_button", color="secondary", className="w-100"),
                html.Div(id="auth_feedback", className="mt-3 text-center small"),
                dbc.Button("Admin", id="admin_link", color="link", size="sm", className="d-block mx-auto mt-3"),
            ],
        )

    def build_app_view(self) -> DashComponent:
        return html.Div(
            id="app_view",
            hidden=True,
            className="d-flex vh-100",
            children=[self.build_sidebar(), self.build_main()],
        )

    def build_sidebar(self) -> DashComponent:
        return html.Aside(
            className="p-3 border-end",
            style={"width": "260px", "overflowY": "auto"},
            children=[
                dbc.Button("New", id="new_conversation_button", color="primary", className="w-100 mb-3"),
                html.H6("History"),
                html.Div(id="conversations_list"),
                dbc.Button("Log out", id="logout_button", color="link", className="mt-3"),
            ],
        )

    def build_main(self) -> DashComponent:
        return html.Main(
            className="flex-grow-1 d-flex flex-column p-3",
            children=[
                dcc.Dropdown(
                    id="language_dropdown",
                    options=[{"label": l.name, "value": l.code} for l in SUPPORTED_LANGUAGES],
                    value=SUPPORTED_LANGUAGES[0].code,
                    clearable=False,
                    style={"maxWidth": "260px"},
                ),
                html.Div(
                    id="mode_panel",
                    className="text-center py-5",
                    children=[
                        html.H4("Select Service Mode"),
                        dbc.Button("Adult", id="adult_button", className="m-2", size="lg"),
                        dbc.Button("Pediatric", id="pediatric_button", className="m-2", size="lg", color="success"),
                    ],
                ),
                html.Div(
                    id="chat_panel",
                    hidden=True,
                    className="d-flex flex-column flex-grow-1",
                    children=[
                        html.Div(id="messages_container", className="flex-grow-1", style={"overflowY": "auto"}),
                        html.Div(id="quick_actions", className="d-flex flex-wrap gap-2 my-2"),
                        dcc.Upload(id="image_upload", children=html.Div("Attach image"), accept="image/*"),
                        dbc.InputGroup(
                            [
                                dbc.Textarea(id="input_textarea", placeholder="Type your query or upload imaging..."),
                                dbc.Button("Send", id="submit_button", color="primary"),
                            ]
                        ),
                    ],
                ),
            ],
        )

    def build_admin_view(self) -> DashComponent:
        login_panel = html.Div(
            id="admin_login_panel",
            style={"maxWidth": "420px"},
            className="mx-auto",
            children=[
                html.H4(f"{APP_NAME} Admin", className="text-center"),
                html.P("Restricted Access Area", className="text-center text-muted small"),
                dbc.Input(id="admin_username_input", placeholder="Admin ID", className="mb-2"),
                dbc.Input(
                    id="admin_password_input",
                    type="password",
                    placeholder="Password",
                    className="mb-2",
                ),
                dbc.Button("Verify", id="admin_login_button", color="primary", className="w-100"),
            ],
        )
        dashboard = html.Div(
            id="admin_dashboard",
            hidden=True,
            children=[
                html.Div(id="admin_stats", className="mb-3"),
                dbc.Row(
                    [
                        dbc.Col(dbc.Input(id="admin_search_input", placeholder="Search username, email, occupation...", debounce=True)),
                        dbc.Col(
                            dbc.RadioItems(
                                id="admin_status_filter",
                                options=[{"label": f.title(), "value": f} for f in STATUS_FILTERS],
                                value=STATUS_FILTERS[0],
                                inline=True,
                            ),
                            width="auto",
                        ),
                    ],
                    className="mb-3",
                ),
                dbc.Table(
                    [
                        html.Thead(
                            html.Tr([html.Th(h) for h in ("User", "Email", "Occupation", "Status", "Actions")])
                        ),
                        html.Tbody(id="admin_users"),
                    ],
                    hover=True,
                    size="sm",
                ),
                html.H5("Analytics", className="mt-4"),
                html.Div(id="admin_analytics"),
            ],
        )
        return html.Div(
            id="admin_view",
            hidden=True,
            className="container py-4",
            children=[
                html.Div(
                    [
                        html.H3("Admin Dashboard", className="m-0"),
                        dbc.Button("Exit", id="admin_back_button", color="link"),
                    ],
                    className="d-flex justify-content-between align-items-center mb-3",
                ),
                login_panel,
                html.Div(id="admin_feedback", className="text-danger small my-2"),
                dashboard,
            ],
        )

    def build_analytics(self, counters: UsageCounters) -> List[DashComponent]:
        topics = sorted(counters.topic_counts.items(), key=lambda item: item[1], reverse=True)
        max_count = max([count for _, count in topics] + [1])
        bars = [
            html.Div(
                [
                    html.Div(
                        [html.Span(topic), html.Span(f"{count} msgs")],
                        className="d-flex justify-content-between small",
                    ),
                    dbc.Progress(value=count * 100 / max_count, className="mb-2"),
                ]
            )
            for topic, count in topics
        ]
        peak_hours = sorted(counters.hourly_usage.items(), key=lambda item: item[1], reverse=True)[:3]
        return bars + [
            html.P(f"Total messages: {counters.total_messages:,}", className="mt-3 fw-bold"),
            html.P(f"Last active: {counters.last_active.isoformat(timespec='minutes')}"),
            html.P("Peak hours: " + ", ".join(f"{hour:02d}:00 ({count})" for hour, count in peak_hours)),
        ]

    def build_messages(self, messages: List[Message]) -> List[DashComponent]:
        if not messages:
            return []
        return [self.build_message(msg) for msg in messages]

    def build_message(self, message: Message) -> DashComponent:
        style = {
            "padding": "10px",
            "borderRadius": "15px",
            "marginBottom": "10px",
            "maxWidth": "70%",
            "width": "fit-content",
        }
        if message.role == USER_ROLE:
            style["marginLeft"] = "auto"
            style["backgroundColor"] = "#dbeafe"
        else:
            style["marginRight"] = "auto"
            style["backgroundColor"] = "#fee2e2" if message.is_error else "#ffffff"
            style["border"] = "1px solid #eee"

        children = []
        if message.image:
            children.append(html.Img(src=message.image, style={"maxWidth": "100%"}))
        children.append(dcc.Markdown(message.text))
        return html.Div(children, id=f"message-{message.id}", style=style)
