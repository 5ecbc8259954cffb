"""
Tests for the callback handlers.

The Dash callbacks only unpack inputs and resolve the tab's client; these
tests drive the handlers behind them directly.
"""

import pytest
from dash import no_update
from pocusai import callbacks
from pocusai.callbacks import (
    ADMIN_OUTPUTS,
    APP_SCREEN,
    AUTH_SCREEN,
    RENDER_OUTPUTS,
)
from pocusai.engine import OrchestratorState
from pocusai.layout import REMEMBER_USERNAME, STAY_SIGNED_IN

ADMIN_USERNAME = "test-admin"
ADMIN_PASSWORD = "test-admin-pw"

UNCHANGED_SEND = (no_update,) * (len(RENDER_OUTPUTS) + 2)


def quick_action_id(index):
    return {"type": "quick-action", "index": index}


def pending_doctor(app, username="drkim"):
    app.auth.signup(username, f"{username}@hospital.org", "pw")
    return app.auth.authenticate(username, "pw")


class TestSendMessage:
    @pytest.fixture
    def adult(self, signed_in_client):
        signed_in_client.orchestrator.select_mode("adult")
        return signed_in_client

    def test_quick_action_sends_its_query(self, test_app, adult):
        actions = adult.orchestrator.quick_actions()

        result = callbacks.send_message(
            test_app, adult, quick_action_id(1), None, [0, 1, 0, 0], None, None
        )

        assert adult.orchestrator.messages[1].text == actions[1].query
        assert len(adult.orchestrator.messages) == 3
        assert result[-2:] == ("", None)
        messages, quick, *_ = result
        assert len(messages) == 3
        assert quick == []

    def test_quick_action_ignores_pending_upload(self, test_app, adult, png_data_uri):
        callbacks.send_message(test_app, adult, quick_action_id(0), None, [1], None, png_data_uri)
        assert adult.orchestrator.messages[1].image is None

    def test_quick_action_records_topic(self, test_app, adult):
        label = adult.orchestrator.quick_actions()[0].label
        before = test_app.usage.snapshot().topic_counts.get(label, 0)

        callbacks.send_message(test_app, adult, quick_action_id(0), None, [1], None, None)
        assert test_app.usage.snapshot().topic_counts[label] == before + 1

    def test_rerendered_buttons_ignored(self, test_app, adult):
        result = callbacks.send_message(test_app, adult, quick_action_id(0), None, [0, 0], None, None)

        assert result == UNCHANGED_SEND
        assert len(adult.orchestrator.messages) == 1

    def test_unknown_index_ignored(self, test_app, adult):
        result = callbacks.send_message(test_app, adult, quick_action_id(99), None, [1], None, None)
        assert result == UNCHANGED_SEND

    def test_typed_message_with_image(self, test_app, adult, png_data_uri):
        result = callbacks.send_message(
            test_app, adult, "submit_button", 1, [], "  Gallbladder wall  ", png_data_uri
        )

        sent = adult.orchestrator.messages[1]
        assert sent.text == "Gallbladder wall"
        assert sent.image == png_data_uri
        assert result[-2:] == ("", None)

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank_input_ignored(self, test_app, adult, text):
        result = callbacks.send_message(test_app, adult, "submit_button", 1, [], text, None)
        assert result == UNCHANGED_SEND

    def test_ignored_while_awaiting_response(self, test_app, adult):
        adult.orchestrator.state = OrchestratorState.AWAITING_MODEL_RESPONSE

        result = callbacks.send_message(test_app, adult, "submit_button", 1, [], "Hello", None)
        assert result == UNCHANGED_SEND
        assert len(adult.orchestrator.messages) == 1

    def test_refused_when_signed_out(self, test_app, client):
        client.orchestrator.select_mode("adult")

        result = callbacks.send_message(test_app, client, quick_action_id(0), None, [1], None, None)
        assert result == UNCHANGED_SEND
        assert len(client.orchestrator.messages) == 1

    def test_refused_without_client(self, test_app):
        result = callbacks.send_message(test_app, None, "submit_button", 1, [], "Hello", None)
        assert result == UNCHANGED_SEND


class TestConversationHandlers:
    def test_select_mode_requires_identity(self, test_app, client):
        result = callbacks.select_mode(test_app, client, "adult")

        assert result == (no_update,) * len(RENDER_OUTPUTS)
        assert client.orchestrator.mode is None

    def test_select_mode(self, test_app, signed_in_client):
        _, actions, mode_hidden, chat_hidden, _ = callbacks.select_mode(
            test_app, signed_in_client, "pediatric"
        )
        assert signed_in_client.orchestrator.mode == "pediatric"
        assert len(actions) > 0
        assert (mode_hidden, chat_hidden) == (True, False)

    def test_new_conversation_saves_previous(self, test_app, signed_in_client):
        signed_in_client.orchestrator.select_mode("adult")
        signed_in_client.orchestrator.send_user_turn("Aorta diameter")

        *_, history = callbacks.new_conversation(test_app, signed_in_client)
        assert [item.children for item in history] == ["[Adult] Aorta diameter"]
        assert signed_in_client.orchestrator.mode is None

    def test_switch_to_unknown_conversation(self, test_app, signed_in_client):
        result = callbacks.switch_conversation(test_app, signed_in_client, "missing")
        assert result == (no_update,) * len(RENDER_OUTPUTS)

    def test_switch_conversation(self, test_app, signed_in_client):
        orchestrator = signed_in_client.orchestrator
        orchestrator.select_mode("adult")
        orchestrator.send_user_turn("Lung point")
        orchestrator.start_new_conversation()
        saved = signed_in_client.sessions.list_sessions()[0]

        messages, *_ = callbacks.switch_conversation(test_app, signed_in_client, saved.id)
        assert orchestrator.session_id == saved.id
        assert len(messages) == 3

    def test_change_language_requires_identity(self, test_app, client):
        callbacks.change_language(test_app, client, "ja")
        assert client.orchestrator.language == "en"


class TestIdentityHandlers:
    def test_restore_signed_out(self, test_app, client):
        client.auth.login(ADMIN_USERNAME, ADMIN_PASSWORD, remember_username=True)
        client.orchestrator.logout()

        result = callbacks.restore_identity(test_app, client)
        assert result[:3] == AUTH_SCREEN
        assert result[3] == ADMIN_USERNAME
        assert result[4:] == (no_update,) * len(RENDER_OUTPUTS)

    def test_restore_signed_in(self, test_app, signed_in_client):
        result = callbacks.restore_identity(test_app, signed_in_client)
        assert result[:3] == APP_SCREEN
        assert len(result) == 4 + len(RENDER_OUTPUTS)

    def test_restore_without_client(self, test_app):
        assert callbacks.restore_identity(test_app, None)[:3] == AUTH_SCREEN

    def test_login_success(self, test_app, client):
        result = callbacks.login(
            test_app, client, ADMIN_USERNAME, ADMIN_PASSWORD, [REMEMBER_USERNAME, STAY_SIGNED_IN]
        )

        assert result[:4] == APP_SCREEN + ("",)
        assert client.signed_in
        assert client.auth.stay_signed_in() is True
        assert client.auth.remembered_username() == ADMIN_USERNAME

    def test_login_failure_keeps_screen(self, test_app, client):
        result = callbacks.login(test_app, client, ADMIN_USERNAME, "wrong", None)

        assert result[:3] == (no_update,) * 3
        assert result[3] == "Invalid username or password."
        assert not client.signed_in

    def test_login_pending_account(self, test_app, client):
        pending_doctor(test_app)
        result = callbacks.login(test_app, client, "drkim", "pw", [])
        assert "pending approval" in result[3]

    def test_login_without_client(self, test_app):
        result = callbacks.login(test_app, None, ADMIN_USERNAME, ADMIN_PASSWORD, [])
        assert result[3] == "Please reload the page."

    def test_logout(self, test_app, signed_in_client):
        signed_in_client.orchestrator.select_mode("adult")

        result = callbacks.logout(test_app, signed_in_client)
        assert result[-3:] == AUTH_SCREEN
        assert not signed_in_client.signed_in
        assert signed_in_client.orchestrator.mode is None


class TestSignup:
    def test_profile_fields_stored(self, test_app):
        message = callbacks.signup(
            test_app,
            "drkim",
            "kim@hospital.org",
            "pw",
            "Radiologist",
            "Ten years of abdominal imaging",
            "Teaching residents",
            "Colleague",
        )

        assert "approval" in message
        user = test_app.auth.authenticate("drkim", "pw")
        assert user.occupation == "Radiologist"
        assert user.introduction == "Ten years of abdominal imaging"
        assert user.purpose == "Teaching residents"
        assert user.referral == "Colleague"
        assert user.status == "pending"

    def test_blank_profile_fields_omitted(self, test_app):
        callbacks.signup(test_app, "drkim", "kim@hospital.org", "pw", "", None, "", None)
        user = test_app.auth.authenticate("drkim", "pw")
        assert user.occupation is None
        assert user.purpose is None

    def test_required_fields(self, test_app):
        message = callbacks.signup(test_app, "drkim", "", "pw", None, None, None, None)
        assert message == "Username, email and password are required."
        assert test_app.auth.authenticate("drkim", "pw") is None


class TestAdminHandlers:
    @pytest.fixture
    def admin_client(self, client):
        assert client.admin.sign_in(ADMIN_USERNAME, ADMIN_PASSWORD)
        return client

    def test_sign_in_rejected(self, test_app, client):
        result = callbacks.admin_sign_in(test_app, client, ADMIN_USERNAME, "wrong", "", "all")
        assert result == (False, True, "Invalid Admin Credentials", [], [], [])

    def test_regular_user_rejected(self, test_app, client):
        doctor = pending_doctor(test_app)
        test_app.auth.set_status(doctor.id, "approved")

        result = callbacks.admin_sign_in(test_app, client, "drkim", "pw", "", "all")
        assert result[2] == "Invalid Admin Credentials"

    def test_sign_in_shows_dashboard(self, test_app, client):
        doctor = pending_doctor(test_app)

        login_hidden, dashboard_hidden, feedback, stats, rows, analytics = callbacks.admin_sign_in(
            test_app, client, ADMIN_USERNAME, ADMIN_PASSWORD, "", "all"
        )

        assert (login_hidden, dashboard_hidden, feedback) == (True, False, "")
        assert [row.id for row in rows] == ["user-row-admin_1", f"user-row-{doctor.id}"]
        assert [s.children for s in stats] == ["Total: 2", "Approved: 1", "Pending: 1"]
        assert len(analytics) > 0

    def test_toggle(self, test_app, admin_client):
        doctor = pending_doctor(test_app)

        feedback, stats, _, _ = callbacks.admin_action(
            test_app, admin_client, {"type": "admin-toggle", "id": doctor.id}, "", "all"
        )

        assert feedback == ""
        assert test_app.auth.get_user(doctor.id).status == "approved"
        assert stats[1].children == "Approved: 2"

    def test_delete(self, test_app, admin_client):
        doctor = pending_doctor(test_app)

        _, _, rows, _ = callbacks.admin_action(
            test_app, admin_client, {"type": "admin-delete", "id": doctor.id}, "", "all"
        )
        assert test_app.auth.get_user(doctor.id) is None
        assert [row.id for row in rows] == ["user-row-admin_1"]

    def test_own_account_protected(self, test_app, admin_client):
        feedback, _, _, _ = callbacks.admin_action(
            test_app, admin_client, {"type": "admin-delete", "id": "admin_1"}, "", "all"
        )
        assert "own account" in feedback
        assert test_app.auth.get_user("admin_1") is not None

    def test_search_and_filter(self, test_app, admin_client):
        pending_doctor(test_app)
        pending_doctor(test_app, "drlee")

        _, _, rows, _ = callbacks.admin_action(
            test_app, admin_client, "admin_search_input", "lee", "pending"
        )
        assert len(rows) == 1
        assert rows[0].children[0].children[0].children == "drlee"

    def test_requires_admin_sign_in(self, test_app, client):
        doctor = pending_doctor(test_app)

        result = callbacks.admin_action(
            test_app, client, {"type": "admin-toggle", "id": doctor.id}, "", "all"
        )
        assert result == (no_update,) * len(ADMIN_OUTPUTS)
        assert test_app.auth.get_user(doctor.id).status == "pending"

    def test_console_belongs_to_its_tab(self, test_app, admin_client):
        from pocusai.clients import new_token

        other = test_app.clients.get(new_token(), new_token())
        assert other.admin.is_authorized is False
