"""
Tests for the event relay.

Tests:
- Join binding, idempotent re-join, snapshot delivery
- Broadcast to the room vs. errors to the sender only
- Unbound connections are ignored
- Disconnect notifications
- Emission order within a room
"""

import pytest

from ..relay import RoomRegistry, ConnectionClosed
from ..session import Phase
from .conftest import RecordingConnection, advance_to


@pytest.fixture
def alice(relay, created, admin_token):
    """Admin connection, joined."""
    connection = RecordingConnection("conn-alice")
    relay.connect(connection)
    relay.handle(connection, "join", {
        "retroId": created["id"],
        "participantName": "Alice",
        "adminToken": admin_token,
    })
    return connection


@pytest.fixture
def bob(relay, created, alice):
    """Regular participant connection, joined after Alice."""
    connection = RecordingConnection("conn-bob")
    relay.connect(connection)
    relay.handle(connection, "join", {"retroId": created["id"], "participantName": "Bob"})
    return connection


def clear(*connections):
    for connection in connections:
        connection.clear()


class TestJoin:
    """Tests for join."""

    def test_join_registers_and_sends_state(self, relay, manager, alice):
        assert alice.types == ["participant-joined", "state"]
        joined = alice.of_type("participant-joined")[0]
        assert joined["name"] == "Alice"
        assert joined["isAdmin"] is True

        state = alice.of_type("state")[0]
        assert "adminToken" not in state
        assert [p["name"] for p in state["participants"]] == ["Alice"]

    def test_join_broadcasts_to_room(self, alice, bob):
        assert alice.types[-1] == "participant-joined"
        assert alice.of_type("participant-joined")[-1]["name"] == "Bob"
        assert alice.of_type("participant-joined")[-1]["isAdmin"] is False
        assert bob.types == ["participant-joined", "state"]

    def test_join_unknown_session(self, relay, created):
        connection = RecordingConnection("conn-x")

        relay.handle(connection, "join", {"retroId": "nope", "participantName": "Eve"})

        assert connection.of_type("error") == [{"message": "Retro not found"}]
        assert not relay.context(connection).is_bound

    def test_join_without_session(self, relay):
        connection = RecordingConnection("conn-x")

        relay.handle(connection, "join", {"retroId": "nope", "participantName": "Eve"})

        assert connection.types == ["error"]

    def test_rejoin_is_idempotent(self, relay, manager, created, alice, bob):
        clear(alice, bob)
        again = RecordingConnection("conn-bob-2")

        relay.handle(again, "join", {"retroId": created["id"], "participantName": "Bob"})

        assert again.types == ["state"]
        assert alice.messages == []
        assert [p.name for p in manager.get_session().participants] == ["Alice", "Bob"]

    def test_wrong_admin_token_joins_as_regular(self, relay, manager, created):
        connection = RecordingConnection("conn-eve")

        relay.handle(connection, "join", {
            "retroId": created["id"],
            "participantName": "Eve",
            "adminToken": "guess",
        })

        assert manager.get_session().get_participant("Eve").is_admin is False

    def test_join_payload_validated(self, relay, created):
        connection = RecordingConnection("conn-x")

        relay.handle(connection, "join", {"retroId": created["id"]})

        error = connection.of_type("error")[0]
        assert "participantName" in error["message"]


class TestCommands:
    """Broadcast on success, sender-only error on failure."""

    def test_unbound_connection_is_ignored(self, relay, manager, created):
        connection = RecordingConnection("conn-x")

        relay.handle(connection, "add-item", {"text": "Hello", "category": "good"})
        relay.handle(connection, "change-phase", {})

        assert connection.messages == []
        assert manager.get_session().phase == Phase.LOBBY

    def test_add_item_broadcasts(self, relay, alice, bob):
        relay.handle(alice, "change-phase", {})
        clear(alice, bob)

        relay.handle(bob, "add-item", {"text": "Ship faster", "category": "good"})

        for connection in (alice, bob):
            assert connection.types == ["item-added"]
            item = connection.of_type("item-added")[0]
            assert item["text"] == "Ship faster"
            assert item["author"] == "Bob"
            assert item["votes"] == []

    def test_error_goes_to_sender_only(self, relay, alice, bob):
        relay.handle(bob, "add-item", {"text": "Too early", "category": "good"})

        assert bob.types[-1] == "error"
        assert "Cannot add good items" in bob.of_type("error")[-1]["message"]
        assert "error" not in alice.types

    def test_change_phase_requires_admin(self, relay, manager, alice, bob):
        clear(alice, bob)

        relay.handle(bob, "change-phase", {})

        assert bob.of_type("error") == [{"message": "Unauthorized"}]
        assert alice.messages == []
        assert manager.get_session().phase == Phase.LOBBY

    def test_change_phase_broadcasts(self, relay, alice, bob):
        clear(alice, bob)

        relay.handle(alice, "change-phase", {})

        assert bob.of_type("phase-changed") == [{"phase": "good_items"}]
        assert alice.of_type("phase-changed") == [{"phase": "good_items"}]

    def test_close_broadcasts_phase_then_closed(self, relay, manager, admin_token, alice, bob):
        advance_to(manager, admin_token, Phase.ACTION_POINTS)
        clear(alice, bob)

        relay.handle(alice, "change-phase", {})

        assert bob.types == ["phase-changed", "closed"]
        assert bob.messages[0]["payload"] == {"phase": "closed"}
        assert bob.messages[1]["payload"] == {"closedAt": manager.get_session().closed_at}

    def test_vote_flow(self, relay, manager, admin_token, alice, bob):
        advance_to(manager, admin_token, Phase.GOOD_ITEMS)
        relay.handle(alice, "add-item", {"text": "Great sprint", "category": "good"})
        item_id = alice.of_type("item-added")[-1]["id"]
        relay.handle(alice, "change-phase", {})
        clear(alice, bob)

        relay.handle(bob, "vote", {"itemId": item_id})
        relay.handle(bob, "vote", {"itemId": item_id})
        relay.handle(bob, "unvote", {"itemId": item_id})

        assert alice.types == ["vote-updated", "vote-updated"]
        assert alice.of_type("vote-updated") == [
            {"itemId": item_id, "votes": ["Bob"]},
            {"itemId": item_id, "votes": []},
        ]
        assert bob.types == ["vote-updated", "error", "vote-updated"]
        assert bob.of_type("error")[0]["message"] == "You already voted for this item"

    def test_start_timer(self, relay, manager, alice, bob):
        clear(alice, bob)

        relay.handle(alice, "start-timer", {"duration": 120})

        assert bob.of_type("timer-started") == [{"endsAt": manager.get_session().timer_ends_at}]

    def test_start_timer_validates_duration(self, relay, alice):
        clear(alice)

        relay.handle(alice, "start-timer", {"duration": 0})

        assert alice.types == ["error"]

    def test_brainstorm_and_action_points(self, relay, manager, admin_token, alice, bob):
        advance_to(manager, admin_token, Phase.IMPROVE_ITEMS)
        relay.handle(bob, "add-item", {"text": "Too many meetings", "category": "improve"})
        item_id = bob.of_type("item-added")[-1]["id"]
        advance_to(manager, admin_token, Phase.BRAINSTORMING)
        clear(alice, bob)

        relay.handle(alice, "select-brainstorm-items", {"itemIds": [item_id]})
        relay.handle(bob, "add-brainstorm-comment", {"itemId": item_id, "text": "Cap them"})

        assert bob.of_type("brainstorm-items-selected") == [{"itemIds": [item_id]}]
        comment = alice.of_type("brainstorm-comment-added")[0]
        assert comment["author"] == "Bob"
        assert comment["itemId"] == item_id

        manager.change_phase(admin_token)
        clear(alice, bob)
        relay.handle(bob, "add-action-point", {
            "text": "Shorter standups", "assignee": "", "itemId": item_id,
        })
        action_point = alice.of_type("action-point-added")[0]
        assert action_point["createdBy"] == "Bob"
        assert action_point["itemId"] == item_id

        relay.handle(alice, "assign-action-point", {
            "actionPointId": action_point["id"], "assignee": "Carol",
        })
        assert bob.of_type("action-point-updated")[0]["assignee"] == "Carol"

    def test_stale_binding_cannot_reach_next_session(self, relay, manager, admin_token, alice, bob):
        advance_to(manager, admin_token, Phase.CLOSED)
        second = manager.create_session("Sprint 13", 300)
        manager.change_phase(second["adminToken"])
        amy = RecordingConnection("conn-amy")
        relay.handle(amy, "join", {"retroId": second["id"], "participantName": "Amy"})
        clear(alice, bob, amy)

        relay.handle(bob, "add-item", {"text": "ghost", "category": "good"})
        relay.handle(bob, "start-timer", {"duration": 30})

        assert bob.of_type("error") == [
            {"message": "Retro not found"},
            {"message": "Retro not found"},
        ]
        assert alice.messages == []
        assert amy.messages == []
        session = manager.get_session()
        assert session.items == []
        assert [p.name for p in session.participants] == ["Amy"]

    def test_rejoin_after_new_session(self, relay, manager, admin_token, bob):
        advance_to(manager, admin_token, Phase.CLOSED)
        second = manager.create_session("Sprint 13", 300)
        manager.change_phase(second["adminToken"])

        relay.handle(bob, "join", {"retroId": second["id"], "participantName": "Bob"})
        bob.clear()
        relay.handle(bob, "add-item", {"text": "Fresh start", "category": "good"})

        assert bob.types == ["item-added"]
        assert [i.text for i in manager.get_session().items] == ["Fresh start"]

    def test_select_brainstorm_requires_admin(self, relay, alice, bob):
        clear(alice, bob)

        relay.handle(bob, "select-brainstorm-items", {"itemIds": []})

        assert bob.of_type("error") == [{"message": "Unauthorized"}]
        assert alice.messages == []

    def test_unknown_command(self, relay, alice):
        clear(alice)

        relay.handle(alice, "self-destruct", {})

        assert alice.of_type("error") == [{"message": "Unknown command: self-destruct"}]

    def test_dispatch_malformed_message(self, relay, alice):
        clear(alice)

        relay.dispatch(alice, ["not", "an", "envelope"])

        assert alice.types == ["error"]


class TestDisconnect:
    def test_disconnect_notifies_room(self, relay, manager, alice, bob):
        clear(alice, bob)

        relay.disconnect(bob)

        assert alice.of_type("participant-left") == [{"name": "Bob"}]
        assert bob.messages == []
        # Roster keeps the participant
        assert manager.has_participant("Bob")

    def test_disconnected_connection_stops_receiving(self, relay, alice, bob):
        relay.disconnect(bob)
        clear(alice, bob)

        relay.handle(alice, "start-timer", {"duration": 30})

        assert bob.messages == []
        assert alice.types == ["timer-started"]

    def test_disconnect_unbound_is_silent(self, relay, alice):
        stranger = RecordingConnection("conn-x")
        relay.connect(stranger)
        clear(alice)

        relay.disconnect(stranger)

        assert alice.messages == []


class TestOrdering:
    def test_room_members_see_same_sequence(self, relay, manager, admin_token, alice, bob):
        clear(alice, bob)

        relay.handle(alice, "change-phase", {})
        relay.handle(bob, "add-item", {"text": "One", "category": "good"})
        relay.handle(alice, "add-item", {"text": "Two", "category": "good"})
        relay.handle(alice, "start-timer", {"duration": 60})
        relay.handle(alice, "change-phase", {})

        assert alice.messages == bob.messages
        assert alice.types == [
            "phase-changed", "item-added", "item-added", "timer-started", "phase-changed",
        ]


class TestRoomRegistry:
    def test_publish_drops_closed_connections(self):
        class ClosedConnection(RecordingConnection):
            def send(self, message):
                raise ConnectionClosed(self.connection_id)

        rooms = RoomRegistry()
        live = RecordingConnection("live")
        dead = ClosedConnection("dead")
        rooms.subscribe("room", live)
        rooms.subscribe("room", dead)

        delivered = rooms.publish("room", {"type": "x", "payload": {}})

        assert delivered == 1
        assert rooms.members("room") == [live]

    def test_unsubscribe_last_member_removes_room(self):
        rooms = RoomRegistry()
        connection = RecordingConnection("c")
        rooms.subscribe("room", connection)

        rooms.unsubscribe("room", connection)

        assert rooms.members("room") == []
        assert rooms.publish("room", {"type": "x", "payload": {}}) == 0
