import threading

from conftest import RecordingChannel

from relay.models.requests import ChatPost


def _post(hub, identity, text):
    return hub.post(identity, ChatPost(user_id=identity, message=text))


def test_fresh_connect_announces_join_and_roster(hub, connect) -> None:
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")

    assert a.system_texts() == ["Alice joined the chat. (1 online)", "Bob joined the chat. (2 online)"]
    assert b.events("userList")[-1]["users"] == ["Alice", "Bob"]
    assert a.events("userList")[-1]["users"] == ["Alice", "Bob"]


def test_chat_scenario_post_replay_delete(hub, connect) -> None:
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")

    message = _post(hub, "a", "hi")
    c = connect("c", name="Carol")

    for channel in (a, b, c):
        [event] = channel.events("message")
        assert event["text"] == "hi"
        assert event["user"] == "Alice"
        assert event["id"] == message.id
        assert event["id"] > 0

    assert hub.delete_message("a", message.id) is True
    for channel in (b, c):
        assert channel.events("messageDeleted") == [{"type": "messageDeleted", "id": message.id, "user": "Alice"}]

    assert hub.delete_message("b", message.id) is False
    assert len(c.events("messageDeleted")) == 1


def test_second_delete_emits_nothing(hub, connect) -> None:
    a = connect("a")
    message = _post(hub, "a", "oops")

    assert hub.delete_message("a", message.id) is True
    assert hub.delete_message("a", message.id) is False
    assert len(a.events("messageDeleted")) == 1


def test_ids_increase_and_empty_posts_emit_nothing(hub, connect) -> None:
    a = connect("a")
    first = _post(hub, "a", "one")
    assert _post(hub, "a", "   ") is None
    second = _post(hub, "a", "two")

    ids = [e["id"] for e in a.events("message")]
    assert ids == [first.id, second.id]
    assert second.id == first.id + 1


def test_replay_skips_deleted_messages(hub, connect) -> None:
    connect("a")
    kept = _post(hub, "a", "keep")
    gone = _post(hub, "a", "drop")
    hub.delete_message("a", gone.id)

    late = connect("z")
    assert [e["id"] for e in late.events("message")] == [kept.id]


def test_read_receipt_counts_each_reader_once(hub, connect) -> None:
    a = connect("a")
    connect("b")
    connect("c")
    message = _post(hub, "a", "hello")

    assert hub.mark_read("b", message.id) == 1
    assert hub.mark_read("b", message.id) is None
    assert hub.mark_read("c", message.id) == 2
    assert hub.mark_read("a", message.id) is None

    assert [e["readCount"] for e in a.events("readReceipt")] == [1, 2]


def test_actions_from_unknown_identity_are_ignored(hub, connect) -> None:
    a = connect("a")
    message = _post(hub, "a", "hi")
    a.clear()

    assert _post(hub, "ghost", "boo") is None
    assert hub.delete_message("ghost", message.id) is False
    assert hub.mark_read("ghost", message.id) is None
    assert hub.rename("ghost", "Casper") is None
    assert hub.heartbeat("ghost") is False
    assert a.frames == []


def test_rename_broadcasts_only_on_change(hub, connect) -> None:
    a = connect("a", name="Alice")
    a.clear()

    assert hub.rename("a", "Alice") is None
    assert a.frames == []

    assert hub.rename("a", "Ally") == ("Alice", "Ally")
    assert a.system_texts() == ["Alice is now known as Ally."]
    assert a.events("userList")[-1]["users"] == ["Ally"]


def test_reconnect_within_grace_is_silent(hub, scheduler, connect) -> None:
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")
    roster_before = b.events("userList")[-1]["users"]
    b.clear()

    hub.channel_closed("a", a)
    scheduler.advance(2)
    a2 = RecordingChannel()
    hub.connect("a", "10.0.0.a", a2, "Alice")
    scheduler.advance(10)

    assert b.system_texts() == []
    assert b.events("userList")[-1]["users"] == roster_before
    assert "a" in hub.registry
    assert a2.events("userList")[-1]["users"] == roster_before


def test_reconnect_after_grace_is_a_fresh_join(hub, scheduler, connect) -> None:
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")
    b.clear()

    hub.channel_closed("a", a)
    scheduler.advance(hub.settings.GRACE_PERIOD_SECONDS + 0.5)
    assert "a" not in hub.registry
    assert b.events("userList")[-1]["users"] == ["Bob"]

    connect("a", name="Alice")
    assert b.system_texts() == ["Alice left the chat.", "Alice joined the chat. (2 online)"]


def test_stale_close_of_superseded_channel_is_ignored(hub, scheduler, connect) -> None:
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")
    b.clear()

    hub.channel_closed("a", a)
    scheduler.advance(1)
    a2 = RecordingChannel()
    hub.connect("a", "10.0.0.a", a2, None)

    # The old stream reports its close late; the new channel is untouched
    assert hub.channel_closed("a", a) is False
    scheduler.advance(10)
    assert "a" in hub.registry
    assert b.system_texts() == []

    hub.channel_closed("a", a2)
    scheduler.advance(hub.settings.GRACE_PERIOD_SECONDS)
    assert "a" not in hub.registry
    assert b.system_texts() == ["Alice left the chat."]


def test_keepalive_pings_until_write_fails(hub, scheduler, connect) -> None:
    a = connect("a")
    scheduler.advance(30)
    assert a.pings == 2

    a.fail = True
    scheduler.advance(15)
    assert hub.registry.get("a").keepalive is None
    assert "a" in hub.registry

    a.fail = False
    scheduler.advance(60)
    assert a.pings == 2


def test_keepalive_stops_when_channel_closes(hub, scheduler, connect) -> None:
    a = connect("a")
    keepalive = hub.registry.get("a").keepalive

    hub.channel_closed("a", a)

    assert keepalive.cancelled
    assert hub.registry.get("a").keepalive is None
    assert hub.registry.get("a").pending_eviction is not None


def test_idle_sweep_evicts_silent_sessions(hub, scheduler, connect) -> None:
    hub.start()
    a = connect("a", name="Alice")
    b = connect("b", name="Bob")

    scheduler.advance(200)
    assert hub.heartbeat("b") is True
    b.clear()

    scheduler.advance(150)

    assert "a" not in hub.registry
    assert a.closed
    assert b.system_texts() == ["Alice left the chat."]
    assert [e["users"] for e in b.events("userList")] == [["Bob"]]
    hub.stop()


def test_any_action_refreshes_activity(hub, scheduler, connect) -> None:
    connect("a")
    scheduler.advance(250)
    _post(hub, "a", "still here")
    scheduler.advance(100)

    assert hub.sweep_idle() == []


def test_sweep_leaves_grace_period_sessions_to_their_timer(hub, scheduler, connect) -> None:
    a = connect("a")
    scheduler.advance(400)
    hub.channel_closed("a", a)

    assert hub.sweep_idle() == []
    assert "a" in hub.registry


def test_stop_cancels_timers_and_closes_streams(hub, scheduler, connect) -> None:
    hub.start()
    a = connect("a")
    hub.stop()

    assert a.closed
    assert scheduler.pending == []


class LockCheckingChannel(RecordingChannel):
    """Counts writes made while another thread could not take ``lock``"""

    def __init__(self, lock):
        super().__init__()
        self.lock = lock
        self.locked_writes = 0

    def _lock_held(self):
        acquired = []

        def attempt():
            if self.lock.acquire(blocking=False):
                acquired.append(True)
                self.lock.release()

        thread = threading.Thread(target=attempt)
        thread.start()
        thread.join()
        return not acquired

    def send(self, frame):
        if self._lock_held():
            self.locked_writes += 1
        super().send(frame)

    def close(self):
        if self._lock_held():
            self.locked_writes += 1
        super().close()


def test_reconnect_closes_superseded_channel(hub, connect) -> None:
    a = connect("a", name="Alice")
    a2 = RecordingChannel()
    hub.connect("a", "10.0.0.a", a2, None)

    assert a.closed
    assert not a2.closed
    assert hub.registry.get("a").channel is a2


def test_pings_and_closes_happen_outside_the_hub_lock(hub, scheduler) -> None:
    old = LockCheckingChannel(hub._lock)
    hub.connect("a", "10.0.0.1", old, "Alice")
    scheduler.advance(30)

    new = LockCheckingChannel(hub._lock)
    hub.connect("a", "10.0.0.1", new, None)
    scheduler.advance(15)

    assert old.pings == 2
    assert old.closed
    assert new.pings == 1
    assert old.locked_writes == 0
    assert new.locked_writes == 0
