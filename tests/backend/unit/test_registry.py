import asyncio

from arcanatable.backend.registry import SessionRegistry


def test_join_creates_room_once(connect) -> None:
    registry = SessionRegistry(grace_seconds=0)
    first = connect("u-a")
    second = connect("u-b")

    assert registry.join("camp1", first) is True
    assert registry.join("camp1", second) is False
    assert registry.join("camp1", second) is False

    assert registry.member_count("camp1") == 2
    assert first.room_id == "camp1"
    assert registry.room_count() == 1


def test_leave_removes_exactly_one_member(connect) -> None:
    registry = SessionRegistry(grace_seconds=0)
    members = [connect(f"u-{index}") for index in range(3)]
    for member in members:
        registry.join("camp1", member)

    assert registry.leave(members[1]) == "camp1"
    assert registry.leave(members[1]) is None

    assert registry.member_count("camp1") == 2
    assert members[1] not in registry.members("camp1")


def test_broadcast_honours_exclude_and_room_scope(connect) -> None:
    registry = SessionRegistry(grace_seconds=0)
    sender = connect("u-a")
    teammate = connect("u-b")
    outsider = connect("u-c")
    registry.join("camp1", sender)
    registry.join("camp1", teammate)
    registry.join("camp2", outsider)

    delivered = asyncio.run(registry.broadcast("camp1", "chat_message", {"message": "hi"}, exclude=sender))

    assert delivered == 1
    assert teammate.connection.sent == [{"type": "chat_message", "payload": {"message": "hi"}}]
    assert sender.connection.sent == []
    assert outsider.connection.sent == []


def test_broadcast_drops_closed_connections(connect) -> None:
    registry = SessionRegistry(grace_seconds=30)
    alive = connect("u-a")
    gone = connect("u-b")
    registry.join("camp1", alive)
    registry.join("camp1", gone)
    gone.connection.closed = True

    delivered = asyncio.run(registry.broadcast("camp1", "pong", {}))

    assert delivered == 1
    assert registry.members("camp1") == [alive]
    assert gone.room_id is None


def test_send_to_closed_connection_leaves_room(connect) -> None:
    registry = SessionRegistry(grace_seconds=0)
    gone = connect("u-a")
    registry.join("camp1", gone)
    gone.connection.closed = True

    assert asyncio.run(registry.send(gone, "pong", {})) is False
    assert registry.has_room("camp1") is False


def test_empty_room_is_evicted_after_grace_period(connect) -> None:
    evicted: list[str] = []
    registry = SessionRegistry(grace_seconds=0.01, on_evict=evicted.append)
    member = connect("u-a")
    observed = []

    async def scenario() -> None:
        registry.join("camp1", member)
        registry.leave(member)
        observed.append(registry.has_room("camp1"))
        await asyncio.sleep(0.05)
        observed.append(registry.has_room("camp1"))

    asyncio.run(scenario())

    assert observed == [True, False]
    assert evicted == ["camp1"]


def test_rejoin_within_grace_period_keeps_room(connect) -> None:
    evicted: list[str] = []
    registry = SessionRegistry(grace_seconds=0.01, on_evict=evicted.append)
    member = connect("u-a")

    async def scenario() -> None:
        registry.join("camp1", member)
        registry.leave(member)
        registry.join("camp1", member)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert evicted == []
    assert registry.member_count("camp1") == 1


def test_joining_another_room_leaves_previous_one(connect) -> None:
    registry = SessionRegistry(grace_seconds=0)
    member = connect("u-a")
    member.is_game_master = True

    registry.join("camp1", member)
    registry.join("camp2", member)

    assert registry.has_room("camp1") is False
    assert registry.members("camp2") == [member]
    assert member.room_id == "camp2"


def test_close_cancels_pending_evictions(connect) -> None:
    evicted: list[str] = []
    registry = SessionRegistry(grace_seconds=0.01, on_evict=evicted.append)
    member = connect("u-a")

    async def scenario() -> None:
        registry.join("camp1", member)
        registry.leave(member)
        registry.close()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert evicted == []
    assert registry.has_room("camp1") is True
