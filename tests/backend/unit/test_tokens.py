import pytest

from arcanatable.backend.errors import StaleUpdateError
from arcanatable.backend.models import Point, Token
from arcanatable.backend.tokens import MeasurementTracker, TokenStateReconciler
from arcanatable.grid import distance_feet, snap, to_cell


def _token(token_id: str = "c1", token_type: str = "player", x: float = 10, y: float = 10) -> Token:
    return Token(id=token_id, type=token_type, x=x, y=y, name="Aria", owner_ids=("u1",), created_by="u1")


def test_snap_rounds_to_nearest_cell_with_inset() -> None:
    assert snap(0) == 8
    assert snap(31) == 8
    assert snap(32) == 72
    assert snap(100) == 136
    assert snap(-10) == 8


def test_snap_is_stable_for_already_snapped_values() -> None:
    for value in (8, 72, 136, 200, 8 + 64 * 40):
        assert snap(value) == value


def test_to_cell_floors_pixels() -> None:
    assert to_cell(8) == 0
    assert to_cell(63) == 0
    assert to_cell(64) == 1
    assert to_cell(200) == 3


def test_distance_three_cells_straight_is_fifteen_feet() -> None:
    assert distance_feet(Point(x=8, y=8), Point(x=200, y=8)) == 15


def test_distance_three_cells_diagonal_is_thirty_feet() -> None:
    assert distance_feet(Point(x=8, y=8), Point(x=200, y=200)) == 30


def test_distance_mixes_diagonal_and_straight_steps() -> None:
    assert distance_feet(Point(x=8, y=8), Point(x=72, y=200)) == 20
    assert distance_feet(Point(x=200, y=200), Point(x=8, y=8)) == 30
    assert distance_feet(Point(x=8, y=8), Point(x=32, y=32)) == 0


def test_spawn_then_moves_keep_only_latest_position() -> None:
    reconciler = TokenStateReconciler()

    reconciler.apply_spawn("camp1", _token())
    reconciler.apply_move("camp1", "c1", "player", Point(x=130, y=10))
    reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=70))

    snapshot = reconciler.snapshot("camp1")
    assert len(snapshot) == 1
    assert (snapshot[0].x, snapshot[0].y) == (200, 72)
    assert snapshot[0].version == 3


def test_spawn_snaps_and_starts_at_version_one() -> None:
    reconciler = TokenStateReconciler()

    stored = reconciler.apply_spawn("camp1", _token(x=100, y=33))

    assert (stored.x, stored.y) == (136, 72)
    assert stored.version == 1


def test_spawn_of_existing_token_moves_it_in_place() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token())

    respawned = reconciler.apply_spawn("camp1", Token(id="c1", type="player", x=140, y=10, name="Renamed"))

    assert respawned.name == "Aria"
    assert respawned.owner_ids == ("u1",)
    assert (respawned.x, respawned.y) == (136, 8)
    assert respawned.version == 2
    assert len(reconciler.snapshot("camp1")) == 1


def test_same_id_with_different_type_is_a_separate_token() -> None:
    reconciler = TokenStateReconciler()

    reconciler.apply_spawn("camp1", _token(token_type="player"))
    reconciler.apply_spawn("camp1", _token(token_type="npc"))

    assert {token.key for token in reconciler.snapshot("camp1")} == {("c1", "player"), ("c1", "npc")}


def test_duplicate_unversioned_move_is_idempotent() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token())

    first = reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=10))
    second = reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=10))

    assert first == second
    assert reconciler.snapshot("camp1") == [first]


def test_duplicate_versioned_move_is_rejected_without_changing_state() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token())
    applied = reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=10), version=2)

    with pytest.raises(StaleUpdateError) as excinfo:
        reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=10), version=2)

    assert excinfo.value.stored_version == 2
    assert reconciler.snapshot("camp1") == [applied]


def test_stale_versioned_move_does_not_regress_position() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token())
    reconciler.apply_move("camp1", "c1", "player", Point(x=400, y=10), version=5)

    with pytest.raises(StaleUpdateError):
        reconciler.apply_move("camp1", "c1", "player", Point(x=200, y=10), version=3)

    token = reconciler.get("camp1", "c1", "player")
    assert token is not None
    assert token.x == 392
    assert token.version == 5


def test_move_of_unknown_token_is_a_no_op() -> None:
    reconciler = TokenStateReconciler()

    assert reconciler.apply_move("camp1", "ghost", "player", Point(x=0, y=0)) is None
    reconciler.apply_spawn("camp1", _token())
    assert reconciler.apply_move("camp1", "ghost", "player", Point(x=0, y=0)) is None
    assert [token.id for token in reconciler.snapshot("camp1")] == ["c1"]


def test_remove_and_forget() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token("c1"))
    reconciler.apply_spawn("camp1", _token("c2"))
    reconciler.apply_spawn("camp2", _token("c3"))

    removed = reconciler.apply_remove("camp1", "c1", "player")
    missing = reconciler.apply_remove("camp1", "c1", "player")
    reconciler.forget("camp2")

    assert removed is not None and removed.id == "c1"
    assert missing is None
    assert [token.id for token in reconciler.snapshot("camp1")] == ["c2"]
    assert reconciler.snapshot("camp2") == []


def test_find_matches_any_token_type() -> None:
    reconciler = TokenStateReconciler()
    reconciler.apply_spawn("camp1", _token(token_type="npc"))

    found = reconciler.find("camp1", "c1")

    assert found is not None
    assert found.type == "npc"
    assert reconciler.find("camp1", "c9") is None


def test_measurement_tracker_keeps_latest_and_clears_on_null() -> None:
    tracker = MeasurementTracker()

    tracker.update("camp1", "c1", Point(x=8, y=8), Point(x=96, y=32), measured_by="u1")
    latest = tracker.update("camp1", "c1", Point(x=8, y=8), Point(x=224, y=32), measured_by="u1")

    assert latest is not None
    assert latest.distance_ft == 15
    assert tracker.snapshot("camp1") == [latest]

    cleared = tracker.update("camp1", "c1", Point(x=8, y=8), None, measured_by="u1")

    assert cleared is None
    assert tracker.snapshot("camp1") == []


def test_measurement_tracker_clears_by_user() -> None:
    tracker = MeasurementTracker()
    tracker.update("camp1", "c1", Point(x=8, y=8), Point(x=96, y=32), measured_by="u1")
    tracker.update("camp1", "c2", Point(x=8, y=8), Point(x=96, y=32), measured_by="u2")

    cleared = tracker.clear_by("camp1", "u1")

    assert cleared == ["c1"]
    assert [item.token_id for item in tracker.snapshot("camp1")] == ["c2"]
