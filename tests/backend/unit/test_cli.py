from arcanatable.backend.config import BackendSettings
from arcanatable.cli import parse_args, resolve_settings


def _base() -> BackendSettings:
    return BackendSettings(
        jwt_secret="dev-secret",
        database_url=None,
        host="127.0.0.1",
        port=8000,
        room_grace_seconds=30.0,
        shard_count=4,
        log_level="INFO",
    )


def test_resolve_settings_keeps_base_without_flags() -> None:
    settings = resolve_settings(parse_args([]), base=_base())

    assert settings == _base()


def test_resolve_settings_applies_overrides() -> None:
    args = parse_args(
        ["--host", "0.0.0.0", "--port", "9001", "--log-level", "DEBUG", "--room-grace-seconds", "5", "--shards", "8"]
    )

    settings = resolve_settings(args, base=_base())

    assert settings.host == "0.0.0.0"
    assert settings.port == 9001
    assert settings.log_level == "DEBUG"
    assert settings.room_grace_seconds == 5.0
    assert settings.shard_count == 8
    assert settings.jwt_secret == "dev-secret"


def test_resolve_settings_clamps_numeric_overrides() -> None:
    args = parse_args(["--room-grace-seconds", "-3", "--shards", "0"])

    settings = resolve_settings(args, base=_base())

    assert settings.room_grace_seconds == 0.0
    assert settings.shard_count == 1
