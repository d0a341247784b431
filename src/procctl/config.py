"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from procctl.dispatch import DEFAULT_BANNER, DEFAULT_MAX_LINE_BYTES

CONFIG_FILE_NAME = "procctl.toml"
MAX_LINE_BYTES_CAP = 1024 * 1024
MAX_PORT = 65_535
DEFAULT_SOCKET_MODE = 0o770
DEFAULT_AUDIT_PATH = Path(".procctl") / "audit.jsonl"


@dataclass(slots=True, frozen=True)
class ListenConfig:
    """Transport endpoints; an empty unix_socket or a zero port disables that listener."""

    host: str
    port: int
    unix_socket: str
    socket_mode: int
    banner: str


@dataclass(slots=True, frozen=True)
class DispatchConfig:
    """Session dispatch settings."""

    hold_registry_during_call: bool
    max_line_bytes: int


@dataclass(slots=True, frozen=True)
class AuditConfig:
    """Audit log settings."""

    enabled: bool
    path: Path


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    server: ListenConfig
    dispatch: DispatchConfig
    audit: AuditConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot."""
        return {
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "unix_socket": self.server.unix_socket,
                "socket_mode": oct(self.server.socket_mode),
                "banner": self.server.banner,
            },
            "dispatch": {
                "hold_registry_during_call": self.dispatch.hold_registry_during_call,
                "max_line_bytes": self.dispatch.max_line_bytes,
            },
            "audit": {
                "enabled": self.audit.enabled,
                "path": str(self.audit.path),
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    host: str | None = None
    port: int | None = None
    unix_socket: str | None = None
    hold_registry_during_call: bool | None = None
    max_line_bytes: int | None = None
    audit_path: Path | None = None


def default_config() -> ServerConfig:
    """Build default config."""
    return ServerConfig(
        server=ListenConfig(
            host="127.0.0.1",
            port=0,
            unix_socket="",
            socket_mode=DEFAULT_SOCKET_MODE,
            banner=DEFAULT_BANNER,
        ),
        dispatch=DispatchConfig(
            hold_registry_during_call=True,
            max_line_bytes=DEFAULT_MAX_LINE_BYTES,
        ),
        audit=AuditConfig(enabled=False, path=DEFAULT_AUDIT_PATH),
    )


def load_config_file(path: Path) -> dict[str, object]:
    """Load an optional procctl.toml."""
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_str(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Config field '{name}' must be a string.")
    return value


def _optional_int_in_range(
    value: object,
    name: str,
    default: int,
    minimum: int,
    maximum: int,
) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be an integer.")
    if value < minimum or value > maximum:
        raise ValueError(f"Config field '{name}' must be between {minimum} and {maximum}.")
    return value


def merge_config(
    base: ServerConfig, payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, config file, then CLI/startup overrides."""
    server_payload = _get_table(payload, "server")
    dispatch_payload = _get_table(payload, "dispatch")
    audit_payload = _get_table(payload, "audit")

    for section, table, known in (
        ("server", server_payload, {"host", "port", "unix_socket", "socket_mode", "banner"}),
        ("dispatch", dispatch_payload, {"hold_registry_during_call", "max_line_bytes"}),
        ("audit", audit_payload, {"enabled", "path"}),
    ):
        unknown = sorted(set(table) - known)
        if unknown:
            raise ValueError(f"Config field '{section}.{unknown[0]}' is not supported.")

    audit_path = base.audit.path
    if "path" in audit_payload:
        audit_path = Path(_optional_str(audit_payload["path"], "audit.path", str(audit_path)))

    merged = ServerConfig(
        server=ListenConfig(
            host=_optional_str(server_payload.get("host"), "server.host", base.server.host),
            port=_optional_int_in_range(
                server_payload.get("port"), "server.port", base.server.port, 0, MAX_PORT
            ),
            unix_socket=_optional_str(
                server_payload.get("unix_socket"), "server.unix_socket", base.server.unix_socket
            ),
            socket_mode=_optional_int_in_range(
                server_payload.get("socket_mode"),
                "server.socket_mode",
                base.server.socket_mode,
                0,
                0o777,
            ),
            banner=_optional_str(server_payload.get("banner"), "server.banner", base.server.banner),
        ),
        dispatch=DispatchConfig(
            hold_registry_during_call=_optional_bool(
                dispatch_payload.get("hold_registry_during_call"),
                "dispatch.hold_registry_during_call",
                base.dispatch.hold_registry_during_call,
            ),
            max_line_bytes=_optional_int_in_range(
                dispatch_payload.get("max_line_bytes"),
                "dispatch.max_line_bytes",
                base.dispatch.max_line_bytes,
                1,
                MAX_LINE_BYTES_CAP,
            ),
        ),
        audit=AuditConfig(
            enabled=_optional_bool(audit_payload.get("enabled"), "audit.enabled", base.audit.enabled),
            path=audit_path,
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    server = ListenConfig(
        host=overrides.host if overrides.host is not None else config.server.host,
        port=_optional_int_in_range(
            overrides.port, "overrides.port", config.server.port, 0, MAX_PORT
        ),
        unix_socket=(
            overrides.unix_socket
            if overrides.unix_socket is not None
            else config.server.unix_socket
        ),
        socket_mode=config.server.socket_mode,
        banner=config.server.banner,
    )
    dispatch = DispatchConfig(
        hold_registry_during_call=(
            overrides.hold_registry_during_call
            if overrides.hold_registry_during_call is not None
            else config.dispatch.hold_registry_during_call
        ),
        max_line_bytes=_optional_int_in_range(
            overrides.max_line_bytes,
            "overrides.max_line_bytes",
            config.dispatch.max_line_bytes,
            1,
            MAX_LINE_BYTES_CAP,
        ),
    )
    audit = config.audit
    if overrides.audit_path is not None:
        audit = AuditConfig(enabled=True, path=overrides.audit_path)
    return ServerConfig(server=server, dispatch=dispatch, audit=audit)


def load_effective_config(
    config_path: Path | None = None, overrides: CliOverrides | None = None
) -> ServerConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    if config_path is not None and not config_path.exists():
        raise ValueError(f"Config file not found: {config_path}")
    path = config_path if config_path is not None else Path.cwd() / CONFIG_FILE_NAME
    payload = load_config_file(path)
    return merge_config(default_config(), payload, overrides or CliOverrides())
