"""Socket and STDIO server entrypoint."""

from __future__ import annotations

import argparse
import importlib
import os
import socketserver
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from procctl.config import CliOverrides, ServerConfig, load_effective_config
from procctl.dispatch import Dispatcher, TransportError
from procctl.logging import JsonlAuditLogger
from procctl.registry import ProcedureRegistry, RegistrationError

SetupFunction = Callable[[ProcedureRegistry], object]


class _SessionHandler(socketserver.BaseRequestHandler):
    """Runs one dispatcher session per accepted connection."""

    def handle(self) -> None:
        self.server.dispatcher.serve_socket(self.request)  # type: ignore[attr-defined]


class _DispatchingServerMixin:
    """Shared behavior for the threaded listeners."""

    dispatcher: Dispatcher
    daemon_threads = True

    def handle_error(self, request: object, client_address: object) -> None:
        error = sys.exc_info()[1]
        if isinstance(error, TransportError):
            sys.stderr.write(f"procctl: session {client_address!r} closed: {error}\n")
            return
        super().handle_error(request, client_address)  # type: ignore[misc]


class ProcedureTCPServer(_DispatchingServerMixin, socketserver.ThreadingTCPServer):
    """Threaded TCP listener; one thread per session."""

    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher
        super().__init__(address, _SessionHandler)


if hasattr(socketserver, "ThreadingUnixStreamServer"):

    class ProcedureUnixServer(_DispatchingServerMixin, socketserver.ThreadingUnixStreamServer):
        """Threaded Unix domain socket listener with restricted file mode."""

        def __init__(self, path: str, dispatcher: Dispatcher, mode: int) -> None:
            self.dispatcher = dispatcher
            if os.path.exists(path):
                os.unlink(path)
            super().__init__(path, _SessionHandler)
            os.chmod(path, mode)

        def server_close(self) -> None:
            super().server_close()
            if os.path.exists(self.server_address):
                os.unlink(self.server_address)


class ProcedureServer:
    """Owns the dispatcher and the listeners described by configuration."""

    def __init__(self, registry: ProcedureRegistry, config: ServerConfig) -> None:
        self._registry = registry
        self._config = config
        audit_logger = (
            JsonlAuditLogger(path=config.audit.path.resolve()) if config.audit.enabled else None
        )
        self._dispatcher = Dispatcher(
            registry,
            banner=config.server.banner,
            hold_registry_during_call=config.dispatch.hold_registry_during_call,
            max_line_bytes=config.dispatch.max_line_bytes,
            audit_logger=audit_logger,
        )
        self._listeners: list[socketserver.BaseServer] = []
        self._listeners_lock = threading.Lock()

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def registry(self) -> ProcedureRegistry:
        return self._registry

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Serve a single session over text streams such as STDIO."""
        self._dispatcher.serve(in_stream, out_stream)

    def open_tcp(self, host: str, port: int) -> ProcedureTCPServer:
        """Bind a TCP listener; port 0 picks an ephemeral port."""
        listener = ProcedureTCPServer((host, port), self._dispatcher)
        with self._listeners_lock:
            self._listeners.append(listener)
        return listener

    def open_unix(self, path: str, mode: int | None = None) -> socketserver.BaseServer:
        """Bind a Unix domain socket listener."""
        if not hasattr(socketserver, "ThreadingUnixStreamServer"):
            raise OSError("Unix domain sockets are not supported on this platform.")
        socket_mode = mode if mode is not None else self._config.server.socket_mode
        listener = ProcedureUnixServer(path, self._dispatcher, socket_mode)
        with self._listeners_lock:
            self._listeners.append(listener)
        return listener

    def open_configured_listeners(self) -> list[socketserver.BaseServer]:
        """Bind every listener enabled in configuration."""
        opened: list[socketserver.BaseServer] = []
        if self._config.server.port:
            opened.append(self.open_tcp(self._config.server.host, self._config.server.port))
        if self._config.server.unix_socket:
            opened.append(self.open_unix(self._config.server.unix_socket))
        return opened

    def serve_forever(self) -> None:
        """Run the configured listeners until interrupted."""
        listeners = self.open_configured_listeners()
        if not listeners:
            raise ValueError("No listener configured; set server.port or server.unix_socket.")
        threads = [
            threading.Thread(
                target=listener.serve_forever,
                name=f"procctl-listener-{index}",
                daemon=True,
            )
            for index, listener in enumerate(listeners)
        ]
        for thread in threads:
            thread.start()
        try:
            for thread in threads:
                thread.join()
        except KeyboardInterrupt:
            pass
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop and close every opened listener."""
        with self._listeners_lock:
            listeners = list(self._listeners)
            self._listeners.clear()
        for listener in listeners:
            listener.shutdown()
            listener.server_close()


def create_server(
    registry: ProcedureRegistry | None = None,
    config_path: str | None = None,
    cli_overrides: CliOverrides | None = None,
) -> ProcedureServer:
    """Create a configured server around a registry."""
    config = load_effective_config(
        config_path=Path(config_path) if config_path is not None else None,
        overrides=cli_overrides,
    )
    return ProcedureServer(registry if registry is not None else ProcedureRegistry(), config)


def load_setup_function(target: str) -> SetupFunction:
    """Resolve a ``module:function`` wiring hook."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Setup hook must look like 'module:function', got {target!r}.")
    module = importlib.import_module(module_name)
    hook = getattr(module, attribute, None)
    if not callable(hook):
        raise ValueError(f"Setup hook {target!r} is not callable.")
    return hook


def parse_tcp_address(value: str) -> tuple[str, int]:
    """Parse ``HOST:PORT`` into a bindable address."""
    host, separator, port_text = value.rpartition(":")
    if not separator or not port_text.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    return host or "127.0.0.1", int(port_text)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="procctl")
    parser.add_argument("--config", required=False, default=None)
    parser.add_argument("--tcp", type=parse_tcp_address, required=False, default=None)
    parser.add_argument("--unix", required=False, default=None)
    parser.add_argument("--stdio", action="store_true")
    parser.add_argument("--setup", action="append", default=[], metavar="MODULE:FUNCTION")
    parser.add_argument("--audit-log", required=False, default=None)
    parser.add_argument("--max-line-bytes", type=int, required=False, default=None)
    parser.add_argument("--release-before-invoke", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the procedure server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    host: str | None = None
    port: int | None = None
    if args.tcp is not None:
        host, port = args.tcp
    overrides = CliOverrides(
        host=host,
        port=port,
        unix_socket=args.unix,
        hold_registry_during_call=False if args.release_before_invoke else None,
        max_line_bytes=args.max_line_bytes,
        audit_path=Path(args.audit_log) if args.audit_log is not None else None,
    )
    try:
        server = create_server(config_path=args.config, cli_overrides=overrides)
        for target in args.setup:
            load_setup_function(target)(server.registry)
    except (ValueError, ImportError) as error:
        parser.error(str(error))
    except RegistrationError as error:
        sys.stderr.write(f"procctl: {error}\n")
        return 2

    if args.stdio or not (server.config.server.port or server.config.server.unix_socket):
        try:
            server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
        except TransportError as error:
            sys.stderr.write(f"procctl: {error}\n")
            return 1
        return 0
    server.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
