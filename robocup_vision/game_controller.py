"""Listens for GameController broadcasts and publishes them as messages."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import sys
import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable

from robocup_vision.protocol import (
    GAMECONTROLLER_DATA_PORT,
    GAMECONTROLLER_STRUCT_VERSION,
    GameControlData,
)

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class ListenerConfig:
    """Settings of the listener: port and optional sender whitelist."""

    port: int = GAMECONTROLLER_DATA_PORT
    enable_ip_white_list: bool = False
    ip_white_list: tuple[str, ...] = ()


def to_message(data: GameControlData) -> dict[str, Any]:
    """Convert a decoded packet into a plain message dictionary."""
    message = asdict(data)
    for team in message["teams"]:
        team["coach_message"] = list(team["coach_message"])
    return message


class GameControllerListener:
    """Receives GameController packets, filters them and hands them to ``publish``."""

    def __init__(self, config: ListenerConfig, publish: Callable[[dict[str, Any]], None]):
        self.config = config
        self.publish = publish
        logger.info("port: %d", config.port)
        logger.info("enable_ip_white_list: %s", config.enable_ip_white_list)
        logger.info("ip_white_list(len=%d)", len(config.ip_white_list))
        for index, ip in enumerate(config.ip_white_list):
            logger.info("    --[%d]: %s", index, ip)

    def is_allowed(self, ip: str) -> bool:
        """True if the whitelist is off or the address is on it."""
        return not self.config.enable_ip_white_list or ip in self.config.ip_white_list

    def handle_datagram(self, payload: bytes, remote_ip: str) -> dict[str, Any] | None:
        """Validate one datagram; publish and return its message, or return None."""
        if len(payload) != GameControlData.SIZE:
            logger.info("packet from %s invalid length=%d", remote_ip, len(payload))
            return None
        data = GameControlData.from_bytes(payload)
        if data.version != GAMECONTROLLER_STRUCT_VERSION:
            logger.info("packet from %s invalid version: %d", remote_ip, data.version)
            return None
        if not self.is_allowed(remote_ip):
            logger.info("received packet from %s, but not in ip white list, ignore it", remote_ip)
            return None
        message = to_message(data)
        self.publish(message)
        logger.info("handle packet successfully ip=%s, packet_number=%d",
                    remote_ip, data.packet_number)
        return message

    def serve(self, stop_event: threading.Event) -> None:
        """Receive broadcasts on the configured port until ``stop_event`` is set."""
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            try:
                sock.bind(("", self.config.port))
            except OSError:
                logger.error("bind failed (port=%d)", self.config.port)
                raise
            sock.settimeout(_POLL_INTERVAL)
            logger.info("Listening for UDP broadcast on 0.0.0.0:%d", self.config.port)
            while not stop_event.is_set():
                try:
                    payload, (remote_ip, _) = sock.recvfrom(GameControlData.SIZE)
                except socket.timeout:
                    continue
                except OSError as exc:
                    logger.error("receiving UDP message failed: %s", exc)
                    continue
                self.handle_datagram(payload, remote_ip)


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    raise TypeError(f"cannot serialise {type(value).__name__}")


def _print_message(message: dict[str, Any]) -> None:
    print(json.dumps(message, default=_json_default), flush=True)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="game_controller",
        description="Receive GameController broadcasts and print them as JSON lines.",
    )
    parser.add_argument("--port", type=int, default=GAMECONTROLLER_DATA_PORT)
    parser.add_argument("--enable-ip-white-list", action="store_true")
    parser.add_argument("--ip-white-list", nargs="*", default=[])
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    config = ListenerConfig(
        port=args.port,
        enable_ip_white_list=args.enable_ip_white_list,
        ip_white_list=tuple(args.ip_white_list),
    )
    listener = GameControllerListener(config, _print_message)
    stop_event = threading.Event()
    try:
        listener.serve(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    return 0


if __name__ == "__main__":
    sys.exit(main())