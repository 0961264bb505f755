import queue
import socket
import threading

import pytest

from robocup_vision.game_controller import (
    GameControllerListener,
    ListenerConfig,
    main,
    to_message,
)
from robocup_vision.protocol import (
    SPL_COACH_MESSAGE_SIZE,
    GameControlData,
    GameState,
    MAX_NUM_PLAYERS,
    RobotInfo,
    TeamInfo,
)


def _packet(**fields) -> GameControlData:
    teams = [TeamInfo(team_number=5, score=3, coach=RobotInfo(yellow_card_count=1)),
             TeamInfo(team_number=9)]
    return GameControlData(teams=teams, **fields)


def _listener(config=None):
    published = []
    listener = GameControllerListener(config or ListenerConfig(), published.append)
    return listener, published


def test_whitelist_disabled_allows_everything():
    listener, _ = _listener()
    assert listener.is_allowed("10.0.0.1") is True


def test_whitelist_enabled_filters():
    config = ListenerConfig(enable_ip_white_list=True, ip_white_list=("192.168.1.10",))
    listener, _ = _listener(config)
    assert listener.is_allowed("192.168.1.10") is True
    assert listener.is_allowed("192.168.1.11") is False


def test_valid_packet_is_published():
    listener, published = _listener()
    data = _packet(packet_number=42, state=GameState.READY)
    message = listener.handle_datagram(data.to_bytes(), "10.0.0.2")
    assert published == [message]
    assert message["packet_number"] == 42
    assert message["state"] == GameState.READY
    assert message["teams"][0]["team_number"] == 5
    assert message["teams"][0]["coach"]["yellow_card_count"] == 1


def test_wrong_length_is_ignored():
    listener, published = _listener()
    assert listener.handle_datagram(_packet().to_bytes()[:-4], "10.0.0.2") is None
    assert published == []


def test_wrong_version_is_ignored():
    listener, published = _listener()
    payload = _packet(version=11).to_bytes()
    assert listener.handle_datagram(payload, "10.0.0.2") is None
    assert published == []


def test_sender_outside_whitelist_is_ignored():
    config = ListenerConfig(enable_ip_white_list=True, ip_white_list=("10.0.0.1",))
    listener, published = _listener(config)
    assert listener.handle_datagram(_packet().to_bytes(), "10.0.0.2") is None
    assert published == []


def test_to_message_copies_every_slot():
    data = _packet(secs_remaining=120)
    message = to_message(data)
    assert message["secs_remaining"] == 120
    assert message["header"] == b"RGme"
    assert len(message["teams"]) == 2
    for team in message["teams"]:
        assert len(team["players"]) == MAX_NUM_PLAYERS
        assert len(team["coach_message"]) == SPL_COACH_MESSAGE_SIZE
        assert all(isinstance(byte, int) for byte in team["coach_message"])


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_serve_receives_udp_packets():
    received = queue.Queue()
    listener = GameControllerListener(ListenerConfig(port=_free_port()), received.put)
    stop_event = threading.Event()
    thread = threading.Thread(target=listener.serve, args=(stop_event,), daemon=True)
    thread.start()
    payload = _packet(packet_number=7).to_bytes()
    message = None
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
            for _ in range(50):
                sender.sendto(payload, ("127.0.0.1", listener.config.port))
                try:
                    message = received.get(timeout=0.1)
                    break
                except queue.Empty:
                    continue
    finally:
        stop_event.set()
        thread.join(timeout=2)
    assert message is not None and message["packet_number"] == 7
    assert not thread.is_alive()


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0