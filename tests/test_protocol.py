import struct

import pytest

from robocup_vision.protocol import (
    GAMECONTROLLER_STRUCT_VERSION,
    MAX_NUM_PLAYERS,
    SPL_COACH_MESSAGE_SIZE,
    SPL_STANDARD_MESSAGE_DATA_SIZE,
    CoachMessage,
    GameControlData,
    GameControlReturnData,
    GameState,
    ProtocolError,
    RobotInfo,
    SecondaryState,
    StandardMessage,
    TeamInfo,
)


def _sample_game() -> GameControlData:
    teams = [
        TeamInfo(
            team_number=5,
            team_colour=1,
            score=2,
            penalty_shot=1,
            single_shots=0x0102,
            coach_sequence=9,
            coach_message=bytes(range(SPL_COACH_MESSAGE_SIZE)),
            coach=RobotInfo(penalty=3),
            players=[RobotInfo(penalty=i, goal_keeper=(i == 0)) for i in range(MAX_NUM_PLAYERS)],
        ),
        TeamInfo(team_number=7, score=1),
    ]
    return GameControlData(
        packet_number=200,
        players_per_team=4,
        state=GameState.PLAYING,
        secondary_state=SecondaryState.CORNER_KICK,
        secondary_state_info=b"\x05\x01\x00\x00",
        kick_off_team=5,
        secs_remaining=300,
        secondary_time=10,
        teams=teams,
    )


def test_game_control_data_size_is_fixed():
    assert GameControlData.SIZE == 688
    assert len(GameControlData().to_bytes()) == GameControlData.SIZE


def test_game_control_data_header_and_version_on_the_wire():
    raw = GameControlData().to_bytes()
    assert raw[:4] == b"RGme"
    assert struct.unpack_from("<H", raw, 4)[0] == GAMECONTROLLER_STRUCT_VERSION


def test_game_control_data_round_trip():
    game = _sample_game()
    assert GameControlData.from_bytes(game.to_bytes()) == game


def test_game_control_data_decoded_fields():
    decoded = GameControlData.from_bytes(_sample_game().to_bytes())
    assert decoded.state == GameState.PLAYING
    assert decoded.secondary_state == SecondaryState.CORNER_KICK
    assert decoded.teams[0].players[0].goal_keeper is True
    assert decoded.teams[0].single_shots == 0x0102
    assert len(decoded.teams[1].players) == MAX_NUM_PLAYERS


def test_game_control_data_wrong_length_raises():
    raw = GameControlData().to_bytes()
    with pytest.raises(ProtocolError):
        GameControlData.from_bytes(raw[:-1])


def test_game_control_data_needs_two_teams():
    with pytest.raises(ProtocolError):
        GameControlData(teams=[TeamInfo()]).to_bytes()


def test_out_of_range_value_raises():
    with pytest.raises(ProtocolError):
        GameControlData(packet_number=256).to_bytes()


def test_team_info_needs_all_player_slots():
    with pytest.raises(ProtocolError):
        TeamInfo(players=[RobotInfo()]).to_bytes()


def test_team_info_coach_message_too_long():
    with pytest.raises(ProtocolError):
        TeamInfo(coach_message=bytes(SPL_COACH_MESSAGE_SIZE + 1)).to_bytes()


def test_robot_info_round_trip():
    robot = RobotInfo(1, 2, 3, 4, 5, True)
    assert RobotInfo.from_bytes(robot.to_bytes()) == robot


def test_return_data_defaults_on_the_wire():
    raw = GameControlReturnData(team=5, player=3).to_bytes()
    assert raw == b"RGrt\x02\x05\x03\x02"
    assert GameControlReturnData.from_bytes(raw) == GameControlReturnData(team=5, player=3)


def test_coach_message_round_trip():
    message = CoachMessage(team=4, sequence=8, message=b"hello".ljust(SPL_COACH_MESSAGE_SIZE, b"\0"))
    raw = message.to_bytes()
    assert raw[:4] == b"SPLC"
    assert CoachMessage.from_bytes(raw) == message
    assert len(raw) == CoachMessage.SIZE


def test_standard_message_defaults():
    message = StandardMessage()
    raw = message.to_bytes()
    assert raw[:4] == b"SPL "
    assert StandardMessage.SIZE == 852
    decoded = StandardMessage.from_bytes(raw)
    assert decoded == message
    assert decoded.player_num == -1
    assert decoded.suggestion == (-1, -1, -1, -1, -1)
    assert decoded.ball_age == -1.0


def test_standard_message_round_trip_with_data():
    message = StandardMessage(
        player_num=3,
        team_num=12,
        fallen=0,
        pose=(1000.0, -500.0, 0.5),
        walking_to=(250.0, 125.0),
        shooting_to=(4500.0, 0.0),
        ball_age=1.5,
        ball=(300.0, -20.0),
        ball_vel=(0.0, 0.25),
        suggestion=(0, 1, 2, 3, 4),
        intention=3,
        average_walk_speed=200,
        max_kick_distance=3000,
        current_position_confidence=80,
        current_side_confidence=100,
        data=b"team payload",
    )
    assert StandardMessage.from_bytes(message.to_bytes()) == message


def test_standard_message_data_too_long():
    with pytest.raises(ProtocolError):
        StandardMessage(data=bytes(SPL_STANDARD_MESSAGE_DATA_SIZE + 1)).to_bytes()


def test_standard_message_bad_data_count_rejected():
    raw = bytearray(StandardMessage().to_bytes())
    struct.pack_into("<H", raw, 68, SPL_STANDARD_MESSAGE_DATA_SIZE + 1)
    with pytest.raises(ProtocolError):
        StandardMessage.from_bytes(bytes(raw))