"""Wire formats of the RoboCup GameController and SPL team messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Iterator

GAMECONTROLLER_DATA_PORT = 3838
GAMECONTROLLER_RETURN_PORT = 3939
GAMECONTROLLER_STRUCT_HEADER = b"RGme"
GAMECONTROLLER_STRUCT_VERSION = 12
GAMECONTROLLER_RETURN_STRUCT_HEADER = b"RGrt"
GAMECONTROLLER_RETURN_STRUCT_VERSION = 2
MAX_NUM_PLAYERS = 11

SPL_COACH_MESSAGE_PORT = 6666
SPL_COACH_MESSAGE_STRUCT_HEADER = b"SPLC"
SPL_COACH_MESSAGE_STRUCT_VERSION = 4
SPL_COACH_MESSAGE_SIZE = 253

SPL_STANDARD_MESSAGE_STRUCT_HEADER = b"SPL "
SPL_STANDARD_MESSAGE_STRUCT_VERSION = 6
SPL_STANDARD_MESSAGE_DATA_SIZE = 780
SPL_STANDARD_MESSAGE_MAX_NUM_OF_PLAYERS = 5

# SPL team colours
TEAM_BLUE = 0
TEAM_RED = 1
TEAM_YELLOW = 2
TEAM_BLACK = 3
TEAM_WHITE = 4
TEAM_GREEN = 5
TEAM_ORANGE = 6
TEAM_PURPLE = 7
TEAM_BROWN = 8
TEAM_GRAY = 9

# Humanoid league team colours
TEAM_CYAN = 0
TEAM_MAGENTA = 1
DROPBALL = 255

GAME_ROUNDROBIN = 0
GAME_PLAYOFF = 1
GAME_DROPIN = 2

PENALTY_NONE = 0
PENALTY_UNKNOWN = 255
SUBSTITUTE = 14
MANUAL = 15

SPL_ILLEGAL_BALL_CONTACT = 1
SPL_PLAYER_PUSHING = 2
SPL_ILLEGAL_MOTION_IN_SET = 3
SPL_INACTIVE_PLAYER = 4
SPL_ILLEGAL_DEFENDER = 5
SPL_LEAVING_THE_FIELD = 6
SPL_KICK_OFF_GOAL = 7
SPL_REQUEST_FOR_PICKUP = 8
SPL_COACH_MOTION = 9

HL_BALL_MANIPULATION = 30
HL_PHYSICAL_CONTACT = 31
HL_ILLEGAL_ATTACK = 32
HL_ILLEGAL_DEFENSE = 33
HL_PICKUP_OR_INCAPABLE = 34
HL_SERVICE = 35

GAMECONTROLLER_RETURN_MSG_MAN_PENALISE = 0
GAMECONTROLLER_RETURN_MSG_MAN_UNPENALISE = 1
GAMECONTROLLER_RETURN_MSG_ALIVE = 2


class ProtocolError(ValueError):
    """Raised when a packet cannot be encoded or decoded."""


class GameState(IntEnum):
    INITIAL = 0
    READY = 1
    SET = 2
    PLAYING = 3
    FINISHED = 4


class SecondaryState(IntEnum):
    NORMAL = 0
    PENALTYSHOOT = 1
    OVERTIME = 2
    TIMEOUT = 3
    DIRECT_FREEKICK = 4
    INDIRECT_FREEKICK = 5
    PENALTYKICK = 6
    CORNER_KICK = 7
    GOAL_KICK = 8
    THROW_IN = 9


def _pack(layout: struct.Struct, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _fixed(value: bytes, size: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) > size:
        raise ProtocolError(f"{name} is {len(value)} bytes, at most {size} allowed")
    return value


def _check_length(data: bytes, size: int, name: str) -> bytes:
    data = bytes(data)
    if len(data) != size:
        raise ProtocolError(f"{name} needs {size} bytes, got {len(data)}")
    return data


def _chunks(data: bytes, size: int) -> Iterator[bytes]:
    for start in range(0, len(data), size):
        yield data[start:start + size]


_ROBOT_INFO = struct.Struct("<5B?")
_TEAM_HEAD = struct.Struct(f"<4BHB{SPL_COACH_MESSAGE_SIZE}s")
_GAME_HEAD = struct.Struct("<4sH7B4sB3H")
_RETURN = struct.Struct("<4s4B")
_COACH = struct.Struct(f"<4s3B{SPL_COACH_MESSAGE_SIZE}s")
_STANDARD = struct.Struct(
    f"<4sBbbb3f2f2ff2f2f{SPL_STANDARD_MESSAGE_MAX_NUM_OF_PLAYERS}bbhhbbH"
    f"{SPL_STANDARD_MESSAGE_DATA_SIZE}s2x"
)


@dataclass
class RobotInfo:
    """Penalty and card state of one robot."""

    penalty: int = 0
    secs_till_unpenalised: int = 0
    number_of_warnings: int = 0
    yellow_card_count: int = 0
    red_card_count: int = 0
    goal_keeper: bool = False

    SIZE: ClassVar[int] = _ROBOT_INFO.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "RobotInfo":
        data = _check_length(data, cls.SIZE, "RobotInfo")
        return cls(*_ROBOT_INFO.unpack(data))

    def to_bytes(self) -> bytes:
        return _pack(
            _ROBOT_INFO,
            self.penalty,
            self.secs_till_unpenalised,
            self.number_of_warnings,
            self.yellow_card_count,
            self.red_card_count,
            bool(self.goal_keeper),
        )


def _default_players() -> list[RobotInfo]:
    return [RobotInfo() for _ in range(MAX_NUM_PLAYERS)]


@dataclass
class TeamInfo:
    """State of one team as broadcast by the GameController."""

    team_number: int = 0
    team_colour: int = 0
    score: int = 0
    penalty_shot: int = 0
    single_shots: int = 0
    coach_sequence: int = 0
    coach_message: bytes = bytes(SPL_COACH_MESSAGE_SIZE)
    coach: RobotInfo = field(default_factory=RobotInfo)
    players: list[RobotInfo] = field(default_factory=_default_players)

    SIZE: ClassVar[int] = _TEAM_HEAD.size + (MAX_NUM_PLAYERS + 1) * _ROBOT_INFO.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "TeamInfo":
        data = _check_length(data, cls.SIZE, "TeamInfo")
        (team_number, team_colour, score, penalty_shot, single_shots,
         coach_sequence, coach_message) = _TEAM_HEAD.unpack_from(data)
        robots = [RobotInfo.from_bytes(chunk)
                  for chunk in _chunks(data[_TEAM_HEAD.size:], RobotInfo.SIZE)]
        return cls(
            team_number=team_number,
            team_colour=team_colour,
            score=score,
            penalty_shot=penalty_shot,
            single_shots=single_shots,
            coach_sequence=coach_sequence,
            coach_message=coach_message,
            coach=robots[0],
            players=robots[1:],
        )

    def to_bytes(self) -> bytes:
        if len(self.players) != MAX_NUM_PLAYERS:
            raise ProtocolError(
                f"a team has {MAX_NUM_PLAYERS} player slots, got {len(self.players)}"
            )
        head = _pack(
            _TEAM_HEAD,
            self.team_number,
            self.team_colour,
            self.score,
            self.penalty_shot,
            self.single_shots,
            self.coach_sequence,
            _fixed(self.coach_message, SPL_COACH_MESSAGE_SIZE, "coach_message"),
        )
        robots = [self.coach, *self.players]
        return head + b"".join(robot.to_bytes() for robot in robots)


def _default_teams() -> list[TeamInfo]:
    return [TeamInfo(), TeamInfo()]


@dataclass
class GameControlData:
    """The packet the GameController broadcasts to all robots."""

    header: bytes = GAMECONTROLLER_STRUCT_HEADER
    version: int = GAMECONTROLLER_STRUCT_VERSION
    packet_number: int = 0
    players_per_team: int = 0
    game_type: int = GAME_ROUNDROBIN
    state: int = GameState.INITIAL
    first_half: int = 1
    kick_off_team: int = 0
    secondary_state: int = SecondaryState.NORMAL
    secondary_state_info: bytes = bytes(4)
    drop_in_team: int = 0
    drop_in_time: int = 0xFFFF
    secs_remaining: int = 0
    secondary_time: int = 0
    teams: list[TeamInfo] = field(default_factory=_default_teams)

    SIZE: ClassVar[int] = _GAME_HEAD.size + 2 * TeamInfo.SIZE

    @classmethod
    def from_bytes(cls, data: bytes) -> "GameControlData":
        data = _check_length(data, cls.SIZE, "GameControlData")
        (header, version, packet_number, players_per_team, game_type, state,
         first_half, kick_off_team, secondary_state, secondary_state_info,
         drop_in_team, drop_in_time, secs_remaining,
         secondary_time) = _GAME_HEAD.unpack_from(data)
        teams = [TeamInfo.from_bytes(chunk)
                 for chunk in _chunks(data[_GAME_HEAD.size:], TeamInfo.SIZE)]
        return cls(
            header=header,
            version=version,
            packet_number=packet_number,
            players_per_team=players_per_team,
            game_type=game_type,
            state=state,
            first_half=first_half,
            kick_off_team=kick_off_team,
            secondary_state=secondary_state,
            secondary_state_info=secondary_state_info,
            drop_in_team=drop_in_team,
            drop_in_time=drop_in_time,
            secs_remaining=secs_remaining,
            secondary_time=secondary_time,
            teams=teams,
        )

    def to_bytes(self) -> bytes:
        if len(self.teams) != 2:
            raise ProtocolError(f"a game has 2 teams, got {len(self.teams)}")
        head = _pack(
            _GAME_HEAD,
            _fixed(self.header, 4, "header"),
            self.version,
            self.packet_number,
            self.players_per_team,
            self.game_type,
            self.state,
            self.first_half,
            self.kick_off_team,
            self.secondary_state,
            _fixed(self.secondary_state_info, 4, "secondary_state_info"),
            self.drop_in_team,
            self.drop_in_time,
            self.secs_remaining,
            self.secondary_time,
        )
        return head + b"".join(team.to_bytes() for team in self.teams)


@dataclass
class GameControlReturnData:
    """The packet a robot sends back to the GameController."""

    team: int = 0
    player: int = 0
    message: int = GAMECONTROLLER_RETURN_MSG_ALIVE
    header: bytes = GAMECONTROLLER_RETURN_STRUCT_HEADER
    version: int = GAMECONTROLLER_RETURN_STRUCT_VERSION

    SIZE: ClassVar[int] = _RETURN.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "GameControlReturnData":
        data = _check_length(data, cls.SIZE, "GameControlReturnData")
        header, version, team, player, message = _RETURN.unpack(data)
        return cls(team=team, player=player, message=message,
                   header=header, version=version)

    def to_bytes(self) -> bytes:
        return _pack(_RETURN, _fixed(self.header, 4, "header"), self.version,
                     self.team, self.player, self.message)


@dataclass
class CoachMessage:
    """A message from an SPL coach to its team."""

    team: int = 0
    sequence: int = 0
    message: bytes = bytes(SPL_COACH_MESSAGE_SIZE)
    header: bytes = SPL_COACH_MESSAGE_STRUCT_HEADER
    version: int = SPL_COACH_MESSAGE_STRUCT_VERSION

    SIZE: ClassVar[int] = _COACH.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "CoachMessage":
        data = _check_length(data, cls.SIZE, "CoachMessage")
        header, version, team, sequence, message = _COACH.unpack(data)
        return cls(team=team, sequence=sequence, message=message,
                   header=header, version=version)

    def to_bytes(self) -> bytes:
        return _pack(
            _COACH,
            _fixed(self.header, 4, "header"),
            self.version,
            self.team,
            self.sequence,
            _fixed(self.message, SPL_COACH_MESSAGE_SIZE, "message"),
        )


@dataclass
class StandardMessage:
    """The SPL standard team-communication message.

    Distances are in millimetres, angles in radians, times in seconds.
    ``data`` holds only the bytes in use; its length is sent as numOfDataBytes.
    """

    header: bytes = SPL_STANDARD_MESSAGE_STRUCT_HEADER
    version: int = SPL_STANDARD_MESSAGE_STRUCT_VERSION
    player_num: int = -1
    team_num: int = -1
    fallen: int = -1
    pose: tuple[float, float, float] = (0.0, 0.0, 0.0)
    walking_to: tuple[float, float] = (0.0, 0.0)
    shooting_to: tuple[float, float] = (0.0, 0.0)
    ball_age: float = -1.0
    ball: tuple[float, float] = (0.0, 0.0)
    ball_vel: tuple[float, float] = (0.0, 0.0)
    suggestion: tuple[int, ...] = (-1,) * SPL_STANDARD_MESSAGE_MAX_NUM_OF_PLAYERS
    intention: int = -1
    average_walk_speed: int = -1
    max_kick_distance: int = -1
    current_position_confidence: int = -1
    current_side_confidence: int = -1
    data: bytes = b""

    SIZE: ClassVar[int] = _STANDARD.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "StandardMessage":
        data = _check_length(data, cls.SIZE, "StandardMessage")
        values = list(_STANDARD.unpack(data))
        header, version, player_num, team_num, fallen = values[:5]
        pose = tuple(values[5:8])
        walking_to = tuple(values[8:10])
        shooting_to = tuple(values[10:12])
        ball_age = values[12]
        ball = tuple(values[13:15])
        ball_vel = tuple(values[15:17])
        end = 17 + SPL_STANDARD_MESSAGE_MAX_NUM_OF_PLAYERS
        suggestion = tuple(values[17:end])
        (intention, average_walk_speed, max_kick_distance,
         current_position_confidence, current_side_confidence,
         num_of_data_bytes, payload) = values[end:]
        if num_of_data_bytes > SPL_STANDARD_MESSAGE_DATA_SIZE:
            raise ProtocolError(
                f"numOfDataBytes {num_of_data_bytes} exceeds {SPL_STANDARD_MESSAGE_DATA_SIZE}"
            )
        return cls(
            header=header,
            version=version,
            player_num=player_num,
            team_num=team_num,
            fallen=fallen,
            pose=pose,
            walking_to=walking_to,
            shooting_to=shooting_to,
            ball_age=ball_age,
            ball=ball,
            ball_vel=ball_vel,
            suggestion=suggestion,
            intention=intention,
            average_walk_speed=average_walk_speed,
            max_kick_distance=max_kick_distance,
            current_position_confidence=current_position_confidence,
            current_side_confidence=current_side_confidence,
            data=payload[:num_of_data_bytes],
        )

    def to_bytes(self) -> bytes:
        vectors = {"pose": (self.pose, 3), "walking_to": (self.walking_to, 2),
                   "shooting_to": (self.shooting_to, 2), "ball": (self.ball, 2),
                   "ball_vel": (self.ball_vel, 2),
                   "suggestion": (self.suggestion, SPL_STANDARD_MESSAGE_MAX_NUM_OF_PLAYERS)}
        for name, (value, size) in vectors.items():
            if len(value) != size:
                raise ProtocolError(f"{name} needs {size} values, got {len(value)}")
        payload = _fixed(self.data, SPL_STANDARD_MESSAGE_DATA_SIZE, "data")
        return _pack(
            _STANDARD,
            _fixed(self.header, 4, "header"),
            self.version,
            self.player_num,
            self.team_num,
            self.fallen,
            *self.pose,
            *self.walking_to,
            *self.shooting_to,
            self.ball_age,
            *self.ball,
            *self.ball_vel,
            *self.suggestion,
            self.intention,
            self.average_walk_speed,
            self.max_kick_distance,
            self.current_position_confidence,
            self.current_side_confidence,
            len(payload),
            payload,
        )