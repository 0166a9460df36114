"""
Webhook payload parsing.

Raw JSON from the site is validated once here and normalized into either a
MinimalMatch (match id only, open channels) or a RosteredMatch (team rosters,
closed channels with per-member grants). The lifecycle manager only ever sees
these normalized shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from services.match_store import normalize_match_id
from utils.errors import ValidationError

SnowflakeLike = int | str | None


class RosterEntryModel(BaseModel):
    """Player entry as sent by the site: ``{id, nickname, discord_id}``."""

    model_config = ConfigDict(extra="ignore")

    id: SnowflakeLike = None
    nickname: str | None = None
    discord_id: SnowflakeLike = None


class CaptainModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: SnowflakeLike = None
    nickname: str | None = None
    discord_id: SnowflakeLike = None


class TeamsModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    team_a: list[RosterEntryModel] | None = None
    team_b: list[RosterEntryModel] | None = None


class CreateMatchModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    match_id: Any = None
    expires_at: int | None = None
    teams: TeamsModel | None = None
    team_a: list[RosterEntryModel] | None = None
    team_b: list[RosterEntryModel] | None = None
    captain_a: CaptainModel | None = None
    captain_b: CaptainModel | None = None


class ChannelOverrideModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    team_a: SnowflakeLike = None
    team_b: SnowflakeLike = None


class TeardownMatchModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    match_id: Any = None
    channels: ChannelOverrideModel | None = Field(default=None)


@dataclass(frozen=True)
class RosterMember:
    member_id: int
    nickname: str
    player_id: str | None = None


@dataclass(frozen=True)
class MinimalMatch:
    match_id: str
    expires_at: int | None = None


@dataclass(frozen=True)
class RosteredMatch:
    match_id: str
    team_a: tuple[RosterMember, ...]
    team_b: tuple[RosterMember, ...]
    expires_at: int | None = None
    captain_a_id: int | None = None
    captain_b_id: int | None = None


CreateRequest = MinimalMatch | RosteredMatch


@dataclass(frozen=True)
class ChannelOverride:
    """Caller-supplied channel ids; either side may be missing."""

    team_a: str | None = None
    team_b: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.team_a) and bool(self.team_b)


@dataclass(frozen=True)
class TeardownRequest:
    match_id: str
    override: ChannelOverride | None = None


def _format_pydantic_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "Invalid payload: " + "; ".join(parts)


def _parse_snowflake(value: SnowflakeLike) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text.isdigit():
        return None
    return int(text)


def _optional_str(value: SnowflakeLike) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _label(entry: RosterEntryModel) -> str:
    if entry.nickname:
        return entry.nickname
    if entry.id is not None:
        return f"player {entry.id}"
    return "unknown player"


def _resolve_roster(
    entries: list[RosterEntryModel], missing: list[str]
) -> tuple[RosterMember, ...]:
    members = []
    for entry in entries:
        member_id = _parse_snowflake(entry.discord_id)
        if member_id is None:
            missing.append(_label(entry))
            continue
        members.append(
            RosterMember(
                member_id=member_id,
                nickname=entry.nickname or str(member_id),
                player_id=_optional_str(entry.id),
            )
        )
    return tuple(members)


def _resolve_captain(
    captain: CaptainModel | None, roster: tuple[RosterMember, ...]
) -> int | None:
    if captain is None:
        return None
    direct = _parse_snowflake(captain.discord_id)
    if direct is not None:
        return direct
    player_id = _optional_str(captain.id)
    for member in roster:
        if player_id is not None and member.player_id == player_id:
            return member.member_id
    return None


def parse_create_request(body: Any) -> CreateRequest:
    """
    Validate a create webhook body and normalize it.

    Raises:
        ValidationError: On a non-object body, a missing match_id, a roster
            for only one team, or roster members without a usable discord_id
            (all of them named at once).
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        model = CreateMatchModel.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(_format_pydantic_error(e)) from e

    match_id = normalize_match_id(model.match_id)

    team_a_entries = model.team_a
    team_b_entries = model.team_b
    if model.teams is not None:
        team_a_entries = model.teams.team_a if model.teams.team_a is not None else team_a_entries
        team_b_entries = model.teams.team_b if model.teams.team_b is not None else team_b_entries

    if not team_a_entries and not team_b_entries:
        return MinimalMatch(match_id=match_id, expires_at=model.expires_at)
    if not team_a_entries or not team_b_entries:
        empty_side = "team_a" if not team_a_entries else "team_b"
        raise ValidationError(
            f"Roster for {empty_side} is empty; send both rosters or neither"
        )

    missing: list[str] = []
    team_a = _resolve_roster(team_a_entries or [], missing)
    team_b = _resolve_roster(team_b_entries or [], missing)
    if missing:
        raise ValidationError("Players without discord_id: " + ", ".join(missing))

    return RosteredMatch(
        match_id=match_id,
        team_a=team_a,
        team_b=team_b,
        expires_at=model.expires_at,
        captain_a_id=_resolve_captain(model.captain_a, team_a),
        captain_b_id=_resolve_captain(model.captain_b, team_b),
    )


def parse_teardown_request(body: Any) -> TeardownRequest:
    """
    Validate a teardown webhook body and normalize it.

    Raises:
        ValidationError: On a non-object body or a missing match_id.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        model = TeardownMatchModel.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(_format_pydantic_error(e)) from e

    override = None
    if model.channels is not None:
        override = ChannelOverride(
            team_a=_optional_str(model.channels.team_a),
            team_b=_optional_str(model.channels.team_b),
        )
    return TeardownRequest(match_id=normalize_match_id(model.match_id), override=override)
