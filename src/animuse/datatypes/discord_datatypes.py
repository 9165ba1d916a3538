"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers. The tracking tables store them as
INTEGER columns while the Discord API hands them around as ``int``; these
wrappers keep guild, channel and user IDs from being mixed up on the way
through the airing pipeline.
"""

from __future__ import annotations

from typing import TypeVar, Union

import discord

_S = TypeVar("_S", bound="Snowflake")


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> GuildID("123456789012345678") == 123456789012345678
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake ID as a string, int, or wrapper of the same kind.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = value
        elif isinstance(value, str):
            self._value = int(value.strip())
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")
        if self._value < 0:
            raise ValueError(f"Snowflake IDs are non-negative, got {self._value}")

    @classmethod
    def from_int(cls: type[_S], value: int) -> _S:
        return cls(value)

    def to_int(self) -> int:
        """Return the raw integer for Discord API calls and SQL parameters."""
        return self._value

    def __int__(self) -> int:
        return self._value

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if type(other) is type(self):
            return self._value == other._value  # type: ignore[attr-defined]
        if isinstance(other, bool):
            return NotImplemented
        if isinstance(other, int):
            return self._value == other
        if isinstance(other, str):
            return str(self._value) == other.strip()
        return NotImplemented

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))


class GuildID(Snowflake):
    """Type-safe wrapper for Discord guild IDs."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(Snowflake):
    """Type-safe wrapper for Discord channel IDs."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.Snowflake) -> "ChannelID":
        return cls(channel.id)


class UserID(Snowflake):
    """Type-safe wrapper for Discord user IDs."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)

    @property
    def mention(self) -> str:
        """Mention markup for message content."""
        return f"<@{self._value}>"
