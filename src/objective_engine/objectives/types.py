"""Value types shared by the objectives engine.

Definitions are resolved from catalog rows once and passed around as frozen
dataclasses, so nothing below the catalog touches ORM definition rows or
interprets reward strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Coins:
    """Increment the user's coin balance."""

    amount: int


@dataclass(frozen=True)
class Pack:
    """Create an unopened reward pack of the given pack id."""

    pack_id: str


@dataclass(frozen=True)
class Special:
    """No automated effect; fulfilled out of band."""

    token: str


RewardKind = Coins | Pack | Special


def parse_coin_amount(value: str | None) -> int:
    """Parse a coin reward, flooring fractional amounts.

    Invalid, non-finite or non-positive values grant zero.
    """
    if not value:
        return 0
    text = value.strip()
    try:
        amount = int(text)
    except ValueError:
        try:
            amount = math.floor(float(text))
        except (ValueError, OverflowError):
            return 0
    return max(amount, 0)


def resolve_reward(reward_type: str, reward_value: str | None) -> RewardKind:
    """Resolve the stored (reward_type, reward_value) pair into a RewardKind."""
    kind = (reward_type or "").strip().lower()
    if kind == "coins":
        return Coins(parse_coin_amount(reward_value))
    if kind == "pack":
        return Pack((reward_value or "").strip())
    return Special(reward_value or "")


def reward_type_name(reward: RewardKind) -> str:
    """Storage/display name of a reward kind."""
    if isinstance(reward, Coins):
        return "coins"
    if isinstance(reward, Pack):
        return "pack"
    if isinstance(reward, Special):
        return "special"
    raise TypeError(f"Unknown reward kind: {reward!r}")


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectiveDefinition:
    """Immutable-per-season objective configuration."""

    id: str
    code: str
    type: str
    target_value: int
    reward: RewardKind
    name: str = ""
    description: str = ""
    category: str | None = None
    period: str = "season"
    season_code: str | None = None
    sort_order: int = 0
    is_active: bool = True
    reward_value: str = ""


@dataclass(frozen=True)
class ObjectiveSetDefinition:
    """A fixed list of member objective ids with its own reward."""

    id: str
    code: str
    objective_ids: tuple[str, ...]
    reward: RewardKind
    title: str = ""
    description: str = ""
    season_code: str | None = None
    sort_order: int = 0
    is_active: bool = True
    reward_value: str = ""


# ---------------------------------------------------------------------------
# Domain events
# ---------------------------------------------------------------------------


class ObjectiveEventType(str, Enum):
    """Events emitted by the rest of the backend after their own commit."""

    OPEN_PACK = "OPEN_PACK"
    SUBMIT_FANTASY_SQUAD = "SUBMIT_FANTASY_SQUAD"
    FANTASY_POINTS_EARNED = "FANTASY_POINTS_EARNED"
    BATTLE_PLAYED = "BATTLE_PLAYED"
    BATTLE_WON = "BATTLE_WON"
    MONSTER_EVOLVED = "MONSTER_EVOLVED"
    MARKET_BUY = "MARKET_BUY"
    MARKET_SELL = "MARKET_SELL"


# A sale is also a marketplace transaction for the seller, so MARKET_SELL
# advances both marketplace objective types.
REQUIREMENT_MAP: dict[ObjectiveEventType, tuple[str, ...]] = {
    ObjectiveEventType.OPEN_PACK: ("OPEN_PACKS_ANY",),
    ObjectiveEventType.SUBMIT_FANTASY_SQUAD: ("SUBMIT_FANTASY_SQUAD",),
    ObjectiveEventType.FANTASY_POINTS_EARNED: ("EARN_FANTASY_POINTS",),
    ObjectiveEventType.BATTLE_PLAYED: ("PLAY_BATTLES",),
    ObjectiveEventType.BATTLE_WON: ("WIN_BATTLES",),
    ObjectiveEventType.MONSTER_EVOLVED: ("EVOLVE_MONSTERS",),
    ObjectiveEventType.MARKET_BUY: ("USE_MARKETPLACE_BUY",),
    ObjectiveEventType.MARKET_SELL: ("USE_MARKETPLACE_SELL", "USE_MARKETPLACE_BUY"),
}


@dataclass(frozen=True)
class ObjectiveEvent:
    type: ObjectiveEventType
    amount: int = 1


# ---------------------------------------------------------------------------
# Claim results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClaimedReward:
    """What a successful claim granted."""

    source_type: str  # "objective" or "objective_set"
    definition_id: str
    code: str
    reward: RewardKind
    coins_delta: int = 0
    reward_pack_id: str | None = None

    @property
    def reward_type(self) -> str:
        return reward_type_name(self.reward)

    @property
    def reward_value(self) -> str:
        return reward_value_text(self.reward)


def reward_value_text(reward: RewardKind) -> str:
    if isinstance(reward, Coins):
        return str(reward.amount)
    if isinstance(reward, Pack):
        return reward.pack_id
    if isinstance(reward, Special):
        return reward.token
    raise TypeError(f"Unknown reward kind: {reward!r}")
