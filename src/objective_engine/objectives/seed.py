"""Season 1 objective and set catalog."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from objective_engine.db.models import ObjectiveSet, ObjectiveSetObjective, ObjectiveTemplate

logger = logging.getLogger(__name__)

SEASON_CODE = "S1"

OBJECTIVE_SEED_DATA: list[dict] = [
    # Packs
    {
        "code": "PACKS_01",
        "name": "Pack Rookie",
        "description": "Open 5 packs of any kind",
        "category": "packs",
        "type": "OPEN_PACKS_ANY",
        "target_value": 5,
        "reward_type": "coins",
        "reward_value": "250",
        "sort_order": 1,
    },
    {
        "code": "PACKS_02",
        "name": "Pack Addict",
        "description": "Open 25 packs of any kind",
        "category": "packs",
        "type": "OPEN_PACKS_ANY",
        "target_value": 25,
        "reward_type": "pack",
        "reward_value": "silver",
        "sort_order": 2,
    },
    # Collection
    {
        "code": "COLLECT_01",
        "name": "Growing Squad",
        "description": "Own 30 monsters at the same time",
        "category": "collection",
        "type": "OWN_MONSTERS_TOTAL",
        "target_value": 30,
        "reward_type": "coins",
        "reward_value": "500",
        "sort_order": 1,
    },
    {
        "code": "COLLECT_02",
        "name": "Shiny Things",
        "description": "Own 10 monsters of Rare rarity or better",
        "category": "collection",
        "type": "OWN_MONSTERS_RARE_OR_BETTER",
        "target_value": 10,
        "reward_type": "pack",
        "reward_value": "gold",
        "sort_order": 2,
    },
    # Fantasy
    {
        "code": "FANTASY_01",
        "name": "Team Sheet",
        "description": "Submit a fantasy squad in 3 different gameweeks",
        "category": "fantasy",
        "type": "SUBMIT_FANTASY_SQUAD",
        "target_value": 3,
        "reward_type": "coins",
        "reward_value": "300",
        "sort_order": 1,
    },
    {
        "code": "FANTASY_02",
        "name": "Points Machine",
        "description": "Score 250 fantasy points across the season",
        "category": "fantasy",
        "type": "EARN_FANTASY_POINTS",
        "target_value": 250,
        "reward_type": "pack",
        "reward_value": "gold",
        "sort_order": 2,
    },
    # Marketplace
    {
        "code": "MARKET_01",
        "name": "First Purchase",
        "description": "Buy a monster on the marketplace",
        "category": "market",
        "type": "USE_MARKETPLACE_BUY",
        "target_value": 1,
        "reward_type": "coins",
        "reward_value": "100",
        "sort_order": 1,
    },
    {
        "code": "MARKET_02",
        "name": "First Sale",
        "description": "Sell a monster on the marketplace",
        "category": "market",
        "type": "USE_MARKETPLACE_SELL",
        "target_value": 1,
        "reward_type": "coins",
        "reward_value": "100",
        "sort_order": 2,
    },
    {
        "code": "MARKET_03",
        "name": "Market Regular",
        "description": "Complete 10 marketplace transactions, buying or selling",
        "category": "market",
        "type": "USE_MARKETPLACE_BUY",
        "target_value": 10,
        "reward_type": "pack",
        "reward_value": "silver",
        "sort_order": 3,
    },
    # Battles (event-driven only)
    {
        "code": "BATTLE_01",
        "name": "Into the Arena",
        "description": "Play 5 battles",
        "category": "battle",
        "type": "PLAY_BATTLES",
        "target_value": 5,
        "reward_type": "coins",
        "reward_value": "200",
        "sort_order": 1,
    },
    {
        "code": "BATTLE_02",
        "name": "Champion",
        "description": "Win 10 battles",
        "category": "battle",
        "type": "WIN_BATTLES",
        "target_value": 10,
        "reward_type": "special",
        "reward_value": "champion_frame",
        "sort_order": 2,
    },
]

SET_SEED_DATA: list[dict] = [
    {
        "code": "S1_STARTER",
        "title": "Season 1 Starter",
        "description": "Open packs, grow your squad and enter a gameweek",
        "reward_type": "pack",
        "reward_value": "gold",
        "sort_order": 1,
        "objectives": ["PACKS_01", "COLLECT_01", "FANTASY_01"],
    },
    {
        "code": "S1_TRADER",
        "title": "Season 1 Trader",
        "description": "Make your mark on the marketplace",
        "reward_type": "coins",
        "reward_value": "1000",
        "sort_order": 2,
        "objectives": ["MARKET_01", "MARKET_02", "MARKET_03"],
    },
]


async def seed_season_one(db: AsyncSession) -> int:
    """Upsert the Season 1 objectives and sets. Returns number of objectives seeded."""
    existing = {t.code: t for t in (await db.execute(select(ObjectiveTemplate))).scalars()}
    for data in OBJECTIVE_SEED_DATA:
        template = existing.get(data["code"])
        if template is None:
            template = ObjectiveTemplate(code=data["code"], period="season")
            db.add(template)
            existing[data["code"]] = template
        for key, value in data.items():
            setattr(template, key, value)
        template.season_code = SEASON_CODE
        template.is_active = True
    await db.flush()

    sets = {s.code: s for s in (await db.execute(select(ObjectiveSet))).scalars()}
    for data in SET_SEED_DATA:
        members = data["objectives"]
        objective_set = sets.get(data["code"])
        if objective_set is None:
            objective_set = ObjectiveSet(code=data["code"])
            db.add(objective_set)
            sets[data["code"]] = objective_set
        for key, value in data.items():
            if key != "objectives":
                setattr(objective_set, key, value)
        objective_set.season_code = SEASON_CODE
        objective_set.is_active = True
        await db.flush()

        linked = set((await db.execute(
            select(ObjectiveSetObjective.objective_id).where(
                ObjectiveSetObjective.objective_set_id == objective_set.id
            )
        )).scalars())
        for code in members:
            objective_id = existing[code].id
            if objective_id not in linked:
                db.add(ObjectiveSetObjective(objective_set_id=objective_set.id, objective_id=objective_id))

    await db.commit()
    logger.info("Seeded %d objectives and %d sets", len(OBJECTIVE_SEED_DATA), len(SET_SEED_DATA))
    return len(OBJECTIVE_SEED_DATA)
