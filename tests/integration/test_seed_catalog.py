"""Season 1 seed and the SQL-backed definition catalog."""

from __future__ import annotations

from sqlalchemy import func, select

from objective_engine.db.models import ObjectiveSetObjective, ObjectiveTemplate
from objective_engine.objectives.catalog import SqlDefinitionCatalog
from objective_engine.objectives.seed import OBJECTIVE_SEED_DATA, SEASON_CODE, seed_season_one
from objective_engine.objectives.types import Coins, Pack, Special


class TestSeedSeasonOne:
    async def test_seed_is_idempotent(self, session_factory):
        async with session_factory() as db:
            assert await seed_season_one(db) == len(OBJECTIVE_SEED_DATA)
        async with session_factory() as db:
            await seed_season_one(db)

        async with session_factory() as db:
            templates = (await db.execute(select(func.count()).select_from(ObjectiveTemplate))).scalar_one()
            links = (await db.execute(select(func.count()).select_from(ObjectiveSetObjective))).scalar_one()
        assert templates == len(OBJECTIVE_SEED_DATA)
        assert links == 6

    async def test_reseed_restores_changed_values(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        async with session_factory() as db:
            template = (await db.execute(
                select(ObjectiveTemplate).where(ObjectiveTemplate.code == "PACKS_01")
            )).scalar_one()
            template.target_value = 99
            await db.commit()

        async with session_factory() as db:
            await seed_season_one(db)

        catalog = SqlDefinitionCatalog(session_factory)
        assert (await catalog.get_objective("PACKS_01")).target_value == 5


class TestSqlDefinitionCatalog:
    async def test_lookup_by_code_and_id(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        catalog = SqlDefinitionCatalog(session_factory)

        by_code = await catalog.get_objective("PACKS_01")
        by_id = await catalog.get_objective(by_code.id)

        assert by_id == by_code
        assert by_code.reward == Coins(250)
        assert by_code.season_code == SEASON_CODE
        assert await catalog.get_objective("MISSING") is None

    async def test_reward_kinds_resolved(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        catalog = SqlDefinitionCatalog(session_factory)

        assert (await catalog.get_objective("PACKS_02")).reward == Pack("silver")
        assert (await catalog.get_objective("BATTLE_02")).reward == Special("champion_frame")

    async def test_sets_have_member_ids(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        catalog = SqlDefinitionCatalog(session_factory)

        starter = await catalog.get_set("S1_STARTER")
        expected = {(await catalog.get_objective(c)).id for c in ("PACKS_01", "COLLECT_01", "FANTASY_01")}

        assert set(starter.objective_ids) == expected
        assert starter.reward == Pack("gold")
        assert [s.code for s in await catalog.active_sets()] == ["S1_STARTER", "S1_TRADER"]

    async def test_objectives_of_type(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        catalog = SqlDefinitionCatalog(session_factory)

        codes = {d.code for d in await catalog.objectives_of_type("USE_MARKETPLACE_BUY")}

        assert codes == {"MARKET_01", "MARKET_03"}

    async def test_definitions_are_cached_until_refresh(self, session_factory):
        async with session_factory() as db:
            await seed_season_one(db)
        catalog = SqlDefinitionCatalog(session_factory)
        assert len(await catalog.active_objectives()) == len(OBJECTIVE_SEED_DATA)

        async with session_factory() as db:
            template = (await db.execute(
                select(ObjectiveTemplate).where(ObjectiveTemplate.code == "BATTLE_01")
            )).scalar_one()
            template.is_active = False
            await db.commit()

        assert len(await catalog.active_objectives()) == len(OBJECTIVE_SEED_DATA)
        catalog.refresh()
        assert len(await catalog.active_objectives()) == len(OBJECTIVE_SEED_DATA) - 1
