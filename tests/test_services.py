"""
Service tests against a temporary sqlite database.
"""

import asyncio
from dataclasses import fields

import pytest
from sqlalchemy import select

from battlestats.database.database import Database
from battlestats.database.models import BattleReport
from battlestats.data_models.pagination import ReportSummary
from battlestats.services import PairingService, ReportHistoryService, ReportStore
from battlestats.operations.pagination import ReportCursor
from battlestats.utils.exceptions import InvalidDateRangeError, InvalidParameterError
from battlestats.utils.timestamps import DateRange, utc_millis, year_range

from conftest import build_mail, build_opponent, build_report

YEAR_2024 = year_range(2024)
NORMALIZED_30 = "eq:1:100_0:30|arm:|ins:|fm:none"


def seconds(year, month, day, hour=0):
    return utc_millis(year, month, day) // 1000 + hour * 3600


@pytest.fixture
def run_scenario(tmp_path):
    """Run an async scenario against a fresh file-backed database."""
    def run(scenario):
        async def runner():
            db = Database(f"sqlite+aiosqlite:///{tmp_path / 'battlestats.db'}")
            await db.initialize()
            try:
                return await scenario(db)
            finally:
                await db.close()

        return asyncio.run(runner())

    return run


async def store(db, *payloads):
    return await db.add_reports((payload, None) for payload in payloads)


def test_add_report_rejects_unrecognized_payload(run_scenario):
    async def scenario(db):
        await db.add_report({"unexpected": True})

    with pytest.raises(InvalidParameterError):
        run_scenario(scenario)


def test_ingest_computes_index_columns(run_scenario):
    async def scenario(db):
        report = await db.add_report(build_report(email_time=seconds(2024, 3, 1), enemy_player_id=-2), "abc")
        await db.add_report(build_mail([build_opponent(5)], mail_time=utc_millis(2024, 3, 2) * 1000))

        async with db.get_session() as session:
            result = await session.execute(select(BattleReport).order_by(BattleReport.id))
            return report.id, list(result.scalars().all())

    report_id, rows = run_scenario(scenario)

    assert [row.id for row in rows] == [report_id, report_id + 1]
    assert rows[0].parent_hash == "abc"
    assert rows[0].enemy_player_id == -2
    assert rows[0].event_time_millis == utc_millis(2024, 3, 1)
    assert rows[1].enemy_player_id is None
    assert rows[1].event_time_millis == utc_millis(2024, 3, 2)
    assert rows[1].payload["opponents"][0]["player_id"] == 5


def test_store_filters_by_governor_window_and_opponent(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 3, 1)),
            build_report(email_time=seconds(2024, 3, 2), enemy_player_id=-2),
            build_report(email_time=seconds(2024, 3, 3), enemy_player_id=0),
            build_report(email_time=seconds(2024, 3, 4), governor_id=200),
            build_report(email_time=seconds(2023, 12, 31)),
            build_report(email_time=seconds(2024, 3, 5), primary=12),
            build_mail([build_opponent(5)], mail_time=utc_millis(2024, 3, 6)),
        )
        report_store = ReportStore(db.async_session)
        return (
            await report_store.fetch_records(100, YEAR_2024.start_millis, YEAR_2024.end_millis),
            await report_store.fetch_records(100, YEAR_2024.start_millis, YEAR_2024.end_millis,
                                             include_npc=True),
            await report_store.fetch_records(100, YEAR_2024.start_millis, YEAR_2024.end_millis,
                                             primary_commander_id=12),
        )

    default, with_npc, primary_only = run_scenario(scenario)

    assert len(default) == 3
    assert len(with_npc) == 4
    assert len(primary_only) == 1
    assert all(YEAR_2024.contains(record.event_time_millis) for record in with_npc)
    assert all(isinstance(record.payload, dict) for record in default)


def test_pairings_are_ordered_by_kill_score(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 1, 5), kill_score=1000),
            build_report(email_time=seconds(2024, 2, 5), kill_score=500),
            build_report(email_time=seconds(2024, 3, 5), primary=12, kill_score=3000),
            build_mail([build_opponent(5), build_opponent(6, start_tick=5), build_opponent(0)],
                       mail_time=utc_millis(2024, 4, 5)),
        )
        return await PairingService(db.async_session).get_pairings(100, YEAR_2024)

    pairings = run_scenario(scenario)

    assert [(item.primary_commander_id, item.secondary_commander_id) for item in pairings] == [(12, 22), (11, 22)]
    assert pairings[1].count == 4
    assert pairings[1].totals.kill_score == 1700
    assert pairings[0].to_dict()["rates"]["sps"] == pytest.approx(0.5)


def test_yearly_pairings_have_monthly_series_and_previous_year(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 2, 10), kill_score=100),
            build_report(email_time=seconds(2024, 11, 20), kill_score=300),
            build_report(email_time=seconds(2023, 6, 1), kill_score=50),
            build_report(email_time=seconds(2023, 6, 1), primary=13),
        )
        return await PairingService(db.async_session).get_yearly_pairings(100, 2024)

    yearly = run_scenario(scenario)

    assert len(yearly.items) == 1
    series = yearly.items[0]
    assert (series.primary_commander_id, series.secondary_commander_id) == (11, 22)
    assert [month.count for month in series.monthly] == [0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0]
    assert series.totals.kill_score == 400
    assert series.previous_count == 1
    assert series.previous_totals.kill_score == 50

    data = yearly.to_dict()
    assert data["period"] == {"start": utc_millis(2024, 1, 1), "end": utc_millis(2025, 1, 1)}
    assert data["items"][0]["monthly"][1]["monthKey"] == "2024-02"


def test_yearly_pairings_for_an_empty_year(run_scenario):
    async def scenario(db):
        await store(db, build_report(email_time=seconds(2024, 2, 10)))
        return await PairingService(db.async_session).get_yearly_pairings(100, 2020)

    yearly = run_scenario(scenario)

    assert yearly.items == []
    assert yearly.to_dict()["count"] == 0


def test_enemies_of_a_pairing(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 5, 1), kill_score=1000, enemy_kill_score=500),
            build_report(email_time=seconds(2024, 5, 2), kill_score=1000, enemy_kill_score=500),
            build_report(email_time=seconds(2024, 5, 3), enemy_primary=55, enemy_secondary=66, kill_score=10),
            build_report(email_time=seconds(2024, 5, 4), primary=12),
            build_report(email_time=seconds(2024, 5, 5), secondary=23),
        )
        return await PairingService(db.async_session).get_enemies(100, YEAR_2024, 11, 22)

    enemies = run_scenario(scenario)

    assert [(item.enemy_primary_commander_id, item.enemy_secondary_commander_id) for item in enemies] == [
        (33, 44), (55, 66)
    ]
    assert enemies[0].count == 2
    assert enemies[0].trade_percentage == 200
    assert enemies[1].count == 1


def test_enemies_for_one_loadout(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 5, 1), equipment="1:100:37"),
            build_report(email_time=seconds(2024, 5, 2), equipment="1:100:33"),
            build_report(email_time=seconds(2024, 5, 3), equipment="1:100:12", enemy_primary=55),
        )
        return await PairingService(db.async_session).get_enemies(
            100, YEAR_2024, 11, 22, granularity="normalized", loadout_key=NORMALIZED_30
        )

    enemies = run_scenario(scenario)

    assert len(enemies) == 1
    assert enemies[0].enemy_primary_commander_id == 33
    assert enemies[0].count == 2


def test_enemies_reject_bad_requests():
    service = PairingService(None)

    with pytest.raises(InvalidParameterError):
        asyncio.run(service.get_enemies(100, YEAR_2024, 11, 22, granularity="exact"))
    with pytest.raises(InvalidParameterError):
        asyncio.run(service.get_enemies(100, YEAR_2024, 0, 22))
    with pytest.raises(InvalidParameterError):
        asyncio.run(service.get_enemies(100, YEAR_2024, 11, -1))


def test_loadouts_group_by_granularity(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 5, 1), equipment="1:100:37"),
            build_report(email_time=seconds(2024, 5, 2), equipment="1:100:33"),
            build_report(email_time=seconds(2024, 5, 3), equipment="1:100:12"),
        )
        service = PairingService(db.async_session)
        return (
            await service.get_loadouts(100, YEAR_2024, 11, 22, granularity="exact"),
            await service.get_loadouts(100, YEAR_2024, 11, 22, granularity="normalized"),
        )

    exact, normalized = run_scenario(scenario)

    assert len(exact) == 3
    assert [(item.key, item.count) for item in normalized] == [
        (NORMALIZED_30, 2),
        ("eq:1:100_0:10|arm:|ins:|fm:none", 1),
    ]
    assert normalized[0].to_dict()["loadout"]["formation"] is None


def test_marches_report_kill_score_distribution(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 5, 1), kill_score=10),
            build_report(email_time=seconds(2024, 5, 2), kill_score=20),
        )
        return await PairingService(db.async_session).get_marches(100, YEAR_2024)

    marches = run_scenario(scenario)

    assert len(marches) == 1
    assert marches[0].average_kill_score == 15
    assert marches[0].kill_score_percentiles.p50 == 15
    assert marches[0].kill_score_percentiles.p90 == pytest.approx(19)


def test_battle_log_counts_battles_and_npc_encounters(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 3, 1, hour=2)),
            build_report(email_time=seconds(2024, 3, 1, hour=5), enemy_player_id=-2),
            build_report(email_time=seconds(2024, 3, 1, hour=6), enemy_player_id=0),
            build_mail([build_opponent(-2), build_opponent(5, start_tick=3)],
                       mail_time=utc_millis(2024, 3, 2) + 3600000),
            build_report(email_time=seconds(2023, 3, 1)),
        )
        return await PairingService(db.async_session).get_battle_log(100, 2024)

    log = run_scenario(scenario)
    days = {day.date: day for day in log.days}

    assert len(log.days) == 366
    assert (log.start_date, log.end_date) == ("2024-01-01", "2024-12-31")
    assert (days["2024-03-01"].battle_count, days["2024-03-01"].npc_count) == (1, 1)
    assert (days["2024-03-02"].battle_count, days["2024-03-02"].npc_count) == (1, 1)
    assert sum(day.battle_count for day in log.days) == 2
    assert log.to_dict()["governorId"] == 100
    assert len(log.to_dict()["days"]) == 366


def test_inverted_window_is_rejected():
    service = PairingService(None)
    inverted = DateRange(start_millis=utc_millis(2024, 5, 1), end_millis=utc_millis(2024, 4, 1), year=2024)

    with pytest.raises(InvalidDateRangeError):
        asyncio.run(service.get_pairings(100, inverted))
    with pytest.raises(InvalidParameterError):
        asyncio.run(service.get_pairings(0, YEAR_2024))


def test_report_listing_pages_cover_every_report(run_scenario):
    async def scenario(db):
        reports = await store(db, *[
            build_report(email_time=seconds(2024, 5, 1 + index // 3), kill_score=index)
            for index in range(8)
        ])
        service = ReportHistoryService(db.async_session)

        pages = []
        after = None
        while True:
            page = await service.list_reports(100, page_size=3, after=after)
            pages.append(page)
            if not page.has_more:
                break
            after = page.next_cursor

        back = await service.list_reports(100, page_size=3, before=pages[2].previous_cursor)
        return reports, pages, back

    reports, pages, back = run_scenario(scenario)

    expected = sorted(((report.event_time_millis, report.id) for report in reports), reverse=True)
    listed = [(item.event_time_millis, item.report_id) for page in pages for item in page.items]

    assert listed == expected
    assert [len(page.items) for page in pages] == [3, 3, 2]
    assert pages[0].previous_cursor is None
    assert pages[-1].next_cursor is None
    assert [item.report_id for item in back.items] == [item.report_id for item in pages[1].items]


def test_report_listing_summaries(run_scenario):
    async def scenario(db):
        await store(
            db,
            build_report(email_time=seconds(2024, 5, 1)),
            build_mail([build_opponent(5), build_opponent(0), build_opponent(7, start_tick=4)],
                       mail_time=utc_millis(2024, 5, 2)),
        )
        return await ReportHistoryService(db.async_session).list_reports(100)

    page = run_scenario(scenario)
    mail_summary, report_summary = page.items

    assert report_summary.battles == 1
    assert (report_summary.kill_score, report_summary.enemy_kill_score) == (1000, 500)
    assert report_summary.trade_percentage == 200
    assert report_summary.duration_millis == 60000
    assert mail_summary.battles == 2
    assert mail_summary.kill_score == 200
    assert mail_summary.self_primary_commander_id == 11
    assert page.to_dict(lambda item: item.to_dict())["count"] == 2
    assert len(report_summary.to_dict()) == len(fields(ReportSummary))


def test_report_listing_rejects_bad_requests():
    service = ReportHistoryService(None)
    token = ReportCursor(timestamp=1, id=1).encode()

    with pytest.raises(InvalidParameterError):
        asyncio.run(service.list_reports(100, after=token, before=token))
    with pytest.raises(InvalidParameterError):
        asyncio.run(service.list_reports(100, after="%%%"))
    with pytest.raises(InvalidParameterError):
        asyncio.run(service.list_reports(-1))
