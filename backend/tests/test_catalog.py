"""
ScentMatch Backend — Catalog Tests
====================================

What:  Perfume / note CRUD, the note pyramid, filters, and the demo seed.

What we test:
    ✅ Writes require X-Admin-Key; reads are public
    ✅ Note names are unique; a note links to a perfume at most once
    ✅ Notes come back ordered top → heart → base
    ✅ Filtering by brand, tier, intensity, note, season, climate; paging
    ✅ Untagged listings page and count in SQL
    ✅ Levels outside top/heart/base are only rejected at the API
    ✅ Deleting a perfume or note removes its links
    ✅ Demo seed is idempotent
"""

import pytest
from sqlalchemy import event, func, select

from scentmatch.models import Note, Perfume, PerfumeNote
from scentmatch.services.catalog_service import catalog_service

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


async def _create_note(client, name, family):
    response = await client.post(
        "/notes", json={"name": name, "noteFamily": family}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 201, response.text
    return response.json()


def _perfume_payload(**overrides):
    payload = {
        "name": "Bleu de Chanel",
        "brand": "Chanel",
        "genderMarketing": "masculine",
        "priceTier": "niche",
        "approximatePrice": 135.0,
        "releaseYear": 2010,
        "concentration": "EDP",
        "intensityTag": "moderate",
        "seasonTags": ["Fall", "winter", "fall"],
        "climateTags": ["cold", "mild"],
    }
    payload.update(overrides)
    return payload


async def _create_perfume(client, **overrides):
    response = await client.post(
        "/perfumes", json=_perfume_payload(**overrides), headers=ADMIN_HEADERS
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestAdminGuard:

    @pytest.mark.asyncio
    async def test_write_without_key_is_401(self, test_client):
        response = await test_client.post("/notes", json={"name": "Rose", "noteFamily": "floral"})

        assert response.status_code == 401
        assert response.json()["error"] == "Admin credentials required"

    @pytest.mark.asyncio
    async def test_write_with_wrong_key_is_401(self, test_client):
        response = await test_client.post(
            "/notes",
            json={"name": "Rose", "noteFamily": "floral"},
            headers={"X-Admin-Key": "guess"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_reads_need_no_key(self, test_client):
        assert (await test_client.get("/notes")).status_code == 200
        assert (await test_client.get("/perfumes")).status_code == 200


class TestNotes:

    @pytest.mark.asyncio
    async def test_create_get_and_list_notes(self, test_client):
        rose = await _create_note(test_client, "Rose", "Floral")
        await _create_note(test_client, "Cedar", "woody")

        assert rose["noteFamily"] == "floral"
        fetched = await test_client.get(f"/notes/{rose['id']}")
        assert fetched.json()["name"] == "Rose"

        listing = (await test_client.get("/notes")).json()
        assert [n["name"] for n in listing["notes"]] == ["Cedar", "Rose"]
        assert listing["totalCount"] == 2

        woody = (await test_client.get("/notes", params={"family": "Woody"})).json()
        assert [n["name"] for n in woody["notes"]] == ["Cedar"]

    @pytest.mark.asyncio
    async def test_duplicate_note_name_is_409(self, test_client):
        await _create_note(test_client, "Rose", "floral")

        response = await test_client.post(
            "/notes", json={"name": "Rose", "noteFamily": "floral"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 409
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unknown_note_is_404(self, test_client):
        response = await test_client.get("/notes/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404


class TestPerfumes:

    @pytest.mark.asyncio
    async def test_create_perfume_with_pyramid(self, test_client):
        sandalwood = await _create_note(test_client, "Sandalwood", "woody")
        bergamot = await _create_note(test_client, "Bergamot", "citrus")
        cedar = await _create_note(test_client, "Cedar", "woody")

        perfume = await _create_perfume(
            test_client,
            notes=[
                {"noteId": sandalwood["id"], "level": "base"},
                {"noteId": bergamot["id"], "level": "top"},
                {"noteId": cedar["id"], "level": "heart"},
            ],
        )

        assert perfume["seasonTags"] == ["fall", "winter"]
        assert [(n["name"], n["noteLevel"]) for n in perfume["notes"]] == [
            ("Bergamot", "top"),
            ("Cedar", "heart"),
            ("Sandalwood", "base"),
        ]

        fetched = (await test_client.get(f"/perfumes/{perfume['id']}")).json()
        assert fetched["notes"] == perfume["notes"]

    @pytest.mark.asyncio
    async def test_create_with_unknown_note_is_404(self, test_client):
        response = await test_client.post(
            "/perfumes",
            json=_perfume_payload(
                notes=[{"noteId": "00000000-0000-0000-0000-000000000000", "level": "top"}]
            ),
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_note_level_is_400(self, test_client):
        rose = await _create_note(test_client, "Rose", "floral")

        response = await test_client.post(
            "/perfumes",
            json=_perfume_payload(notes=[{"noteId": rose["id"], "level": "middle"}]),
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stored_levels_outside_the_pyramid_are_served_last(self, test_client, db_session):
        perfume = Perfume(
            name="Imported",
            brand="Dataset",
            gender_marketing="unisex",
            price_tier="niche",
            intensity_tag="moderate",
        )
        amber = Note(name="Amber", note_family="resinous")
        iris = Note(name="Iris", note_family="powdery")
        lemon = Note(name="Lemon", note_family="citrus")
        db_session.add_all([perfume, amber, iris, lemon])
        await db_session.flush()
        db_session.add_all([
            PerfumeNote(perfume_id=perfume.id, note_id=iris.id, note_level="middle"),
            PerfumeNote(perfume_id=perfume.id, note_id=amber.id, note_level="base"),
            PerfumeNote(perfume_id=perfume.id, note_id=lemon.id, note_level="top"),
        ])
        await db_session.commit()

        response = await test_client.get(f"/perfumes/{perfume.id}")

        assert response.status_code == 200
        assert [(n["name"], n["noteLevel"]) for n in response.json()["notes"]] == [
            ("Lemon", "top"),
            ("Amber", "base"),
            ("Iris", "middle"),
        ]

    @pytest.mark.asyncio
    async def test_update_perfume(self, test_client):
        perfume = await _create_perfume(test_client)

        response = await test_client.patch(
            f"/perfumes/{perfume['id']}",
            json={"priceTier": "designer", "approximatePrice": None, "name": None},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["priceTier"] == "designer"
        assert body["approximatePrice"] is None
        assert body["name"] == "Bleu de Chanel"

    @pytest.mark.asyncio
    async def test_delete_perfume_removes_links(self, test_client, database):
        rose = await _create_note(test_client, "Rose", "floral")
        perfume = await _create_perfume(test_client, notes=[{"noteId": rose["id"], "level": "heart"}])

        response = await test_client.delete(f"/perfumes/{perfume['id']}", headers=ADMIN_HEADERS)
        assert response.status_code == 204
        assert (await test_client.get(f"/perfumes/{perfume['id']}")).status_code == 404

        async with database.session() as session:
            links = await session.execute(select(func.count()).select_from(PerfumeNote))
            assert links.scalar_one() == 0
            notes = await session.execute(select(func.count()).select_from(Note))
            assert notes.scalar_one() == 1


class TestLinks:

    @pytest.mark.asyncio
    async def test_link_and_unlink_note(self, test_client):
        rose = await _create_note(test_client, "Rose", "floral")
        perfume = await _create_perfume(test_client)
        url = f"/perfumes/{perfume['id']}/notes"

        linked = await test_client.post(
            url, json={"noteId": rose["id"], "level": "heart"}, headers=ADMIN_HEADERS
        )
        assert linked.status_code == 201
        assert [n["name"] for n in linked.json()["notes"]] == ["Rose"]

        duplicate = await test_client.post(
            url, json={"noteId": rose["id"], "level": "top"}, headers=ADMIN_HEADERS
        )
        assert duplicate.status_code == 409

        removed = await test_client.delete(f"{url}/{rose['id']}", headers=ADMIN_HEADERS)
        assert removed.status_code == 204
        again = await test_client.delete(f"{url}/{rose['id']}", headers=ADMIN_HEADERS)
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_deleting_note_removes_it_from_perfumes(self, test_client):
        rose = await _create_note(test_client, "Rose", "floral")
        oud = await _create_note(test_client, "Oud", "woody")
        perfume = await _create_perfume(
            test_client,
            notes=[{"noteId": rose["id"], "level": "heart"}, {"noteId": oud["id"], "level": "base"}],
        )

        response = await test_client.delete(f"/notes/{rose['id']}", headers=ADMIN_HEADERS)
        assert response.status_code == 204

        fetched = (await test_client.get(f"/perfumes/{perfume['id']}")).json()
        assert [n["name"] for n in fetched["notes"]] == ["Oud"]


class TestListing:

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, test_client):
        rose = await _create_note(test_client, "Rose", "floral")
        await _create_perfume(test_client, notes=[{"noteId": rose["id"], "level": "heart"}])
        await _create_perfume(
            test_client,
            name="Light Blue",
            brand="Dolce & Gabbana",
            priceTier="designer",
            intensityTag="light",
            seasonTags=["summer"],
            climateTags=["hot"],
        )
        await _create_perfume(test_client, name="Allure", seasonTags=["spring"], climateTags=["mild"])

        async def names(**params):
            response = await test_client.get("/perfumes", params=params)
            assert response.status_code == 200
            return [p["name"] for p in response.json()["perfumes"]]

        assert await names(brand="chanel") == ["Allure", "Bleu de Chanel"]
        assert await names(priceTier="designer") == ["Light Blue"]
        assert await names(intensity="light") == ["Light Blue"]
        assert await names(note="rose") == ["Bleu de Chanel"]
        assert await names(season="Summer") == ["Light Blue"]
        assert await names(climate="mild") == ["Allure", "Bleu de Chanel"]

        page = await test_client.get("/perfumes", params={"limit": 2, "offset": 0})
        body = page.json()
        assert page.headers["X-Total-Count"] == "3"
        assert body["totalCount"] == 3
        assert body["hasMore"] is True
        assert len(body["perfumes"]) == 2

        last = (await test_client.get("/perfumes", params={"limit": 2, "offset": 2})).json()
        assert last["hasMore"] is False
        assert len(last["perfumes"]) == 1

    @pytest.mark.asyncio
    async def test_pages_beyond_the_first(self, test_client, database):
        for i in range(1, 6):
            await _create_perfume(test_client, name=f"P{i}")
        await _create_perfume(test_client, name="Sauvage", brand="Dior")

        statements = []

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(database.engine.sync_engine, "before_cursor_execute", capture)
        try:
            middle = await test_client.get(
                "/perfumes", params={"brand": "Chanel", "limit": 2, "offset": 2}
            )
        finally:
            event.remove(database.engine.sync_engine, "before_cursor_execute", capture)

        body = middle.json()
        assert [p["name"] for p in body["perfumes"]] == ["P3", "P4"]
        assert body["totalCount"] == 5
        assert body["hasMore"] is True
        # Without a tag filter the database does the paging and counting
        assert any("LIMIT" in s.upper() and "FROM perfumes" in s for s in statements)
        assert any("count(*)" in s.lower() for s in statements)

        past_end = (await test_client.get("/perfumes", params={"limit": 2, "offset": 10})).json()
        assert past_end["perfumes"] == []
        assert past_end["totalCount"] == 6
        assert past_end["hasMore"] is False

        # Tag filters page over the filtered rows
        tagged = (
            await test_client.get("/perfumes", params={"season": "winter", "limit": 2, "offset": 4})
        ).json()
        assert [p["name"] for p in tagged["perfumes"]] == ["P5", "Sauvage"]
        assert tagged["totalCount"] == 6
        assert tagged["hasMore"] is False

    @pytest.mark.asyncio
    async def test_limit_out_of_range_is_400(self, test_client):
        response = await test_client.get("/perfumes", params={"limit": 0})

        assert response.status_code == 400


class TestDemoSeed:

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        first = await catalog_service.seed_demo_catalog(db_session)
        await db_session.commit()
        second = await catalog_service.seed_demo_catalog(db_session)
        await db_session.commit()

        assert first.id == second.id
        assert [(n.name, n.note_level) for n in second.notes] == [
            ("Bergamot", "top"),
            ("Cedar", "heart"),
            ("Sandalwood", "base"),
        ]
        perfumes = await db_session.execute(select(func.count()).select_from(Perfume))
        notes = await db_session.execute(select(func.count()).select_from(Note))
        assert perfumes.scalar_one() == 1
        assert notes.scalar_one() == 3

    @pytest.mark.asyncio
    async def test_seed_script_populates_database(self, database, test_client):
        from scentmatch.scripts.seed_catalog import seed

        await seed(database)

        listing = (await test_client.get("/perfumes", params={"brand": "Chanel"})).json()
        assert [p["name"] for p in listing["perfumes"]] == ["Bleu de Chanel"]
