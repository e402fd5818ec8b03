from __future__ import annotations

import asyncio
from datetime import datetime

from seocrawl.storage.database import Database
from seocrawl.storage.repositories import SeoSettingsRepository


def test_upsert_merges_and_keeps_existing_values(tmp_path) -> None:
    async def scenario():
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'settings.db'}")
        await db.init_db()
        repo = SeoSettingsRepository(session_factory=db.session_factory)

        await repo.upsert(
            "client-1",
            website_url="https://example.com",
            target_keywords=["plumber"],
            meta_title="Acme",
            industry="plumbing",
        )
        await repo.upsert(
            "client-1",
            meta_description="Fast plumbing",
            analyzed_at=datetime(2026, 1, 2, 3, 4, 5),
            analysis_provider="gemini",
        )
        rec = await repo.get("client-1")
        other = await repo.get("client-2")
        await db.close()
        return rec, other

    rec, other = asyncio.run(scenario())
    assert rec.website_url == "https://example.com"
    assert rec.target_keywords == ["plumber"]
    assert rec.meta_title == "Acme"
    assert rec.meta_description == "Fast plumbing"
    assert rec.industry == "plumbing"
    assert rec.analysis_provider == "gemini"
    assert rec.analyzed_at == datetime(2026, 1, 2, 3, 4, 5)
    assert rec.target_locations is None
    assert other is None
