import asyncio
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
from sqlalchemy import select

from shopapi.db import get_session
from shopapi.main import create_app
from shopapi.models import Product


def _request_for(database):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(db=database)))


def test_rollback_does_not_discard_other_session_writes(database):
    request = _request_for(database)

    async def interleave():
        writer = get_session(request)
        s_a = await writer.__anext__()
        s_a.add(Product(name="A-row", price=Decimal("1.00")))
        s_a.flush()

        reader = get_session(request)
        pending = asyncio.ensure_future(reader.__anext__())
        await asyncio.sleep(0.05)
        # the second session waits while the first is open
        assert not pending.done()

        with pytest.raises(StopAsyncIteration):
            await writer.__anext__()

        s_b = await pending
        s_b.execute(select(Product)).all()
        with pytest.raises(LookupError):
            await reader.athrow(LookupError("not found"))

    asyncio.run(interleave())

    with database.SessionLocal() as s:
        assert [p.name for p in s.scalars(select(Product))] == ["A-row"]


def test_concurrent_creates_survive_failing_requests(database):
    app = create_app(database)

    async def run():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            creates = [ac.post("/products", json={"name": f"c{i}", "price": 1}) for i in range(10)]
            misses = [ac.get(f"/products/{1000 + i}") for i in range(10)]
            deletes = [ac.delete(f"/products/{2000 + i}") for i in range(5)]
            return await asyncio.gather(*creates, *misses, *deletes)

    results = asyncio.run(run())
    created = [r for r in results if r.request.method == "POST"]
    assert [r.status_code for r in created] == [201] * 10
    assert all(r.status_code == 404 for r in results if r.request.method != "POST")

    with database.SessionLocal() as s:
        stored = set(s.scalars(select(Product.id)))
    assert {r.json()["id"] for r in created} == stored
