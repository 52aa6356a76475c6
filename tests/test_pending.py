from __future__ import annotations

import asyncio

import pytest


def test_resolve_settles_exactly_once() -> None:
    from url_switcher.envelope import Response
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable()
        rec = table.register(action="getTabs", connection_id=1, timeout=5.0)
        assert rec.id in table
        assert table.resolve(Response(id=rec.id, result=[1])) is True
        assert await rec.future == [1]
        assert rec.id not in table
        # A duplicate (or late) response finds nothing to settle.
        assert table.resolve(Response(id=rec.id, result=[2])) is False
        assert await rec.future == [1]

    asyncio.run(_main())


def test_error_response_rejects_with_peer_rejected() -> None:
    from url_switcher.envelope import Response
    from url_switcher.errors import PeerRejected
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable()
        rec = table.register(action="switchToURL", connection_id=1, timeout=5.0)
        table.resolve(Response(id=rec.id, error="No tab with id: 5"))
        with pytest.raises(PeerRejected, match="No tab with id: 5"):
            await rec.future

    asyncio.run(_main())


def test_ids_are_monotonic() -> None:
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable()
        ids = [table.register(action="getTabs", connection_id=1, timeout=5.0).id for _ in range(3)]
        assert ids == [1, 2, 3]
        for rid in ids:
            table.discard(rid)
        assert len(table) == 0

    asyncio.run(_main())


def test_per_request_timer_expires_with_timeout() -> None:
    from url_switcher.errors import RequestTimeout
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable()
        rec = table.register(action="getTabs", connection_id=1, timeout=0.05)
        with pytest.raises(RequestTimeout):
            await asyncio.wait_for(rec.future, timeout=2.0)
        assert len(table) == 0

    asyncio.run(_main())


def test_sweep_evicts_only_expired_entries() -> None:
    from url_switcher.errors import RequestTimeout
    from url_switcher.pending import PendingTable

    now = [100.0]

    async def _main() -> None:
        table = PendingTable(clock=lambda: now[0])
        old = table.register(action="getTabs", connection_id=1, timeout=10.0)
        now[0] = 105.0
        fresh = table.register(action="getTabs", connection_id=1, timeout=10.0)

        now[0] = 111.0
        assert table.sweep() == 1
        assert old.id not in table
        assert fresh.id in table
        with pytest.raises(RequestTimeout):
            await old.future
        assert not fresh.future.done()

        assert table.sweep(now=116.0) == 1
        assert len(table) == 0

    asyncio.run(_main())


def test_fail_connection_only_touches_that_connection() -> None:
    from url_switcher.errors import PeerUnavailable
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable()
        a1 = table.register(action="getTabs", connection_id=1, timeout=5.0)
        a2 = table.register(action="getTabs", connection_id=1, timeout=5.0)
        b1 = table.register(action="getTabs", connection_id=2, timeout=5.0)

        assert table.fail_connection(1, PeerUnavailable("gone")) == 2
        for rec in (a1, a2):
            with pytest.raises(PeerUnavailable):
                await rec.future
        assert not b1.future.done()
        assert table.count_for(2) == 1
        table.discard(b1.id)
        assert len(table) == 0

    asyncio.run(_main())


def test_cap_per_connection_fails_fast_without_allocating() -> None:
    from url_switcher.errors import PeerUnavailable
    from url_switcher.pending import PendingTable

    async def _main() -> None:
        table = PendingTable(max_per_connection=2)
        table.register(action="getTabs", connection_id=1, timeout=5.0)
        table.register(action="getTabs", connection_id=1, timeout=5.0)
        with pytest.raises(PeerUnavailable):
            table.register(action="getTabs", connection_id=1, timeout=5.0)
        assert len(table) == 2
        # Another connection has its own budget.
        table.register(action="getTabs", connection_id=2, timeout=5.0)
        assert len(table) == 3

    asyncio.run(_main())
