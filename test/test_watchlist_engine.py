import asyncio
import sys
import unittest
from pathlib import Path
from typing import Any, Mapping, Optional

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from watchlist_sync.application.change_notifier import ChangeNotifier
from watchlist_sync.application.engine import WatchlistSyncEngine
from watchlist_sync.application.sync_gateway import RemoteSyncGateway
from watchlist_sync.domain.events import ChangeEvent, HydrationEvent
from watchlist_sync.domain.models import LOCAL_OWNER, MediaKind
from watchlist_sync.infrastructure.identity.static_identity_provider import StaticIdentityProvider
from watchlist_sync.infrastructure.local.in_memory_local_store import InMemoryLocalStore
from watchlist_sync.infrastructure.remote.in_memory_remote_store import InMemoryRemoteStore


class _FlakyRemote(InMemoryRemoteStore):
    """In-memory remote whose writes can be switched to fail or hang."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fail_writes = False
        self.hang_writes = False
        self.read_delay = 0.0
        self.reads: list[str] = []

    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        self.reads.append(owner_id)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return await super().get_document(owner_id)

    async def set_document(self, owner_id: str, payload: Mapping[str, Any], *, merge: bool = True) -> None:
        if self.hang_writes:
            await asyncio.sleep(10)
        if self.fail_writes:
            raise ConnectionError("write rejected")
        await super().set_document(owner_id, payload, merge=merge)


def _engine(documents=None, *, timeout_s: float = 1.0):
    remote = _FlakyRemote(documents or {})
    local = InMemoryLocalStore()
    gateway = RemoteSyncGateway(remote=remote, local=local, timeout_s=timeout_s)
    engine = WatchlistSyncEngine(gateway=gateway, notifier=ChangeNotifier(debounce_ms=0), event_log=False)
    events: list[Any] = []
    engine.subscribe(events.append)
    return engine, remote, local, events


def _changes(events: list[Any]) -> list[ChangeEvent]:
    return [e for e in events if isinstance(e, ChangeEvent)]


class TestEngineScenario(unittest.IsolatedAsyncioTestCase):
    async def test_load_move_remove(self) -> None:
        engine, remote, _, events = _engine(
            {"u1": {"watchlists": {"movies": {"watching": [{"id": 1}]}, "series": {}}}}
        )

        view = await engine.load("u1")
        self.assertEqual(view.watching_ids, frozenset({"1"}))
        self.assertEqual(view.wishlist_ids, frozenset())
        self.assertEqual(view.watched_ids, frozenset())

        self.assertTrue(await engine.move_item("1", "watching", "watched"))
        view = engine.snapshot()
        self.assertEqual(view.watching_ids, frozenset())
        self.assertEqual(view.watched_ids, frozenset({"1"}))

        self.assertTrue(await engine.remove_item("1", "watched"))
        self.assertEqual(engine.snapshot().watched_ids, frozenset())

        document = await remote.get_document("u1")
        self.assertEqual(document["watchlists"]["movies"]["watched"], [])
        self.assertEqual(
            [(e.operation, e.outcome) for e in _changes(events)],
            [("move", "applied"), ("remove", "applied")],
        )
        hydrations = [e for e in events if isinstance(e, HydrationEvent)]
        self.assertEqual(len(hydrations), 1)
        self.assertEqual(hydrations[0].source, "remote")

    async def test_add_twice_and_records(self) -> None:
        engine, _, _, events = _engine()
        await engine.load("u1")

        self.assertTrue(await engine.add_item(603, "wishlist", {"id": 603, "title": "The Matrix"}))
        self.assertFalse(await engine.add_item("603", "wishlist"))
        self.assertEqual(engine.counts()["wishlist"], 1)
        self.assertEqual(engine.get_item_record(603).title, "The Matrix")
        self.assertEqual(len(_changes(events)), 1)

    async def test_add_reports_displaced_category(self) -> None:
        engine, _, _, events = _engine({"u1": {"watchlists": {"movies": {"watching": [5]}}}})
        await engine.load("u1")
        self.assertTrue(await engine.add_item(5, "watched"))
        event = _changes(events)[-1]
        self.assertEqual((event.from_category, event.to_category), ("watching", "watched"))
        self.assertFalse(engine.has_item(5, "watching"))

    async def test_move_between_every_pair(self) -> None:
        categories = ("watching", "wishlist", "watched")
        for src in categories:
            for dst in categories:
                if src == dst:
                    continue
                engine, _, _, _ = _engine({"u1": {"watchlists": {"movies": {src: [9]}}}})
                await engine.load("u1")
                self.assertTrue(await engine.move_item(9, src, dst))
                self.assertTrue(engine.has_item("9", dst))
                self.assertFalse(engine.has_item("9", src))

    async def test_round_trip_through_invalidate(self) -> None:
        engine, _, _, _ = _engine()
        await engine.load("u1")
        await engine.add_item(1, "watching")
        await engine.add_item(2, "wishlist", {"id": 2, "name": "Fargo", "first_air_date": "2014-04-15"})
        await engine.add_item(3, "watched")
        before = engine.snapshot()

        engine.invalidate()
        self.assertIsNone(engine.snapshot())
        after = await engine.load("u1")
        self.assertEqual(after.watching_ids, before.watching_ids)
        self.assertEqual(after.wishlist_ids, before.wishlist_ids)
        self.assertEqual(after.watched_ids, before.watched_ids)
        self.assertIs(engine.get_item_record(2).media_type, MediaKind.TV)

    async def test_opaque_ids_survive_reload(self) -> None:
        engine, _, _, events = _engine()
        await engine.load("u1")
        for item_id in ("007", "7", "tt0111161", "\u00b2"):
            self.assertTrue(await engine.add_item(item_id, "watching"), msg=repr(item_id))
        self.assertEqual([e.outcome for e in _changes(events)], ["applied"] * 4)

        engine.invalidate()
        view = await engine.load("u1")
        self.assertEqual(view.watching_ids, frozenset({"007", "7", "tt0111161", "\u00b2"}))

    async def test_concurrent_adds_all_land(self) -> None:
        engine, remote, _, _ = _engine()
        await engine.load("u1")
        n = 25
        results = await asyncio.gather(*(engine.add_item(i, "wishlist") for i in range(n)))
        self.assertTrue(all(results))
        self.assertEqual(engine.counts()["wishlist"], n)
        document = await remote.get_document("u1")
        self.assertEqual(len(document["watchlists"]["movies"]["wishlist"]), n)

    async def test_mutation_submitted_during_load_waits_for_it(self) -> None:
        engine, remote, _, _ = _engine({"u1": {"watchlists": {"movies": {"watching": [1]}}}})
        remote.read_delay = 0.02
        load = asyncio.ensure_future(engine.load("u1"))
        await asyncio.sleep(0)
        self.assertTrue(await engine.add_item(2, "watching"))
        await load
        self.assertEqual(engine.snapshot().watching_ids, frozenset({"1", "2"}))

    async def test_mutation_before_any_load_fails(self) -> None:
        engine, _, _, events = _engine()
        self.assertFalse(await engine.add_item(1, "watching"))
        self.assertEqual(_changes(events), [])

    async def test_items_for_filters_by_kind(self) -> None:
        engine, _, _, _ = _engine(
            {"u1": {"watchlists": {"movies": {"watching": [{"id": 1, "title": "Heat"}]}, "series": {"watching": [2]}}}}
        )
        await engine.load("u1")
        self.assertEqual([r.id for r in engine.items_for("watching")], ["1", "2"])
        tv = engine.items_for("watching", "tv")
        self.assertEqual([(r.id, r.media_type) for r in tv], [("2", MediaKind.TV)])
        self.assertEqual(engine.items_for("nope"), [])


class TestEngineRollback(unittest.IsolatedAsyncioTestCase):
    async def test_failed_persist_reverts_move(self) -> None:
        engine, remote, local, events = _engine({"u1": {"watchlists": {"movies": {"watching": [1]}}}})
        await engine.load("u1")
        remote.fail_writes = True

        with self.assertLogs("watchlist_sync.application.engine", level="WARNING"):
            self.assertFalse(await engine.move_item("1", "watching", "watched"))

        view = engine.snapshot()
        self.assertIn("1", view.watching_ids)
        self.assertNotIn("1", view.watched_ids)
        failures = [e for e in _changes(events) if e.rolled_back]
        self.assertEqual(len(failures), 1)
        self.assertEqual((failures[0].operation, failures[0].item_id), ("move", "1"))

        # The local mirror follows the reverted state.
        mirror = local.get_blob("flicklet-data:u1")
        self.assertEqual(mirror["watchlists"]["movies"]["watching"], [{"id": 1, "media_type": "movie"}])

    async def test_persist_timeout_counts_as_failure(self) -> None:
        engine, remote, _, events = _engine(timeout_s=0.02)
        await engine.load("u1")
        remote.hang_writes = True
        with self.assertLogs("watchlist_sync.application.engine", level="WARNING"):
            self.assertFalse(await engine.add_item(1, "watching"))
        self.assertFalse(engine.has_item(1, "watching"))
        self.assertEqual([e.outcome for e in _changes(events)], ["rolled-back"])

    async def test_queue_keeps_going_after_rollback(self) -> None:
        engine, remote, _, _ = _engine()
        await engine.load("u1")
        remote.fail_writes = True
        with self.assertLogs("watchlist_sync.application.engine", level="WARNING"):
            self.assertFalse(await engine.add_item(1, "watching"))
        remote.fail_writes = False
        self.assertTrue(await engine.add_item(2, "watching"))
        self.assertEqual(engine.snapshot().watching_ids, frozenset({"2"}))


class _ExplodingGateway(RemoteSyncGateway):
    async def persist(self, snapshot: Any) -> None:
        raise KeyError("unexpected")


class TestEngineUnexpectedPersistError(unittest.IsolatedAsyncioTestCase):
    async def test_any_persist_error_reverts_and_notifies_once(self) -> None:
        remote = InMemoryRemoteStore({"u1": {"watchlists": {"movies": {"watching": [1]}}}})
        gateway = _ExplodingGateway(remote=remote, local=InMemoryLocalStore())
        engine = WatchlistSyncEngine(gateway=gateway, notifier=ChangeNotifier(debounce_ms=0), event_log=False)
        events: list[Any] = []
        engine.subscribe(events.append)
        await engine.load("u1")

        with self.assertLogs("watchlist_sync.application.engine", level="WARNING"):
            self.assertFalse(await engine.move_item("1", "watching", "watched"))

        view = engine.snapshot()
        self.assertEqual(view.watching_ids, frozenset({"1"}))
        self.assertEqual(view.watched_ids, frozenset())
        self.assertEqual([(e.operation, e.outcome) for e in _changes(events)], [("move", "rolled-back")])


class TestEngineLoading(unittest.IsolatedAsyncioTestCase):
    async def test_concurrent_loads_share_one_fetch(self) -> None:
        engine, remote, _, events = _engine({"u1": {"watchlists": {"movies": {"watched": [3]}}}})
        remote.read_delay = 0.01
        views = await asyncio.gather(engine.load("u1"), engine.load("u1"), engine.load("u1"))
        self.assertEqual(remote.reads, ["u1"])
        self.assertTrue(all(v.watched_ids == frozenset({"3"}) for v in views))
        self.assertEqual(len([e for e in events if isinstance(e, HydrationEvent)]), 1)

    async def test_latest_owner_wins(self) -> None:
        engine, remote, _, _ = _engine(
            {
                "u1": {"watchlists": {"movies": {"watching": [1]}}},
                "u2": {"watchlists": {"movies": {"watching": [2]}}},
            }
        )
        remote.read_delay = 0.01
        first = asyncio.ensure_future(engine.load("u1"))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(engine.load("u2"))
        view_u1, view_u2 = await asyncio.gather(first, second)

        self.assertEqual(view_u1.watching_ids, frozenset({"1"}))
        self.assertEqual(view_u2.watching_ids, frozenset({"2"}))
        self.assertEqual(engine.snapshot().owner_id, "u2")

    async def test_signed_out_data_stays_local(self) -> None:
        engine, remote, local, _ = _engine()
        await engine.load(None)
        self.assertTrue(await engine.add_item(1, "wishlist"))
        self.assertEqual(remote.reads, [])
        self.assertIsNone(await remote.get_document(LOCAL_OWNER))
        self.assertIsNotNone(local.get_blob(f"flicklet-data:{LOCAL_OWNER}"))

    async def test_identity_changes_reload(self) -> None:
        engine, _, _, events = _engine(
            {"u1": {"watchlists": {"movies": {"watching": [1]}}}, "u2": {"watchlists": {"series": {"watched": [7]}}}}
        )
        identity = StaticIdentityProvider("u1")
        engine.bind_identity(identity)
        await engine.start()
        self.assertEqual(engine.snapshot().owner_id, "u1")

        identity.sign_in("u2")
        self.assertIsNone(engine.snapshot())
        await engine.aclose()
        self.assertEqual(engine.snapshot().owner_id, "u2")
        self.assertEqual(engine.snapshot().watched_ids, frozenset({"7"}))

        identity.sign_out()
        # Unbound by aclose(); nothing changes.
        self.assertEqual(engine.snapshot().owner_id, "u2")
        owners = [e.owner_id for e in events if isinstance(e, HydrationEvent)]
        self.assertEqual(owners, ["u1", "u2"])


if __name__ == "__main__":
    unittest.main()
