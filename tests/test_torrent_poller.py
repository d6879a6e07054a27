"""Tests for the qBittorrent poller."""

from unittest.mock import AsyncMock

import pytest

from src.models import PollingState
from src.models.enums import EventType, ServiceType
from src.schemas.upstream import Torrent
from src.services.pollers import TorrentPoller, diff_torrents
from src.services.state_store import Snapshot, load_snapshot, save_snapshot


def seen(*torrents):
    return Snapshot(
        seen_ids=[{"hash": t.hash, "progress": t.progress, "name": t.name} for t in torrents]
    )


class TestDiffTorrents:
    """Tests for the pure torrent diff."""

    def test_first_run_reports_every_torrent_as_added(self):
        torrents = [Torrent(hash="aaa", name="Ubuntu ISO", progress=0.2)]

        result = diff_torrents(Snapshot(), torrents)

        assert [e.event_type for e in result.events] == [EventType.TORRENT_ADDED]
        assert result.events[0].body == "Ubuntu ISO"
        assert result.snapshot.seen_ids == [{"hash": "aaa", "progress": 0.2, "name": "Ubuntu ISO"}]

    def test_completion_crossing_emits_once(self):
        before = Torrent(hash="aaa", name="Ubuntu ISO", progress=0.9)
        after = Torrent(hash="aaa", name="Ubuntu ISO", progress=1.0)

        first = diff_torrents(seen(before), [after])
        second = diff_torrents(first.snapshot, [after])

        assert [e.event_type for e in first.events] == [EventType.TORRENT_COMPLETED]
        assert first.events[0].title == "Download Complete"
        assert second.events == []

    def test_already_complete_torrent_is_not_reannounced(self):
        done = Torrent(hash="aaa", name="Done", progress=1.0)
        assert diff_torrents(seen(done), [done]).events == []

    def test_missing_torrent_is_deleted_with_its_last_name(self):
        gone = Torrent(hash="bbb", name="Old Show", progress=0.5)

        result = diff_torrents(seen(gone), [])

        assert len(result.events) == 1
        event = result.events[0]
        assert event.event_type == EventType.TORRENT_DELETED
        assert event.body == "Old Show"
        assert event.metadata == {"source": "qbittorrent", "hash": "bbb"}
        assert result.snapshot.seen_ids == []

    def test_unreadable_snapshot_entries_are_skipped(self):
        snapshot = Snapshot(seen_ids=["not-a-dict", {"progress": 1}])
        result = diff_torrents(snapshot, [])
        assert result.events == []

    def test_entries_with_bad_hash_or_progress_count_as_unseen(self):
        snapshot = Snapshot(
            seen_ids=[{"hash": "aaa", "progress": "bogus", "name": "A"}, {"hash": ["x"]}]
        )
        torrents = [Torrent(hash="aaa", name="A", progress=1.0)]

        result = diff_torrents(snapshot, torrents)

        assert [e.event_type for e in result.events] == [EventType.TORRENT_ADDED]
        assert result.snapshot.seen_ids == [{"hash": "aaa", "progress": 1.0, "name": "A"}]

    def test_deleted_torrent_with_odd_name_uses_hash(self):
        snapshot = Snapshot(seen_ids=[{"hash": "ccc", "progress": "0.5", "name": 12}])

        result = diff_torrents(snapshot, [])

        assert result.events[0].event_type == EventType.TORRENT_DELETED
        assert result.events[0].body == "ccc"


class TestTorrentPoller:
    """Tests for the torrent poller tick."""

    @pytest.mark.asyncio
    async def test_poll_persists_progress(self, db, spy_notifier, session_factory):
        client = AsyncMock()
        client.get_torrents.return_value = [Torrent(hash="aaa", name="Movie", progress=1.0)]
        save_snapshot(
            db,
            ServiceType.QBITTORRENT,
            Snapshot(seen_ids=[{"hash": "aaa", "progress": 0.5, "name": "Movie"}]),
        )
        poller = TorrentPoller(spy_notifier, session_factory=session_factory)
        poller.build_client = lambda session: client

        emitted = await poller.poll()

        assert emitted == 1
        event = spy_notifier.dispatch.await_args.args[1]
        assert event.event_type == EventType.TORRENT_COMPLETED
        db.expire_all()
        snapshot = load_snapshot(db, ServiceType.QBITTORRENT)
        assert snapshot.seen_ids == [{"hash": "aaa", "progress": 1.0, "name": "Movie"}]

    @pytest.mark.asyncio
    async def test_login_failure_keeps_snapshot(self, db, spy_notifier, session_factory):
        from src.services.qbittorrent_client import QBittorrentAuthError

        client = AsyncMock()
        client.get_torrents.side_effect = QBittorrentAuthError("no SID cookie received")
        poller = TorrentPoller(spy_notifier, session_factory=session_factory)
        poller.build_client = lambda session: client

        assert await poller.poll() == 0
        spy_notifier.dispatch.assert_not_awaited()
        assert load_snapshot(db, ServiceType.QBITTORRENT) == Snapshot()

    @pytest.mark.asyncio
    async def test_malformed_stored_entry_does_not_stall_polling(
        self, db, spy_notifier, session_factory
    ):
        db.add(
            PollingState(
                service_type=ServiceType.QBITTORRENT,
                last_seen_ids=[{"hash": "aaa", "progress": "bogus", "name": "A"}],
            )
        )
        db.commit()
        client = AsyncMock()
        client.get_torrents.return_value = [
            Torrent(hash="aaa", name="A", progress=0.3),
            Torrent(hash="nnn", name="N", progress=0.1),
        ]
        poller = TorrentPoller(spy_notifier, session_factory=session_factory)
        poller.build_client = lambda session: client

        assert await poller.poll() == 2

        db.expire_all()
        snapshot = load_snapshot(db, ServiceType.QBITTORRENT)
        assert snapshot.seen_ids == [
            {"hash": "aaa", "progress": 0.3, "name": "A"},
            {"hash": "nnn", "progress": 0.1, "name": "N"},
        ]
        assert await poller.poll() == 0
