"""
Contract tests for the Catalog Model and Catalog Loader.

- Normalization keeps only playable songs and usable edges
- Manifests unwrap from every published shape
- Loader failures surface as CatalogLoadError (HTTP mocked with httpx.MockTransport)
"""

import httpx
import pytest

from smartbridge.catalog.loader import CatalogLoader, catalog_from_manifest, unwrap_project
from smartbridge.catalog.models import normalize_catalog, normalize_connection, normalize_song
from smartbridge.errors import CatalogInvalid, CatalogLoadError
from smartbridge.tests.contracts.test_doubles import bridge_key, create_manifest, song_key

SHARE_ID = "0123456789abcdef01234567"


class TestSongNormalization:
    def test_files_a_b_become_variants(self):
        song = normalize_song({"slot": 2, "title": "Two", "files": {"a": {"s3Key": "x"}, "b": {"s3Key": "y"}}}, 0)

        assert song.slot == 2
        assert song.variants["a"].source_key == "x"
        assert song.variants["b"].source_key == "y"

    def test_album_master_is_variant_a(self):
        song = normalize_song({"slot": 1, "files": {"album": {"s3Key": "master.wav"}}}, 0)

        assert song.variant_for("a") == ("a", song.variants["a"])
        assert song.variants["a"].source_key == "master.wav"

    def test_slot_falls_back_to_position(self):
        song = normalize_song({"title": "Untitled", "s3Key": "k"}, 4)

        assert song.slot == 5

    def test_title_fallbacks(self):
        assert normalize_song({"slot": 1, "titleJson": {"title": "From JSON"}}, 0).title == "From JSON"
        assert normalize_song({"slot": 1, "name": "Named"}, 0).title == "Named"
        assert normalize_song({"slot": 3}, 0).title == "Track 3"

    def test_song_without_keys_is_not_playable(self):
        song = normalize_song({"slot": 1, "files": {"a": {"s3Key": ""}}}, 0)

        assert song.is_playable is False
        with pytest.raises(CatalogInvalid):
            song.variant_for("a")


class TestConnectionNormalization:
    def test_slots_from_key(self):
        conn = normalize_connection("3-1", {"bridge": {"s3Key": "b31"}, "toChoice": "b"})

        assert (conn.from_slot, conn.to_slot) == (3, 1)
        assert conn.from_choice == "a", "Anything other than 'b' is variant 'a'"
        assert conn.to_choice == "b"

    def test_bridge_without_key_uses_playback_url(self):
        conn = normalize_connection("1-2", {"bridge": {"playbackUrl": "https://cdn/b12.mp3"}})

        assert conn.bridge.source_key == "https://cdn/b12.mp3"

    def test_connection_without_bridge_is_dropped(self):
        assert normalize_connection("1-2", {"fromChoice": "a"}) is None
        assert normalize_connection("garbage", {"bridge": {"s3Key": "x"}}) is None


class TestCatalogNormalization:
    def test_unplayable_and_duplicate_songs_are_dropped(self):
        catalog = normalize_catalog(
            [
                {"slot": 1, "title": "One", "s3Key": "one"},
                {"slot": 1, "title": "Dup", "s3Key": "dup"},
                {"slot": 2, "title": "Silent"},
            ],
            {},
        )

        assert [song.title for song in catalog.songs] == ["One"]

    def test_edges_to_unknown_songs_are_dropped(self):
        catalog = normalize_catalog(
            [{"slot": 1, "s3Key": "one"}, {"slot": 2, "s3Key": "two"}],
            {
                "1-2": {"bridge": {"s3Key": "b12"}},
                "1-9": {"bridge": {"s3Key": "b19"}},
                "2-2": {"bridge": {"s3Key": "b22"}},
            },
        )

        assert set(catalog.connections) == {"1-2"}

    def test_no_playable_songs_raises(self):
        with pytest.raises(CatalogInvalid):
            normalize_catalog([{"slot": 1}], {}, release_id="empty")

    def test_songs_are_sorted_by_slot(self):
        catalog = normalize_catalog([{"slot": 3, "s3Key": "c"}, {"slot": 1, "s3Key": "a"}], {})

        assert catalog.playable_slots == [1, 3]


class TestManifestShapes:
    @pytest.mark.parametrize("wrapped", [True, False])
    def test_catalog_from_manifest(self, wrapped):
        catalog = catalog_from_manifest(create_manifest((1, 2), wrapped=wrapped), release_id="r")

        assert catalog.playable_slots == [1, 2]
        assert catalog.connection(1, 2).bridge.source_key == bridge_key(1, 2)
        assert catalog.song(2).variants["b"].source_key == song_key(2, "b")
        assert catalog.title == "Test Album"
        assert catalog.artist == "Test Artist"

    def test_snapshot_without_project(self):
        project = {"catalog": {"songs": []}}
        assert unwrap_project({"snapshot": project}) is project

    def test_connections_under_catalog(self):
        document = {
            "catalog": {
                "songs": [{"slot": 1, "s3Key": "a"}, {"slot": 2, "s3Key": "b"}],
                "connections": {"2-1": {"bridge": {"s3Key": "b21"}}},
            }
        }
        catalog = catalog_from_manifest(document)

        assert set(catalog.connections) == {"2-1"}


class TestCatalogLoader:
    def _loader(self, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return CatalogLoader("https://api.test/", client=client)

    def test_share_id_maps_to_publish_url(self):
        loader = self._loader(lambda request: httpx.Response(404))

        assert loader.manifest_url(SHARE_ID) == f"https://api.test/publish/{SHARE_ID}.json"
        assert loader.manifest_url("https://other.test/m.json") == "https://other.test/m.json"

    def test_unknown_release_id_raises(self):
        loader = self._loader(lambda request: httpx.Response(404))

        with pytest.raises(CatalogLoadError):
            loader.manifest_url("not-a-share-id")
        with pytest.raises(CatalogLoadError):
            loader.manifest_url("  ")

    def test_load_catalog_success(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=create_manifest((1, 2, 3)))

        catalog = self._loader(handler).load_catalog(SHARE_ID)

        assert seen == [f"https://api.test/publish/{SHARE_ID}.json"]
        assert catalog.release_id == SHARE_ID
        assert catalog.playable_slots == [1, 2, 3]
        assert len(catalog.connections) == 6

    def test_http_error_raises_catalog_load_error(self):
        loader = self._loader(lambda request: httpx.Response(500))

        with pytest.raises(CatalogLoadError) as exc_info:
            loader.load_catalog(SHARE_ID)

        assert "500" in str(exc_info.value)
        assert exc_info.value.release_id == SHARE_ID

    def test_invalid_json_raises_catalog_load_error(self):
        loader = self._loader(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(CatalogLoadError):
            loader.load_catalog(SHARE_ID)

    def test_transport_error_raises_catalog_load_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(CatalogLoadError):
            self._loader(handler).load_catalog(SHARE_ID)

    def test_manifest_without_songs_raises_catalog_invalid(self):
        loader = self._loader(lambda request: httpx.Response(200, json={"catalog": {"songs": []}}))

        with pytest.raises(CatalogInvalid):
            loader.load_catalog(SHARE_ID)
