"""Tests for StoredObject, run against both backends."""

import hashlib
import io
from datetime import datetime, timedelta, timezone

import pytest

from stowaway.client import Client
from stowaway.errors import NotFound
from stowaway.model.stored_object import StoredObject, segment_name

from conftest import live_config


@pytest.fixture
def pics(account):
    return account.get_container("pics").create()


class TestInfo:
    """Lazy info and the delete lifecycle."""

    def test_handle_is_lazy(self, pics):
        """get_object() sends nothing and caches nothing."""
        stored = pics.get_object("a.jpg")
        assert not stored.info_retrieved
        assert not stored.exists()

    def test_info(self, pics):
        """Size, type, ETag and modification time after an upload."""
        stored = pics.get_object("a.jpg")
        etag = stored.upload(b"hello")
        assert etag == hashlib.md5(b"hello").hexdigest()
        assert stored.size == 5
        assert stored.etag == etag
        assert stored.content_type == "image/jpeg"
        assert stored.last_modified is not None
        assert stored.info_retrieved

    def test_explicit_content_type(self, pics):
        """An explicit content type wins over the guessed one."""
        stored = pics.get_object("a.bin")
        stored.upload(b"{}", content_type="application/json")
        assert stored.content_type == "application/json"

    def test_upload_invalidates_info(self, pics):
        """A re-upload drops the cached size."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"x")
        assert stored.size == 1
        stored.upload(b"xyz")
        assert not stored.info_retrieved
        assert stored.size == 3

    def test_delete(self, pics):
        """After delete() the handle reports a missing object."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"x")
        stored.delete()
        assert not stored.info_retrieved
        assert not stored.exists()
        with pytest.raises(NotFound):
            stored.size

    def test_delete_missing(self, pics):
        """Deleting an absent object raises NotFound."""
        with pytest.raises(NotFound):
            pics.get_object("absent").delete()

    def test_equality(self, pics):
        """Handles are equal by container, name and segment."""
        assert pics.get_object("a") == pics.get_object("a")
        assert pics.get_object("a") != pics.get_object("b")
        assert pics.get_object_segment("a", 0) != pics.get_object("a")

    def test_empty_name(self, pics):
        """Object names must not be empty."""
        with pytest.raises(ValueError):
            pics.get_object("")


class TestMetadata:
    """Object metadata, content type and expiry."""

    def test_upload_with_metadata(self, pics):
        """Metadata sent with the upload is reported with lower-case keys."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"x", metadata={"Camera": "x100"})
        assert stored.metadata == {"camera": "x100"}

    def test_metadata_replaced(self, pics):
        """set_metadata() replaces the whole map, cached and remote."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"x", metadata={"camera": "x100"})
        stored.reload()
        stored.set_metadata({"Lens": "23mm"})
        assert stored.metadata == {"lens": "23mm"}
        assert stored.reload().metadata == {"lens": "23mm"}

    def test_set_content_type(self, pics):
        """Changing the content type keeps the metadata."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"x", metadata={"camera": "x100"})
        stored.set_content_type("image/png")
        info = stored.reload()
        assert info.content_type == "image/png"
        assert info.metadata == {"camera": "x100"}

    def test_set_delete_at(self, pics):
        """The expiry is reported back, truncated to seconds."""
        stored = pics.get_object("a.log")
        stored.upload(b"x")
        delete_at = datetime(2030, 1, 1, 12, 30, tzinfo=timezone.utc)
        stored.set_delete_at(delete_at)
        assert stored.reload().delete_at == delete_at

    def test_metadata_changes_keep_delete_at(self, pics):
        """Replacing metadata or content type does not drop a pending expiry."""
        stored = pics.get_object("a.log")
        stored.upload(b"x")
        delete_at = datetime(2030, 1, 1, 12, 30, tzinfo=timezone.utc)
        stored.set_delete_at(delete_at)

        stored.set_metadata({"rotated": "yes"})
        assert stored.reload().delete_at == delete_at

        stored.set_content_type("text/plain")
        info = stored.reload()
        assert info.delete_at == delete_at
        assert info.metadata == {"rotated": "yes"}

    def test_metadata_change_on_fresh_handle_keeps_delete_at(self, pics):
        """A handle with nothing cached looks the expiry up before posting."""
        stored = pics.get_object("a.log")
        stored.upload(b"x")
        delete_at = datetime(2030, 1, 1, 12, 30, tzinfo=timezone.utc)
        stored.set_delete_at(delete_at)

        pics.get_object("a.log").set_metadata({"rotated": "yes"})

        assert stored.reload().delete_at == delete_at

    def test_set_delete_at_missing_object(self, pics):
        """Expiry can only be set on an existing object."""
        with pytest.raises(NotFound):
            pics.get_object("absent").set_delete_at(datetime(2030, 1, 1, tzinfo=timezone.utc))


class TestContent:
    """Upload sources, download and copy."""

    def test_upload_from_path(self, pics, tmp_path):
        """A file path is read and uploaded."""
        source = tmp_path / "photo.jpg"
        source.write_bytes(b"jpeg bytes")
        stored = pics.get_object("photo.jpg")
        stored.upload(source)
        assert stored.download() == b"jpeg bytes"

    def test_upload_from_file_object(self, pics):
        """A binary file object is read and uploaded."""
        stored = pics.get_object("a.bin")
        stored.upload(io.BytesIO(b"stream"))
        assert stored.download() == b"stream"

    def test_upload_unsupported_source(self, pics):
        """Unknown sources are rejected before anything is sent."""
        with pytest.raises(TypeError):
            pics.get_object("a.bin").upload(12345)

    def test_upload_into_missing_container(self, account):
        """Uploading into an absent container raises NotFound."""
        with pytest.raises(NotFound):
            account.get_container("absent").get_object("a").upload(b"x")

    def test_download_to_file(self, pics, tmp_path):
        """download_to_file() writes the content and returns its size."""
        stored = pics.get_object("a.jpg")
        stored.upload(b"0123456789")
        target = tmp_path / "out.jpg"
        assert stored.download_to_file(target) == 10
        assert target.read_bytes() == b"0123456789"

    def test_download_missing(self, pics):
        """Downloading an absent object raises NotFound."""
        with pytest.raises(NotFound):
            pics.get_object("absent").download()

    def test_copy(self, account, pics):
        """copy_object() duplicates content and metadata to the target."""
        backup = account.get_container("backup").create()
        source = pics.get_object("a.jpg")
        source.upload(b"x", metadata={"camera": "x100"})
        assert backup.count == 0

        target = source.copy_object(backup.get_object("a-copy.jpg"))

        assert target.download() == b"x"
        assert target.metadata == {"camera": "x100"}
        assert backup.count == 1
        assert source.exists()


class TestSegments:
    """Segmented uploads of large content."""

    def test_segment_name(self):
        """Segments are numbered with eight digits."""
        assert segment_name("video.mp4", 3) == "video.mp4/00000003"

    def test_segment_handle(self, pics):
        """A segment handle lives in the segment container."""
        segment = pics.get_object_segment("video.mp4", 12)
        assert isinstance(segment, StoredObject)
        assert segment.is_segment
        assert segment.container.name == "pics_segments"
        assert segment.name == "video.mp4/00000012"
        assert segment.base_name == "video.mp4"

    def test_negative_segment(self, pics):
        with pytest.raises(ValueError):
            pics.get_object_segment("video.mp4", -1)

    def test_segmented_upload(self, account, pics):
        """Content above the limit is split and reassembled on download."""
        data = bytes(range(256)) * 10
        stored = pics.get_object("video.mp4")

        stored.upload(data, segmentation_size=1000)

        segments = account.get_container("pics_segments")
        assert [o.name for o in segments.list()] == [
            "video.mp4/00000000",
            "video.mp4/00000001",
            "video.mp4/00000002",
        ]
        assert pics.get_object_segment("video.mp4", 2).size == 560
        assert stored.manifest == "pics_segments/video.mp4/"
        assert stored.size == len(data)
        assert stored.download() == data

    def test_smaller_reupload_drops_old_segments(self, account, pics):
        """Segments of an earlier larger upload are not reassembled."""
        stored = pics.get_object("video.mp4")
        stored.upload(b"a" * 3000, segmentation_size=1000)
        stored.upload(b"b" * 1500, segmentation_size=1000)

        assert account.get_container("pics_segments").count == 2
        assert stored.download() == b"b" * 1500

    def test_at_limit_not_segmented(self, account, pics):
        """Content of exactly the limit is uploaded whole."""
        stored = pics.get_object("a.bin")
        stored.upload(b"x" * 1000, segmentation_size=1000)
        assert stored.manifest is None
        assert not account.get_container("pics_segments").exists()


class TestUrls:
    """Public and private URLs."""

    def test_urls(self, http_client):
        """Object names keep their slashes and are quoted otherwise."""
        stored = http_client.container("pics").get_object("2024/a b.jpg")
        assert stored.public_url == "http://swift.test/v1/AUTH_demo/pics/2024/a%20b.jpg"
        assert (
            stored.private_url
            == "http://swift-internal.test/v1/AUTH_demo/pics/2024/a%20b.jpg"
        )

    def test_public_host(self, transport):
        """A configured public host replaces the storage URL host."""
        client = Client(live_config(public_host="https://cdn.example.com"), transport=transport)
        client.authenticate()
        try:
            stored = client.container("pics").get_object("a.jpg")
            assert stored.public_url == "https://cdn.example.com/v1/AUTH_demo/pics/a.jpg"
            assert stored.private_url.startswith("http://swift-internal.test/")
        finally:
            client.close()


class TestMemoryExpiry:
    """Expiry on the in-memory backend is carried out by the sweeper."""

    def test_sweeper_removes_expired_object(self, memory_client):
        container = memory_client.create_container("tmp")
        stored = container.get_object("a.log")
        stored.upload(b"x")
        stored.set_delete_after(60)

        deleter = memory_client.object_deleter
        assert deleter.tick() == 0
        assert stored.exists()

        assert deleter.tick(datetime.now(timezone.utc) + timedelta(seconds=61)) == 1
        assert not stored.exists()
