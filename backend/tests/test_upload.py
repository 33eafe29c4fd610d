"""End-to-end tests for POST /api/v1/upload."""

from pathlib import Path

UPLOAD_URL = "/api/v1/upload"


def _upload(client, video_id, headers, filename="clip.mov", content=b"\x00\x00\x00\x14ftypqt  "):
    return client.post(
        UPLOAD_URL,
        files={"file": (filename, content, "video/quicktime")},
        data={"videoId": video_id},
        headers=headers,
    )


def test_uhd_upload_without_gps(client, auth_headers, create_video, fake_probe, geocode_stub, ffprobe_fixture):
    fake_probe.output = ffprobe_fixture("uhd_no_gps")
    video = create_video()

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["url"] == f"/static/videos/{video['id']}.mov"
    assert body["metadata"] == {
        "duration": 13,
        "resolution": "3840x2160",
        "location": None,
        "recordedAt": "2024-05-04T10:20:30Z",
    }
    assert geocode_stub.requests == []

    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["processing_status"] == "completed"
    assert stored["processing_progress"] == 100
    assert stored["aspect_ratio"] == "16:9"
    assert abs(stored["frame_rate"] - 29.97) < 1e-9
    assert stored["latitude"] is None
    assert stored["longitude"] is None
    assert stored["codec"] == "hevc"
    assert stored["audio_sample_rate"] == 48000
    assert stored["stream_url"] == body["url"]
    assert stored["bitrate_label"] == "45.0 Mbps"


def test_upload_with_location_is_geocoded(
    client, auth_headers, create_video, fake_probe, geocode_stub, ffprobe_fixture
):
    fake_probe.output = ffprobe_fixture("iphone_location")
    geocode_stub.payload = {
        "address": {"city": "San Francisco", "state": "California", "country": "USA"}
    }
    video = create_video()

    response = _upload(client, video["id"], auth_headers, filename="IMG_0042.MOV")

    assert response.status_code == 200, response.text
    assert response.json()["metadata"]["location"] == "San Francisco, California, USA"

    assert len(geocode_stub.requests) == 1
    params = geocode_stub.requests[0].url.params
    assert (float(params["lat"]), float(params["lon"])) == (37.7749, -122.4194)

    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["location_name"] == "San Francisco, California, USA"
    assert stored["latitude"] == 37.7749
    assert stored["longitude"] == -122.4194
    assert stored["altitude"] == 14.0
    assert stored["camera_model"] == "iPhone 15 Pro"


def test_probe_failure_still_completes(client, auth_headers, create_video, fake_probe, geocode_stub):
    fake_probe.fail("ffprobe: command not found")
    video = create_video()

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 200, response.text
    assert response.json()["metadata"] == {
        "duration": 0,
        "resolution": None,
        "location": None,
        "recordedAt": None,
    }
    assert geocode_stub.requests == []

    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["processing_status"] == "completed"
    assert stored["duration"] == 0
    assert stored["bitrate_label"] == "Unknown"
    for field in (
        "width", "height", "frame_rate", "codec", "bitrate", "aspect_ratio",
        "audio_codec", "audio_channels", "audio_sample_rate", "audio_bitrate",
        "latitude", "longitude", "altitude", "location_name",
        "camera_make", "camera_model", "software", "recorded_at",
    ):
        assert stored[field] is None, field


def test_geocoder_failure_leaves_location_empty(
    client, auth_headers, create_video, fake_probe, geocode_stub, ffprobe_fixture
):
    fake_probe.output = ffprobe_fixture("iphone_location")
    geocode_stub.status_code = 500
    video = create_video()

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 200
    assert response.json()["metadata"]["location"] is None
    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["latitude"] == 37.7749
    assert stored["location_name"] is None


def test_file_stored_at_video_id_path(client, auth_headers, create_video, fake_probe, video_storage):
    video = create_video()
    content = b"0123456789" * 100

    response = _upload(client, video["id"], auth_headers, filename="holiday.MP4", content=content)

    assert response.status_code == 200
    path = video_storage.root / f"{video['id']}.MP4"
    assert path.read_bytes() == content
    assert fake_probe.probed == [path]

    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["file_size"] == len(content)


def test_missing_extension_uses_default(client, auth_headers, create_video, video_storage):
    video = create_video()

    response = _upload(client, video["id"], auth_headers, filename="clip")

    assert response.status_code == 200
    assert response.json()["url"].endswith(f"/{video['id']}.mp4")
    assert (video_storage.root / f"{video['id']}.mp4").exists()


def test_requires_authentication(client, create_video):
    video = create_video()

    response = _upload(client, video["id"], headers={})

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token(client, create_video):
    video = create_video()

    response = _upload(client, video["id"], headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_missing_file(client, auth_headers, create_video, video_storage):
    video = create_video()

    response = client.post(UPLOAD_URL, data={"videoId": video["id"]}, headers=auth_headers)

    assert response.status_code == 400
    assert not video_storage.root.exists()


def test_missing_video_id(client, auth_headers, video_storage):
    response = client.post(
        UPLOAD_URL,
        files={"file": ("clip.mov", b"data", "video/quicktime")},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert not video_storage.root.exists()


def test_empty_file_rejected(client, auth_headers, create_video):
    video = create_video()

    response = _upload(client, video["id"], auth_headers, content=b"")

    assert response.status_code == 400


def test_oversized_file_rejected(client, auth_headers, create_video, ingestion_service):
    ingestion_service.max_upload_bytes = 10
    video = create_video()

    response = _upload(client, video["id"], auth_headers, content=b"x" * 11)

    assert response.status_code == 400


def test_unknown_video(client, auth_headers, video_storage):
    response = _upload(client, "0" * 32, auth_headers)

    assert response.status_code == 404
    assert not video_storage.root.exists()


def test_video_owned_by_someone_else(client, auth_headers, other_auth_headers, create_video):
    video = create_video(headers=other_auth_headers)

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 404
    untouched = client.get(f"/api/v1/videos/{video['id']}", headers=other_auth_headers).json()
    assert untouched["processing_status"] == "pending"


def test_storage_failure_leaves_record_untouched(
    client, auth_headers, create_video, fake_probe, video_storage, tmp_path: Path
):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    video_storage.root = blocker / "videos"
    video = create_video()

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 500
    assert fake_probe.probed == []
    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["processing_status"] == "pending"
    assert stored["stream_url"] is None


def test_unrepresentable_tag_values_still_complete(client, auth_headers, create_video, fake_probe):
    fake_probe.output = {
        "format": {
            "duration": "1e300",
            "bit_rate": "1e30",
            "tags": {"creation_time": "9999-12-31T23:59:59-14:00"},
        },
        "streams": [{"codec_type": "video", "codec_name": "h264", "width": 640, "height": 480}],
    }
    video = create_video()

    response = _upload(client, video["id"], auth_headers)

    assert response.status_code == 200, response.text
    assert response.json()["metadata"] == {
        "duration": 0,
        "resolution": "640x480",
        "location": None,
        "recordedAt": None,
    }
    stored = client.get(f"/api/v1/videos/{video['id']}", headers=auth_headers).json()
    assert stored["processing_status"] == "completed"
    assert stored["bitrate"] is None
    assert stored["aspect_ratio"] == "4:3"
