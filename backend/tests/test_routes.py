import io
from datetime import datetime, timezone

import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber
from fastapi.testclient import TestClient

from hunyuan_portal.main import app
from hunyuan_portal.routes.hunyuan import get_client_factory, get_runpod_client
from hunyuan_portal.routes.r2 import get_storage

BUCKET = "hunyuan-models"
MODIFIED = datetime(2025, 9, 7, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def api():
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def use_runpod(runpod):
    async def override():
        async with runpod.client() as client:
            yield client

    app.dependency_overrides[get_runpod_client] = override


def use_storage(storage):
    app.dependency_overrides[get_storage] = lambda: storage


# ==================== HEALTH ====================

def test_root(api):
    assert api.get("/").json() == {"message": "Hunyuan3D Portal is running"}


def test_health_reports_configuration(api, configured_env):
    configured_env.delenv("R2_BUCKET_NAME")
    body = api.get("/health").json()
    assert body == {"status": "ok", "runpod_configured": True, "r2_configured": False}


# ==================== HUNYUAN ====================

def test_start_requires_configuration(api, clean_env):
    response = api.post("/hunyuan/start", json={"workflow": "mesh", "input_image": "aGVsbG8="})
    assert response.status_code == 500
    assert "RUNPOD_API_KEY" in response.json()["detail"]


def test_start_returns_task_id(api, fake_runpod):
    runpod = fake_runpod(job_id="job-42")
    use_runpod(runpod)
    body = {
        "workflow": "enhanced",
        "input_image": "aGVsbG8=",
        "bg_threshold": None,
        "mesh_params": {"seed": 7, "custom_knob": 3},
        "worker_flag": True,
    }

    response = api.post("/hunyuan/start", json=body)

    assert response.status_code == 200
    assert response.json() == {"taskId": "job-42"}
    assert runpod.run_body() == {"input": body}


@pytest.mark.parametrize(
    "body",
    [
        {"workflow": 5, "input_image": "aGVsbG8="},
        {"workflow": "mesh", "input_image": "aGVsbG8=", "mesh_params": {"steps": "many"}},
    ],
)
def test_start_malformed_body_is_400(api, fake_runpod, body):
    runpod = fake_runpod()
    use_runpod(runpod)

    response = api.post("/hunyuan/start", json=body)

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid generation request: ")
    assert runpod.requests == []


def test_start_without_job_id_is_502(api, fake_runpod):
    use_runpod(fake_runpod(run_response={"status": "IN_QUEUE"}))
    response = api.post("/hunyuan/start", json={"workflow": "mesh", "input_image": "aGVsbG8="})
    assert response.status_code == 502
    assert response.json()["detail"] == "RunPod API response did not include a job id"


@pytest.mark.parametrize(
    "body, detail",
    [
        ({"workflow": "mesh"}, "input_image is required"),
        ({"workflow": "sculpt", "input_image": "aGVsbG8="}, "workflow must be one of: mesh, texture, enhanced"),
        ({"input_image": "aGVsbG8="}, "workflow must be one of: mesh, texture, enhanced"),
    ],
)
def test_start_validation_errors(api, fake_runpod, body, detail):
    runpod = fake_runpod()
    use_runpod(runpod)

    response = api.post("/hunyuan/start", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == detail
    assert runpod.requests == []


def test_start_propagates_remote_status(api, fake_runpod):
    use_runpod(fake_runpod(run_status_code=401))
    response = api.post("/hunyuan/start", json={"workflow": "mesh", "input_image": "aGVsbG8="})
    assert response.status_code == 401
    assert response.json()["detail"] == "RunPod API error: 401 Unauthorized"


def test_status_requires_task_id(api, fake_runpod):
    use_runpod(fake_runpod(statuses=[{"status": "IN_QUEUE"}]))
    response = api.get("/hunyuan/status")
    assert response.status_code == 400
    assert response.json()["detail"] == "taskId parameter is required"


def test_status_completed(api, fake_runpod, sample_output):
    use_runpod(fake_runpod(statuses=[{
        "id": "job-1", "status": "COMPLETED", "delayTime": 10, "executionTime": 2000, "output": sample_output,
    }]))

    body = api.get("/hunyuan/status", params={"taskId": "job-1"}).json()

    assert body["status"] == "COMPLETED"
    assert body["taskId"] == "job-1"
    assert body["executionTime"] == 2000
    assert body["output"] == sample_output
    assert "error" not in body


def test_status_failed(api, fake_runpod):
    use_runpod(fake_runpod(statuses=[{"id": "job-1", "status": "FAILED", "error": "worker crashed"}]))
    body = api.get("/hunyuan/status", params={"taskId": "job-1"}).json()
    assert body["error"] == "worker crashed"
    assert "output" not in body


def test_status_remote_error(api, fake_runpod):
    use_runpod(fake_runpod(status_code=500))
    response = api.get("/hunyuan/status", params={"taskId": "job-1"})
    assert response.status_code == 500
    assert response.json()["detail"] == "RunPod status API error: 500 Internal Server Error"


def _receive_until_done(ws):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event["type"] in ("result", "error"):
            return events


def test_websocket_runs_generation(api, configured_env, fake_runpod, sample_output):
    configured_env.setenv("HUNYUAN_MAX_POLLS", "5")
    runpod = fake_runpod(
        job_id="job-9",
        statuses=[
            {"id": "job-9", "status": "IN_QUEUE"},
            {"id": "job-9", "status": "COMPLETED", "output": sample_output},
        ],
    )
    app.dependency_overrides[get_client_factory] = lambda: (lambda settings: runpod.client())

    with api.websocket_connect("/hunyuan/ws/tab-1") as ws:
        ws.send_json({"workflow": "enhanced", "input_image": "aGVsbG8="})
        events = _receive_until_done(ws)

    messages = [e["message"] for e in events if e["type"] == "progress"]
    assert messages == [
        "Starting task...",
        "Task started with ID: job-9. Checking status...",
        "Checking status... (attempt 1/5)",
        "Task in queue... (0s elapsed)",
        "Checking status... (attempt 2/5)",
        "Task completed successfully!",
    ]
    assert events[-1] == {"type": "result", "taskId": "job-9", "result": sample_output}


def test_websocket_reports_failure(api, configured_env, fake_runpod):
    runpod = fake_runpod(statuses=[{"id": "job-1", "status": "FAILED", "error": "bad image"}])
    app.dependency_overrides[get_client_factory] = lambda: (lambda settings: runpod.client())

    with api.websocket_connect("/hunyuan/ws/tab-2") as ws:
        ws.send_json({"workflow": "mesh", "input_image": "aGVsbG8="})
        events = _receive_until_done(ws)

    assert events[-1] == {"type": "error", "message": "bad image", "statusCode": 502}


def test_websocket_rejects_invalid_request(api, configured_env, fake_runpod):
    runpod = fake_runpod()
    app.dependency_overrides[get_client_factory] = lambda: (lambda settings: runpod.client())

    with api.websocket_connect("/hunyuan/ws/tab-3") as ws:
        ws.send_json({"workflow": "mesh"})
        events = _receive_until_done(ws)

    assert events[-1]["type"] == "error"
    assert events[-1]["statusCode"] == 400
    assert runpod.requests == []


def test_websocket_result_is_passed_through(api, configured_env, fake_runpod):
    output = {"processing_time": 193, "output_files": [{"download_url": "https://pub.r2.dev/a.glb"}]}
    runpod = fake_runpod(statuses=[{"id": "job-1", "status": "COMPLETED", "output": output}])
    app.dependency_overrides[get_client_factory] = lambda: (lambda settings: runpod.client())

    with api.websocket_connect("/hunyuan/ws/tab-4") as ws:
        ws.send_json({"workflow": "mesh", "input_image": "aGVsbG8="})
        events = _receive_until_done(ws)

    assert events[-1] == {"type": "result", "taskId": "job-1", "result": output}


def test_websocket_refuses_client_id_in_use(api, configured_env, fake_runpod, sample_output):
    runpod = fake_runpod(statuses=[{"id": "job-1", "status": "COMPLETED", "output": sample_output}])
    app.dependency_overrides[get_client_factory] = lambda: (lambda settings: runpod.client())

    with api.websocket_connect("/hunyuan/ws/shared") as first:
        with api.websocket_connect("/hunyuan/ws/shared") as second:
            assert second.receive_json() == {
                "type": "error",
                "message": "Client id shared is already connected",
                "statusCode": 409,
            }

        first.send_json({"workflow": "mesh", "input_image": "aGVsbG8="})
        events = _receive_until_done(first)

    assert events[-1] == {"type": "result", "taskId": "job-1", "result": sample_output}


# ==================== R2 ====================

def test_r2_requires_configuration(api, clean_env):
    response = api.get("/r2/list")
    assert response.status_code == 500
    assert "R2 storage is not properly configured" in response.json()["detail"]


def test_list_files(api, storage, s3_client):
    use_storage(storage)
    with Stubber(s3_client) as stub:
        stub.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "lamp.glb", "LastModified": MODIFIED, "Size": 5, "ETag": '"e"'}],
                "IsTruncated": False,
            },
            {"Bucket": BUCKET, "MaxKeys": 50},
        )
        body = api.get("/r2/list").json()

    assert body["hasMore"] is False
    assert body["nextToken"] is None
    assert body["files"][0]["key"] == "lamp.glb"
    assert body["files"][0]["size"] == 5
    assert body["files"][0]["lastModified"].startswith("2025-09-07T12:00:00")


def test_list_files_grouped_models(api, storage, s3_client):
    use_storage(storage)
    contents = [
        {"Key": k, "LastModified": MODIFIED, "Size": 1, "ETag": '"e"'}
        for k in ("shoe_base.glb", "shoe_textured.glb", "shoe_preview.png", "lamp.glb")
    ]
    with Stubber(s3_client) as stub:
        stub.add_response(
            "list_objects_v2",
            {"Contents": contents, "IsTruncated": True, "NextContinuationToken": "n2"},
            {"Bucket": BUCKET, "MaxKeys": 10, "Prefix": "models/", "ContinuationToken": "n1"},
        )
        body = api.get(
            "/r2/list",
            params={
                "prefix": "models/",
                "maxResults": 10,
                "continuationToken": "n1",
                "filterModels": "true",
                "groupBySessions": "true",
            },
        ).json()

    assert "files" not in body
    assert {k: [f["key"] for f in v] for k, v in body["sessions"].items()} == {
        "shoe": ["shoe_base.glb", "shoe_textured.glb"],
        "lamp": ["lamp.glb"],
    }
    assert body["hasMore"] is True
    assert body["nextToken"] == "n2"


def test_signed_url(api, storage):
    use_storage(storage)
    body = api.get("/r2/url", params={"key": "models/lamp.glb", "expiresIn": 600}).json()

    assert body["key"] == "models/lamp.glb"
    assert body["expiresIn"] == 600
    assert "X-Amz-Expires=600" in body["url"]
    expires_at = datetime.fromisoformat(body["expiresAt"])
    remaining = (expires_at - datetime.now(timezone.utc)).total_seconds()
    assert 590 < remaining <= 600


def test_signed_url_defaults_and_requires_key(api, storage):
    use_storage(storage)
    assert api.get("/r2/url").status_code == 400
    assert api.get("/r2/url", params={"key": "a.glb"}).json()["expiresIn"] == 3600


def test_fetch_file(api, storage, s3_client):
    use_storage(storage)
    data = b"glTF\x02\x00\x00\x00"
    with Stubber(s3_client) as stub:
        stub.add_response(
            "get_object",
            {"Body": StreamingBody(io.BytesIO(data), len(data))},
            {"Bucket": BUCKET, "Key": "models/enhanced/model.glb"},
        )
        response = api.get("/r2/file", params={"path": "/models/enhanced/model.glb"})

    assert response.status_code == 200
    assert response.content == data
    assert response.headers["content-type"] == "model/gltf-binary"
    assert response.headers["content-length"] == str(len(data))
    assert response.headers["cache-control"] == "public, max-age=31536000"
    assert response.headers["access-control-allow-origin"] == "*"


def test_fetch_file_not_found(api, storage, s3_client):
    use_storage(storage)
    with Stubber(s3_client) as stub:
        stub.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
        response = api.get("/r2/file", params={"path": "nope.glb"})

    assert response.status_code == 404
    assert response.json()["detail"] == "File not found in R2 storage"


def test_fetch_file_requires_path(api, storage):
    use_storage(storage)
    response = api.get("/r2/file")
    assert response.status_code == 400
    assert response.json()["detail"] == "File path is required"
