"""
Hunyuan3D generation endpoints.

Responsibilities:
- Start a generation job on the RunPod worker
- Report the status of a running job
- Run a whole generation over a WebSocket, pushing progress to the client
"""

from typing import Any, AsyncIterator, Callable, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from hunyuan_portal.core.config import Settings, get_settings
from hunyuan_portal.core.errors import ConfigurationError, PortalError
from hunyuan_portal.core.logger import logger
from hunyuan_portal.models.request_models import parse_generation_request, validate_generation_request
from hunyuan_portal.models.response_models import StartJobResponse
from hunyuan_portal.services.job_poller import JobPoller
from hunyuan_portal.services.pipeline_manager import GenerationPipeline
from hunyuan_portal.services.runpod_client import RunPodClient
from hunyuan_portal.services.websocket_manager import manager

router = APIRouter(prefix="/hunyuan", tags=["Hunyuan"])


async def get_runpod_client() -> AsyncIterator[RunPodClient]:
    """RunPod client for one request; configuration is checked first."""
    try:
        client = RunPodClient.from_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        raise HTTPException(status_code=e.status_code, detail=str(e))

    async with client:
        yield client


def get_client_factory() -> Callable[[Settings], RunPodClient]:
    return RunPodClient.from_settings


@router.post("/start")
async def start_generation(
    payload: Any = Body(...),
    client: RunPodClient = Depends(get_runpod_client),
):
    """
    Starts a Hunyuan3D task and returns its RunPod id.

    The body is forwarded as sent; only ``workflow`` and ``input_image`` are checked.
    """
    try:
        request = parse_generation_request(payload)
        validate_generation_request(request)
        task_id = await client.submit(request)
        return StartJobResponse(task_id=task_id).model_dump(by_alias=True)

    except PortalError as e:
        logger.error(f"Error starting Hunyuan task: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error starting Hunyuan task: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/status")
async def get_generation_status(
    task_id: Optional[str] = Query(None, alias="taskId"),
    client: RunPodClient = Depends(get_runpod_client),
):
    """
    Current status of a task.

    ``output`` is only present once the task completed, ``error`` only
    when it failed.
    """
    if not task_id:
        raise HTTPException(status_code=400, detail="taskId parameter is required")

    try:
        status = await client.get_status(task_id)
        return status.to_payload()

    except PortalError as e:
        logger.error(f"Error checking Hunyuan task status: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error checking Hunyuan task status: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.websocket("/ws/{client_id}")
async def generation_socket(
    websocket: WebSocket,
    client_id: str,
    settings: Settings = Depends(get_settings),
    make_client: Callable[[Settings], RunPodClient] = Depends(get_client_factory),
):
    """
    Runs submit + poll for one request sent by the client.

    The client sends a GenerationRequest as JSON and receives
    ``progress`` events followed by one ``result`` or ``error`` event.
    """
    if not await manager.connect(websocket, client_id):
        return

    try:
        payload = await websocket.receive_json()
        request = parse_generation_request(payload)

        async with make_client(settings) as client:
            pipeline = GenerationPipeline(client, JobPoller.from_settings(client, settings))
            result = await pipeline.run(
                request, lambda message: manager.send_progress(client_id, message)
            )
        await manager.send_result(client_id, pipeline.task_id, result)

    except WebSocketDisconnect:
        logger.info(f"Client {client_id} left before the generation finished")
    except PortalError as e:
        logger.error(f"Generation for {client_id} failed: {e}")
        await manager.send_error(client_id, str(e), status_code=e.status_code)
    except Exception as e:
        logger.error(f"Generation for {client_id} failed: {str(e)}")
        await manager.send_error(client_id, str(e))
    finally:
        manager.disconnect(client_id, websocket)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
