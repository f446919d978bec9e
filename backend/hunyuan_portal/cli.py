"""
Command line entry point.

    hunyuan-portal generate photo.png --workflow enhanced --output-name shoe
    hunyuan-portal status <task-id>
    hunyuan-portal list --models --sessions
    hunyuan-portal url models/shoe_base.glb --expires-in 600
    hunyuan-portal browse
    hunyuan-portal serve --port 8000
"""

import argparse
import asyncio
import base64
import json
import sys
from pathlib import Path
from typing import List, Optional

from hunyuan_portal.core.config import get_settings
from hunyuan_portal.core.errors import PortalError
from hunyuan_portal.core.logger import logger, setup_logger
from hunyuan_portal.core.storage import (
    StorageManager,
    file_proxy_path,
    filter_3d_models,
    group_files_by_session,
)
from hunyuan_portal.models.request_models import WORKFLOW_VALUES, GenerationRequest, Workflow
from hunyuan_portal.models.response_models import GenerationResult
from hunyuan_portal.services.job_poller import JobPoller
from hunyuan_portal.services.model_browser import ModelBrowser
from hunyuan_portal.services.pipeline_manager import GenerationPipeline
from hunyuan_portal.services.runpod_client import RunPodClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hunyuan-portal",
        description="Hunyuan3D generation on RunPod and R2 artifact access",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a 3D model from an image and wait for it")
    gen.add_argument("image", type=Path, help="Input image file")
    gen.add_argument("--workflow", choices=WORKFLOW_VALUES, default=Workflow.ENHANCED.value)
    gen.add_argument("--output-name", default=None)
    gen.add_argument("--no-upload", action="store_true", help="Do not upload results to R2")
    gen.add_argument("--keep-local-files", action="store_true")
    gen.add_argument("--no-remove-background", action="store_true")
    gen.add_argument("--bg-threshold", type=float, default=0.5)
    gen.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    gen.add_argument("--max-polls", type=int, default=None)
    gen.add_argument("--json", action="store_true", help="Print the raw result as JSON")

    status = sub.add_parser("status", help="Show the status of a task")
    status.add_argument("task_id")

    ls = sub.add_parser("list", help="List files in the R2 bucket")
    ls.add_argument("--prefix", default=None)
    ls.add_argument("--max-results", type=int, default=50)
    ls.add_argument("--continuation-token", default=None)
    ls.add_argument("--models", action="store_true", help="Only 3D model files")
    ls.add_argument("--sessions", action="store_true", help="Group files by generation session")

    url = sub.add_parser("url", help="Presigned download URL for a key")
    url.add_argument("key")
    url.add_argument("--expires-in", type=int, default=3600)

    browse = sub.add_parser("browse", help="Show stored models by session with download URLs")
    browse.add_argument("--prefix", default=None)
    browse.add_argument("--expires-in", type=int, default=3600)

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind the server to")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind the server to")
    serve.add_argument("--reload", action="store_true")

    return parser


def encode_image(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


def print_result(result: GenerationResult) -> None:
    if not isinstance(result, dict):
        print(json.dumps(result, indent=2))
        return
    print(f"\nStatus: {result.get('status')}  Workflow: {result.get('workflow_type')}")
    if isinstance(result.get("processing_time"), (int, float)):
        print(f"Processing time: {result['processing_time']:.2f}s")
    stats = result.get("mesh_stats")
    if stats:
        print(
            f"Faces: original={stats.get('original_faces')} "
            f"processed={stats.get('processed_faces')} final={stats.get('final_faces')}"
        )
    info = result.get("texture_info")
    if info:
        print(f"Texture: {info.get('generated_views')} views @ {info.get('texture_size')}px")
    for output in result.get("output_files") or []:
        print(f"  [{output.get('file_type')}] {output.get('filename')}")
        if output.get("download_url"):
            print(f"      {output['download_url']}")
            print(f"      proxy: {file_proxy_path(output['download_url'])}")


async def run_generate(args) -> int:
    settings = get_settings()
    client = RunPodClient.from_settings(settings)
    request = GenerationRequest.for_workflow(
        Workflow(args.workflow),
        encode_image(args.image),
        output_name=args.output_name or args.image.stem,
        upload_to_r2=not args.no_upload,
        keep_local_files=args.keep_local_files,
        remove_background=not args.no_remove_background,
        bg_threshold=args.bg_threshold,
    )

    async with client:
        poller = JobPoller(
            client,
            interval=args.interval if args.interval is not None else settings.poll_interval,
            max_polls=args.max_polls if args.max_polls is not None else settings.max_polls,
        )
        result = await GenerationPipeline(client, poller).run(request, print)

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print_result(result)
    return 0


async def run_status(args) -> int:
    async with RunPodClient.from_settings() as client:
        status = await client.get_status(args.task_id)
    print(json.dumps(status.to_payload(), indent=2))
    return 0


def run_list(args) -> int:
    listing = StorageManager.from_settings().list_files(
        args.prefix, args.max_results, args.continuation_token
    )
    files = filter_3d_models(listing.files) if args.models else listing.files

    if args.sessions:
        for session, members in group_files_by_session(files).items():
            print(session)
            for f in members:
                print(f"  {f.key}  ({f.size} bytes)")
    else:
        for f in files:
            print(f"{f.key}  ({f.size} bytes)")

    if listing.has_more:
        print(f"\nMore results available. --continuation-token {listing.next_token}")
    return 0


def run_url(args) -> int:
    print(StorageManager.from_settings().get_file_url(args.key, args.expires_in))
    return 0


def run_browse(args) -> int:
    browser = ModelBrowser(StorageManager.from_settings(), expires_in=args.expires_in)
    sessions = browser.load_sessions(prefix=args.prefix)
    if not sessions:
        print("No 3D models found.")
        return 0
    for session, models in sessions.items():
        print(session)
        for model in models:
            print(f"  {model.key}\n      {browser.model_url(model.key)}")
    return 0


def run_serve(args) -> int:
    import uvicorn

    uvicorn.run("hunyuan_portal.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(args.log_level)

    try:
        if args.command == "generate":
            return asyncio.run(run_generate(args))
        if args.command == "status":
            return asyncio.run(run_status(args))
        if args.command == "list":
            return run_list(args)
        if args.command == "url":
            return run_url(args)
        if args.command == "browse":
            return run_browse(args)
        if args.command == "serve":
            return run_serve(args)
    except PortalError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
