"""Command-line uploader for resumable chunked uploads."""
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from resumable_upload.core.config import settings
from resumable_upload.core.exceptions import SessionNotFoundError, SourceMismatchError
from resumable_upload.schemas.upload import SpeedTier, UploadSessionState, UploadStatus
from resumable_upload.services.chunker import calculate_total_chunks, generate_session_id
from resumable_upload.services.scheduler import UploadScheduler
from resumable_upload.services.session_store import SessionStore
from resumable_upload.services.source import FileSource
from resumable_upload.services.transfer import HttpTransferClient, SimulatedTransferClient, TransferClient
from resumable_upload.utils.formatters import format_bytes, format_time

USAGE = """Usage:
  New upload:    python -m resumable_upload.cli upload <file_path> [--speed TIER] [--server URL] [--chunk-size BYTES]
  Resume upload: python -m resumable_upload.cli resume <session_id> <file_path> [--speed TIER] [--server URL]
  List uploads:  python -m resumable_upload.cli list
  Delete upload: python -m resumable_upload.cli delete <session_id>

Speed tiers: fast, normal, slow, verySlow"""


def _option(args: List[str], name: str, default: Optional[str] = None) -> Optional[str]:
    if name in args:
        idx = args.index(name)
        if len(args) > idx + 1:
            return args[idx + 1]
    return default


def _positionals(args: List[str]) -> List[str]:
    values = []
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg.startswith("--"):
            skip = True
            continue
        values.append(arg)
    return values


def build_transfer_client(speed: Optional[str], server: Optional[str]) -> TransferClient:
    """HTTP client when a server is given, otherwise the simulated backend."""
    if server:
        return HttpTransferClient(base_url=server, speed_tier=SpeedTier(speed) if speed else None)
    return SimulatedTransferClient(speed_tier=SpeedTier(speed or settings.DEFAULT_SPEED_TIER))


async def run_upload(
    store: SessionStore,
    session: UploadSessionState,
    source: FileSource,
    client: TransferClient
) -> UploadScheduler:
    """Drive one session to completion (or stall) and print progress."""

    def on_progress(state: UploadSessionState):
        print(f"  {state.uploaded_count}/{state.total_chunks} chunks ({state.progress_percent:.1f}%)", end="\r")

    try:
        scheduler = UploadScheduler(session, store, client, source=source, on_progress=on_progress)
        await scheduler.start()
    finally:
        await client.aclose()
    print()
    return scheduler


def _report(scheduler: UploadScheduler, file_path: Path, elapsed: float) -> int:
    state = scheduler.state
    if scheduler.status == UploadStatus.COMPLETED:
        print(f"\n✓ Upload completed successfully!")
        print(f"  Session: {state.session_id}")
        print(f"  Size: {format_bytes(state.file_size)}")
        print(f"  Time: {format_time(elapsed * 1000)}")
        return 0

    print(f"\n⚠ Upload incomplete: {len(state.failed_chunks)} chunk(s) failed")
    print(f"  Resume with: python -m resumable_upload.cli resume {state.session_id} {file_path}")
    return 1


def upload_file(
    store: SessionStore,
    file_path: str,
    speed: Optional[str] = None,
    server: Optional[str] = None,
    chunk_size: int = settings.CHUNK_SIZE
) -> int:
    if speed:
        SpeedTier(speed)  # unknown tier must fail before a session is persisted
    path = Path(file_path)
    source = FileSource(path)
    total_chunks = calculate_total_chunks(source.size, chunk_size)
    session = store.create(generate_session_id(), source.name, source.size, total_chunks, chunk_size)

    print(f"Uploading {source.name} ({format_bytes(source.size)}) in {total_chunks} chunks...")
    print(f"  Session: {session.session_id}")

    start = time.time()
    scheduler = asyncio.run(run_upload(store, session, source, build_transfer_client(speed, server)))
    return _report(scheduler, path, time.time() - start)


def resume_upload(
    store: SessionStore,
    session_id: str,
    file_path: str,
    speed: Optional[str] = None,
    server: Optional[str] = None
) -> int:
    session = store.load(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)

    path = Path(file_path)
    source = FileSource(path)
    print(f"Resuming upload session: {session_id}")
    print(f"Already completed: {session.uploaded_count}/{session.total_chunks} chunks")

    start = time.time()
    scheduler = asyncio.run(run_upload(store, session, source, build_transfer_client(speed, server)))
    return _report(scheduler, path, time.time() - start)


def list_uploads(store: SessionStore) -> int:
    sessions = store.list_all()
    if not sessions:
        print("No previous uploads.")
        return 0

    for state in sessions:
        if state.is_complete:
            progress = "Completed"
        else:
            progress = f"{state.progress_percent:.1f}% complete"
            if state.failed_chunks:
                progress += f", {len(state.failed_chunks)} failed"
        print(f"{state.session_id}  {state.file_name}  {format_bytes(state.file_size)} • {progress}")
    return 0


def delete_upload(store: SessionStore, session_id: str) -> int:
    if store.delete(session_id):
        print(f"✓ Deleted {session_id}")
    else:
        print(f"No upload session {session_id}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI for the resumable uploader."""
    args = list(sys.argv[1:] if argv is None else argv)
    positionals = _positionals(args)
    if not positionals:
        print(USAGE)
        return 1

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    command, params = positionals[0], positionals[1:]
    speed = _option(args, "--speed")
    server = _option(args, "--server")
    store = SessionStore()

    try:
        if command == "upload" and len(params) == 1:
            chunk_size = int(_option(args, "--chunk-size", str(settings.CHUNK_SIZE)))
            return upload_file(store, params[0], speed=speed, server=server, chunk_size=chunk_size)
        if command == "resume" and len(params) == 2:
            return resume_upload(store, params[0], params[1], speed=speed, server=server)
        if command == "list" and not params:
            return list_uploads(store)
        if command == "delete" and len(params) == 1:
            return delete_upload(store, params[0])
    except SourceMismatchError as e:
        print(f"\n✗ {e.message}")
        print(f"  Expected: {e.details['expected']['name']} ({e.details['expected']['size']} bytes)")
        return 1
    except (SessionNotFoundError, FileNotFoundError, ValueError) as e:
        print(f"\n✗ Upload failed: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n⏸ Upload interrupted; progress has been saved.")
        print("  Resume with: python -m resumable_upload.cli resume <session_id> <file_path>")
        return 130

    print(USAGE)
    return 1


if __name__ == "__main__":
    sys.exit(main())
