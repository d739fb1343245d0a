"""Control channel — the controller's only way to talk to the pipeline.

One worker thread owns the pipeline (and through it the engine). The
controller submits request messages to the worker's inbox and never
blocks doing so; the worker takes them strictly one at a time, in
submission order, and posts responses to an outbox. The controller
drains the outbox with pump() or wait_for(), and each response is handed
to the handlers registered for its type.

Nothing is shared between the two sides except the two queues.

There is no cancellation. clear_all() drops every request still waiting
in the inbox and queues a ClearAll, which empties the engine's working
directory once the running request (if any) has finished.
"""

import logging
import queue
import threading
import time
from collections import defaultdict

from .errors import ErrorKind, LuminaError
from .messages import (
    ClearAll, CompressFile, CompressionReady, Error, ExportReady,
    ExportTimeline, FileReady, FrameReady, GetFrame, GetThumbnail, Load,
    LoadCompleted, PrepareFile, Progress, REQUEST_TYPES, ThumbnailReady,
    UnloadFile,
)

logger = logging.getLogger(__name__)

_STOP = object()

# Requests that never produce a response, not even an Error.
_SILENT = (UnloadFile, ClearAll)


class ControlChannel:
    def __init__(self, pipeline):
        self.pipeline = pipeline
        self._inbox: queue.Queue = queue.Queue()
        self._outbox: queue.Queue = queue.Queue()
        self._handlers = defaultdict(list)
        self._worker: threading.Thread | None = None

        # Request type -> worker-side executor. Each returns the terminal
        # response, or None for fire-and-forget requests.
        self._executors = {
            Load: self._load,
            PrepareFile: self._prepare_file,
            GetThumbnail: self._get_thumbnail,
            GetFrame: self._get_frame,
            CompressFile: self._compress_file,
            ExportTimeline: self._export_timeline,
            UnloadFile: self._unload_file,
            ClearAll: self._clear_all,
        }

    # ── Controller side ──────────────────────────────────────────

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(
            target=self._serve, name="transcode-worker", daemon=True,
        )
        self._worker.start()

    def close(self, timeout: float | None = None) -> None:
        """Stop the worker after the request it is running, if any."""
        if self._worker is None:
            return
        self._inbox.put(_STOP)
        self._worker.join(timeout)
        self._worker = None

    def submit(self, request) -> None:
        """Queue a request. Returns immediately."""
        if not isinstance(request, REQUEST_TYPES):
            raise TypeError(f"Not a channel request: {request!r}")
        if self._worker is None:
            raise RuntimeError("Channel is not started")
        self._inbox.put(request)

    def on(self, response_type: type, handler) -> None:
        """Call handler(response) for every response of this type."""
        self._handlers[response_type].append(handler)

    def clear_all(self) -> int:
        """Drop all queued requests and reset the engine's working files.

        Returns:
            Number of queued requests that were dropped.
        """
        dropped = 0
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                break
            if item is _STOP:
                self._inbox.put(_STOP)
                break
            dropped += 1
        if dropped:
            logger.warning("ClearAll dropped %d queued request(s)", dropped)
        self.submit(ClearAll())
        return dropped

    def pump(self, timeout: float = 0.0) -> list:
        """Deliver waiting responses to their handlers.

        Waits up to `timeout` seconds for the first response, then
        drains whatever else is already there.

        Returns:
            The responses delivered, in arrival order.
        """
        delivered = []
        try:
            response = self._outbox.get(timeout=timeout) if timeout > 0 else self._outbox.get_nowait()
        except queue.Empty:
            return delivered
        while True:
            self._dispatch(response)
            delivered.append(response)
            try:
                response = self._outbox.get_nowait()
            except queue.Empty:
                return delivered

    def wait_for(self, *response_types: type, match=None, timeout: float | None = None):
        """Pump until a response of one of `response_types` arrives.

        Every response seen on the way is dispatched to handlers as
        usual. `match`, if given, must also return True for the
        response to be returned.

        Raises:
            TimeoutError: Nothing matching arrived in time.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise TimeoutError(
                    f"No {', '.join(t.__name__ for t in response_types)} "
                    f"within {timeout}s"
                )
            try:
                response = self._outbox.get(timeout=remaining)
            except queue.Empty:
                continue
            self._dispatch(response)
            if isinstance(response, response_types) and (match is None or match(response)):
                return response

    def _dispatch(self, response) -> None:
        for handler in self._handlers.get(type(response), ()):
            handler(response)

    # ── Worker side ──────────────────────────────────────────────

    def _serve(self) -> None:
        while True:
            request = self._inbox.get()
            if request is _STOP:
                return
            response = self._execute(request)
            if response is not None:
                self._outbox.put(response)

    def _execute(self, request):
        name = type(request).__name__
        logger.debug("Worker start %s", request)
        try:
            return self._executors[type(request)](request)
        except LuminaError as e:
            if isinstance(request, _SILENT):
                logger.warning("%s failed: %s", name, e)
                return None
            logger.info("%s failed: %s", name, e)
            return self._error(request, e.kind, str(e))
        except Exception as e:
            logger.exception("%s failed unexpectedly", name)
            if isinstance(request, _SILENT):
                return None
            return self._error(request, ErrorKind.ENGINE_FAILURE, f"{name} failed: {e}")

    def _error(self, request, kind: ErrorKind, message: str) -> Error:
        return Error(
            kind=kind,
            message=message,
            request=type(request).__name__,
            asset_id=getattr(request, "asset_id", None),
            file_name=getattr(request, "file_name", None),
        )

    def _progress(self, fraction: float, stage: str = "") -> None:
        self._outbox.put(Progress(progress=round(fraction * 100), stage=stage))

    def _load(self, request: Load) -> LoadCompleted:
        self.pipeline.load()
        return LoadCompleted()

    def _prepare_file(self, request: PrepareFile) -> FileReady:
        meta = self.pipeline.prepare(request.file_name)
        return FileReady(
            file_name=request.file_name,
            asset_id=request.asset_id,
            duration=meta["duration"],
            width=meta["width"],
            height=meta["height"],
        )

    def _get_thumbnail(self, request: GetThumbnail) -> ThumbnailReady:
        data = self.pipeline.thumbnail(request.file_name, request.duration)
        return ThumbnailReady(
            file_name=request.file_name, asset_id=request.asset_id, data=data,
        )

    def _get_frame(self, request: GetFrame) -> FrameReady:
        data = self.pipeline.capture_frame(
            request.file_name, request.time, request.quality,
            on_progress=self._progress,
        )
        return FrameReady(file_name=request.file_name, time=request.time, data=data)

    def _compress_file(self, request: CompressFile) -> CompressionReady:
        name, data = self.pipeline.compress(request.file_name, on_progress=self._progress)
        return CompressionReady(original_id=request.asset_id, name=name, data=data)

    def _export_timeline(self, request: ExportTimeline) -> ExportReady:
        data = self.pipeline.export(request, on_progress=self._progress)
        return ExportReady(data=data)

    def _unload_file(self, request: UnloadFile) -> None:
        self.pipeline.unload(request.file_name)

    def _clear_all(self, request: ClearAll) -> None:
        self.pipeline.clear()
