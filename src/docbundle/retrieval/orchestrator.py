"""Concurrent document retrieval with per-item failure capture.

Fetches the files behind a list of DocumentRecords using a bounded worker
pool. Features:
- Bounded concurrency (never one thread per record)
- Per-request timeout
- Explicit retry policy (max_attempts, exponential backoff) through a
  urllib3 Retry mounted on the session; default is a single attempt
- Optional on-disk staging so large exports do not sit in memory
- Batch cancellation via a threading.Event

Failure semantics:
- Every input record yields exactly one RetrievalOutcome, in input order
- A failed fetch is recorded as a FAILED outcome and never aborts siblings
- Cancellation discards everything, including completed successes, and
  removes all staged files before RetrievalCancelled is raised
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..catalog_client.client import TOKEN_HEADER
from ..errors import DocbundleError
from ..schemas.document import DocumentRecord
from ..schemas.outcome import RetrievalOutcome

logger = logging.getLogger(__name__)

# Status codes worth another attempt when max_attempts > 1
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

PART_SUFFIX = ".part"

# Longest staged file name, leaving room for PART_SUFFIX under NAME_MAX
MAX_STAGED_NAME = 200


class RetrievalErrorKind(str, Enum):
    """Ways a retrieval call can fail as a whole."""

    CANCELLED = "cancelled"
    FAILED = "failed"


class RetrievalCancelled(DocbundleError):
    """The batch was cancelled; no outcomes are returned."""

    def __init__(self, detail: str = "Retrieval was cancelled"):
        super().__init__(RetrievalErrorKind.CANCELLED, detail)


class RetrievalFailure(DocbundleError):
    """A single-document download failed."""

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(RetrievalErrorKind.FAILED, f"{document_id}: {reason}")


class _FetchError(Exception):
    """A fetch failed after ``attempts`` tries."""

    def __init__(self, reason: str, attempts: int):
        self.reason = reason
        self.attempts = attempts
        super().__init__(reason)


class _Cancelled(Exception):
    pass


class RetrievalOrchestrator:
    """
    Fetches remote documents with bounded concurrency.

    Usage:
        orchestrator = RetrievalOrchestrator(concurrency=4)
        outcomes = orchestrator.retrieve_all(records, token)
    """

    DEFAULT_CONCURRENCY = 4
    DEFAULT_TIMEOUT = 30
    DEFAULT_CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = 1,
        backoff_factor: float = 0.5,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            concurrency: Maximum simultaneous fetches (>= 1)
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per document; 1 disables retries
            backoff_factor: urllib3 backoff factor; waits double on each
                consecutive retry
            chunk_size: Bytes read per chunk while streaming a body
            session: Optional pre-configured requests session
        """
        _check_concurrency(concurrency)
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self.concurrency = concurrency
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.chunk_size = chunk_size

        # A caller-supplied session keeps its own adapters (retries, pooling)
        self._owns_session = session is None
        self._pool_size = 0
        self.session = session or requests.Session()
        if self._owns_session:
            self._mount_adapter(concurrency)

    def _mount_adapter(self, workers: int) -> None:
        """Mount a retrying adapter with one pooled connection per worker."""
        retry_strategy = Retry(
            total=self.max_attempts - 1,
            backoff_factor=self.backoff_factor,
            status_forcelist=sorted(RETRYABLE_STATUS_CODES),
            allowed_methods=["GET"],
            raise_on_status=False,
            respect_retry_after_header=False,
        )
        self._pool_size = max(workers, 10)
        adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=self._pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def retrieve_all(
        self,
        records: Iterable[DocumentRecord],
        token: str,
        concurrency: int | None = None,
        staging_dir: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[RetrievalOutcome]:
        """
        Fetch every record.

        Args:
            records: Documents to fetch
            token: Session token, attached to every request
            concurrency: Override the configured worker count
            staging_dir: Write bodies here instead of holding them in memory
            cancel_event: Set it to abandon the batch

        Returns:
            One RetrievalOutcome per record, in input order

        Raises:
            RetrievalCancelled: if cancel_event was set before the batch
                finished
        """
        records = list(records)
        workers = self.concurrency if concurrency is None else concurrency
        _check_concurrency(workers)
        if self._owns_session and workers > self._pool_size:
            self._mount_adapter(workers)
        if cancel_event is None:
            cancel_event = threading.Event()

        if cancel_event.is_set():
            raise RetrievalCancelled()
        if not records:
            return []

        if staging_dir is not None:
            staging_dir = Path(staging_dir)
            staging_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Retrieving {len(records)} document(s) with {workers} worker(s)"
        )

        outcomes: list[RetrievalOutcome | None] = [None] * len(records)
        with ThreadPoolExecutor(
            max_workers=min(workers, len(records)),
            thread_name_prefix="docbundle-fetch",
        ) as executor:
            futures = {
                executor.submit(
                    self._retrieve, index, record, token, staging_dir, cancel_event
                ): index
                for index, record in enumerate(records)
            }
            try:
                for future in as_completed(futures):
                    outcomes[futures[future]] = future.result()
            except BaseException:
                # Stop the remaining workers, then drop whatever they staged
                cancel_event.set()
                executor.shutdown(wait=True, cancel_futures=True)
                _discard_staged(_finished_outcomes(futures))
                raise

        if cancel_event.is_set():
            _discard_staged(outcomes)
            logger.info("Retrieval cancelled, staged files discarded")
            raise RetrievalCancelled()

        failed = sum(1 for outcome in outcomes if outcome is not None and not outcome.ok)
        logger.info(
            f"Retrieved {len(records) - failed}/{len(records)} document(s), "
            f"{failed} failed"
        )
        return outcomes  # type: ignore[return-value]

    def retrieve_one(
        self,
        record: DocumentRecord,
        token: str,
        staging_dir: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RetrievalOutcome:
        """Fetch a single document. Same failure semantics as retrieve_all."""
        return self.retrieve_all(
            [record],
            token,
            concurrency=1,
            staging_dir=staging_dir,
            cancel_event=cancel_event,
        )[0]

    def _retrieve(
        self,
        index: int,
        record: DocumentRecord,
        token: str,
        staging_dir: Path | None,
        cancel_event: threading.Event,
    ) -> RetrievalOutcome:
        """Worker body. Always returns an outcome for ordinary failures."""
        if cancel_event.is_set():
            return RetrievalOutcome.failure(record.id, "cancelled", 0)

        filename = record.filename
        target = None
        if staging_dir is not None:
            target = staging_dir / staging_name(index, filename)

        try:
            payload, attempts = self._fetch(
                record.remote_path, token, target, cancel_event
            )
        except _Cancelled:
            return RetrievalOutcome.failure(record.id, "cancelled", 1)
        except _FetchError as e:
            logger.warning(f"Failed to retrieve document {record.id}: {e.reason}")
            return RetrievalOutcome.failure(record.id, e.reason, e.attempts)

        if attempts > 1:
            logger.debug(f"Document {record.id} retrieved after {attempts} attempts")
        return RetrievalOutcome.success(
            record.id,
            filename,
            payload=payload,
            staged_path=target,
            attempts=attempts,
        )

    def _fetch(
        self,
        url: str,
        token: str,
        target: Path | None,
        cancel_event: threading.Event,
    ) -> tuple[bytes | None, int]:
        """
        One GET, retried by the session adapter.

        Returns (body, attempts); body is None when it was written to
        ``target``.
        """
        attempts = 1
        try:
            with self.session.get(
                url,
                headers={TOKEN_HEADER: token},
                timeout=self.timeout,
                stream=True,
            ) as response:
                attempts = _attempts_used(response)
                if not response.ok:
                    raise _FetchError(
                        f"HTTP {response.status_code} {response.reason or ''}".strip(),
                        attempts,
                    )
                if target is None:
                    return self._read_body(response, cancel_event), attempts
                self._stage_body(response, target, cancel_event)
                return None, attempts
        except requests.exceptions.Timeout:
            raise _FetchError(f"Timed out after {self.timeout}s", self.max_attempts)
        except requests.exceptions.ConnectionError as e:
            raise _FetchError(f"Connection failed: {e}", self.max_attempts)
        except requests.exceptions.RequestException as e:
            raise _FetchError(f"Request failed: {e}", attempts)
        except OSError as e:
            raise _FetchError(f"Could not stage file: {e}", attempts)

    def _read_body(
        self, response: requests.Response, cancel_event: threading.Event
    ) -> bytes:
        body = bytearray()
        for chunk in response.iter_content(chunk_size=self.chunk_size):
            if cancel_event.is_set():
                raise _Cancelled()
            body.extend(chunk)
        return bytes(body)

    def _stage_body(
        self,
        response: requests.Response,
        target: Path,
        cancel_event: threading.Event,
    ) -> None:
        """Stream into ``<target>.part`` and rename on completion."""
        part = target.with_name(target.name + PART_SUFFIX)
        try:
            with open(part, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if cancel_event.is_set():
                        raise _Cancelled()
                    f.write(chunk)
            part.replace(target)
        except BaseException:
            part.unlink(missing_ok=True)
            raise


def _check_concurrency(concurrency: int) -> None:
    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError(f"concurrency must be an integer >= 1, got {concurrency!r}")


def _finished_outcomes(futures: Iterable[Future]) -> list[RetrievalOutcome]:
    return [
        future.result()
        for future in futures
        if future.done() and not future.cancelled() and future.exception() is None
    ]


def _discard_staged(outcomes: Iterable[RetrievalOutcome | None]) -> None:
    """Remove staged files belonging to successful outcomes."""
    for outcome in outcomes:
        if outcome is not None and outcome.staged_path is not None:
            outcome.staged_path.unlink(missing_ok=True)


def staging_name(index: int, filename: str) -> str:
    """Unique on-disk name for a staged body, truncated to fit NAME_MAX."""
    name = f"{index:04d}_{filename}"
    if len(name.encode("utf-8")) <= MAX_STAGED_NAME:
        return name

    path = Path(filename)
    suffix = path.suffix if len(path.suffix.encode("utf-8")) <= 16 else ""
    stem = filename[: len(filename) - len(suffix)] if suffix else filename
    budget = MAX_STAGED_NAME - len(f"{index:04d}_".encode("utf-8")) - len(
        suffix.encode("utf-8")
    )
    stem = stem.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
    return f"{index:04d}_{stem}{suffix}"


def _attempts_used(response: requests.Response) -> int:
    """Requests made for this response, counted from the urllib3 retry history."""
    retries = getattr(response.raw, "retries", None)
    if retries is None:
        return 1
    return len(retries.history) + 1
