import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

from artifact_pipeline import ArchiveDecodeError, ArtifactSet, ResponseArtifactPipeline

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:8000/generate-images/"


@dataclass(frozen=True)
class TransportResponse:
    ok: bool
    content: bytes = b""
    status_code: Optional[int] = None
    error: Optional[Exception] = None


class LensServiceClient:
    """POSTs the lens payload and hands back the raw body, whatever the status."""

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, timeout: float = 120.0, session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def post(self, payload: dict) -> TransportResponse:
        logger.info("POST %s (%s layers)", self.endpoint, payload.get("layers_count"))
        response = None
        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            failed = e.response if e.response is not None else response
            status = failed.status_code if failed is not None else None
            content = failed.content if failed is not None else b""
            logger.warning("Request to %s failed (status %s): %s", self.endpoint, status, e)
            return TransportResponse(False, content or b"", status, e)
        return TransportResponse(True, response.content, response.status_code)


class CycleStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SubmissionState:
    sequence: int = 0
    status: CycleStatus = CycleStatus.IDLE
    artifacts: Optional[ArtifactSet] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def pending(self):
        return self.status is CycleStatus.PENDING


class SubmissionCycle:
    """
    One submission at a time from the caller's point of view.

    ``begin`` hands out a ticket (the new sequence number) and drops the
    previous result; ``complete`` only accepts the response for the latest
    ticket, so a superseded request never registers handles.
    """

    def __init__(self, pipeline: ResponseArtifactPipeline):
        self.pipeline = pipeline
        self.state = SubmissionState()

    def begin(self) -> int:
        self._release()
        self.state.sequence += 1
        self.state.status = CycleStatus.PENDING
        return self.state.sequence

    def complete(self, ticket: int, response: TransportResponse) -> bool:
        if ticket != self.state.sequence:
            logger.info("Dropping stale response #%d (current #%d)", ticket, self.state.sequence)
            return False

        self.state.status_code = response.status_code
        if response.ok:
            try:
                self.state.artifacts = self.pipeline.on_success(response.content)
            except ArchiveDecodeError as e:
                logger.error("Could not unpack response #%d: %s", ticket, e)
                self._fail(self.pipeline.on_failure(None, e))
            except Exception as e:
                logger.exception("Unexpected error while unpacking response #%d", ticket)
                self._fail(self.pipeline.on_failure(None, e))
            else:
                self.state.status = CycleStatus.SUCCEEDED
        else:
            self._fail(self.pipeline.on_failure(response.content, response.error))
        return True

    def run(self, params) -> SubmissionState:
        ticket = self.begin()
        try:
            response = self.pipeline.submit(params)
        except Exception as e:
            logger.exception("Submission #%d failed before a response arrived", ticket)
            response = TransportResponse(False, b"", None, e)
        self.complete(ticket, response)
        return self.state

    def reset(self):
        self._release()
        self.state.status = CycleStatus.IDLE

    def teardown(self):
        self.pipeline.revoke_all()
        self.state.artifacts = None
        self.state.error = None
        self.state.status_code = None
        self.state.status = CycleStatus.IDLE

    def _fail(self, message):
        self.state.artifacts = None
        self.state.error = message
        self.state.status = CycleStatus.FAILED

    def _release(self):
        self.pipeline.revoke(self.state.artifacts)
        self.state.artifacts = None
        self.state.error = None
        self.state.status_code = None
