import asyncio
import time
from typing import Any

from dotenv import load_dotenv

load_dotenv()

from fastapi import Body, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError

from api.schemas import (
    AckResponse,
    ClarificationResponse,
    ConfusionRequest,
    ConnectRequest,
    ConnectResponse,
    DisconnectRequest,
    DisconnectResponse,
    DismissResponse,
    DrugMentionRequest,
    GenerateNotesRequest,
    GenerateNotesResponse,
    InteractionCheckRequest,
    PatientRecordResponse,
    SafetyCheckRequest,
    SafetyCheckResponse,
    TranscriptRequest,
)
from visitguard.config.logger import configure_logging, get_logger
from visitguard.config.settings import settings
from visitguard.messaging.scribe import generate_visit_notes
from visitguard.runtime.events import TERMINAL_EVENTS, EventHub, next_event, to_sse
from visitguard.runtime.lifecycle import LifecycleState, VisitLifecycle
from visitguard.runtime.records import RecordExistsError, VisitRecordStore
from visitguard.safety import PatientHistoryStore, RecordParseError, SafetyEvaluator, build_oracle
from visitguard.session import IngestAck, SessionStore, VisitMonitor
from visitguard.session.monitor import clarification_payload
from visitguard.utils.report_pdf import build_visit_summary_pdf_bytes

app = FastAPI(title="VisitGuard Telehealth Safety Service")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

configure_logging()
logger = get_logger(__name__)

MISSING_FIELDS = "Missing required fields"
SAFETY_CHECK_FAILED = "Post-visit safety check failed"
SESSION_NOT_FOUND = "Visit session not found"
CONFLICT_CHECK_FAILED = {
    "hasConflict": False,
    "details": "Conflict check failed. Please verify manually.",
    "source": "error",
}

store = SessionStore()
hub = EventHub()
monitor = VisitMonitor(store, hub)
history_store = PatientHistoryStore()
records = VisitRecordStore()
evaluator = SafetyEvaluator(build_oracle())
lifecycle = VisitLifecycle(store, monitor, evaluator, records, hub=hub, history=history_store)


def _ack(ack: IngestAck) -> AckResponse:
    return AckResponse(
        session_id=ack.session_id,
        accepted=ack.accepted,
        drug=ack.drug,
        fired=ack.fired,
        prescription=ack.prescription,
        event=ack.event,
        clarification=clarification_payload(ack.clarification) if ack.clarification else None,
    )


@app.exception_handler(HTTPException)
async def http_error_handler(_request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())})


@app.middleware("http")
async def log_requests(request, call_next):
    start = time.perf_counter()
    logger.info("[request.start] %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "[request.end] %s %s status=%s elapsed=%.1fms",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.on_event("startup")
async def startup():
    await records.init()
    logger.info("[startup] oracle=%s archive=%s", settings.INTERACTION_ORACLE, records.archive_path or "memory")


@app.get("/api/health")
async def health():
    return {"ok": True}


# -- live visit ---------------------------------------------------------------


@app.post("/api/visits/connect", response_model=ConnectResponse)
async def connect_visit(body: ConnectRequest):
    session_id = await lifecycle.on_connected(
        body.connection_id,
        body.role,
        participant_identity=body.participant_identity,
        patient_history=body.patient_history,
        patient_age=body.patient_age,
    )
    return ConnectResponse(
        session_id=session_id,
        connection_id=body.connection_id,
        state=lifecycle.state_of(session_id).value,
    )


@app.post("/api/visits/disconnect", response_model=DisconnectResponse)
async def disconnect_visit(body: DisconnectRequest):
    session_id = lifecycle.session_for(body.connection_id)
    if session_id is None:
        raise HTTPException(status_code=404, detail="No active visit for this connection")
    await lifecycle.on_disconnected(body.connection_id)
    return DisconnectResponse(session_id=session_id, state=lifecycle.state_of(session_id).value)


@app.post("/api/visits/{session_id}/drug-mentions", response_model=AckResponse)
async def post_drug_mention(session_id: str, body: DrugMentionRequest):
    ack = await monitor.post_drug_mention(
        session_id,
        body.drug,
        speaker=body.speaker,
        dosage=body.dosage,
        duration=body.duration,
        prescribed_by=body.prescribed_by,
    )
    return _ack(ack)


@app.post("/api/visits/{session_id}/transcript", response_model=list[AckResponse])
async def post_transcript(session_id: str, body: TranscriptRequest):
    acks = await monitor.post_transcript(session_id, body.text, speaker=body.speaker)
    return [_ack(a) for a in acks]


@app.post("/api/visits/{session_id}/confusion", response_model=AckResponse)
async def post_confusion(session_id: str, body: ConfusionRequest):
    ack = await monitor.post_confusion_observation(
        session_id,
        body.state,
        body.visual_evidence,
        body.confidence,
        drug_context=body.drug_context,
    )
    return _ack(ack)


@app.get("/api/visits/{session_id}/clarification", response_model=ClarificationResponse)
async def get_clarification(session_id: str):
    current = monitor.current_clarification(session_id)
    return ClarificationResponse(
        session_id=session_id,
        active=current is not None,
        clarification=clarification_payload(current) if current else None,
    )


@app.post("/api/visits/{session_id}/clarification/dismiss", response_model=DismissResponse)
async def dismiss_clarification(session_id: str):
    dismissed = await monitor.dismiss_clarification(session_id)
    return DismissResponse(
        session_id=session_id,
        dismissed=dismissed is not None,
        drug=dismissed.drug if dismissed else None,
    )


@app.get("/api/visits/{session_id}/events")
async def stream_visit_events(session_id: str):
    queue = await hub.subscribe(session_id)

    async def event_generator():
        try:
            state = lifecycle.state_of(session_id)
            yield to_sse("state", {"sessionId": session_id, "state": state.value})
            if state in {LifecycleState.FINALIZED, LifecycleState.FAILED}:
                return
            while True:
                event = await next_event(queue, timeout=settings.SSE_PING_SECONDS)
                if event is None:
                    yield "event: ping\ndata: {}\n\n"
                    if lifecycle.state_of(session_id) in {LifecycleState.FINALIZED, LifecycleState.FAILED}:
                        break
                    continue
                yield to_sse(event["event"], event["data"])
                if event["event"] in TERMINAL_EVENTS:
                    break
        finally:
            await hub.unsubscribe(session_id, queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# -- post-visit ---------------------------------------------------------------


@app.post("/api/post-visit-safety-check", response_model=SafetyCheckResponse)
async def post_visit_safety_check(payload: Any = Body(None)):
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)
    try:
        body = SafetyCheckRequest.model_validate(payload)
    except ValidationError as exc:
        logger.info("[safety_check] rejected payload: %s", exc.error_count())
        raise HTTPException(status_code=400, detail=MISSING_FIELDS) from exc

    try:
        record = await lifecycle.run_safety_check(
            body.session_id,
            body.prescriptions,
            body.patient_history,
            body.role,
            patient_age=body.patient_age,
        )
    except RecordExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("[safety_check] failed session_id=%s", body.session_id)
        raise HTTPException(status_code=500, detail=SAFETY_CHECK_FAILED) from exc

    return SafetyCheckResponse(
        session_id=record.session_id,
        safety_check=record.safety_check,
        clinician_note=record.clinician_note,
        patient_follow_up=record.patient_follow_up,
    )


@app.get("/api/visit-summary/{session_id}")
async def get_visit_summary(session_id: str):
    record = await records.get(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    return record.model_dump(mode="json", by_alias=True)


@app.get("/api/visit-summary/{session_id}/pdf")
async def download_visit_summary_pdf(session_id: str):
    record = await records.get(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    try:
        pdf_bytes = await asyncio.to_thread(build_visit_summary_pdf_bytes, record)
    except Exception as exc:
        logger.exception("[visit_summary.pdf] build failed session_id=%s", session_id)
        raise HTTPException(status_code=500, detail="Failed to build visit summary PDF") from exc
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="visit-summary-{session_id}.pdf"'},
    )


# -- patient record & interactions --------------------------------------------


@app.post("/api/check-interactions")
async def check_interactions(body: InteractionCheckRequest):
    oracle = evaluator.oracle
    if oracle is None:
        return {"hasConflict": False, "details": "Interaction checking is disabled.", "source": "none"}
    try:
        lookup = await asyncio.wait_for(
            oracle.check(body.new_drug, history_store.drugs()),
            timeout=settings.INTERACTION_LOOKUP_TIMEOUT,
        )
    except Exception:
        logger.exception("[check_interactions] lookup failed drug=%s", body.new_drug)
        return JSONResponse(status_code=500, content=CONFLICT_CHECK_FAILED)
    return lookup.model_dump(by_alias=True)


@app.post("/api/patient-record", response_model=PatientRecordResponse)
async def upload_patient_record(
    pdf: UploadFile | None = File(None),
    text: str | None = Form(None),
):
    if pdf is not None:
        content = await pdf.read()
        if len(content) > settings.PATIENT_RECORD_MAX_BYTES:
            raise HTTPException(status_code=413, detail="File too large")
        try:
            drugs = await history_store.load_pdf(content)
        except RecordParseError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    elif text and text.strip():
        drugs = history_store.load_text(text)
    else:
        raise HTTPException(status_code=400, detail="Upload a PDF or provide record text")
    return PatientRecordResponse(ok=True, drug_count=len(drugs), drugs=drugs)


@app.get("/api/patient-record")
async def patient_record_status():
    return history_store.status()


@app.post("/api/generate-notes", response_model=GenerateNotesResponse)
async def generate_notes(body: GenerateNotesRequest):
    lines = body.transcript_lines()
    if not lines and not body.visual_logs:
        raise HTTPException(status_code=400, detail="Missing transcript or visualLogs")
    notes = await generate_visit_notes(lines, body.visual_logs)
    return GenerateNotesResponse(notes=notes.notes, source=notes.source)
