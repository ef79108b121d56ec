from fastapi import FastAPI, Depends
from dotenv import load_dotenv
load_dotenv(dotenv_path="backend/.env", override=False)
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from .routers import emails, voice, webhooks
from .db.database import Base, engine, SessionLocal
from .models import email_model  # noqa: F401
from .core.logging import init_logging
from .services.llm import current_provider, llm_available
from .services.mailbox import MailboxStore, get_store
from .services.seed import seed_sample_emails
import logging, os, time, uuid
from fastapi import Request
from fastapi.responses import JSONResponse


def _seed_on_startup():
    if os.getenv('SEED_SAMPLE_EMAILS', '1') == '0':
        return
    db = SessionLocal()
    try:
        summary = seed_sample_emails(MailboxStore(db))
        logging.getLogger(__name__).info("seed_complete", extra={"component": "seed", "count": summary["inserted"]})
    except Exception as e:
        logging.getLogger(__name__).warning("seed_failed", exc_info=e, extra={"component": "seed"})
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_logging()
    Base.metadata.create_all(bind=engine)
    _seed_on_startup()
    yield

app = FastAPI(title="Voice Mail Assistant", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(emails.router, prefix="/api/emails", tags=["emails"])
app.include_router(voice.router, prefix="/api/voice", tags=["voice"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])


@app.get("/health")
def health(store: MailboxStore = Depends(get_store)):
    return {
        "status": "ok",
        "emails": store.count(),
        "llm": {"provider": current_provider(), "available": llm_available()},
        "tts": {"configured": bool(os.getenv('ELEVENLABS_API_KEY'))},
    }

@app.middleware("http")
async def timing_logger(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4())[:8])
    start = time.perf_counter()
    try:
        response = await call_next(request)
        duration = (time.perf_counter()-start)*1000
        logging.getLogger().info(
            f"{request.method} {request.url.path} {response.status_code} {duration:.1f}ms",
            extra={"trace_id": trace_id, "method": request.method, "path": request.url.path, "status": response.status_code, "duration_ms": round(duration,1)}
        )
        response.headers['X-Trace-Id'] = trace_id
        return response
    except Exception as exc:
        duration = (time.perf_counter()-start)*1000
        logging.getLogger().error(
            f"ERR {request.method} {request.url.path} {type(exc).__name__}",
            exc_info=exc,
            extra={"trace_id": trace_id, "method": request.method, "path": request.url.path, "status": 500, "duration_ms": round(duration,1), "error_type": type(exc).__name__}
        )
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error", "trace_id": trace_id})
