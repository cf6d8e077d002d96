# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional
import httpx
import uvicorn
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import settings
from database import create_db_and_tables, get_session
from errors import InvalidInput
from services import auth_service, calendar_service
from services.auth_service import DeviceFlowClient
from services.calendar_service import GraphCalendarClient
from services.token_store import TokenStore

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and creating database tables...")
    await create_db_and_tables()
    app.state.flow_client = DeviceFlowClient(
        settings.MS_APP_ID, settings.MS_AUTHORITY, max_wait_seconds=settings.DEVICE_FLOW_MAX_WAIT_SECONDS
    )
    app.state.graph_client = GraphCalendarClient(
        httpx.AsyncClient(base_url=settings.GRAPH_API_ENDPOINT, timeout=settings.GRAPH_TIMEOUT_SECONDS)
    )
    logger.info("Startup complete.")
    yield
    await app.state.graph_client.aclose()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware, allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"], allow_headers=["*"],
)

# --- Dependencies ---
async def get_token_store(session: AsyncSession = Depends(get_session)) -> TokenStore:
    return TokenStore(session)

def get_flow_client(request: Request) -> DeviceFlowClient:
    return request.app.state.flow_client

def get_graph_client(request: Request) -> GraphCalendarClient:
    return request.app.state.graph_client

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected request body for %s: %s", request.url.path, exc.errors())
    return error_response(400, "Invalid request body")

# --- Pydantic Models ---
class AuthInitRequest(BaseModel): userId: Optional[Any] = None

class MeetingRequest(BaseModel):
    userId: Optional[str] = None
    subject: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    attendees: Optional[List[str]] = None
    body: Optional[str] = None
    attachments: List[Any] = []

# --- API Routes ---
@app.get("/health")
async def health():
    return {"status": "healthy"}

@app.post("/api/auth/init")
async def auth_init(
    payload: Optional[AuthInitRequest] = None,
    store: TokenStore = Depends(get_token_store),
    flow_client: DeviceFlowClient = Depends(get_flow_client),
):
    user_id = payload.userId if payload else None
    if not user_id or not isinstance(user_id, str):
        return error_response(400, "User ID is required")
    try:
        auth_url = await auth_service.init_auth(user_id, store, flow_client)
        return {"authUrl": auth_url}
    except Exception:
        logger.exception("Auth initialization error for user %s", user_id)
        return error_response(500, "Authentication initialization failed")

@app.post("/api/auth/complete/{user_id}")
async def auth_complete(
    user_id: str,
    store: TokenStore = Depends(get_token_store),
    flow_client: DeviceFlowClient = Depends(get_flow_client),
):
    try:
        return await auth_service.complete_auth(user_id, store, flow_client)
    except InvalidInput as e:
        return error_response(400, str(e))
    except Exception:
        logger.exception("Auth completion error for user %s", user_id)
        return error_response(500, "Failed to complete authentication")

@app.get("/api/auth/status/{user_id}")
async def auth_status(user_id: str, store: TokenStore = Depends(get_token_store)):
    try:
        return await auth_service.check_auth_status(user_id, store)
    except Exception:
        logger.exception("Auth status check error for user %s", user_id)
        return error_response(500, "Failed to check auth status")

@app.post("/api/auth/logout/{user_id}")
async def auth_logout(user_id: str, store: TokenStore = Depends(get_token_store)):
    try:
        await auth_service.logout(user_id, store)
        return {"message": "Logged out successfully"}
    except Exception:
        logger.exception("Logout error for user %s", user_id)
        return error_response(500, "Logout failed")

@app.post("/api/meetings")
async def create_meeting_api(
    meeting: MeetingRequest,
    store: TokenStore = Depends(get_token_store),
    graph_client: GraphCalendarClient = Depends(get_graph_client),
):
    if not all([meeting.userId, meeting.subject, meeting.startTime, meeting.endTime]) or meeting.attendees is None:
        return error_response(400, "Missing required fields")
    details = {
        "subject": meeting.subject, "startTime": meeting.startTime, "endTime": meeting.endTime,
        "attendees": meeting.attendees, "body": meeting.body, "attachments": meeting.attachments,
    }
    try:
        return await calendar_service.create_meeting(meeting.userId, details, store, graph_client)
    except Exception:
        # Unauthenticated is reported as a 500 like any other failure
        logger.exception("Meeting creation error for user %s", meeting.userId)
        return error_response(500, "Failed to create meeting")

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT)
