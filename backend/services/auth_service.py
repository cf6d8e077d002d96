# backend/services/auth_service.py
import logging
import time
from datetime import timedelta
from typing import Optional
import msal
from fastapi.concurrency import run_in_threadpool
from errors import InvalidInput, UpstreamError
from models import utcnow
from services.token_store import TokenStore

logger = logging.getLogger(__name__)

SCOPES = ['Calendars.ReadWrite']
VERIFICATION_URL = 'https://microsoft.com/devicelogin'


class DeviceFlowClient:
    """Device-code flow against the Microsoft identity platform via MSAL.

    The PublicClientApplication is built on first use since MSAL performs
    authority discovery when it is constructed.
    """

    def __init__(self, client_id: str, authority: str, scopes: Optional[list] = None, max_wait_seconds: float = 300):
        self.client_id = client_id
        self.authority = authority
        self.scopes = scopes or SCOPES
        self.max_wait_seconds = max_wait_seconds
        self._app = None

    @property
    def app(self) -> msal.PublicClientApplication:
        if self._app is None:
            if not self.client_id:
                raise UpstreamError("MS_APP_ID is not configured.")
            self._app = msal.PublicClientApplication(self.client_id, authority=self.authority)
        return self._app

    async def initiate(self) -> dict:
        flow = await run_in_threadpool(self.app.initiate_device_flow, scopes=self.scopes)
        if 'user_code' not in flow:
            raise UpstreamError(f"Device flow could not be started: {flow.get('error_description', flow)}")
        return flow

    async def acquire_token(self, flow: dict) -> dict:
        # MSAL polls until the user signs in or time.time() passes expires_at
        deadline = time.time() + self.max_wait_seconds
        flow = dict(flow, expires_at=min(flow.get('expires_at', deadline), deadline))
        result = await run_in_threadpool(self.app.acquire_token_by_device_flow, flow)
        if 'access_token' not in result:
            raise UpstreamError(f"Device flow failed: {result.get('error_description', result.get('error'))}")
        return result


async def init_auth(user_id: str, store: TokenStore, flow_client: DeviceFlowClient) -> dict:
    if not user_id:
        raise InvalidInput("User ID is required")

    existing_token = await store.get_token(user_id)
    if existing_token and existing_token.is_valid():
        return {"authenticated": True}

    flow = await flow_client.initiate()
    await store.upsert_flow(user_id, flow)
    logger.info("Started device-code flow for user %s", user_id)
    return {
        "authenticated": False,
        "deviceCode": flow['user_code'],
        "verificationUrl": VERIFICATION_URL,
    }


async def complete_auth(user_id: str, store: TokenStore, flow_client: DeviceFlowClient) -> dict:
    """Waits for a pending device-code sign-in to finish and stores the token."""
    pending = await store.get_flow(user_id)
    if not pending:
        raise InvalidInput("No pending authentication flow")

    flow_data = pending.flow_data
    # No transaction stays open while MSAL polls
    await store.end_read()

    result = await flow_client.acquire_token(flow_data)
    expires_on = utcnow() + timedelta(seconds=int(result.get('expires_in', 3600)))
    token = await store.save_token(user_id, result['access_token'], expires_on)
    await store.delete_flow(user_id)
    logger.info("Stored Microsoft token for user %s", user_id)
    return {"authenticated": True, "expiresOn": token.expires_on_iso()}


async def check_auth_status(user_id: str, store: TokenStore) -> dict:
    token = await store.get_token(user_id)
    if not token:
        return {"authenticated": False}
    return {"authenticated": token.is_valid(), "expiresOn": token.expires_on_iso()}


async def logout(user_id: str, store: TokenStore) -> bool:
    await store.delete_token(user_id)
    await store.delete_flow(user_id)
    return True
