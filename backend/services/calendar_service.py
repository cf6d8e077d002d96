# backend/services/calendar_service.py
import logging
from typing import Any, Dict, List, Optional
import httpx
from errors import Unauthenticated, UpstreamError
from services.token_store import TokenStore

logger = logging.getLogger(__name__)

ONLINE_MEETING_PROVIDER = 'teamsForBusiness'


class GraphCalendarClient:
    """Creates events in the signed-in user's default Outlook calendar."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
        }
        try:
            response = await self.http.post('/me/events', json=event, headers=headers)
        except httpx.HTTPError as error:
            raise UpstreamError(f"Graph request failed: {error}") from error
        if not response.is_success:
            raise UpstreamError(f"Graph returned {response.status_code}: {response.text}")
        return response.json()

    async def aclose(self):
        await self.http.aclose()


def build_event_payload(subject: str, start_time: str, end_time: str, attendees: List[str], body: Optional[str] = None):
    return {
        'subject': subject,
        'start': {
            'dateTime': start_time,
            'timeZone': 'UTC',
        },
        'end': {
            'dateTime': end_time,
            'timeZone': 'UTC',
        },
        'body': {
            'contentType': 'HTML',
            'content': body or '',
        },
        'attendees': [
            {'emailAddress': {'address': email}, 'type': 'required'}
            for email in attendees
        ],
        'isOnlineMeeting': True,
        'onlineMeetingProvider': ONLINE_MEETING_PROVIDER,
    }


async def create_meeting(user_id: str, details: Dict[str, Any], store: TokenStore, client: GraphCalendarClient):
    """Creates a Teams meeting on the user's calendar and returns Graph's event object.

    `details` carries subject, startTime, endTime, attendees and optionally body.
    Attachments are accepted by the API but not uploaded.
    """
    token = await store.get_token(user_id)
    if not token:
        raise Unauthenticated("User not authenticated")
    if not token.is_valid():
        raise Unauthenticated("Microsoft token has expired")

    event = build_event_payload(
        subject=details['subject'], start_time=details['startTime'], end_time=details['endTime'],
        attendees=details['attendees'], body=details.get('body'),
    )
    created_event = await client.create_event(token.access_token, event)
    logger.info("Meeting created for user %s: %s", user_id, created_event.get('id'))
    return created_event
