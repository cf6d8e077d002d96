# backend/services/token_store.py
from datetime import datetime
from typing import Optional
from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from models import MsAuthFlow, MsToken, utcnow

UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class TokenStore:
    """Reads and writes the ms_tokens / ms_auth_flow rows for a user.

    Writes are single INSERT ... ON CONFLICT statements, so concurrent writers
    for the same user never collide on the primary key; the last one wins.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _upsert(self, model, user_id: str, **values):
        dialect = self.session.bind.dialect.name
        if dialect not in UPSERT_INSERTS:
            raise NotImplementedError(f"No upsert support for the {dialect} dialect")
        statement = UPSERT_INSERTS[dialect](model).values(user_id=user_id, **values)
        statement = statement.on_conflict_do_update(
            index_elements=["user_id"],
            set_={column: statement.excluded[column] for column in values},
        )
        await self.session.execute(statement)
        await self.session.commit()
        return await self.session.get(model, user_id, populate_existing=True)

    async def end_read(self):
        """Closes the current transaction without expiring loaded rows."""
        await self.session.commit()

    async def get_token(self, user_id: str) -> Optional[MsToken]:
        return await self.session.get(MsToken, user_id)

    async def save_token(self, user_id: str, access_token: str, expires_on: datetime) -> MsToken:
        return await self._upsert(MsToken, user_id, access_token=access_token, expires_on=expires_on)

    async def delete_token(self, user_id: str):
        await self.session.execute(delete(MsToken).where(MsToken.user_id == user_id))
        await self.session.commit()

    async def get_flow(self, user_id: str) -> Optional[MsAuthFlow]:
        return await self.session.get(MsAuthFlow, user_id)

    async def upsert_flow(self, user_id: str, flow_data: dict) -> MsAuthFlow:
        return await self._upsert(MsAuthFlow, user_id, flow_data=flow_data, created_at=utcnow())

    async def delete_flow(self, user_id: str):
        await self.session.execute(delete(MsAuthFlow).where(MsAuthFlow.user_id == user_id))
        await self.session.commit()
