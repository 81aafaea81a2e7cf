"""
Table QR Service

Issues, regenerates and verifies table access tokens against the stored
table rows.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.config import get_settings
from restopos.core.exceptions import NotFound, PersistenceFailure, TokenInvalid
from restopos.models import Table
from restopos.services.qr import render_qr_data_url
from restopos.services.table_token import TableToken, TableTokenCodec

logger = logging.getLogger(__name__)


@dataclass
class TableQR:
    """Current QR credentials of one table."""
    table_number: int
    qr_version: int
    token: str
    qr_url: str
    qr_code: str
    had_existing_qr: bool = True


class TableService:
    """QR lifecycle of the restaurant's tables."""

    def __init__(self, session: AsyncSession, codec: TableTokenCodec):
        self.session = session
        self.codec = codec
        self.settings = get_settings()

    def build_order_url(self, token: str) -> str:
        return f"{self.settings.customer_app_url}/order?{urlencode({'token': token})}"

    def _to_qr(self, table: Table, had_existing_qr: bool = True) -> TableQR:
        qr_url = self.build_order_url(table.qr_token)
        return TableQR(
            table_number=table.table_number,
            qr_version=table.qr_version,
            token=table.qr_token,
            qr_url=qr_url,
            qr_code=render_qr_data_url(qr_url),
            had_existing_qr=had_existing_qr,
        )

    async def get_table(self, table_number: int) -> Table:
        result = await self.session.execute(
            select(Table)
            .where(Table.table_number == table_number)
            .execution_options(populate_existing=True)
        )
        table = result.scalar_one_or_none()
        if table is None:
            raise NotFound(f"Table {table_number} not found")
        return table

    async def get_qr(self, table_number: int) -> TableQR:
        """
        Current QR of a table, issuing the version-1 token on first request.

        A stored token that has expired is reissued at the same version, so
        the printed link stays usable without revoking anything.
        """
        table = await self.get_table(table_number)
        had_existing_qr = bool(table.qr_token)
        if had_existing_qr:
            try:
                self.codec.decode(table.qr_token)
                return self._to_qr(table)
            except TokenInvalid as e:
                logger.info(f"Stored QR token for table {table_number} is no longer valid: {e.reason}")

        version = max(table.qr_version, 1)
        token = self.codec.issue(table.table_number, version)
        try:
            table.qr_version = version
            table.qr_token = token
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Failed to store QR token for table {table_number}: {e}")
            raise PersistenceFailure()

        action = "Reissued" if had_existing_qr else "Issued first"
        logger.info(f"{action} QR token for table {table_number} (v{version})")
        return self._to_qr(table, had_existing_qr=had_existing_qr)

    async def regenerate_qr(self, table_number: int) -> TableQR:
        """
        Bump the table's QR version and issue a new token.

        Every token issued for an earlier version stops being accepted.
        """
        table = await self.get_table(table_number)
        try:
            # Atomic increment in the database, not read-modify-write
            result = await self.session.execute(
                update(Table)
                .where(Table.id == table.id)
                .values(qr_version=Table.qr_version + 1)
                .returning(Table.qr_version)
            )
            new_version = result.scalar_one()
            token = self.codec.issue(table.table_number, new_version)
            await self.session.execute(
                update(Table).where(Table.id == table.id).values(qr_token=token)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Failed to regenerate QR for table {table_number}: {e}")
            raise PersistenceFailure()

        table = await self.get_table(table_number)
        logger.info(f"Regenerated QR for table {table_number}: now v{table.qr_version}")
        return self._to_qr(table)

    async def verify_token(self, token: str, table_number: Optional[int] = None) -> tuple[Table, TableToken]:
        """
        Full gate for a customer token: structure, freshness and live version.

        Raises:
            TokenInvalid: for every failure, including unknown tables, so the
                response never tells a customer which part was wrong.
        """
        decoded = self.codec.decode(token)

        if table_number is not None and table_number != decoded.table_number:
            raise TokenInvalid(
                f"token for table {decoded.table_number} used for table {table_number}"
            )

        try:
            table = await self.get_table(decoded.table_number)
        except NotFound:
            raise TokenInvalid(f"token names unknown table {decoded.table_number}")

        if not self.codec.is_live(decoded, table.qr_version):
            raise TokenInvalid(
                f"stale token for table {table.table_number}: "
                f"v{decoded.qr_version} != v{table.qr_version}"
            )

        return table, decoded
