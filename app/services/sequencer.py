"""Per-kind identifier sequencer.

Each call advances the counter for one entity kind with a single
``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` statement, so two
concurrent callers can never observe the same value. The increment joins the
caller's transaction: if that transaction rolls back, so does the allocation.
"""
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EntityKind
from app.core.errors import TransactionFailure
from app.core.metrics import sequence_allocations
from app.models.sequence import IdSequence

logger = logging.getLogger(__name__)

ID_PREFIXES = {
    EntityKind.QUOTE_REQUEST: "QR",
    EntityKind.QUOTE: "Q",
    EntityKind.SHIPMENT: "FS",
}
ID_PADDING = 5

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def format_identifier(kind: EntityKind, value: int) -> str:
    return f"{ID_PREFIXES[kind]}-{str(value).zfill(ID_PADDING)}"


async def next_value(db: AsyncSession, kind: EntityKind) -> int:
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise TransactionFailure(f"Atomic sequence increment is not supported on {dialect}")

    table = IdSequence.__table__
    stmt = (
        insert(table)
        .values(kind=kind.value, current_value=1)
        .on_conflict_do_update(
            index_elements=[table.c.kind],
            set_={"current_value": table.c.current_value + 1},
        )
        .returning(table.c.current_value)
    )

    try:
        result = await db.execute(stmt)
        value = result.scalar_one()
    except SQLAlchemyError as exc:
        logger.error(f"Sequence increment failed for {kind}: {exc}")
        sequence_allocations.labels(kind=kind.value, status="error").inc()
        raise TransactionFailure(f"Could not allocate a {kind} identifier") from exc

    sequence_allocations.labels(kind=kind.value, status="success").inc()
    return int(value)


async def allocate_identifier(db: AsyncSession, kind: EntityKind) -> str:
    return format_identifier(kind, await next_value(db, kind))
