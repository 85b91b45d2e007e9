"""Storage seam for numbered documents."""

from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.documents.families import DocumentFamily, is_well_formed_identifier
from tourdesk.core.exceptions import DuplicateIdentifierError, NotFoundError

DocT = TypeVar("DocT")


class DocumentStore(Protocol[DocT]):
    """What the numbering service needs from persistence."""

    async def find_max_identifier(self, family: DocumentFamily) -> str | None: ...

    async def insert_unique(self, document: DocT) -> DocT: ...

    async def find_by_id(self, document_id: int) -> DocT | None: ...

    async def update(self, document_id: int, fields: dict[str, Any]) -> DocT: ...

    async def delete(self, document_id: int) -> None: ...

    async def find_page(
        self,
        filters: Sequence[Any],
        order_by: Sequence[Any],
        skip: int,
        limit: int,
    ) -> tuple[list[DocT], int]: ...


class SqlAlchemyDocumentStore:
    """
    DocumentStore over one mapped model and an AsyncSession.

    The identifier column must carry a unique constraint whose name contains
    the column name (e.g. uq_invoices_invoice_number); that is how duplicate
    numbers are told apart from other integrity errors.
    """

    def __init__(
        self,
        session: AsyncSession,
        model: type,
        identifier_attr: str,
        family_attr: str | None = None,
        load_options: Sequence[Any] = (),
        resource_name: str | None = None,
        scan_batch_size: int = 20,
    ):
        self.session = session
        self.model = model
        self.identifier_attr = identifier_attr
        self.family_attr = family_attr
        self.load_options = tuple(load_options)
        self.resource_name = resource_name or model.__name__
        self.scan_batch_size = scan_batch_size

    @property
    def _identifier_column(self):
        return getattr(self.model, self.identifier_attr)

    async def find_max_identifier(self, family: DocumentFamily) -> str | None:
        """
        Latest identifier of the family.

        Well-formed numbers (prefix + digits) are ordered by length first so
        that HTL10000 sorts above HTL9999; malformed legacy numbers such as
        HTL-0042 are skipped. Only when the family has no well-formed number
        at all is the plain descending maximum returned, malformed or not.
        """
        column = self._identifier_column
        stmt = select(column)
        if self.family_attr is not None:
            stmt = stmt.where(getattr(self.model, self.family_attr) == family.name)

        ranked = stmt.where(column.like(f"{family.prefix}%")).order_by(
            func.length(column).desc(), column.desc()
        )
        offset = 0
        while True:
            result = await self.session.execute(ranked.offset(offset).limit(self.scan_batch_size))
            batch = result.scalars().all()
            for identifier in batch:
                if is_well_formed_identifier(identifier, family.prefix):
                    return identifier
            if len(batch) < self.scan_batch_size:
                break
            offset += self.scan_batch_size

        result = await self.session.execute(stmt.order_by(column.desc()).limit(1))
        return result.scalar_one_or_none()

    def _is_identifier_violation(self, exc: IntegrityError) -> bool:
        raw = str(getattr(exc, "orig", exc)).lower()
        if "unique" not in raw and "duplicate" not in raw:
            return False
        return self._identifier_column.key.lower() in raw

    async def insert_unique(self, document):
        """Insert inside a savepoint; a lost race leaves the outer transaction usable."""
        identifier = getattr(document, self.identifier_attr)
        try:
            async with self.session.begin_nested():
                self.session.add(document)
                await self.session.flush()
        except IntegrityError as exc:
            if self._is_identifier_violation(exc):
                raise DuplicateIdentifierError(
                    self.resource_name, self.identifier_attr, identifier
                ) from exc
            raise
        return document

    async def find_by_id(self, document_id: int):
        stmt = select(self.model).where(self.model.id == document_id)
        if self.load_options:
            stmt = stmt.options(*self.load_options)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_raise(self, document_id: int):
        document = await self.find_by_id(document_id)
        if document is None:
            raise NotFoundError(self.resource_name, document_id)
        return document

    async def update(self, document_id: int, fields: dict[str, Any]):
        document = await self._get_or_raise(document_id)
        for name, value in fields.items():
            setattr(document, name, value)
        await self.session.flush()
        return document

    async def delete(self, document_id: int) -> None:
        document = await self._get_or_raise(document_id)
        await self.session.delete(document)
        await self.session.flush()

    async def find_page(
        self,
        filters: Sequence[Any],
        order_by: Sequence[Any],
        skip: int,
        limit: int,
    ) -> tuple[list, int]:
        count_stmt = select(func.count()).select_from(self.model)
        stmt = select(self.model)
        if filters:
            count_stmt = count_stmt.where(*filters)
            stmt = stmt.where(*filters)
        total = (await self.session.execute(count_stmt)).scalar_one()

        if self.load_options:
            stmt = stmt.options(*self.load_options)
        stmt = stmt.order_by(*order_by).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
