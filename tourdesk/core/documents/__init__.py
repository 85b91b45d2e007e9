from tourdesk.core.documents.families import (
    DocumentFamily,
    FamilyName,
    get_family,
    is_well_formed_identifier,
)
from tourdesk.core.documents.numbering import (
    DocumentStatus,
    DueAndStatus,
    NumberedDocumentService,
    derive_due_and_status,
    format_identifier,
    parse_sequence_number,
    recompute_financials,
)
from tourdesk.core.documents.store import DocumentStore, SqlAlchemyDocumentStore

__all__ = [
    "DocumentFamily",
    "DocumentStatus",
    "DocumentStore",
    "DueAndStatus",
    "FamilyName",
    "NumberedDocumentService",
    "SqlAlchemyDocumentStore",
    "derive_due_and_status",
    "format_identifier",
    "get_family",
    "is_well_formed_identifier",
    "parse_sequence_number",
    "recompute_financials",
]
