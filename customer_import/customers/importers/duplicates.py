from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.csv_parser import ParsedRow

logger = structlog.get_logger()


@dataclass
class DuplicateIndex:
    """Emails repeated inside the file and emails already present in the store.

    ``in_store`` grows while an import runs: the batch importer adds every email
    it persists so later rows of the same file see the conflict.
    """

    in_file: set[str] = field(default_factory=set)
    in_store: set[str] = field(default_factory=set)

    def is_in_file(self, email: str) -> bool:
        return email in self.in_file

    def is_in_store(self, email: str) -> bool:
        return email in self.in_store

    def mark_stored(self, email: str) -> None:
        if email:
            self.in_store.add(email)

    def unmark_stored(self, emails: set[str]) -> None:
        self.in_store.difference_update(emails)


async def build_duplicate_index(rows: Sequence[ParsedRow], store: RecordStore) -> DuplicateIndex:
    """Count emails across the parsed rows and prefetch the stored ones in a single lookup."""
    counts = Counter(row.email for row in rows if row.email)
    in_file = {email for email, count in counts.items() if count > 1}

    in_store: set[str] = set()
    if counts:
        existing = await store.find_existing_emails(set(counts))
        in_store = {email.lower() for email in existing}

    logger.info(
        "duplicate_index_built",
        distinct_emails=len(counts),
        in_file=len(in_file),
        in_store=len(in_store),
    )
    return DuplicateIndex(in_file=in_file, in_store=in_store)
