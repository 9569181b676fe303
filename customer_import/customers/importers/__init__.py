from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.batch import BatchImporter
from customer_import.customers.importers.csv_parser import CustomerCSVParser
from customer_import.customers.importers.duplicates import DuplicateIndex, build_duplicate_index
from customer_import.customers.importers.service import ImportService

__all__ = [
    "BatchImporter",
    "CustomerCSVParser",
    "DuplicateIndex",
    "ImportService",
    "RecordStore",
    "build_duplicate_index",
]
