class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCsvFileError(AppError):
    """The upload cannot be imported at all: wrong type, empty, unreadable or without data rows."""

    def __init__(self, message: str = "Invalid CSV file."):
        super().__init__(message, code="INVALID_CSV_FILE")


class InvalidCsvHeaderError(AppError):
    def __init__(self, message: str = "Invalid CSV header."):
        super().__init__(message, code="INVALID_CSV_HEADER")


class StoreError(AppError):
    """Any persistence failure raised by a record store."""

    def __init__(self, message: str):
        super().__init__(message, code="STORE_ERROR")
