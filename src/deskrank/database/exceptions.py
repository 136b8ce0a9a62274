"""Custom exceptions for database operations."""


class DatabaseError(Exception):
    """Base exception for database-related errors."""


class DatabaseObjectError(DatabaseError):
    """Base for errors related to a specific database object (e.g., table)."""

    def __init__(self, object_type: str, object_name: str, message: str | None = None) -> None:
        self.object_type = object_type
        self.object_name = object_name
        if message is None:
            message = f"{object_type.capitalize()} '{object_name}' not found"
        super().__init__(message)


class TableNotFoundError(DatabaseObjectError):
    """Raised when a table is not found in the database."""

    def __init__(self, table_name: str) -> None:
        super().__init__(
            object_type="table",
            object_name=table_name,
            message=f"Table '{table_name}' not found in database",
        )


class InvalidTableNameError(DatabaseError):
    """Raised when an invalid table name is used."""

    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        super().__init__(f"Invalid table name: '{table_name}'")


class TransactionError(DatabaseError):
    """Raised when a transaction could not be committed and was rolled back."""


class NestedTransactionError(TransactionError):
    """Raised when a transaction is opened on a thread that already has one."""

    def __init__(self) -> None:
        super().__init__("A transaction is already open on this thread")
