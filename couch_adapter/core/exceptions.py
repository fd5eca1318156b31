"""Custom exceptions for the adapter."""

from opentelemetry.trace import StatusCode

from couch_adapter.core.telemetry.attributes import set_span_status


class CouchAdapterError(Exception):
    """Base class for all exceptions raised by the CouchDB adapter."""

    def __init__(self, detail: str | None = None, *args: object) -> None:
        """
        Initialize the CouchAdapterError.

        Args:
            detail (str): The detail message for the exception.
            *args: Additional arguments for the exception.

        """
        set_span_status(
            StatusCode.ERROR,
            detail=detail,
            exception=self,
        )
        self.detail = detail or "No detail provided."
        super().__init__(detail, *args)


class ConfigurationError(CouchAdapterError):
    """Exception for adapter configuration that cannot be used."""

    def __init__(self, detail: str, *args: object) -> None:
        """
        Initialize the ConfigurationError exception.

        Args:
            detail (str): The detail message for the exception.
            *args: Additional arguments for the exception.

        """
        super().__init__(detail, *args)


class MissingViewError(ConfigurationError):
    """Exception for when a view cannot be resolved to a design and view id."""

    def __init__(self, detail: str, view_name: str, *args: object) -> None:
        """
        Initialize the MissingViewError exception.

        Args:
            detail (str): The detail message for the exception.
            view_name (str): The logical name of the view that was requested.
            *args: Additional arguments for the exception.

        """
        self.view_name = view_name
        super().__init__(detail, *args)


class InvalidArgumentError(CouchAdapterError):
    """Exception for when an operation is called with unusable arguments."""

    def __init__(self, detail: str, *args: object) -> None:
        """
        Initialize the InvalidArgumentError exception.

        Args:
            detail (str): The detail message for the exception.
            *args: Additional arguments for the exception.

        """
        super().__init__(detail, *args)


class MissingArgumentError(InvalidArgumentError):
    """Exception for when a required argument is absent."""

    def __init__(self, detail: str, argument: str, *args: object) -> None:
        """
        Initialize the MissingArgumentError exception.

        Args:
            detail (str): The detail message for the exception.
            argument (str): The name of the missing argument.
            *args: Additional arguments for the exception.

        """
        self.argument = argument
        super().__init__(detail, *args)


class MissingInstanceError(InvalidArgumentError):
    """Exception for when a model instance is absent or cannot be flattened."""


class UnpersistedRelationError(InvalidArgumentError):
    """Exception for a relationship pointing at an instance with no identifier."""

    def __init__(self, detail: str, relationship: str, *args: object) -> None:
        """
        Initialize the UnpersistedRelationError exception.

        Args:
            detail (str): The detail message for the exception.
            relationship (str): The relationship property holding the instance.
            *args: Additional arguments for the exception.

        """
        self.relationship = relationship
        super().__init__(detail, *args)


class StoreError(CouchAdapterError):
    """An exception raised by the document store."""

    def __init__(
        self, detail: str, status_code: int | None = None, *args: object
    ) -> None:
        """
        Initialize the StoreError exception.

        Args:
            detail (str): The detail message for the exception.
            status_code (int | None): The HTTP status returned by the store, if any.
            *args: Additional arguments for the exception.

        """
        self.status_code = status_code
        super().__init__(detail, status_code, *args)


class StoreNotFoundError(StoreError):
    """Exception for when we can't find something in the document store."""

    def __init__(
        self,
        detail: str,
        lookup_model: str,
        lookup_type: str,
        lookup_value: object,
        *args: object,
    ) -> None:
        """
        Initialize the StoreNotFoundError exception.

        Args:
            detail (str): The detail message for the exception.
            lookup_model (str): The kind of record attempted to be accessed.
            lookup_type (str): The type of lookup performed (e.g., "id", "view").
            lookup_value (Any): The value(s) used in the lookup.
            *args: Additional arguments for the exception.

        """
        self.lookup_model = lookup_model
        self.lookup_type = lookup_type
        self.lookup_value = lookup_value
        super().__init__(detail, 404, *args)


class StoreConflictError(StoreError):
    """Exception for a write rejected because the revision token is stale."""

    def __init__(self, detail: str, document_id: str | None, *args: object) -> None:
        """
        Initialize the StoreConflictError exception.

        Args:
            detail (str): The detail message for the exception.
            document_id (str | None): The identifier of the conflicting document.
            *args: Additional arguments for the exception.

        """
        self.document_id = document_id
        super().__init__(detail, 409, *args)
