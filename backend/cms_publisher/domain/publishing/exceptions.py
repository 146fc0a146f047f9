class PublishError(Exception):
    """Base class for failures raised by the publish pipeline."""


class ValidationError(PublishError):
    """A requested root or child does not exist in draft, or is in the wrong parent."""


class StoreError(PublishError):
    """A read or write against the relational store failed."""

    def __init__(self, message, *, operation=None, table=None):
        super().__init__(message)
        self.operation = operation
        self.table = table


class CleanupError(PublishError):
    """Hard-deleting an orphaned entity failed. Logged and skipped, never fatal."""

    def __init__(self, message, *, entity_type, entity_id):
        super().__init__(message)
        self.entity_type = entity_type
        self.entity_id = entity_id
