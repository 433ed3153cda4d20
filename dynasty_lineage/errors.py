class LineageError(Exception):
    """Base class for errors raised by the lineage engine."""


class NotFoundError(LineageError, LookupError):
    kind = "Record"

    def __init__(self, identifier: str, message: str = None):
        self.identifier = identifier
        super().__init__(message or f"{self.kind} not found: {identifier}")


class AssetNotFoundError(NotFoundError):
    kind = "Asset"


class TransactionNotFoundError(NotFoundError):
    kind = "Transaction"


class ManagerNotFoundError(NotFoundError):
    kind = "Manager"


class LeagueNotFoundError(NotFoundError):
    kind = "League"


class DraftPickNotFoundError(NotFoundError):
    kind = "Draft pick"


class DataIntegrityError(LineageError):
    """Persisted data that cannot be turned into a lineage without guessing."""


class InvalidRequestError(LineageError, ValueError):
    pass
