class StableMapError(Exception):
    """Base class for errors raised inside the enrichment pipeline."""


class ConnectorError(StableMapError):
    """A collaborator (search, fetcher, news API) returned an error or was unreachable."""

    def __init__(self, connector: str, message: str, status_code: int | None = None):
        super().__init__(f"{connector}: {message}")
        self.connector = connector
        self.status_code = status_code


class AIUnavailableError(StableMapError):
    """Every model in the roster failed during the current failure streak."""


class ParseError(StableMapError):
    """AI output did not contain a block we could parse."""
