class LedgerError(Exception):
    """A single remote ledger call failed (transport, HTTP status or JSON-RPC error)."""


class IndexingError(Exception):
    """
    A bounded-range fetch failed. The refresh is aborted and the store keeps
    its previous content.
    """

    def __init__(self, cause: BaseException):
        super().__init__(f"indexing failed: {cause}")
        self.cause = cause

    @property
    def notification(self) -> str:
        return f"Could not load explorer data: {self.cause}"
