"""Exceptions raised when the position lifecycle is driven out of order."""


class ScannerError(Exception):
    """Base exception for scanner and lifecycle errors."""


class PositionAlreadyOpenError(ScannerError):
    """Raise when opening a position while another one is still open.

    Args:
        position_id: Identifier of the position that is already open.

    """

    def __init__(self, position_id: str) -> None:
        """Initialize the error with the id of the open position.

        Args:
            position_id: Identifier of the position that is already open.

        """
        super().__init__(f"Position {position_id} is already open")
        self.position_id = position_id


class NoOpenPositionError(ScannerError):
    """Raise when marking or closing with no open position."""
