"""
Enums utilizados em toda a biblioteca.
"""

import enum


class ReservationStatus(str, enum.Enum):
    """
    Status canônico de uma cópia ou título após um pass de reconciliação.

    Precedência quando o mesmo id aparece em mais de um conjunto:
        BORROWED > RESERVED > PENDING > AVAILABLE
    """
    AVAILABLE = "AVAILABLE"
    BORROWED = "BORROWED"
    PENDING = "PENDING"      # Pedido de empréstimo aguardando aprovação
    RESERVED = "RESERVED"    # Reserva ativa sobre livro emprestado
    UNKNOWN = "UNKNOWN"


class SyncState(str, enum.Enum):
    """
    Estado do motor de sincronização.

    Fluxo:
        STOPPED -> RUNNING (start_sync)
        RUNNING -> STOPPED (stop_sync ou erro de autenticação)
    """
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class ErrorType(str, enum.Enum):
    """Códigos de erro conhecidos do backend."""
    BORROW_LIMIT = "BORROW_LIMIT"
    BOOK_UNAVAILABLE = "BOOK_UNAVAILABLE"
    BOOK_AVAILABLE = "BOOK_AVAILABLE"
    NO_BORROWED_COPIES = "NO_BORROWED_COPIES"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_COPY = "INVALID_COPY"
    ALREADY_BORROWED = "ALREADY_BORROWED"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    DUPLICATE_RESERVATION = "DUPLICATE_RESERVATION"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    OVERDUE_BOOKS = "OVERDUE_BOOKS"
    BOOK_REPORTED_LOST = "BOOK_REPORTED_LOST"
    BOOK_REPORTED_DAMAGED = "BOOK_REPORTED_DAMAGED"
    BOOK_LOST = "BOOK_LOST"
    BOOK_DAMAGED = "BOOK_DAMAGED"
    COPY_LOST = "COPY_LOST"
    COPY_DAMAGED = "COPY_DAMAGED"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"


# Status de linhas vindas do backend (sempre comparados em maiúsculas)
REQUEST_PENDING = "PENDING"
REQUEST_CANCELLED = "CANCELLED"
ACTIVE_RESERVATION_STATUSES = frozenset({"ACTIVE", "READY", "PENDING"})
BORROWED_COPY_STATUSES = frozenset({"BORROWED"})
