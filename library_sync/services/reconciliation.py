"""
Algoritmo de reconciliação de status.

Combina três fontes independentes e possivelmente inconsistentes (livros
emprestados, pedidos de empréstimo e reservas) em conjuntos de ids por
status, para cópias e para títulos.

Regras:
    1. Todo livro emprestado entra em `borrowed`.
    2. Pedido PENDING entra em `pending`, exceto se o id já está em
       `borrowed`. Pedido CANCELLED remove o id de `pending`.
    3. Reserva ACTIVE/READY/PENDING entra em `reserved`, exceto se o id já
       está em `borrowed`.

O motor garante apenas a exclusão mútua entre `borrowed` e os demais;
`reserved` e `pending` podem se sobrepor e o consumidor resolve com a
precedência BORROWED > RESERVED > PENDING.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from library_sync.models.enums import (
    ACTIVE_RESERVATION_STATUSES,
    REQUEST_CANCELLED,
    REQUEST_PENDING,
)
from library_sync.schemas.sync import StatusSets, SyncSnapshot
from library_sync.services.identity import (
    BORROWED_BOOK_ID_FIELDS,
    BORROWED_COPY_ID_FIELDS,
    REQUEST_BOOK_ID_FIELDS,
    REQUEST_COPY_ID_FIELDS,
    extract_rows,
    first_field,
    normalize_status,
)

logger = logging.getLogger(__name__)

BORROWED_ROW_KEYS = ("borrowedBooks", "books")
REQUEST_ROW_KEYS = ("requests", "borrowRequests")
RESERVATION_ROW_KEYS = ("reservations",)


class _MutableSets:
    def __init__(self) -> None:
        self.borrowed: set[str] = set()
        self.pending: set[str] = set()
        self.reserved: set[str] = set()

    def freeze(self) -> StatusSets:
        return StatusSets(
            borrowed=frozenset(self.borrowed),
            pending=frozenset(self.pending),
            reserved=frozenset(self.reserved),
        )


def reconcile(
    borrowed_books: Any,
    pending_requests: Any,
    reservations: Any,
    timestamp: Optional[datetime] = None,
) -> SyncSnapshot:
    """
    Executa o merge e devolve um snapshot imutável.

    Sempre recalcula do zero: nenhum estado é carregado entre passes.

    Args:
        borrowed_books: Resposta de get_user_books
        pending_requests: Resposta de get_borrow_requests("all")
        reservations: Resposta de get_user_reservations("all")
        timestamp: Momento do pass (default: agora, UTC)

    Returns:
        SyncSnapshot com copy_statuses e book_statuses
    """
    copies = _MutableSets()
    books = _MutableSets()

    for row in extract_rows(borrowed_books, *BORROWED_ROW_KEYS):
        copy_id = first_field(row, BORROWED_COPY_ID_FIELDS)
        book_id = first_field(row, BORROWED_BOOK_ID_FIELDS)
        if copy_id:
            copies.borrowed.add(copy_id)
        if book_id:
            books.borrowed.add(book_id)

    for row in extract_rows(pending_requests, *REQUEST_ROW_KEYS):
        copy_id = first_field(row, REQUEST_COPY_ID_FIELDS)
        book_id = first_field(row, REQUEST_BOOK_ID_FIELDS)
        status = normalize_status(row.get("status"))

        if status == REQUEST_PENDING:
            if copy_id and copy_id not in copies.borrowed:
                copies.pending.add(copy_id)
            if book_id and book_id not in books.borrowed:
                books.pending.add(book_id)
        elif status == REQUEST_CANCELLED:
            if copy_id:
                copies.pending.discard(copy_id)
            if book_id:
                books.pending.discard(book_id)

    for row in extract_rows(reservations, *RESERVATION_ROW_KEYS):
        if normalize_status(row.get("status")) not in ACTIVE_RESERVATION_STATUSES:
            continue
        copy_id = first_field(row, REQUEST_COPY_ID_FIELDS)
        book_id = first_field(row, REQUEST_BOOK_ID_FIELDS)
        if copy_id and copy_id not in copies.borrowed:
            copies.reserved.add(copy_id)
        if book_id and book_id not in books.borrowed:
            books.reserved.add(book_id)

    logger.debug(
        f"Reconciliação: cópias borrowed={len(copies.borrowed)} "
        f"pending={len(copies.pending)} reserved={len(copies.reserved)}; "
        f"títulos borrowed={len(books.borrowed)} "
        f"pending={len(books.pending)} reserved={len(books.reserved)}"
    )

    return SyncSnapshot(
        copy_statuses=copies.freeze(),
        book_statuses=books.freeze(),
        timestamp=timestamp or datetime.now(timezone.utc),
    )
