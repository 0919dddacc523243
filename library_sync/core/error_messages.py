"""
Política de mensagens de erro em dois níveis.

Erros de negócio (limite de empréstimos, reserva duplicada, livros em
atraso...) são exibidos ao usuário. Erros de sistema são registrados no log
e substituídos por uma mensagem genérica, para não vazar detalhes internos.

O backend nem sempre devolve um código estruturado, então a classificação
procura os tokens conhecidos como substrings, sem diferenciar maiúsculas.
"""

from typing import Optional

from library_sync.core.exceptions import GENERIC_ERROR_MESSAGE
from library_sync.models.enums import ErrorType

USER_FRIENDLY_MESSAGES: dict[ErrorType, str] = {
    ErrorType.BORROW_LIMIT: "Você atingiu o limite de empréstimos. Devolva algum livro antes de pedir outro.",
    ErrorType.BOOK_UNAVAILABLE: "Este livro não está mais disponível para empréstimo.",
    ErrorType.BOOK_AVAILABLE: "Este livro tem cópias disponíveis. Faça um empréstimo diretamente.",
    ErrorType.NO_BORROWED_COPIES: "Todas as cópias estão disponíveis. Faça um empréstimo diretamente.",
    ErrorType.USER_NOT_FOUND: "Conta não encontrada. Faça login novamente.",
    ErrorType.INVALID_COPY: "A cópia selecionada não está mais disponível.",
    ErrorType.ALREADY_BORROWED: "Você já está com este livro emprestado.",
    ErrorType.ALREADY_RESERVED: "Você já reservou este livro.",
    ErrorType.DUPLICATE_REQUEST: "Você já tem um pedido de empréstimo pendente para este livro.",
    ErrorType.DUPLICATE_RESERVATION: "Você já possui uma reserva ativa para este livro.",
    ErrorType.ACCOUNT_SUSPENDED: "Sua conta está suspensa. Procure a biblioteca.",
    ErrorType.OVERDUE_BOOKS: "Você tem livros em atraso. Devolva-os antes de pedir novos.",
    ErrorType.BOOK_REPORTED_LOST: "Este título consta como perdido na sua conta. Regularize no balcão.",
    ErrorType.BOOK_REPORTED_DAMAGED: "Este título tem um relato de dano pendente na sua conta.",
    ErrorType.BOOK_LOST: "Este livro está marcado como perdido e não pode ser emprestado.",
    ErrorType.BOOK_DAMAGED: "Este livro está marcado como danificado e não pode ser emprestado.",
    ErrorType.COPY_LOST: "A cópia selecionada está marcada como perdida. Escolha outra.",
    ErrorType.COPY_DAMAGED: "A cópia selecionada está marcada como danificada. Escolha outra.",
    ErrorType.NETWORK_ERROR: "Problema de conexão. Verifique sua internet e tente novamente.",
    ErrorType.AUTHENTICATION_ERROR: "Falha de autenticação. Faça login novamente.",
}

# Ordem importa: tokens mais específicos antes dos mais genéricos
_CLASSIFICATION_RULES: list[tuple[ErrorType, tuple[str, ...]]] = [
    (ErrorType.BORROW_LIMIT, ("BORROW_LIMIT",)),
    (ErrorType.BOOK_UNAVAILABLE, ("BOOK_UNAVAILABLE",)),
    (ErrorType.BOOK_AVAILABLE, ("BOOK_AVAILABLE",)),
    (ErrorType.NO_BORROWED_COPIES, ("NO_BORROWED_COPIES",)),
    (ErrorType.USER_NOT_FOUND, ("USER_NOT_FOUND",)),
    (ErrorType.INVALID_COPY, ("INVALID_COPY",)),
    (ErrorType.ALREADY_BORROWED, ("ALREADY_BORROWED",)),
    (ErrorType.BOOK_REPORTED_LOST, ("BOOK_REPORTED_LOST", "REPORTED_LOST")),
    (ErrorType.BOOK_REPORTED_DAMAGED, ("BOOK_REPORTED_DAMAGED", "REPORTED_DAMAGED")),
    (ErrorType.COPY_LOST, ("COPY_LOST",)),
    (ErrorType.COPY_DAMAGED, ("COPY_DAMAGED",)),
    (ErrorType.BOOK_LOST, ("BOOK_LOST",)),
    (ErrorType.BOOK_DAMAGED, ("BOOK_DAMAGED",)),
    (ErrorType.ALREADY_RESERVED, ("ALREADY_RESERVED",)),
    (ErrorType.DUPLICATE_RESERVATION, ("DUPLICATE_RESERVATION",)),
    (ErrorType.DUPLICATE_REQUEST, ("DUPLICATE_REQUEST",)),
    (ErrorType.ACCOUNT_SUSPENDED, ("ACCOUNT_SUSPENDED",)),
    (ErrorType.OVERDUE_BOOKS, ("OVERDUE_BOOKS",)),
    (ErrorType.NETWORK_ERROR, ("CORS", "FAILED TO FETCH", "NETWORK CONNECTION ISSUE")),
    (ErrorType.AUTHENTICATION_ERROR, ("AUTHENTICATION",)),
]

# Palavras soltas que também indicam erro exibível
_USER_FACING_KEYWORDS = ("MAXIMUM", "LIMIT", "UNAVAILABLE")

AUTHENTICATION_MARKERS = (
    "NOT AUTHENTICATED",
    "AUTHENTICATION FAILED",
    "INVALID TOKEN",
)


def classify_error_code(text: Optional[str]) -> Optional[ErrorType]:
    """
    Identifica o código de erro conhecido contido em uma mensagem.

    Args:
        text: Mensagem ou código vindo do backend

    Returns:
        ErrorType correspondente ou None se nenhum token for encontrado
    """
    if not text:
        return None

    upper = str(text).upper()
    for error_type, tokens in _CLASSIFICATION_RULES:
        if any(token in upper for token in tokens):
            return error_type
    return None


def is_user_facing(text: Optional[str]) -> bool:
    """Verifica se a mensagem pode ser exibida ao usuário."""
    if not text:
        return False
    if classify_error_code(text) is not None:
        return True
    upper = str(text).upper()
    return any(keyword in upper for keyword in _USER_FACING_KEYWORDS)


def is_authentication_message(text: Optional[str]) -> bool:
    """Verifica se a mensagem descreve falha de autenticação."""
    if not text:
        return False
    upper = str(text).upper()
    return any(marker in upper for marker in AUTHENTICATION_MARKERS)


def get_user_friendly_message(text: Optional[str]) -> str:
    """
    Traduz uma mensagem do backend para texto exibível.

    Códigos conhecidos viram a mensagem amigável correspondente; mensagens
    exibíveis sem código conhecido são devolvidas como vieram; o resto vira
    a mensagem genérica.
    """
    error_type = classify_error_code(text)
    if error_type is not None:
        return USER_FRIENDLY_MESSAGES[error_type]
    if is_user_facing(text):
        return str(text)
    return GENERIC_ERROR_MESSAGE
