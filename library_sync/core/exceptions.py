"""
Hierarquia de exceções da biblioteca.

Toda falha vinda do gateway é uma subclasse de LibraryClientError, de modo
que o app hospedeiro pode tratar tudo com um único except e ainda
diferenciar o tipo quando precisar.
"""

from typing import Any, Optional

GENERIC_ERROR_MESSAGE = "Algo deu errado. Tente novamente mais tarde."


class LibraryClientError(Exception):
    """Exceção base para erros da API."""

    def __init__(self, message: str, status_code: int = 0, detail: Any = None):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)


class NetworkError(LibraryClientError):
    """Falha de transporte (conexão recusada, timeout, DNS)."""


class MalformedResponseError(LibraryClientError):
    """Resposta que não pôde ser interpretada como JSON."""


class HtmlResponseError(MalformedResponseError):
    """
    Corpo HTML no lugar de JSON.

    Indica gateway/proxy mal configurado (CORS, 404 do servidor web),
    não um erro de negócio.
    """


class AuthenticationError(LibraryClientError):
    """Token ausente, expirado ou inválido."""


class BusinessRuleError(LibraryClientError):
    """Condição de negócio declarada pelo backend e exibível ao usuário."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        detail: Any = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, status_code, detail)
        self.error_code = error_code


class UnclassifiedServerError(LibraryClientError):
    """Qualquer outro erro; a mensagem é sempre genérica."""

    def __init__(self, status_code: int = 0, detail: Any = None):
        super().__init__(GENERIC_ERROR_MESSAGE, status_code, detail)
