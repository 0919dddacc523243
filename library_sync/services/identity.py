"""
Normalização de identificadores vindos do backend.

Os endpoints não concordam sobre o nome dos campos (copyId, copy_id,
copy.id, bookCopyId...). Cada entidade tem aqui uma lista ordenada de campos
conhecidos; o primeiro valor não vazio vence. Campos aninhados usam
notação com ponto ("copy.id").
"""

from typing import Any, Iterable, Mapping, Optional

# Campos que identificam uma cópia física, todos equivalentes entre si
COPY_ALIAS_FIELDS: tuple[str, ...] = (
    "id",
    "copyId",
    "copy_id",
    "qrCode",
    "qr_code",
    "qrcode",
    "qr",
    "code",
    "uid",
    "uuid",
    "copyNumber",
    "copy_number",
    "number",
)

COPY_NUMBER_FIELDS: tuple[str, ...] = ("copyNumber", "copy_number", "number")
NUMBER_ALIAS_PREFIX = "num:"

# Registros de livros emprestados (getUserBooks)
BORROWED_COPY_ID_FIELDS: tuple[str, ...] = ("copyId", "copy_id", "copy.id", "bookCopyId")
BORROWED_BOOK_ID_FIELDS: tuple[str, ...] = ("id", "bookId", "book_id")

# Pedidos de empréstimo e reservas
REQUEST_COPY_ID_FIELDS: tuple[str, ...] = ("copyId", "copy_id")
REQUEST_BOOK_ID_FIELDS: tuple[str, ...] = ("bookId", "book_id")


def _lookup(record: Mapping[str, Any], field: str) -> Any:
    value: Any = record
    for part in field.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _present(value: Any) -> bool:
    return value is not None and value is not False and str(value) != ""


def first_field(record: Any, fields: Iterable[str]) -> Optional[str]:
    """
    Retorna, como string, o primeiro campo presente em `record`.

    Args:
        record: Dicionário vindo do backend (qualquer outro tipo → None)
        fields: Campos candidatos, em ordem de preferência

    Returns:
        Valor normalizado ou None
    """
    if not isinstance(record, Mapping):
        return None
    for field in fields:
        value = _lookup(record, field)
        if _present(value):
            return str(value)
    return None


def copy_number(copy: Any) -> Optional[str]:
    """Número da cópia ("Cópia #5"), se houver."""
    return first_field(copy, COPY_NUMBER_FIELDS)


def copy_key(copy: Any) -> Optional[str]:
    """Alias principal de uma cópia (primeiro campo conhecido presente)."""
    return first_field(copy, COPY_ALIAS_FIELDS)


def copy_aliases(copy: Any) -> set[str]:
    """
    Calcula o conjunto de aliases de uma cópia.

    Inclui todo campo conhecido não vazio e, quando há número de cópia, o
    alias sintético "num:<número>", que sobrevive a trocas de id no backend.
    """
    if not isinstance(copy, Mapping):
        return set()

    aliases = {
        str(value)
        for value in (_lookup(copy, field) for field in COPY_ALIAS_FIELDS)
        if _present(value)
    }
    number = copy_number(copy)
    if number is not None:
        aliases.add(f"{NUMBER_ALIAS_PREFIX}{number}")
    return aliases


def normalize_status(value: Any) -> str:
    """Status em maiúsculas, sem espaços; vazio quando ausente."""
    if value is None:
        return ""
    return str(value).strip().upper()


def extract_rows(response: Any, *keys: str) -> list[dict]:
    """
    Extrai a lista de linhas de uma resposta em qualquer um dos formatos:

        [...]
        {"data": [...]}
        {"data": {"<key>": [...]}}
        {"<key>": [...]}

    Args:
        response: Resposta decodificada do backend
        keys: Nomes aceitos para a lista (ex.: "reservations")

    Returns:
        Lista (possivelmente vazia) apenas com os itens que são dicionários
    """
    rows: Any = None
    if isinstance(response, list):
        rows = response
    elif isinstance(response, Mapping):
        data = response.get("data")
        if isinstance(data, list):
            rows = data
        elif isinstance(data, Mapping):
            rows = next((data[k] for k in keys if isinstance(data.get(k), list)), None)
        if rows is None:
            rows = next((response[k] for k in keys if isinstance(response.get(k), list)), None)

    return [row for row in rows or [] if isinstance(row, Mapping)]
