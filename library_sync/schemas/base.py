"""
Schemas base reutilizáveis em toda a biblioteca.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class ApiErrorDetail(BaseSchema):
    """
    Objeto `error` estruturado devolvido pelo backend.

    `type` distingue USER_ERROR (exibível) de SYSTEM_ERROR / outros.
    """
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    code: str | None = None
    message: str | None = None


class ApiEnvelope(BaseSchema):
    """
    Envelope padrão das respostas: {success, data, message?, error?}.

    Campos extras são preservados porque algumas rotas devolvem dados
    fora de `data`.
    """
    model_config = ConfigDict(extra="allow")

    success: bool = True
    data: Any = None
    message: str | None = None
    error: ApiErrorDetail | str | None = None

    @property
    def error_message(self) -> str | None:
        """Mensagem de erro mais específica disponível."""
        if isinstance(self.error, ApiErrorDetail):
            return self.error.message or self.error.code or self.message
        return self.error or self.message
