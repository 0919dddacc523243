"""
Testes para o LibraryGateway.

As respostas HTTP são simuladas com respx.
"""

import json
import logging

import httpx
import pytest
import respx

from library_sync.core.exceptions import (
    GENERIC_ERROR_MESSAGE,
    AuthenticationError,
    BusinessRuleError,
    HtmlResponseError,
    MalformedResponseError,
    NetworkError,
    UnclassifiedServerError,
)
from library_sync.services.gateway import LibraryGateway, looks_like_html
from library_sync.storage.memory import MemoryStorage

API_ROOT = "http://test/api"


# ==========================================
# Request plumbing
# ==========================================

class TestRequest:
    """Cabeçalhos, token e corpo."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_attaches_token_lazily_loaded_from_storage(self, gateway):
        """O token é lido do storage na primeira requisição."""
        route = respx.get(f"{API_ROOT}/books").mock(
            return_value=httpx.Response(200, json={"success": True, "data": []})
        )

        await gateway.request("GET", "books")

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer token-123"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_token_no_header(self, settings):
        route = respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, json=[]))

        async with LibraryGateway(settings=settings, storage=MemoryStorage()) as gw:
            await gw.request("GET", "books")

        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_cookies_are_not_kept(self, gateway):
        """Set-Cookie de uma resposta não volta na próxima requisição."""
        respx.get(f"{API_ROOT}/first").mock(
            return_value=httpx.Response(200, json={}, headers={"set-cookie": "sid=abc; Path=/"})
        )
        second = respx.get(f"{API_ROOT}/second").mock(return_value=httpx.Response(200, json={}))

        await gateway.get("first")
        await gateway.get("second")

        assert "cookie" not in second.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_204_returns_empty_dict(self, gateway):
        respx.delete(f"{API_ROOT}/thing").mock(return_value=httpx.Response(204))
        assert await gateway.delete("thing") == {}

    @pytest.mark.asyncio
    async def test_has_valid_token_and_user_id(self, gateway):
        assert await gateway.has_valid_token() is True
        assert await gateway.get_current_user_id() == "u1"

    @pytest.mark.asyncio
    async def test_user_id_tolerates_corrupt_user_data(self, settings):
        gw = LibraryGateway(settings=settings, storage=MemoryStorage({"userData": "{oops"}))
        assert await gw.get_current_user_id() is None
        assert await gw.has_valid_token() is False


# ==========================================
# Error classification
# ==========================================

class TestErrorClassification:
    """Política de erros em dois níveis."""

    def test_looks_like_html(self):
        assert looks_like_html("  <!DOCTYPE html><html>")
        assert looks_like_html("<HTML><body>502</body></HTML>")
        assert not looks_like_html('{"success": true}')

    @pytest.mark.asyncio
    @respx.mock
    async def test_html_body_raises_html_error(self, gateway):
        respx.get(f"{API_ROOT}/books").mock(
            return_value=httpx.Response(200, text="<!DOCTYPE html><html><body>Not Found</body></html>")
        )
        with pytest.raises(HtmlResponseError):
            await gateway.get("books")

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_raises_malformed(self, gateway):
        respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, text="not json"))
        with pytest.raises(MalformedResponseError) as exc_info:
            await gateway.get("books")
        assert not isinstance(exc_info.value, HtmlResponseError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_401_raises_authentication_and_drops_token(self, gateway):
        respx.get(f"{API_ROOT}/books").mock(
            return_value=httpx.Response(401, json={"success": False, "message": "Invalid token"})
        )
        await gateway.get_token()

        with pytest.raises(AuthenticationError):
            await gateway.get("books")
        assert gateway._token is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_403_raises_authentication_and_drops_token(self, gateway):
        """Sessão recusada (403) também é falha de autenticação."""
        respx.get(f"{API_ROOT}/books").mock(
            return_value=httpx.Response(403, json={"success": False, "message": "Forbidden"})
        )
        await gateway.get_token()

        with pytest.raises(AuthenticationError) as exc_info:
            await gateway.get("books")
        assert exc_info.value.status_code == 403
        assert gateway._token is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_user_error_message_is_verbatim(self, gateway):
        """Erro tipado USER_ERROR é exibido com a mensagem do backend."""
        respx.post(f"{API_ROOT}/mobile/users/u1/books/B1/borrow-request").mock(
            return_value=httpx.Response(400, json={
                "success": False,
                "error": {"type": "USER_ERROR", "code": "BORROW_LIMIT", "message": "Limite de 3 livros atingido"},
            })
        )
        with pytest.raises(BusinessRuleError) as exc_info:
            await gateway.create_borrow_request("B1")

        assert exc_info.value.message == "Limite de 3 livros atingido"
        assert exc_info.value.error_code == "BORROW_LIMIT"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    @respx.mock
    @pytest.mark.parametrize("message,code", [
        ("Error: duplicate_reservation for user", "DUPLICATE_RESERVATION"),
        ("ALREADY_RESERVED", "ALREADY_RESERVED"),
        ("Cannot reserve: BOOK_AVAILABLE", "BOOK_AVAILABLE"),
        ("You have Overdue_Books", "OVERDUE_BOOKS"),
    ])
    async def test_tokens_in_message_are_business_errors(self, gateway, message, code):
        """Tokens no texto da mensagem são reconhecidos sem diferenciar maiúsculas."""
        respx.post(f"{API_ROOT}/mobile/users/u1/books/B1/reserve").mock(
            return_value=httpx.Response(409, json={"success": False, "message": message})
        )
        with pytest.raises(BusinessRuleError) as exc_info:
            await gateway.create_reservation("B1", {})

        assert exc_info.value.error_code == code
        assert exc_info.value.message == message

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_false_with_2xx_is_an_error(self, gateway):
        respx.post(f"{API_ROOT}/mobile/users/u1/books/B1/reserve").mock(
            return_value=httpx.Response(200, json={"success": False, "message": "DUPLICATE_RESERVATION"})
        )
        with pytest.raises(BusinessRuleError):
            await gateway.create_reservation("B1")

    @pytest.mark.asyncio
    @respx.mock
    async def test_system_error_is_hidden_and_logged(self, gateway, caplog):
        """Erro de sistema vira mensagem genérica e vai para o log."""
        respx.get(f"{API_ROOT}/books").mock(
            return_value=httpx.Response(500, json={
                "success": False,
                "error": {"type": "SYSTEM_ERROR", "message": "TypeError: cannot read property 'id' of undefined"},
            })
        )
        with caplog.at_level(logging.ERROR, logger="library_sync.services.gateway"):
            with pytest.raises(UnclassifiedServerError) as exc_info:
                await gateway.get("books")

        assert exc_info.value.message == GENERIC_ERROR_MESSAGE
        assert "TypeError" not in exc_info.value.message
        assert "TypeError" in caplog.text


# ==========================================
# Retries and transport
# ==========================================

class TestRetries:
    """Tentativas limitadas."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_on_503(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(side_effect=[
            httpx.Response(503),
            httpx.Response(200, json={"success": True, "data": []}),
        ])
        assert await gateway.get("books") == {"success": True, "data": []}
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_gives_up_after_max_retries(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(502))
        with pytest.raises(UnclassifiedServerError):
            await gateway.get("books")
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error_is_network_error(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(NetworkError):
            await gateway.get("books")
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_retried_then_network_error(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(NetworkError):
            await gateway.get("books")
        assert route.call_count == 3


# ==========================================
# Endpoints
# ==========================================

class TestEndpoints:
    """Rotas usadas pelo núcleo."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_status_sources_use_current_user(self, gateway):
        books = respx.get(f"{API_ROOT}/mobile/users/u1/books").mock(return_value=httpx.Response(200, json=[]))
        requests_ = respx.get(f"{API_ROOT}/mobile/users/u1/borrow-requests").mock(
            return_value=httpx.Response(200, json=[])
        )
        reservations = respx.get(f"{API_ROOT}/mobile/users/u1/reservations").mock(
            return_value=httpx.Response(200, json=[])
        )

        await gateway.get_user_books()
        await gateway.get_borrow_requests("all")
        await gateway.get_user_reservations("all")

        assert books.calls.last.request.url.params["includeHistory"] == "true"
        assert requests_.calls.last.request.url.params["status"] == "all"
        assert reservations.calls.last.request.url.params["status"] == "all"

    @pytest.mark.asyncio
    async def test_missing_user_raises_authentication(self, settings):
        gw = LibraryGateway(settings=settings, storage=MemoryStorage({"authToken": "t"}))
        with pytest.raises(AuthenticationError):
            await gw.get_user_reservations()

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_book_by_id_falls_back_across_paths(self, gateway):
        first = respx.get(f"{API_ROOT}/books/B1").mock(
            return_value=httpx.Response(404, text="<html><body>404</body></html>")
        )
        second = respx.get(f"{API_ROOT}/mobile/books/B1").mock(
            return_value=httpx.Response(200, json={"success": True, "data": {"id": "B1", "copies": []}})
        )

        result = await gateway.get_book_by_id("B1")

        assert result["data"]["id"] == "B1"
        assert first.call_count == 1
        assert second.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_book_by_id_exhausts_paths(self, gateway):
        for path in ("books/B1", "mobile/books/B1", "books/details/B1"):
            respx.get(f"{API_ROOT}/{path}").mock(return_value=httpx.Response(404, json={"success": False}))

        with pytest.raises(UnclassifiedServerError):
            await gateway.get_book_by_id("B1")

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_book_by_id_auth_error_stops_fallback(self, gateway):
        respx.get(f"{API_ROOT}/books/B1").mock(return_value=httpx.Response(401, json={}))
        with pytest.raises(AuthenticationError):
            await gateway.get_book_by_id("B1")


class TestCatalogCache:
    """Cache das listagens do catálogo."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_second_call_is_cached(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, json={"data": [1]}))

        await gateway.get_books({"limit": 5})
        await gateway.get_books({"limit": 5})

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_bypass_flag(self, gateway):
        route = respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, json={"data": []}))

        await gateway.get_books()
        await gateway.get_books(bypass_cache=True)

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_writes_invalidate_cache(self, gateway):
        books = respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, json={"data": []}))
        respx.post(f"{API_ROOT}/mobile/users/u1/books/B1/reserve").mock(
            return_value=httpx.Response(201, json={"success": True})
        )

        await gateway.get_books()
        await gateway.create_reservation("B1")
        await gateway.get_books()

        assert books.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_write_still_invalidates(self, gateway):
        respx.get(f"{API_ROOT}/books").mock(return_value=httpx.Response(200, json={"data": []}))
        respx.post(f"{API_ROOT}/mobile/users/u1/books/B1/borrow-request").mock(
            return_value=httpx.Response(400, json={"success": False, "message": "DUPLICATE_REQUEST"})
        )

        await gateway.get_books()
        with pytest.raises(BusinessRuleError):
            await gateway.create_borrow_request("B1")

        assert len(gateway.cache) == 0


class TestCancelReservation:
    """Cancelamento com fallbacks."""

    URL = f"{API_ROOT}/mobile/users/u1/reservations/R1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_with_body(self, gateway):
        route = respx.delete(self.URL).mock(return_value=httpx.Response(200, json={"success": True}))

        await gateway.cancel_reservation("R1", reason="mudei de ideia")

        assert json.loads(route.calls.last.request.content) == {"reason": "mudei de ideia"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_delete_without_body(self, gateway):
        route = respx.delete(self.URL).mock(side_effect=[
            httpx.Response(400, json={"success": False, "message": "Request body not allowed"}),
            httpx.Response(200, json={"success": True}),
        ])

        assert await gateway.cancel_reservation("R1") == {"success": True}

        assert route.call_count == 2
        assert route.calls[0].request.content
        assert route.calls[1].request.content == b""

    @pytest.mark.asyncio
    @respx.mock
    async def test_falls_back_to_status_patch(self, gateway):
        respx.delete(self.URL).mock(return_value=httpx.Response(405, json={"success": False}))
        patch = respx.patch(self.URL).mock(return_value=httpx.Response(200, json={"success": True}))

        await gateway.cancel_reservation("R1")

        assert json.loads(patch.calls.last.request.content)["status"] == "CANCELLED"

    @pytest.mark.asyncio
    @respx.mock
    async def test_business_error_is_not_retried(self, gateway):
        route = respx.delete(self.URL).mock(
            return_value=httpx.Response(400, json={
                "success": False,
                "error": {"type": "USER_ERROR", "message": "Reserva já atendida"},
            })
        )
        with pytest.raises(BusinessRuleError):
            await gateway.cancel_reservation("R1")
        assert route.call_count == 1
