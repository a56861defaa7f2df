# app/core/errors.py
"""
Erros tipados do core.

Cada classe carrega um ``code`` estável (usado no corpo JSON da resposta) e
um ``http_status`` que os handlers de ``app.main`` usam para montar a saída.
"""
from __future__ import annotations


class BookstoreError(Exception):
    code = "ERROR"
    http_status = 500
    message = "Erro interno."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# ---- entrada ----
class InputError(BookstoreError):
    code = "INVALID_INPUT"
    http_status = 400
    message = "Entrada inválida."

class EmptyOrder(InputError):
    code = "EMPTY_ORDER"
    message = "O pedido precisa de ao menos um item."

class InvalidLine(InputError):
    code = "INVALID_LINE"
    message = "Item do pedido inválido."


# ---- autenticação (sempre 401 genérico para o cliente) ----
class AuthError(BookstoreError):
    code = "UNAUTHENTICATED"
    http_status = 401
    message = "Invalid token"

class MalformedOrExpired(AuthError):
    message = "token malformed or expired"

class Revoked(AuthError):
    message = "token revoked or superseded"

class WrongTokenKind(AuthError):
    message = "wrong token kind"


# ---- regras de negócio ----
class BusinessRuleError(BookstoreError):
    code = "BUSINESS_RULE"
    http_status = 409

class ItemNotFound(BusinessRuleError):
    code = "ITEM_NOT_FOUND"
    http_status = 404
    message = "Livro não encontrado."

    def __init__(self, book_id: int):
        super().__init__(f"Livro {book_id} não encontrado.")
        self.book_id = book_id

class ItemUnlisted(BusinessRuleError):
    code = "ITEM_UNLISTED"
    message = "Livro fora de venda."

    def __init__(self, book_id: int):
        super().__init__(f"Livro {book_id} fora de venda.")
        self.book_id = book_id

class InsufficientStock(BusinessRuleError):
    code = "INSUFFICIENT_STOCK"
    message = "Estoque insuficiente."

    def __init__(self, book_id: int, requested: int, available: int | None = None):
        detail = f"Estoque insuficiente para o livro {book_id} (pedido {requested}"
        detail += f", disponível {available})." if available is not None else ")."
        super().__init__(detail)
        self.book_id = book_id
        self.requested = requested
        self.available = available

class OrderNotFound(BusinessRuleError):
    code = "ORDER_NOT_FOUND"
    http_status = 404
    message = "Pedido não encontrado."

class AlreadyPaid(BusinessRuleError):
    code = "ALREADY_PAID"
    message = "Pedido já pago."

class OrderCancelled(BusinessRuleError):
    code = "ORDER_CANCELLED"
    message = "Pedido cancelado."


# ---- infraestrutura (503 genérico) ----
class InfrastructureError(BookstoreError):
    code = "SERVICE_UNAVAILABLE"
    http_status = 503
    message = "Serviço indisponível."

class CredentialStoreUnavailable(InfrastructureError):
    message = "credential store unavailable"

class CreationFailed(InfrastructureError):
    message = "falha ao criar o pedido"

class SettlementFailed(InfrastructureError):
    message = "falha ao liquidar o pedido"
