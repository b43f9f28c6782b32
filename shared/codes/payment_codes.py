"""
Provider wire vocabularies: error codes, state codes and their messages.

Everything here is immutable module data loaded once at import time.
"""
from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Mapping


# ---------------------------------------------------------------------------
# Payme (Merchant API, JSON-RPC)
# ---------------------------------------------------------------------------

class PaymeState(IntEnum):
    CREATED = 1
    COMPLETED = 2
    CANCELLED_BEFORE_COMPLETE = -1
    CANCELLED_AFTER_COMPLETE = -2


class PaymeErrorCode(IntEnum):
    INVALID_HTTP_METHOD = -32300
    JSON_PARSE_ERROR = -32700
    INVALID_RPC_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INSUFFICIENT_PRIVILEGES = -32504
    INTERNAL_ERROR = -32400
    INVALID_AMOUNT = -31001
    TRANSACTION_NOT_FOUND = -31003
    CANNOT_CANCEL_COMPLETED = -31007
    CANNOT_PERFORM_OPERATION = -31008
    ORDER_NOT_FOUND = -31050
    ORDER_ALREADY_PAID = -31051


def _localized(ru: str, uz: str, en: str) -> Mapping[str, str]:
    return MappingProxyType({"ru": ru, "uz": uz, "en": en})


PAYME_ERROR_MESSAGES: Mapping[PaymeErrorCode, Mapping[str, str]] = MappingProxyType({
    PaymeErrorCode.INVALID_HTTP_METHOD: _localized(
        "Неверный HTTP-метод", "Noto'g'ri HTTP metod", "Invalid HTTP method"),
    PaymeErrorCode.JSON_PARSE_ERROR: _localized(
        "Ошибка разбора JSON", "JSON tahlil xatosi", "JSON parse error"),
    PaymeErrorCode.INVALID_RPC_REQUEST: _localized(
        "Неверный RPC-запрос", "Noto'g'ri RPC so'rov", "Invalid RPC request"),
    PaymeErrorCode.METHOD_NOT_FOUND: _localized(
        "Метод не найден", "Metod topilmadi", "Method not found"),
    PaymeErrorCode.INSUFFICIENT_PRIVILEGES: _localized(
        "Недостаточно привилегий", "Imtiyozlar yetarli emas", "Insufficient privileges"),
    PaymeErrorCode.INTERNAL_ERROR: _localized(
        "Внутренняя ошибка", "Ichki xatolik", "Internal error"),
    PaymeErrorCode.INVALID_AMOUNT: _localized(
        "Неверная сумма", "Noto'g'ri summa", "Invalid amount"),
    PaymeErrorCode.TRANSACTION_NOT_FOUND: _localized(
        "Транзакция не найдена", "Tranzaksiya topilmadi", "Transaction not found"),
    PaymeErrorCode.CANNOT_CANCEL_COMPLETED: _localized(
        "Невозможно отменить транзакцию. Заказ выполнен",
        "Tranzaksiyani bekor qilib bo'lmaydi. Buyurtma bajarilgan",
        "Cannot cancel transaction. Order is fulfilled"),
    PaymeErrorCode.CANNOT_PERFORM_OPERATION: _localized(
        "Невозможно выполнить операцию", "Operatsiyani bajarib bo'lmaydi", "Cannot perform operation"),
    PaymeErrorCode.ORDER_NOT_FOUND: _localized(
        "Заказ не найден", "Buyurtma topilmadi", "Order not found"),
    PaymeErrorCode.ORDER_ALREADY_PAID: _localized(
        "По данному заказу уже создана транзакция",
        "Bu buyurtma uchun tranzaksiya allaqachon yaratilgan",
        "Transaction already exists for this order"),
})

# Default `error.data` field per code (the offending parameter)
PAYME_ERROR_DATA: Mapping[PaymeErrorCode, str] = MappingProxyType({
    PaymeErrorCode.INVALID_AMOUNT: "amount",
    PaymeErrorCode.ORDER_NOT_FOUND: "order_id",
    PaymeErrorCode.ORDER_ALREADY_PAID: "order_id",
})


# ---------------------------------------------------------------------------
# Click (Prepare / Complete)
# ---------------------------------------------------------------------------

class ClickAction(IntEnum):
    PREPARE = 0
    COMPLETE = 1


class ClickErrorCode(IntEnum):
    SUCCESS = 0
    SIGN_CHECK_FAILED = -1
    INVALID_AMOUNT = -2
    ACTION_NOT_FOUND = -3
    ALREADY_PAID = -4
    USER_NOT_FOUND = -5
    TRANSACTION_NOT_FOUND = -6
    INTERNAL_ERROR = -7
    BAD_REQUEST = -8
    TRANSACTION_CANCELLED = -9


CLICK_ERROR_NOTES: Mapping[ClickErrorCode, str] = MappingProxyType({
    ClickErrorCode.SUCCESS: "Success",
    ClickErrorCode.SIGN_CHECK_FAILED: "SIGN CHECK FAILED",
    ClickErrorCode.INVALID_AMOUNT: "Incorrect parameter amount",
    ClickErrorCode.ACTION_NOT_FOUND: "Action not found",
    ClickErrorCode.ALREADY_PAID: "Already paid",
    ClickErrorCode.USER_NOT_FOUND: "User/Transaction does not exist",
    ClickErrorCode.TRANSACTION_NOT_FOUND: "Transaction does not exist (ID Mismatch)",
    ClickErrorCode.INTERNAL_ERROR: "Internal system error",
    ClickErrorCode.BAD_REQUEST: "Invalid Request",
    ClickErrorCode.TRANSACTION_CANCELLED: "Transaction cancelled",
})


# ---------------------------------------------------------------------------
# Paynet (JSON-RPC 2.0)
# ---------------------------------------------------------------------------

class PaynetState(IntEnum):
    SUCCESS = 1
    CANCELLED = 2
    NOT_FOUND = 3


class PaynetErrorCode(IntEnum):
    INVALID_HTTP_METHOD = -32300
    JSON_PARSE_ERROR = -32700
    INVALID_RPC_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    MISSING_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SUCCESS = 0
    INSUFFICIENT_FUNDS_FOR_CANCEL = 77
    SERVICE_UNAVAILABLE = 100
    SYSTEM_ERROR = 102
    UNKNOWN_ERROR = 103
    WALLET_NOT_IDENTIFIED = 113
    TRANSACTION_EXISTS = 201
    TRANSACTION_CANCELLED = 202
    TRANSACTION_NOT_FOUND = 203
    CLIENT_NOT_FOUND = 302
    PRODUCT_NOT_FOUND = 304
    SERVICE_NOT_FOUND = 305
    PARAM_1_VALIDATION = 401
    MISSING_REQUIRED_PARAMS = 411
    INVALID_AMOUNT = 413
    INVALID_DATE_FORMAT = 414
    ACCESS_DENIED = 601


PAYNET_ERROR_MESSAGES: Mapping[PaynetErrorCode, str] = MappingProxyType({
    PaynetErrorCode.INVALID_RPC_REQUEST: "Неверный RPC-запрос",
    PaynetErrorCode.METHOD_NOT_FOUND: "Метод {data} не найден",
    PaynetErrorCode.MISSING_PARAMS: "Отсутствуют обязательные параметры",
    PaynetErrorCode.INTERNAL_ERROR: "Внутренняя ошибка системы",
    PaynetErrorCode.TRANSACTION_EXISTS: "Транзакция уже существует",
    PaynetErrorCode.TRANSACTION_CANCELLED: "Транзакция уже отменена",
    PaynetErrorCode.TRANSACTION_NOT_FOUND: "Транзакция не найдена",
    PaynetErrorCode.CLIENT_NOT_FOUND: "Клиент не найден",
    PaynetErrorCode.SERVICE_NOT_FOUND: "Услуга не найдена",
    PaynetErrorCode.INVALID_AMOUNT: "Неверная сумма",
    PaynetErrorCode.INVALID_DATE_FORMAT: "Неверный формат даты и времени",
    PaynetErrorCode.ACCESS_DENIED: "Доступ запрещен",
})


__all__ = [
    "PaymeState",
    "PaymeErrorCode",
    "PAYME_ERROR_MESSAGES",
    "PAYME_ERROR_DATA",
    "ClickAction",
    "ClickErrorCode",
    "CLICK_ERROR_NOTES",
    "PaynetState",
    "PaynetErrorCode",
    "PAYNET_ERROR_MESSAGES",
]
