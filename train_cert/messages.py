"""
Ключи сообщений о результатах проверки и их локализованные шаблоны.

Логика проверки оперирует только ключами; текст подставляется при
формировании ответа на языке из настроек.
"""

from enum import Enum
from typing import Dict


class MessageKey(str, Enum):
    """Ключи сообщений, возвращаемых при проверке."""

    VERIFICATION_PASSED = "verification_passed"
    CERTIFICATE_REVOKED = "certificate_revoked"
    CERTIFICATE_EXPIRED = "certificate_expired"
    CERTIFICATE_NOT_FOUND = "certificate_not_found"
    VERIFICATION_CODE_INVALID = "verification_code_invalid"
    EXPIRING_SOON = "expiring_soon"
    VERIFIER_SOURCE = "verifier_source"
    VERIFIER_LANGUAGE = "verifier_language"


MESSAGES: Dict[str, Dict[MessageKey, str]] = {
    "en": {
        MessageKey.VERIFICATION_PASSED: "Certificate verification passed",
        MessageKey.CERTIFICATE_REVOKED: "Certificate has been revoked or is invalid",
        MessageKey.CERTIFICATE_EXPIRED: "Certificate has expired",
        MessageKey.CERTIFICATE_NOT_FOUND: "Certificate not found",
        MessageKey.VERIFICATION_CODE_INVALID: "Verification code invalid",
        MessageKey.EXPIRING_SOON: "Certificate expires in {days} days",
        MessageKey.VERIFIER_SOURCE: "Source: {referer}",
        MessageKey.VERIFIER_LANGUAGE: "Language: {language}",
    },
    "ru": {
        MessageKey.VERIFICATION_PASSED: "Сертификат прошел проверку",
        MessageKey.CERTIFICATE_REVOKED: "Сертификат отозван или недействителен",
        MessageKey.CERTIFICATE_EXPIRED: "Срок действия сертификата истек",
        MessageKey.CERTIFICATE_NOT_FOUND: "Сертификат не найден",
        MessageKey.VERIFICATION_CODE_INVALID: "Неверный код проверки",
        MessageKey.EXPIRING_SOON: "Сертификат истекает через {days} дн",
        MessageKey.VERIFIER_SOURCE: "Источник: {referer}",
        MessageKey.VERIFIER_LANGUAGE: "Язык: {language}",
    },
    "zh": {
        MessageKey.VERIFICATION_PASSED: "证书验证通过",
        MessageKey.CERTIFICATE_REVOKED: "证书已被撤销或无效",
        MessageKey.CERTIFICATE_EXPIRED: "证书已过期",
        MessageKey.CERTIFICATE_NOT_FOUND: "证书不存在",
        MessageKey.VERIFICATION_CODE_INVALID: "验证码无效",
        MessageKey.EXPIRING_SOON: "证书将在 {days} 天后过期",
        MessageKey.VERIFIER_SOURCE: "来源: {referer}",
        MessageKey.VERIFIER_LANGUAGE: "语言: {language}",
    },
}

DEFAULT_LOCALE = "en"


def render_message(key: MessageKey, locale: str = DEFAULT_LOCALE, **params) -> str:
    """
    Возвращает текст сообщения для ключа.

    Args:
        key: Ключ сообщения
        locale: Язык (en, ru, zh); неизвестный язык заменяется на английский
        **params: Параметры шаблона

    Returns:
        str: Готовый текст
    """
    catalog = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    return catalog[key].format(**params)
