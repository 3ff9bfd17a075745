"""Нормализация данных контакта: имя, email, домен компании."""

from urllib.parse import urlsplit

from .exceptions import InputValidationError
from .models import Identity

# Значение для обязательных полей имени в Attio
NAME_PLACEHOLDER = "Unknown"

# Домены бесплатной почты - компанию по ним не создаем
PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com",
    "googlemail.com",
    "yahoo.com",
    "yahoo.co.uk",
    "ymail.com",
    "hotmail.com",
    "hotmail.co.uk",
    "outlook.com",
    "live.com",
    "msn.com",
    "icloud.com",
    "me.com",
    "mac.com",
    "aol.com",
    "protonmail.com",
    "proton.me",
    "pm.me",
    "gmx.com",
    "gmx.de",
    "gmx.net",
    "web.de",
    "mail.com",
    "mail.ru",
    "yandex.ru",
    "yandex.com",
    "zoho.com",
    "fastmail.com",
    "hey.com",
    "tutanota.com",
    "qq.com",
    "163.com",
})


def split_name(full_name: str) -> tuple[str, str]:
    """
    Разбиение полного имени на имя и фамилию.

    Первый токен - имя, остальные через один пробел - фамилия.
    Отсутствующие части заменяются на NAME_PLACEHOLDER.
    """

    tokens = (full_name or "").split()
    if not tokens:
        return NAME_PLACEHOLDER, NAME_PLACEHOLDER

    first_name = tokens[0]
    last_name = " ".join(tokens[1:]) or NAME_PLACEHOLDER
    return first_name, last_name


def normalize_domain(website: str) -> str:
    """
    Приведение адреса сайта к голому hostname.

    "https://www.Example.com/pricing" -> "example.com".
    Возвращает "" если адрес пустой или не разбирается.
    """

    candidate = (website or "").strip()
    if not candidate:
        return ""

    if "://" not in candidate:
        candidate = f"https://{candidate}"

    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        return ""

    if not hostname:
        return ""

    hostname = hostname.rstrip(".").lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]

    if "." not in hostname or " " in hostname:
        return ""

    return hostname


def email_domain(email: str) -> str:
    """Доменная часть email или ""."""
    _, at, domain = (email or "").strip().rpartition("@")
    if not at:
        return ""
    return normalize_domain(domain)


def is_personal_domain(domain: str) -> bool:
    return domain.lower() in PERSONAL_EMAIL_DOMAINS


def resolve_domain(website: str, email: str) -> str:
    """
    Домен компании: из сайта, иначе из email.

    Домены бесплатной почты отбрасываются - для них возвращается "".
    """

    domain = normalize_domain(website) or email_domain(email)
    if domain and is_personal_domain(domain):
        return ""
    return domain


def build_identity(
    email: str,
    full_name: str = "",
    first_name: str = "",
    last_name: str = "",
    company_name: str = "",
    website: str = ""
) -> Identity:
    """
    Сборка нормализованного контакта из значений формы.

    Raises:
        InputValidationError: Если email отсутствует
    """

    normalized_email = (email or "").strip().lower()
    if not normalized_email:
        raise InputValidationError("Missing required field: email")

    full_name = " ".join((full_name or "").split())
    if not full_name:
        full_name = " ".join(f"{first_name or ''} {last_name or ''}".split())

    first, last = split_name(full_name)

    return Identity(
        full_name=full_name,
        first_name=first,
        last_name=last,
        email=normalized_email,
        domain=resolve_domain(website, normalized_email),
        company_name=(company_name or "").strip()
    )
