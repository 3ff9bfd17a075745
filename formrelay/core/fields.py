"""Извлечение значений из полей формы по метке."""

from typing import Sequence

from .models import FormField

FieldValue = str | list[str]


def find_field(fields: Sequence[FormField], label: str) -> FormField | None:
    """Поиск поля по метке без учета регистра. Первое совпадение выигрывает."""

    wanted = label.strip().casefold()
    for field in fields:
        if field.label is not None and field.label.strip().casefold() == wanted:
            return field
    return None


def get_field_value(
    fields: Sequence[FormField],
    label: str,
    default: FieldValue = ""
) -> FieldValue:
    """
    Значение поля формы по метке.

    Никогда не бросает исключений: отсутствующее поле возвращает default.
    Поля с несколькими значениями (checkbox) возвращают список строк.

    Args:
        fields: Поля формы в порядке отправки
        label: Метка поля
        default: Значение по умолчанию ("" или [])

    Returns:
        str | list[str]: Значение поля
    """

    field = find_field(fields, label)
    if field is None:
        return default

    value = field.display_value

    if isinstance(default, list):
        if isinstance(value, list):
            return value
        return [value] if value else list(default)

    if isinstance(value, list):
        return ", ".join(item for item in value if item)

    return value.strip()


def get_first_field_value(
    fields: Sequence[FormField],
    labels: Sequence[str],
    default: FieldValue = ""
) -> FieldValue:
    """
    Значение первого непустого поля из списка альтернативных меток.

    Пустое поле под ранней меткой не скрывает заполненное под следующей.
    """

    for label in labels:
        value = get_field_value(fields, label, default)
        if value:
            return value
    return default
