"""Phone number formats used by the WhatsApp Cloud API.

Inbound webhooks report Argentine mobile senders with the mobile digit
("549" + area + number). Outbound delivery, and the Meta allowed-recipients
list, expect the number without it ("54" + area + number). Both formats are
digits only, no leading "+".
"""

import re

AR_COUNTRY_CODE = "54"
AR_MOBILE_PREFIX = "549"


def digits_only(phone_number) -> str:
    return re.sub(r"\D", "", str(phone_number or ""))


def to_outbound(phone_number) -> str:
    """Inbound/E.164 number -> address accepted for sending.

    >>> to_outbound("+54 9 260 412-3456")
    '542604123456'
    """
    digits = digits_only(phone_number)
    if digits.startswith(AR_MOBILE_PREFIX):
        return AR_COUNTRY_CODE + digits[len(AR_MOBILE_PREFIX):]
    return digits


def to_inbound(phone_number) -> str:
    """Outbound number -> format the webhook reports senders in.

    >>> to_inbound("542604123456")
    '5492604123456'
    """
    digits = digits_only(phone_number)
    if digits.startswith(AR_COUNTRY_CODE) and not digits.startswith(AR_MOBILE_PREFIX):
        return AR_MOBILE_PREFIX + digits[len(AR_COUNTRY_CODE):]
    return digits


def same_number(a, b) -> bool:
    """True when both numbers address the same line in either format."""
    left, right = to_outbound(a), to_outbound(b)
    return bool(left) and left == right
