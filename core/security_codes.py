# core/security_codes.py

"""
Checkout PIN and sleepover sign-out codes.

These are low-assurance convenience locks handed out at the gate, not a
security boundary: codes are short, stored in clear and compared as opaque
strings.

The guest checkout PIN lives in the `checkout` collection once an admin has
rotated it, so every worker and every restart sees the same value. Until
then GUEST_CHECKOUT_PIN applies.
"""

import secrets
from typing import Optional

from core.config import settings
from core.errors import NotFoundError, ValidationError
from core.logging_config import logger
from core.store import CHECKOUT, RequestStore, get_store
from core.utils import utcnow


MIN_PIN_LENGTH = 4

# single document holding the shared guest PIN
CHECKOUT_PIN_ID = "guest_checkout_pin"


class CodeBook:
    """Process-wide holder of the gate codes, initialised at startup."""

    def __init__(
        self,
        checkout_pin: str,
        sleepover_code: Optional[str] = None,
        code_length: int = 4,
        store: Optional[RequestStore] = None,
    ):
        self._default_pin = str(checkout_pin)
        self._sleepover_code = str(sleepover_code) if sleepover_code else None
        self.code_length = code_length
        self.store = store

    @property
    def checkout_pin(self) -> str:
        """The rotated PIN when one is stored, else the configured default."""
        if self.store is None:
            return self._default_pin
        try:
            stored = self.store.get(CHECKOUT, CHECKOUT_PIN_ID)
        except NotFoundError:
            return self._default_pin
        return str(stored.get("code") or self._default_pin)

    # -----------------------------------------------------
    # Guest checkout (shared PIN)
    # -----------------------------------------------------
    def verify_checkout_pin(self, supplied) -> bool:
        return codes_match(self.checkout_pin, supplied)

    def rotate_checkout_pin(self, new_pin: str, rotated_by: Optional[str] = None) -> str:
        new_pin = str(new_pin).strip()
        if not new_pin.isdigit() or len(new_pin) < MIN_PIN_LENGTH:
            raise ValidationError(
                f"Checkout PIN must be at least {MIN_PIN_LENGTH} digits",
                fields=["pin"],
            )

        if self.store is None:
            self._default_pin = new_pin
        else:
            self._save_pin(new_pin, rotated_by)

        logger.info(f"Guest checkout PIN rotated by {rotated_by or 'system'}")
        return new_pin

    def _save_pin(self, new_pin: str, rotated_by: Optional[str]):
        now = utcnow()
        fields = {"code": new_pin, "updated_at": now}
        if rotated_by:
            fields["updated_by"] = rotated_by
        try:
            self.store.update(CHECKOUT, CHECKOUT_PIN_ID, fields)
        except NotFoundError:
            self.store.create(CHECKOUT, {"id": CHECKOUT_PIN_ID, "created_at": now, **fields})

    # -----------------------------------------------------
    # Sleepover sign-out (per request)
    # -----------------------------------------------------
    def issue_sleepover_code(self) -> str:
        """Code attached to a sleepover when it is approved."""
        if self._sleepover_code:
            return self._sleepover_code
        return "".join(str(secrets.randbelow(10)) for _ in range(self.code_length))


def codes_match(expected, supplied) -> bool:
    if expected is None or supplied is None:
        return False
    expected, supplied = str(expected).strip(), str(supplied).strip()
    if not expected or not supplied:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())


# ============================================================
# Process-wide code book
# ============================================================
_codebook: Optional[CodeBook] = None


def init_codebook(store: Optional[RequestStore] = None) -> CodeBook:
    global _codebook
    _codebook = CodeBook(
        checkout_pin=settings.GUEST_CHECKOUT_PIN,
        sleepover_code=settings.SLEEPOVER_SECURITY_CODE,
        code_length=settings.SECURITY_CODE_LENGTH,
        store=store or get_store(),
    )
    return _codebook


def get_codebook() -> CodeBook:
    if _codebook is None:
        return init_codebook()
    return _codebook
