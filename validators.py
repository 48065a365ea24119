import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


class Validator:
    """Field checks shared by every entity form."""

    # Validation

    @staticmethod
    def require_non_empty(name: str, value: str) -> str:
        """Required field: no empty or whitespace-only values."""
        v = str(value if value is not None else "").strip()
        if not v:
            raise ValueError(f"Field '{name}' is required.")
        return v

    @staticmethod
    def optional_text(value: str | None) -> str | None:
        v = str(value or "").strip()
        return v or None

    @staticmethod
    def name(field: str, value: str) -> str:
        v = Validator.require_non_empty(field, value)
        if len(v) > 200:
            raise ValueError(f"Field '{field}' must be at most 200 characters.")
        return v

    @staticmethod
    def _clean_phone(raw: str) -> str:
        # Separators are allowed on input: spaces, dashes, brackets, dots.
        return re.sub(r"[()\s\-.]", "", str(raw))

    @staticmethod
    def phone(value: str) -> str:
        """
        Phone number: optional leading '+', then 7..15 digits
        (after removing brackets/spaces/dashes).
        """
        v = Validator.require_non_empty("phone", value)
        cleaned = Validator._clean_phone(v)
        if cleaned.count("+") > 1 or (cleaned.count("+") == 1 and not cleaned.startswith("+")):
            raise ValueError("Field 'phone' may only contain a leading '+'.")
        if not re.fullmatch(r"\+?\d{7,15}", cleaned):
            raise ValueError("Field 'phone' must contain 7 to 15 digits.")
        return v

    @staticmethod
    def email(value: str) -> str:
        """Email validation"""
        v = Validator.require_non_empty("email", value)

        if v.count("@") != 1:
            raise ValueError("Field 'email' must contain exactly one '@'.")
        local, domain = v.split("@", 1)

        # Local part
        if not local or local.startswith(".") or local.endswith(".") or ".." in local:
            raise ValueError("Email local part is malformed.")
        if not re.fullmatch(r"[A-Za-z0-9._%+\-]+", local):
            raise ValueError("Email local part contains invalid characters.")

        # Domain
        labels = domain.split(".")
        if len(labels) < 2 or any(not lab for lab in labels):
            raise ValueError("Email domain must look like 'example.com'.")
        label_re = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?$")
        for lab in labels:
            if not label_re.fullmatch(lab):
                raise ValueError("Email domain contains invalid characters.")
        if not re.fullmatch(r"[A-Za-z]{2,}", labels[-1]):
            raise ValueError("Email top-level domain must have at least two letters.")
        return v

    @staticmethod
    def money(field: str, value: str, *, required: bool = True) -> Decimal | None:
        """Non-negative amount with at most two decimal places."""
        raw = str(value if value is not None else "").strip().replace(",", "")
        if not raw:
            if required:
                raise ValueError(f"Field '{field}' is required.")
            return None
        try:
            d = Decimal(raw)
        except InvalidOperation:
            raise ValueError(f"Field '{field}' must be a number.") from None
        if not d.is_finite():
            raise ValueError(f"Field '{field}' must be a number.")
        if d < 0:
            raise ValueError(f"Field '{field}' cannot be negative.")
        if d != d.quantize(CENT):
            raise ValueError(f"Field '{field}' allows at most two decimal places.")
        if d >= Decimal("10000000000"):
            raise ValueError(f"Field '{field}' is too large.")
        return d.quantize(CENT)

    @staticmethod
    def positive_money(field: str, value: str) -> Decimal:
        d = Validator.money(field, value)
        if d is None or d == 0:
            raise ValueError(f"Field '{field}' must be greater than zero.")
        return d

    @staticmethod
    def percentage(field: str, value: str) -> Decimal:
        d = Validator.money(field, value)
        if d is None or d > 100:
            raise ValueError(f"Field '{field}' must be between 0 and 100.")
        return d

    @staticmethod
    def iso_date(field: str, value: str, *, required: bool = True) -> date | None:
        """
        Date in YYYY-MM-DD, and it has to exist (31-02 is rejected).
        """
        v = str(value or "").strip()
        if not v:
            if required:
                raise ValueError(f"Field '{field}' is required.")
            return None
        if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", v):
            raise ValueError(f"Field '{field}' must be in format 'YYYY-MM-DD'.")
        try:
            return date.fromisoformat(v)
        except ValueError:
            raise ValueError(f"Field '{field}' is not a real date: {v}.") from None

    @staticmethod
    def choice(field: str, value: str, allowed: tuple[str, ...]) -> str:
        v = Validator.require_non_empty(field, value)
        if v not in allowed:
            raise ValueError(f"Field '{field}' must be one of: {', '.join(allowed)}.")
        return v

    @staticmethod
    def reference(field: str, value: str | None, *, required: bool = False) -> int | None:
        """Foreign key from a select box: empty / 'null' / 'none' mean no reference."""
        v = str(value or "").strip()
        if v.lower() in ("", "null", "none", "all"):
            if required:
                raise ValueError(f"Field '{field}' is required.")
            return None
        if not v.isdigit() or int(v) <= 0:
            raise ValueError(f"Field '{field}' must be a valid id.")
        return int(v)

    @staticmethod
    def commission_from_percentage(amount: Decimal, percentage: Decimal) -> Decimal:
        return (amount * percentage / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
