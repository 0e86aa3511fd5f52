"""Validation rules for drafts before they are sent to the backend."""

from kitledger.database.models import PRODUCT_TYPES


class ValidationError(ValueError):
    """A draft failed validation; nothing was sent to the backend."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def _number(value, label: str, errors: list[str], *, minimum=0.0,
            strict: bool = False, integer: bool = False):
    """Parse ``value`` into errors-or-number. Returns None when invalid."""
    if value in ("", None):
        if strict:
            errors.append(f"{label} is required")
            return None
        return 0
    try:
        n = int(value) if integer else float(value)
    except (ValueError, TypeError):
        kind = "an integer" if integer else "a number"
        errors.append(f"{label} must be {kind}")
        return None
    if strict and n <= minimum:
        errors.append(f"{label} must be greater than {minimum:g}")
        return None
    if not strict and n < minimum:
        errors.append(f"{label} cannot be negative")
        return None
    return n


def validate_product(values: dict) -> list[str]:
    """Validate product fields. Returns list of error strings."""
    errors = []

    sku = str(values.get("sku", "") or "").strip()
    if not sku:
        errors.append("sku is required")
    elif len(sku) > 50:
        errors.append("sku exceeds 50 chars")

    if not str(values.get("name", "") or "").strip():
        errors.append("name is required")

    if values.get("type", "base") not in PRODUCT_TYPES:
        errors.append(f"type must be one of {', '.join(PRODUCT_TYPES)}")

    _number(values.get("avg_cost", ""), "avg_cost", errors)
    _number(values.get("reorder_level", ""), "reorder_level", errors,
            integer=True)
    return errors


def validate_bom_lines(lines: list[dict], products: dict,
                       kit_product_id=None) -> list[str]:
    """Validate kit lines against the known products (id -> Product)."""
    errors = []
    seen = set()
    for num, line in enumerate(lines, start=1):
        comp_id = line.get("component_product_id")
        component = products.get(comp_id)
        if comp_id is None:
            errors.append(f"Line {num}: component is required")
        elif component is None:
            errors.append(f"Line {num}: component {comp_id} does not exist")
        elif kit_product_id is not None and comp_id == kit_product_id:
            errors.append(f"Line {num}: a kit cannot contain itself")
        elif not component.is_base:
            errors.append(
                f"Line {num}: component {component.sku} is a kit; "
                f"only base products can be components"
            )
        elif comp_id in seen:
            errors.append(f"Line {num}: component {component.sku} repeated")
        if comp_id is not None:
            seen.add(comp_id)

        _number(line.get("quantity"), f"Line {num}: quantity", errors,
                strict=True)
    return errors


def validate_purchase_order(values: dict) -> list[str]:
    errors = []
    if not str(values.get("vendor", "") or "").strip():
        errors.append("vendor is required")
    if not str(values.get("date", "") or "").strip():
        errors.append("date is required")
    for key in ("freight_in", "import_duty", "other_charges"):
        _number(values.get(key, ""), key, errors)
    return errors


def validate_sales_order(values: dict, lines: list[dict]) -> list[str]:
    errors = []
    if not str(values.get("customer", "") or "").strip():
        errors.append("customer is required")
    if not str(values.get("date", "") or "").strip():
        errors.append("date is required")
    _number(values.get("shipping_cost", ""), "shipping_cost", errors)

    if not lines:
        errors.append("at least one line is required")
    for num, line in enumerate(lines, start=1):
        if not line.get("product_id") and \
                not str(line.get("description", "") or "").strip():
            errors.append(
                f"Line {num}: choose a product or enter a description"
            )
        _number(line.get("qty"), f"Line {num}: qty", errors, strict=True)
        _number(line.get("unit_price_override", ""),
                f"Line {num}: unit_price_override", errors)
    return errors
