def _field(item, name):
    if isinstance(item, dict):
        return item.get(name, 0)
    return getattr(item, name, 0)


def line_total(item):
    return (_field(item, 'quantity') or 0) * (_field(item, 'unit_price') or 0)


def calculate_total(items):
    """Sum of quantity x unit price. Bill-level discounts are not applied here."""
    return sum(line_total(item) for item in items)


def apply_discount(total, discount):
    if not discount:
        return total
    return round(total - total * discount / 100)


def format_currency(amount):
    return f"₦{int(round(amount or 0)):,}"
