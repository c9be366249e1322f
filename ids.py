import random
import re


def next_numeric_id(session, column, prefix, start=1000, width=None):
    """Next id after the highest numeric suffix already stored under ``prefix``.

    ``BILL-`` and ``BILL-DEP-`` share a prefix, so only ids whose remainder is
    purely digits are counted.
    """
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    highest = start

    for (value,) in session.query(column).filter(column.like(f'{prefix}%')):
        match = pattern.match(value or '')
        if match:
            highest = max(highest, int(match.group(1)))

    number = highest + 1
    if width:
        return f"{prefix}{number:0{width}d}"
    return f"{prefix}{number}"


def timestamp_suffix(now, digits=6):
    return str(int(now.timestamp() * 1000))[-digits:]


def generate_claim_id(prefix, now):
    return f"HMO-{prefix}-{timestamp_suffix(now)}-{random.randint(0, 999):03d}"


def deposit_reference(now):
    return f"DEP-{now:%Y%m%d}-{random.randint(0, 999):03d}"


def slugify(text):
    return re.sub(r'[^a-z0-9]+', '-', (text or '').lower()).strip('-')
