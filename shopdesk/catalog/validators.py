"""
shopdesk/catalog/validators.py
------------------------------
Pure-Python validation for product, variant and size-list form data.
Each validate_* returns a dict of field -> error_message.
An empty dict means all fields are valid.
"""
from shopdesk.utils.numbers import MAX_AMOUNT, MAX_INT, to_decimal, to_int


def validate_product_form(form_data: dict) -> dict:
    """Validate raw data for create / edit product."""
    errors = {}

    # ── name ─────────────────────────────────────────────────────
    name = str(form_data.get('name') or '').strip()
    if not name:
        errors['name'] = 'Product name is required.'
    elif len(name) > 200:
        errors['name'] = 'Product name must be 200 characters or fewer.'

    # ── hsn ───────────────────────────────────────────────────────
    hsn_raw = form_data.get('hsn', 0)
    if hsn_raw in (None, ''):
        hsn_raw = 0
    hsn = to_int(hsn_raw)
    if hsn is None:
        errors['hsn'] = 'HSN must be a whole number.'
    elif hsn < 0:
        errors['hsn'] = 'HSN cannot be negative.'
    elif hsn > MAX_INT:
        errors['hsn'] = 'HSN is too large.'

    return errors


def validate_variant_form(form_data: dict) -> dict:
    """Validate a new variant (name, optional barcode, its size list)."""
    errors = {}

    name = str(form_data.get('name') or '').strip()
    if not name:
        errors['name'] = 'Variant name is required.'
    elif len(name) > 200:
        errors['name'] = 'Variant name must be 200 characters or fewer.'

    errors.update(validate_barcode(form_data.get('barcode')))
    errors.update(validate_variant_sizes(form_data.get('sizes') or []))
    return errors


def validate_barcode(raw, required: bool = False) -> dict:
    """Barcodes are 3 to 100 characters once trimmed. Blank is fine unless `required`."""
    barcode = str(raw or '').strip()
    if not barcode:
        return {'barcode': 'Barcode is required.'} if required else {}
    if len(barcode) < 3:
        return {'barcode': 'Barcode must be at least 3 characters.'}
    if len(barcode) > 100:
        return {'barcode': 'Barcode must be 100 characters or fewer.'}
    return {}


def validate_variant_sizes(rows) -> dict:
    """
    Validate the full size list of one variant before it is committed.

    Rejects: empty size names, duplicate sizes (case-insensitive, trimmed),
    negative or non-integer stock, negative or invalid prices.
    Errors are keyed per row, e.g. 'sizes[2].size'.
    """
    errors = {}
    if not isinstance(rows, list):
        return {'sizes': 'Sizes must be a list.'}

    seen = {}
    for i, row in enumerate(rows):
        row = row or {}
        prefix = f'sizes[{i}]'

        # ── size name ────────────────────────────────────────────
        size = str(row.get('size') or '').strip()
        if not size:
            errors[f'{prefix}.size'] = f'Row {i+1}: size is required.'
        elif len(size) > 40:
            errors[f'{prefix}.size'] = f'Row {i+1}: size must be 40 characters or fewer.'
        else:
            folded = size.casefold()
            if folded in seen:
                errors[f'{prefix}.size'] = (
                    f'Row {i+1}: size "{size}" duplicates row {seen[folded] + 1}.'
                )
            else:
                seen[folded] = i

        # ── prices ───────────────────────────────────────────────
        for field in ('buying_price', 'selling_price'):
            raw = row.get(field, 0)
            value = to_decimal(raw if raw not in (None, '') else 0)
            if value is None:
                errors[f'{prefix}.{field}'] = f'Row {i+1}: {field.replace("_", " ")} must be a valid number.'
            elif value < 0:
                errors[f'{prefix}.{field}'] = f'Row {i+1}: {field.replace("_", " ")} cannot be negative.'
            elif value > MAX_AMOUNT:
                errors[f'{prefix}.{field}'] = f'Row {i+1}: {field.replace("_", " ")} cannot exceed {MAX_AMOUNT}.'

        # ── stock ────────────────────────────────────────────────
        raw_stock = row.get('stock', 0)
        stock = to_int(raw_stock if raw_stock not in (None, '') else 0)
        if stock is None:
            errors[f'{prefix}.stock'] = f'Row {i+1}: stock must be a whole number.'
        elif stock < 0:
            errors[f'{prefix}.stock'] = f'Row {i+1}: stock cannot be negative.'
        elif stock > MAX_INT:
            errors[f'{prefix}.stock'] = f'Row {i+1}: stock is too large.'

    return errors


def parse_variant_sizes(rows) -> list:
    """
    Convert validated size rows to typed dicts.
    Call only after validate_variant_sizes returns no errors.
    """
    parsed = []
    for i, row in enumerate(rows):
        parsed.append({
            'position':      i,
            'size':          str(row.get('size')).strip(),
            'buying_price':  to_decimal(row.get('buying_price') or 0),
            'selling_price': to_decimal(row.get('selling_price') or 0),
            'stock':         to_int(row.get('stock') or 0),
        })
    return parsed


def parse_product_form(form_data: dict) -> dict:
    """Typed product fields. Call only after validate_product_form returns no errors."""
    return {
        'name': str(form_data.get('name')).strip(),
        'hsn':  to_int(form_data.get('hsn') or 0),
    }
