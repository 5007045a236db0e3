DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_limit(limit_raw, default=DEFAULT_LIMIT):
    """Coerce a raw ``limit`` query value into 1..MAX_LIMIT (None stays None when default is None)."""
    if limit_raw is None or limit_raw == '':
        return default
    try:
        limit = int(limit_raw)
    except (TypeError, ValueError):
        raise ValueError('limit must be int')
    return max(1, min(limit, MAX_LIMIT))


def normalize_pagination(limit_raw, offset_raw):
    limit = normalize_limit(limit_raw)
    try:
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    offset = max(0, offset)
    return limit, offset
