from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Tuple
from flask import request, abort, make_response
from sleepdesk.config.pagination import normalize_pagination
import hashlib


def paginate_rows(rows: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int, int, int]:
    """Slice an already-ordered row list by the request's limit/offset."""
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = len(rows)
    return rows[offset:offset + limit], total, limit, offset


def compute_etag(ids: Iterable[Any], total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[str] = None):
    ids = [r.get('id') for r in rows]
    etag = compute_etag(ids, total, limit, offset, latest_ts)
    resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.headers['ETag'] = etag
    if latest_ts:
        resp.headers['X-Last-Modified-ISO'] = latest_ts
    return resp, etag


def handle_conditional(etag_value: str):
    """Return a 304 response when If-None-Match matches, else None."""
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        resp = make_response('', 304)
        resp.headers['ETag'] = etag_value
        return resp
    return None


def list_response(rows: List[Dict[str, Any]], ts_key: Optional[str] = None):
    """Paginate, tag and conditionally short-circuit a list endpoint."""
    page, total, limit, offset = paginate_rows(rows)
    latest_ts = max((r.get(ts_key) or '' for r in page), default='') if ts_key else ''
    resp, etag = make_cached_list_response(page, total, limit, offset, latest_ts or None)
    cond = handle_conditional(etag)
    if cond:
        return cond
    return resp
