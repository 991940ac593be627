# --- artisan_market/utils/api.py ---
from flask import jsonify
from .dates import utcnow

def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
        "api_time": utcnow().strftime("%Y-%m-%d %H:%M:%S"),
    }

def api_error(message, data=None, kind=None):
    body = {
        "status": False,
        "message": message,
        "data": data if data is not None else {},
        "api_time": utcnow().strftime("%Y-%m-%d %H:%M:%S"),
    }
    if kind:
        body["kind"] = kind
    return body

# unified response helpers
def ok(message: str, data=None, status=200):
    r = jsonify(api_ok(message, data)); r.status_code = status; return r

def err(message: str, status=400, data=None, kind=None):
    r = jsonify(api_error(message, data, kind)); r.status_code = status; return r
