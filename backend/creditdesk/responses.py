# Overview: JSON response envelope shared by every route.

"""
Every JSON response is one of:

    {"status": "success", "data": {...}}
    {"status": "error", "message": "..."}
"""

from flask import jsonify


def success(data=None, status_code: int = 200, message: str | None = None):
    body = {"status": "success", "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status_code


def error(message: str, status_code: int = 400):
    return jsonify({"status": "error", "message": message}), status_code
