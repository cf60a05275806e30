# Overview: Success envelope helpers shared by every blueprint.

from __future__ import annotations

from flask import jsonify


def ok(data=None, *, message: str | None = None, status: int = 200, pagination: dict | None = None):
    """Render `{success: true, message?, data?, pagination?}`."""
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return jsonify(body), status


def created(data, *, message: str | None = None):
    return ok(data, message=message, status=201)


def paginated(result: dict, *, message: str | None = None):
    """Render a list-service result (`items` + `pagination`)."""
    return ok(result["items"], message=message, pagination=result["pagination"])
