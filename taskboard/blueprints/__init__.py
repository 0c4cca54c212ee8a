"""JSON API blueprints. Shared request helpers live here."""

from flask import current_app, request

from taskboard.errors import ValidationError


def json_payload():
    """The request body as a dict, or ValidationError."""
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def mutation_limit():
    return current_app.config["MUTATION_RATE_LIMIT"]
