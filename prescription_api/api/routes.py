"""
Flask route handlers for the REST API.
"""

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from prescription_api.config import PRESCRIPTIONS_COLLECTION
from prescription_api.database import RecordNotFound
from prescription_api.errors import ApiError, DecodeError, NotFoundOrNotOwned
from prescription_api.identity import authenticate_user, register_user
from prescription_api.models import Prescription, by_id_and_owner, by_owner
from prescription_api.api.auth import session_required, set_session_cookie

PRESCRIPTION_FIELDS = ("name", "directions", "time")


def decode_prescription_body(require_name: bool) -> dict:
    """Decode the JSON body into prescription fields or raise DecodeError.

    Only ``name``, ``directions`` and ``time`` are taken from the client;
    ``id`` and ``owner`` are always assigned by the server.
    """
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise DecodeError()

    fields = {}
    for key in PRESCRIPTION_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, str):
            raise DecodeError(f"Field '{key}' must be a string")
        fields[key] = value

    if "name" in fields and not fields["name"].strip():
        raise DecodeError("Field 'name' must not be empty")
    if require_name and "name" not in fields:
        raise DecodeError("Field 'name' is required")
    return fields


def register_routes(app, store):
    """Register all API routes on the Flask *app*, backed by *store*."""

    # ── Identity ─────────────────────────────────────────────────────

    @app.route("/register", methods=["POST"])
    def register():
        username = register_user(store, request.headers.get("Authorization"))
        current_app.logger.info("registered user %s", username)
        response = jsonify({"success": True, "username": username})
        return set_session_cookie(response, username), 200

    @app.route("/login", methods=["POST"])
    def login():
        username = authenticate_user(store, request.headers.get("Authorization"))
        current_app.logger.info("user %s logged in", username)
        response = jsonify({"success": True, "username": username})
        return set_session_cookie(response, username), 200

    # ── Prescriptions ────────────────────────────────────────────────

    @app.route("/prescription", methods=["POST"])
    @session_required
    def create_prescription():
        fields = decode_prescription_body(require_name=True)
        prescription = Prescription(
            id=store.new_id(),
            name=fields["name"],
            owner=request.identity,
            directions=fields.get("directions", ""),
            time=fields.get("time", ""),
        )
        record = store.insert(prescription.to_dict(), PRESCRIPTIONS_COLLECTION)
        return jsonify(Prescription.from_record(record).to_dict()), 200

    @app.route("/prescription/<prescription_id>", methods=["GET"])
    @session_required
    def view_prescription(prescription_id):
        query = by_id_and_owner(prescription_id, request.identity)
        try:
            record = store.find_one(query, PRESCRIPTIONS_COLLECTION)
        except RecordNotFound:
            raise NotFoundOrNotOwned() from None
        return jsonify(Prescription.from_record(record).to_dict()), 200

    @app.route("/prescription/<prescription_id>", methods=["PUT"])
    @session_required
    def update_prescription(prescription_id):
        fields = decode_prescription_body(require_name=False)
        # Full replacement: omitted directions/time are cleared; an omitted
        # name keeps the stored one since it may never be empty.
        for key in ("directions", "time"):
            fields.setdefault(key, "")
        fields["owner"] = request.identity

        query = by_id_and_owner(prescription_id, request.identity)
        try:
            store.update(query, fields, PRESCRIPTIONS_COLLECTION)
            record = store.find_one(query, PRESCRIPTIONS_COLLECTION)
        except RecordNotFound:
            raise NotFoundOrNotOwned() from None
        return jsonify(Prescription.from_record(record).to_dict()), 200

    @app.route("/prescription/<prescription_id>", methods=["DELETE"])
    @session_required
    def delete_prescription(prescription_id):
        query = by_id_and_owner(prescription_id, request.identity)
        try:
            store.remove(query, PRESCRIPTIONS_COLLECTION)
        except RecordNotFound:
            raise NotFoundOrNotOwned() from None
        return jsonify({"success": True, "id": prescription_id}), 200

    @app.route("/prescriptions", methods=["GET"])
    @session_required
    def list_prescriptions():
        records = store.find_all(by_owner(request.identity), PRESCRIPTIONS_COLLECTION)
        return jsonify([Prescription.from_record(r).to_dict() for r in records]), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(ApiError)
    def api_error(e):
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(Exception)
    def unexpected_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        current_app.logger.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
