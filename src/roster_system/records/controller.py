from __future__ import annotations

from typing import Any, Dict, List

from flask import Flask, current_app, g, jsonify, request

from ..common.validators import optional_bool, optional_int
from ..container import Container
from ..core.enums import SortDirection
from ..core.exceptions import ValidationError
from ..identities.boundary import request_principal
from ..loaders.scope import RequestLoaders
from .query import FilterSpec, PageEnvelope, PageSpec, SortSpec


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _page_from_args() -> PageSpec:
    page = optional_int(request.args.get("page"), "page")
    limit = optional_int(request.args.get("limit"), "limit")
    return PageSpec(
        page=1 if page is None else page,
        limit=current_app.config["DEFAULT_PAGE_SIZE"] if limit is None else limit,
    )


def _sort_from_args() -> SortSpec:
    direction = (request.args.get("order") or SortDirection.DESC.value).upper()
    if direction not in {d.value for d in SortDirection}:
        raise ValidationError("Sort direction must be ASC or DESC")
    return SortSpec(field=request.args.get("sort") or "created_at", direction=SortDirection(direction))


def _filter_from_args() -> FilterSpec:
    args = request.args
    return FilterSpec(
        name=args.get("name"),
        email=args.get("email"),
        class_name=args.get("class_name"),
        department=args.get("department"),
        age_min=optional_int(args.get("age_min"), "age_min"),
        age_max=optional_int(args.get("age_max"), "age_max"),
        subject=args.get("subject"),
        is_active=optional_bool(args.get("is_active"), "is_active"),
    )


def register(app: Flask, container: Container) -> None:
    service = container.record_service

    def loaders() -> RequestLoaders:
        # One scope per request, dropped with the app context.
        if "loaders" not in g:
            g.loaders = container.loader_factory.new_scope()
        return g.loaders

    def principal():
        return request_principal(container.auth_service)

    def with_creators(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        scope = loaders()
        pending = [(item, scope.creators.load(item["created_by"])) for item in items]
        scope.dispatch_all()
        return [{**item, "creator": deferred.result()} for item, deferred in pending]

    def envelope_json(envelope: PageEnvelope):
        body = envelope.to_dict()
        body["items"] = with_creators(body["items"])
        return jsonify(body)

    @app.route("/api/records", methods=["GET"], endpoint="list_records")
    def list_records():
        envelope = service.list_records(principal(), _filter_from_args(), _sort_from_args(), _page_from_args())
        return envelope_json(envelope)

    @app.route("/api/records/search", methods=["GET"], endpoint="search_records")
    def search_records():
        envelope = service.search_records(principal(), request.args.get("q", ""), _page_from_args())
        return envelope_json(envelope)

    @app.route("/api/records/stats", methods=["GET"], endpoint="record_stats")
    def record_stats():
        return jsonify(service.get_stats(principal()).to_dict())

    @app.route("/api/records/<int:record_id>", methods=["GET"], endpoint="get_record")
    def get_record(record_id: int):
        return jsonify(service.get_record(principal(), record_id, creators=loaders().creators))

    @app.route("/api/records", methods=["POST"], endpoint="create_record")
    def create_record():
        created = service.create_record(principal(), _json_body())
        return jsonify(with_creators([created])[0]), 201

    @app.route("/api/records/<int:record_id>", methods=["PATCH"], endpoint="update_record")
    def update_record(record_id: int):
        updated = service.update_record(principal(), record_id, _json_body())
        return jsonify(with_creators([updated])[0])

    @app.route("/api/records/<int:record_id>", methods=["DELETE"], endpoint="delete_record")
    def delete_record(record_id: int):
        return jsonify({"deleted": service.delete_record(principal(), record_id)})

    @app.route("/api/records/<int:record_id>/attendance", methods=["POST"], endpoint="mark_attendance")
    def mark_attendance(record_id: int):
        updated = service.mark_attendance(principal(), record_id, _json_body())
        return jsonify(with_creators([updated])[0]), 201

    @app.route("/api/records/bulk", methods=["PATCH"], endpoint="bulk_update_records")
    def bulk_update_records():
        data = _json_body()
        ids = data.get("ids")
        if not isinstance(ids, list):
            raise ValidationError("ids must be a list")
        patch = data.get("input")
        if not isinstance(patch, dict):
            raise ValidationError("input must be an object")
        record_ids = [optional_int(i, "id") for i in ids]
        if any(i is None for i in record_ids):
            raise ValidationError("ids must be numbers")
        updated = service.bulk_update_records(principal(), record_ids, patch)
        return jsonify({"items": with_creators(updated)})
