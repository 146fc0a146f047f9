# cms_publisher/api/v1/publish.py
from flask import g, request, jsonify
from cms_publisher.application.publishing.orchestrator import (
    PublishRequest,
    get_publishable_count,
    get_publishable_counts,
    is_publish_needed,
    publish_items,
    publish_pages,
    publish_roots,
    publish_site,
)
from cms_publisher.domain.publishing.exceptions import ValidationError
from . import v1_bp


def _id_list(data, key):
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of ids")
    return value


# ------------------------
# Site / pages
# ------------------------

@v1_bp.route("/publish", methods=["POST"])
def publish():
    data = request.get_json(silent=True) or {}

    folder_ids = _id_list(data, "folder_ids")
    page_ids = _id_list(data, "page_ids")
    collection_ids = _id_list(data, "collection_ids")
    item_ids = _id_list(data, "collection_item_ids")
    actor_id = g.get("actor_id")

    if not (folder_ids or page_ids or collection_ids or item_ids):
        if not data.get("publish_all"):
            return jsonify({"error": "Nothing selected to publish"}), 400

        result = publish_site(actor_id=actor_id)
        return jsonify(result.to_dict()), 200

    response = {}

    if folder_ids or page_ids:
        pages = publish_pages(folder_ids=folder_ids, page_ids=page_ids, actor_id=actor_id)
        response["pages"] = pages.to_dict()

    if collection_ids or item_ids:
        batch = publish_roots(
            [PublishRequest(collection_id) for collection_id in collection_ids],
            actor_id=actor_id,
        )
        if item_ids:
            batch.results.extend(publish_items(item_ids, actor_id=actor_id).results)
        response["collections"] = batch.to_dict()

    return jsonify(response), 200


# ------------------------
# Collections
# ------------------------

@v1_bp.route("/collections/publish", methods=["POST"])
def publish_collections():
    data = request.get_json(silent=True) or {}
    publishes = data.get("publishes")

    if not isinstance(publishes, list) or not publishes:
        return jsonify({"error": "publishes must be a non-empty list"}), 400

    requests_ = []
    for entry in publishes:
        if not isinstance(entry, dict):
            raise ValidationError("each publish entry must be an object")
        requests_.append(PublishRequest.from_dict(entry))

    batch = publish_roots(requests_, actor_id=g.get("actor_id"))
    return jsonify(batch.to_dict()), 200


@v1_bp.route("/collections/<collection_id>/publish-status", methods=["GET"])
def collection_publish_status(collection_id):
    return jsonify({
        "collection_id": collection_id,
        "needs_publishing": is_publish_needed(collection_id),
        "publishable_count": get_publishable_count(collection_id),
    })


@v1_bp.route("/collections/publishable-counts", methods=["POST"])
def collection_publishable_counts():
    data = request.get_json(silent=True) or {}
    collection_ids = _id_list(data, "collection_ids")

    if not collection_ids:
        return jsonify({"error": "collection_ids is required"}), 400

    return jsonify({"counts": get_publishable_counts(collection_ids)})
