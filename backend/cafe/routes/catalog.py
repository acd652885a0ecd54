# Overview: Flask API routes for ingredients, menu items and recipes.

# backend/cafe/routes/catalog.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import FulfillmentError
from ..services import catalog_service
from ..validation import (
    ValidationError,
    coerce_number,
    coerce_price,
    require_payload,
    required,
)


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


# --- Ingredients -------------------------------------------------------------

@catalog_bp.get("/ingredients")
def list_ingredients_route():
    ingredients = catalog_service.list_ingredients()
    return jsonify({"ingredients": [i.to_dict() for i in ingredients]}), 200


@catalog_bp.post("/ingredients")
def create_ingredient_route():
    """Create an ingredient and its (empty) stock row."""
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "name", "unit")
        minimum = data.get("minimum_quantity")
        ingredient = catalog_service.create_ingredient(
            name=data["name"],
            unit=data["unit"],
            minimum_quantity=coerce_number(minimum, "minimum_quantity") if minimum is not None else 0,
        )
        return jsonify({"ingredient": ingredient.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create ingredient")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.patch("/ingredients/<int:ingredient_id>")
def rename_ingredient_route(ingredient_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "name")
        ingredient = catalog_service.rename_ingredient(ingredient_id, name=data["name"], unit=data.get("unit"))
        return jsonify({"ingredient": ingredient.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to rename ingredient")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/ingredients/<int:ingredient_id>")
def delete_ingredient_route(ingredient_id: int):
    """Removes the ingredient's recipe lines and stock row; the ingredient is deactivated."""
    try:
        catalog_service.delete_ingredient(ingredient_id)
        return jsonify({"deleted": ingredient_id}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete ingredient")
        return jsonify({"error": "Internal server error"}), 500


# --- Menu items --------------------------------------------------------------

@catalog_bp.get("/items")
def list_items_route():
    items = catalog_service.list_menu_items()
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@catalog_bp.post("/items")
def create_item_route():
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "name", "price")
        item = catalog_service.create_menu_item(
            name=data["name"],
            price=coerce_price(data["price"]),
            description=data.get("description"),
        )
        return jsonify({"item": item.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create menu item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.patch("/items/<int:item_id>")
def update_item_route(item_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        item = catalog_service.update_menu_item(
            item_id,
            name=data.get("name"),
            price=coerce_price(data["price"]) if data.get("price") is not None else None,
            description=data.get("description"),
        )
        return jsonify({"item": item.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update menu item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/items/<int:item_id>")
def delete_item_route(item_id: int):
    try:
        catalog_service.delete_menu_item(item_id)
        return jsonify({"deleted": item_id}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete menu item")
        return jsonify({"error": "Internal server error"}), 500


# --- Recipes -----------------------------------------------------------------

@catalog_bp.get("/items/<int:item_id>/recipe")
def get_recipe_route(item_id: int):
    lines = catalog_service.list_recipe_lines(item_id)
    return jsonify({
        "item_id": item_id,
        "orderable": bool(lines),
        "lines": [line.to_dict() for line in lines],
    }), 200


@catalog_bp.put("/items/<int:item_id>/recipe/<int:ingredient_id>")
def set_recipe_line_route(item_id: int, ingredient_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        required(data, "required_quantity")
        line = catalog_service.set_recipe_line(
            item_id=item_id,
            ingredient_id=ingredient_id,
            required_quantity=coerce_number(data["required_quantity"], "required_quantity"),
        )
        return jsonify({"line": line.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to set recipe line")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/items/<int:item_id>/recipe/<int:ingredient_id>")
def remove_recipe_line_route(item_id: int, ingredient_id: int):
    try:
        catalog_service.remove_recipe_line(item_id=item_id, ingredient_id=ingredient_id)
        return jsonify({"deleted": True}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to remove recipe line")
        return jsonify({"error": "Internal server error"}), 500
