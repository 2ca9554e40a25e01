# catalog_api/products/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from catalog_api.errors import CatalogError
from catalog_api.logging_config import setup_logging
from catalog_api.products.query_builder import ListingParams
from catalog_api.products.views import validate_product_input, add_product, list_products


products_bp = Blueprint('products', __name__)

logger = setup_logging()


@products_bp.route('/add', methods=['POST'])
@login_required
def add():
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
    else:
        data = request.form

    try:
        validated = validate_product_input(data, request.files.get('image'))
        product_id = add_product(validated)
    except CatalogError as e:
        if e.status_code < 500:
            logger.warning(f"Add product rejected: {e.reason}")
        return jsonify({'message': e.message}), e.status_code

    return jsonify({'message': 'Product added successfully.', 'productId': product_id}), 201


@products_bp.route('/list', methods=['GET'])
@login_required
def list_all():
    params = ListingParams.from_args(request.args, max_limit=current_app.config.get('PRODUCT_LIST_MAX_LIMIT'))

    try:
        result = list_products(params)
    except CatalogError as e:
        return jsonify({'message': e.message}), e.status_code

    return jsonify({'message': 'Products retrieved successfully.', **result}), 200
