# catalog_api/products/views.py
import os
import json
import math
import time
import secrets
from collections import namedtuple

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from catalog_api.init_db import db
from catalog_api.errors import ConflictError, UpstreamError, ValidationError
from catalog_api.logging_config import setup_logging
from catalog_api.products.models import Product, DynamicAttribute, ProductAttribute
from catalog_api.products.query_builder import ListingQuery, bind

logger = setup_logging()

ALLOWED_IMAGE_EXTENSIONS = {'jpeg', 'jpg', 'png'}

ValidatedProduct = namedtuple(
    'ValidatedProduct', ['name', 'description', 'price', 'category', 'attributes', 'image_file', 'photo']
)


def _parse_price(value):
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _parse_attributes(value):
    # Multipart forms carry the attribute list as a JSON string.
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, list) else None


def is_allowed_image(file):
    ext = os.path.splitext(file.filename or '')[1].lstrip('.').lower()
    mimetype = (file.mimetype or '').lower()
    return ext in ALLOWED_IMAGE_EXTENSIONS and mimetype.split('/')[-1] in ALLOWED_IMAGE_EXTENSIONS


def validate_product_input(data, image_file=None):
    name = data.get('name')
    if not name or not isinstance(name, str):
        raise ValidationError(ValidationError.INVALID_NAME, 'Name is required and must be a string.')

    price = _parse_price(data.get('price'))
    if price is None:
        raise ValidationError(ValidationError.INVALID_PRICE, 'Price is required and must be a number.')

    attributes = _parse_attributes(data.get('attributes'))
    if not attributes:
        raise ValidationError(ValidationError.INVALID_ATTRIBUTES, 'Attributes are required and must be an array.')

    seen = set()
    cleaned = []
    for attr in attributes:
        if not isinstance(attr, dict) or not attr.get('name') or not attr.get('value'):
            raise ValidationError(ValidationError.INVALID_ATTRIBUTES, 'Each attribute must have a name and a value.')
        attr_name = str(attr['name'])
        if attr_name in seen:
            raise ValidationError(ValidationError.INVALID_ATTRIBUTES, f"Attribute '{attr_name}' is given more than once.")
        seen.add(attr_name)
        cleaned.append((attr_name, str(attr['value'])))

    photo = data.get('photo')
    if image_file is not None and image_file.filename:
        if not is_allowed_image(image_file):
            raise ValidationError(ValidationError.INVALID_IMAGE_TYPE, 'Invalid file type. Only jpeg, jpg, png are allowed.')
        photo = None
    elif photo and isinstance(photo, str):
        image_file = None
    else:
        raise ValidationError(
            ValidationError.MISSING_IMAGE, 'Image is required. Please upload a file or provide an image URL.'
        )

    description = data.get('description')
    category = data.get('category')

    return ValidatedProduct(
        name=name,
        description=description if isinstance(description, str) else None,
        price=price,
        category=category if isinstance(category, str) and category else None,
        attributes=cleaned,
        image_file=image_file,
        photo=photo,
    )


def save_uploaded_image(image_file, folder):
    """Store an upload as <epoch millis>-<random hex><ext> and return the stored name."""
    os.makedirs(folder, exist_ok=True)
    ext = os.path.splitext(image_file.filename)[1].lower()
    filename = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
    image_file.save(os.path.join(folder, filename))
    return filename


def _discard_upload(validated, image):
    if validated.image_file is None:
        return
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], image)
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Could not remove orphaned upload {path}: {e}")


def get_or_create_attribute(name):
    attribute = DynamicAttribute.query.filter_by(name=name).first()
    if attribute is None:
        attribute = DynamicAttribute(name=name)
        db.session.add(attribute)
        db.session.flush()
        logger.info(f"Created attribute '{name}'.")
    return attribute


def add_product(validated):
    if validated.image_file is not None:
        try:
            image = save_uploaded_image(validated.image_file, current_app.config['UPLOAD_FOLDER'])
        except OSError as e:
            logger.error(f"Could not store uploaded image: {e}")
            raise UpstreamError(cause=e)
    else:
        image = validated.photo

    try:
        product = Product(
            name=validated.name,
            description=validated.description,
            price=validated.price,
            image=image,
            category=validated.category,
        )
        db.session.add(product)
        db.session.flush()

        for attr_name, value in validated.attributes:
            attribute = get_or_create_attribute(attr_name)
            db.session.add(ProductAttribute(product_id=product.id, attribute_id=attribute.id, value=value))

        db.session.commit()
    except IntegrityError as e:
        # A concurrent request created one of the new attribute names first.
        db.session.rollback()
        _discard_upload(validated, image)
        logger.warning(f"Attribute conflict while adding product: {e}")
        raise ConflictError(ConflictError.ATTRIBUTE_CONFLICT, 'Product attributes changed concurrently. Please retry.')
    except SQLAlchemyError as e:
        db.session.rollback()
        _discard_upload(validated, image)
        logger.error(f"Database error while adding product: {e}")
        raise UpstreamError(cause=e)

    logger.info(f"Product {product.id} added with {len(validated.attributes)} attributes.")
    return product.id


def list_products(params):
    listing = ListingQuery(params, dialect=db.engine.dialect.name)
    query_text, bindings = listing.build()
    count_text, count_bindings = listing.build_count()

    try:
        rows = db.session.execute(text(query_text), bind(bindings)).mappings().all()
        total_products = db.session.execute(text(count_text), bind(count_bindings)).scalar() or 0
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error while listing products: {e}")
        raise UpstreamError(cause=e)

    return {
        'data': [dict(row) for row in rows],
        'pagination': {
            'currentPage': params.page,
            'totalProducts': total_products,
            'totalPages': math.ceil(total_products / params.limit),
            'limit': params.limit,
        },
    }
