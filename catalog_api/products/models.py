# catalog_api/products/models.py
from datetime import datetime
from catalog_api.init_db import db


class Product(db.Model):
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Float, nullable=False)
    # uploaded file name or external URL
    image = db.Column(db.String(500), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class DynamicAttribute(db.Model):
    __tablename__ = 'dynamic_attributes'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)


class ProductAttribute(db.Model):
    __tablename__ = 'product_attributes'
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), primary_key=True)
    attribute_id = db.Column(db.Integer, db.ForeignKey('dynamic_attributes.id'), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
    product = db.relationship('Product', backref=db.backref('attribute_values', lazy=True))
    attribute = db.relationship('DynamicAttribute', backref=db.backref('product_values', lazy=True))
