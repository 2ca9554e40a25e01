# catalog_api/authentication/models.py
from flask_login import UserMixin
from catalog_api.init_db import db


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    mobile = db.Column(db.String(20), unique=True, nullable=False)
    # bcrypt hash of the peppered password, never the plaintext
    password = db.Column(db.String(100), nullable=False)
