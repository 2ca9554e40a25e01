import io
import json
import os

import pytest
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import FileStorage

from catalog_api.init_db import db
from catalog_api.products import views
from catalog_api.products.models import DynamicAttribute, Product, ProductAttribute


def make_product(**overrides):
    payload = {
        'name': 'Desk Lamp',
        'description': 'Warm white LED lamp',
        'price': 25,
        'photo': 'https://img.example.com/lamp.png',
        'attributes': [{'name': 'color', 'value': 'black'}, {'name': 'wattage', 'value': '9W'}],
    }
    payload.update(overrides)
    return payload


def add(client, headers, **overrides):
    return client.post('/api/products/add', json=make_product(**overrides), headers=headers)


def counts(app):
    with app.app_context():
        return DynamicAttribute.query.count(), ProductAttribute.query.count()


def test_add_product_creates_attributes(app, client, auth_headers):
    response = add(client, auth_headers)

    assert response.status_code == 201
    body = response.get_json()
    assert body['message'] == 'Product added successfully.'
    assert counts(app) == (2, 2)

    with app.app_context():
        product = db.session.get(Product, body['productId'])
        assert product.image == 'https://img.example.com/lamp.png'
        assert product.price == 25
        assert {(pa.attribute.name, pa.value) for pa in product.attribute_values} == {
            ('color', 'black'), ('wattage', '9W'),
        }


def test_existing_attribute_is_reused(app, client, auth_headers):
    add(client, auth_headers)
    response = add(client, auth_headers, name='Floor Lamp', attributes=[{'name': 'color', 'value': 'white'}])

    assert response.status_code == 201
    assert counts(app) == (2, 3)


def test_add_product_requires_token(client):
    response = client.post('/api/products/add', json=make_product())
    assert response.status_code == 401


@pytest.mark.parametrize('overrides, message', [
    ({'name': ''}, 'Name is required and must be a string.'),
    ({'price': 'cheap'}, 'Price is required and must be a number.'),
    ({'price': -1}, 'Price is required and must be a number.'),
    ({'price': None}, 'Price is required and must be a number.'),
    ({'attributes': []}, 'Attributes are required and must be an array.'),
    ({'attributes': 'color'}, 'Attributes are required and must be an array.'),
    ({'attributes': [{'name': 'color'}]}, 'Each attribute must have a name and a value.'),
    ({'photo': None}, 'Image is required. Please upload a file or provide an image URL.'),
])
def test_add_product_validation(app, client, auth_headers, overrides, message):
    response = add(client, auth_headers, **overrides)

    assert response.status_code == 400
    assert response.get_json()['message'] == message
    with app.app_context():
        assert Product.query.count() == 0


def test_duplicate_attribute_names_rejected(client, auth_headers):
    response = add(client, auth_headers, attributes=[
        {'name': 'color', 'value': 'black'}, {'name': 'color', 'value': 'red'},
    ])
    assert response.status_code == 400


def test_uploaded_image_takes_precedence_over_photo(app, client, auth_headers):
    data = {
        'name': 'Poster',
        'price': '12.5',
        'photo': 'https://img.example.com/ignored.png',
        'attributes': json.dumps([{'name': 'size', 'value': 'A2'}]),
        'image': (io.BytesIO(b'\x89PNG fake'), 'poster.PNG', 'image/png'),
    }
    response = client.post('/api/products/add', data=data, headers=auth_headers,
                           content_type='multipart/form-data')

    assert response.status_code == 201
    with app.app_context():
        product = db.session.get(Product, response.get_json()['productId'])
        image = product.image
        assert product.price == 12.5
    assert image.endswith('.png')
    millis, suffix = image[:-4].split('-')
    assert millis.isdigit() and len(suffix) == 8
    assert os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], image))


def test_uploaded_image_type_is_checked(app, client, auth_headers):
    data = {
        'name': 'Script',
        'price': '1',
        'attributes': json.dumps([{'name': 'size', 'value': 'A2'}]),
        'image': (io.BytesIO(b'#!/bin/sh'), 'run.sh', 'text/x-sh'),
    }
    response = client.post('/api/products/add', data=data, headers=auth_headers,
                           content_type='multipart/form-data')

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Invalid file type. Only jpeg, jpg, png are allowed.'


def seed(client, headers):
    add(client, headers, name='Red Shoe', price=30, category='shoes',
        attributes=[{'name': 'color', 'value': 'red'}])
    add(client, headers, name='Blue Shoe', price=10, category='shoes',
        attributes=[{'name': 'color', 'value': 'blue'}])
    add(client, headers, name='Lamp', description='bright red shade', price=20, category='home',
        attributes=[{'name': 'wattage', 'value': '9W'}])


def test_list_products_defaults(client, auth_headers):
    seed(client, auth_headers)
    response = client.get('/api/products/list', headers=auth_headers)

    assert response.status_code == 200
    body = response.get_json()
    assert body['message'] == 'Products retrieved successfully.'
    assert [p['name'] for p in body['data']] == ['Red Shoe', 'Blue Shoe', 'Lamp']
    assert body['data'][0]['attributes'] == 'color: red'
    assert body['pagination'] == {'currentPage': 1, 'totalProducts': 3, 'totalPages': 1, 'limit': 10}


def test_list_products_sorted_by_price(client, auth_headers):
    seed(client, auth_headers)
    body = client.get('/api/products/list?sort=price', headers=auth_headers).get_json()
    assert [p['price'] for p in body['data']] == [10, 20, 30]


def test_list_products_filter_matches_name_description_and_attributes(client, auth_headers):
    seed(client, auth_headers)
    body = client.get('/api/products/list?filter=red', headers=auth_headers).get_json()

    assert {p['name'] for p in body['data']} == {'Red Shoe', 'Lamp'}
    assert body['pagination']['totalProducts'] == 2


def test_list_products_price_and_category(client, auth_headers):
    seed(client, auth_headers)
    body = client.get('/api/products/list?category=shoes&price_min=15&price_max=40',
                      headers=auth_headers).get_json()
    assert [p['name'] for p in body['data']] == ['Red Shoe']

    body = client.get('/api/products/list?price_max=20', headers=auth_headers).get_json()
    assert {p['name'] for p in body['data']} == {'Blue Shoe', 'Lamp'}


def test_list_products_pagination(client, auth_headers):
    seed(client, auth_headers)
    body = client.get('/api/products/list?page=2&limit=2', headers=auth_headers).get_json()

    assert [p['name'] for p in body['data']] == ['Lamp']
    assert body['pagination'] == {'currentPage': 2, 'totalProducts': 3, 'totalPages': 2, 'limit': 2}


def test_list_products_filter_is_not_a_wildcard(client, auth_headers):
    seed(client, auth_headers)
    body = client.get('/api/products/list?filter=%25', headers=auth_headers).get_json()
    assert body['data'] == []
    assert body['pagination']['totalPages'] == 0


def test_add_product_rejects_non_object_body(app, client, auth_headers):
    response = client.post('/api/products/add', json=[1], headers=auth_headers)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Name is required and must be a string.'
    with app.app_context():
        assert Product.query.count() == 0


def test_failed_attribute_insert_rolls_back_everything(app, client, auth_headers, monkeypatch):
    real_get_or_create = views.get_or_create_attribute
    calls = []

    def fail_on_second(name):
        calls.append(name)
        if len(calls) == 2:
            raise SQLAlchemyError('connection lost')
        return real_get_or_create(name)

    monkeypatch.setattr(views, 'get_or_create_attribute', fail_on_second)

    data = {
        'name': 'Poster',
        'price': '12.5',
        'attributes': json.dumps([{'name': 'size', 'value': 'A2'}, {'name': 'paper', 'value': 'matte'}]),
        'image': (io.BytesIO(b'\x89PNG fake'), 'poster.png', 'image/png'),
    }
    response = client.post('/api/products/add', data=data, headers=auth_headers,
                           content_type='multipart/form-data')

    assert response.status_code == 500
    assert response.get_json() == {'message': 'Internal server error.'}
    assert calls == ['size', 'paper']
    with app.app_context():
        assert Product.query.count() == 0
        assert DynamicAttribute.query.count() == 0
        assert ProductAttribute.query.count() == 0
    assert os.listdir(app.config['UPLOAD_FOLDER']) == []


def test_uploads_in_same_millisecond_get_distinct_names(tmp_path, monkeypatch):
    monkeypatch.setattr(views.time, 'time', lambda: 1700000000.123)

    names = {
        views.save_uploaded_image(
            FileStorage(stream=io.BytesIO(b'img'), filename='a.jpg', content_type='image/jpeg'), str(tmp_path)
        )
        for _ in range(2)
    }

    assert len(names) == 2
    assert all(name.startswith('1700000000123-') and name.endswith('.jpg') for name in names)
    assert len(os.listdir(tmp_path)) == 2
