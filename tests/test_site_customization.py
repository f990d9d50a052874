"""
Site customization tests
"""
import io
import json
import os

from app.models import SiteCustomization
from app.models.site_customization import DEFAULT_CUSTOMIZATION


class TestSiteSettings:

    def test_public_read(self, client, admin_headers):
        client.put('/api/site-customization', headers=admin_headers,
                   json={'contact': {'phone': '0102030405'}})

        response = client.get('/api/site-customization')

        assert json.loads(response.data)['data']['customization']['contact'] == {'phone': '0102030405'}

    def test_update_merges_keys(self, client, admin_headers):
        client.put('/api/site-customization', headers=admin_headers, json={'general': {'siteName': 'A'}})
        response = client.put('/api/site-customization', headers=admin_headers, json={'footer': {'text': 'B'}})

        customization = json.loads(response.data)['data']['customization']
        assert customization == {'footer': {'text': 'B'}, 'general': {'siteName': 'A'}}

    def test_update_requires_admin(self, client, client_headers):
        response = client.put('/api/site-customization', headers=client_headers, json={'general': {}})

        assert response.status_code == 403

    def test_reset(self, client, admin_headers):
        client.put('/api/site-customization', headers=admin_headers, json={'footer': {'text': 'B'}})

        response = client.post('/api/site-customization/reset', headers=admin_headers)

        assert json.loads(response.data)['data']['customization'] == DEFAULT_CUSTOMIZATION
        assert SiteCustomization.query.filter_by(key='footer').first() is None

    def test_image_upload_and_delete(self, client, app, admin_headers):
        response = client.post('/api/site-customization/upload', headers=admin_headers,
                               data={'image': (io.BytesIO(b'png'), 'logo.png')},
                               content_type='multipart/form-data')

        data = json.loads(response.data)['data']
        path = os.path.join(app.config['UPLOAD_FOLDER'], 'site', data['filename'])
        assert os.path.isfile(path)
        assert client.get(data['url']).status_code == 200

        client.delete(f'/api/site-customization/image/{data["filename"]}', headers=admin_headers)

        assert not os.path.exists(path)

    def test_upload_rejects_non_images(self, client, admin_headers):
        response = client.post('/api/site-customization/upload', headers=admin_headers,
                               data={'image': (io.BytesIO(b'#!/bin/sh'), 'run.sh')},
                               content_type='multipart/form-data')

        assert response.status_code == 400


class TestCollections:

    def test_blog_post_lifecycle(self, client, admin_headers):
        created = client.post('/api/site-customization/blog', headers=admin_headers,
                              json={'title': 'Aides 2026', 'content': 'Programme Advenir'})
        post = json.loads(created.data)['data']['blogPost']
        assert created.status_code == 201
        assert post['id'].startswith('post-')

        client.put(f'/api/site-customization/blog/{post["id"]}', headers=admin_headers,
                   json={'title': 'Aides 2027'})
        listed = json.loads(client.get('/api/site-customization/blog').data)['data']['blogPosts']
        assert [p['title'] for p in listed] == ['Aides 2027']

        deleted = client.delete(f'/api/site-customization/blog/{post["id"]}', headers=admin_headers)
        assert deleted.status_code == 200
        assert json.loads(client.get('/api/site-customization/blog').data)['data']['blogPosts'] == []

    def test_vehicle_brands_live_under_simulator(self, client, admin_headers):
        client.post('/api/site-customization/simulator/vehicles', headers=admin_headers,
                    json={'name': 'Renault', 'models': ['Zoe', 'Megane E-Tech']})
        client.post('/api/site-customization/simulator/savings', headers=admin_headers,
                    json={'label': 'Economie annuelle', 'amount': 900})

        customization = json.loads(client.get('/api/site-customization').data)['data']['customization']

        assert [b['name'] for b in customization['simulator']['vehicleBrands']] == ['Renault']
        assert customization['simulator']['savingsInfo'][0]['amount'] == 900

    def test_unknown_item(self, client, admin_headers):
        assert client.get('/api/site-customization/services/service-1').status_code == 404
        assert client.put('/api/site-customization/services/service-1', headers=admin_headers,
                          json={'name': 'x'}).status_code == 404

    def test_items_require_admin(self, client, technician_headers):
        response = client.post('/api/site-customization/services', headers=technician_headers,
                               json={'name': 'Audit'})

        assert response.status_code == 403
