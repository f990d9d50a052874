"""
User management tests
"""
import json


class TestUserAdministration:

    def test_list_users_paginated(self, client, admin_headers, technician, client_user):
        response = client.get('/api/users?limit=2&page=1', headers=admin_headers)

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'pages': 2}
        assert len(data['users']) == 2

    def test_list_users_filter_by_role(self, client, admin_headers, technician, client_user):
        response = client.get('/api/users?role=technician', headers=admin_headers)

        users = json.loads(response.data)['data']['users']
        assert [u['id'] for u in users] == [technician.id]

    def test_create_technician_requires_departement(self, client, admin_headers):
        response = client.post('/api/users', headers=admin_headers, json={
            'firstName': 'Marc', 'lastName': 'Petit', 'email': 'marc@crm.test',
            'password': 'Password123', 'role': 'technician',
        })

        assert response.status_code == 400
        assert 'departement' in [e['field'] for e in json.loads(response.data)['errors']]

    def test_create_user(self, client, admin_headers):
        response = client.post('/api/users', headers=admin_headers, json={
            'firstName': 'Marc', 'lastName': 'Petit', 'email': 'marc@crm.test',
            'password': 'Password123', 'role': 'technician', 'departement': '69',
        })

        assert response.status_code == 201
        user = json.loads(response.data)['data']['user']
        assert user['role'] == 'technician'
        assert user['availability'] == {'status': 'available'}

    def test_non_admin_cannot_change_own_role(self, client, client_user, client_headers):
        response = client.put(f'/api/users/{client_user.id}', headers=client_headers,
                              json={'role': 'admin', 'phone': '0612345678'})

        assert response.status_code == 200
        user = json.loads(response.data)['data']['user']
        assert user['role'] == 'client'
        assert user['phone'] == '0612345678'

    def test_user_cannot_read_someone_else(self, client, client_headers, other_client):
        response = client.get(f'/api/users/{other_client.id}', headers=client_headers)

        assert response.status_code == 403

    def test_admin_cannot_delete_self(self, client, admin, admin_headers):
        response = client.delete(f'/api/users/{admin.id}', headers=admin_headers)

        assert response.status_code == 400


class TestToggleStatus:

    def test_toggle_twice_restores_login(self, client, admin_headers, client_user):
        """Deactivate then reactivate; login follows the flag each time"""
        credentials = {'email': 'client@crm.test', 'password': 'Password123'}
        assert client.post('/api/auth/login', json=credentials).status_code == 200

        first = client.patch(f'/api/users/{client_user.id}/toggle-status', headers=admin_headers)
        assert json.loads(first.data)['data']['user']['isActive'] is False
        refused = client.post('/api/auth/login', json=credentials)
        assert refused.status_code == 401
        assert 'Account disabled' in json.loads(refused.data)['message']

        second = client.patch(f'/api/users/{client_user.id}/toggle-status', headers=admin_headers)
        assert json.loads(second.data)['data']['user']['isActive'] is True
        assert client.post('/api/auth/login', json=credentials).status_code == 200

    def test_deactivation_revokes_refresh_token(self, client, admin_headers, client_user):
        login = client.post('/api/auth/login', json={'email': 'client@crm.test', 'password': 'Password123'})
        refresh_token = json.loads(login.data)['data']['refreshToken']

        client.patch(f'/api/users/{client_user.id}/toggle-status', headers=admin_headers)

        assert client.post('/api/auth/refresh', json={'refreshToken': refresh_token}).status_code == 401


class TestDirectory:

    def test_available_technicians(self, client, admin_headers, technician, make_user):
        make_user('technician', availability={'status': 'unavailable'})

        response = client.get('/api/users/technicians/available', headers=admin_headers)

        technicians = json.loads(response.data)['data']['technicians']
        assert [t['id'] for t in technicians] == [technician.id]

    def test_contacts_for_client_exclude_other_clients(self, client, client_headers, admin, technician,
                                                      other_client):
        response = client.get('/api/users/contacts', headers=client_headers)

        ids = {c['id'] for c in json.loads(response.data)['data']['contacts']}
        assert ids == {admin.id, technician.id}

    def test_technician_directory_is_admin_only(self, client, admin_headers, client_headers,
                                                technician_headers, technician):
        for headers in (client_headers, technician_headers):
            assert client.get('/api/users/technicians', headers=headers).status_code == 403

        response = client.get('/api/users/technicians', headers=admin_headers)

        assert response.status_code == 200
        assert [t['id'] for t in json.loads(response.data)['data']['technicians']] == [technician.id]
