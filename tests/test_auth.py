"""
Authentication tests
Registration, login, token guards, refresh rotation and profile
"""
import json
from datetime import timedelta

import jwt

from app import db
from app.models import User
from app.utils import utcnow


class TestRegistration:
    """Test self-registration of client accounts"""

    def test_register_client_success(self, client):
        """Registration creates a client and returns a token pair"""
        response = client.post('/api/auth/register', json={
            'email': 'New.Client@Example.com',
            'password': 'SecurePass1',
            'firstName': 'Nina',
            'lastName': 'Client',
        })

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data']['user']['email'] == 'new.client@example.com'
        assert data['data']['user']['role'] == 'client'
        assert data['data']['accessToken']
        assert data['data']['refreshToken']
        assert 'passwordHash' not in data['data']['user']

    def test_register_ignores_requested_role(self, client):
        """A visitor cannot register as admin"""
        response = client.post('/api/auth/register', json={
            'email': 'sneaky@example.com',
            'password': 'SecurePass1',
            'firstName': 'Sneaky',
            'lastName': 'User',
            'role': 'admin',
        })

        assert response.status_code == 201
        assert json.loads(response.data)['data']['user']['role'] == 'client'

    def test_register_duplicate_email(self, client, client_user):
        response = client.post('/api/auth/register', json={
            'email': client_user.email,
            'password': 'SecurePass1',
            'firstName': 'Duplicate',
            'lastName': 'User',
        })

        assert response.status_code == 400
        assert 'already exists' in json.loads(response.data)['message']

    def test_register_short_password(self, client):
        """Shape is validated before touching storage"""
        response = client.post('/api/auth/register', json={
            'email': 'weak@example.com',
            'password': '123',
            'firstName': 'Weak',
            'lastName': 'Password',
        })

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['success'] is False
        assert [e['field'] for e in data['errors']] == ['password']
        assert User.query.filter_by(email='weak@example.com').first() is None

    def test_register_invalid_email(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'not-an-email',
            'password': 'SecurePass1',
            'firstName': 'Invalid',
            'lastName': 'Email',
        })

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'email'


class TestLogin:
    """Test credential checks"""

    def test_login_success(self, client, technician):
        response = client.post('/api/auth/login', json={'email': 'tech@crm.test', 'password': 'Password123'})

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['user']['id'] == technician.id
        assert data['accessToken']
        db.session.refresh(technician)
        assert technician.refresh_token == data['refreshToken']
        assert technician.last_login is not None

    def test_login_wrong_password(self, client, technician):
        response = client.post('/api/auth/login', json={'email': 'tech@crm.test', 'password': 'nope-nope'})

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Invalid credentials'

    def test_login_unknown_email(self, client):
        response = client.post('/api/auth/login', json={'email': 'ghost@crm.test', 'password': 'Password123'})

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Invalid credentials'

    def test_login_disabled_account(self, client, make_user):
        """Correct credentials on a disabled account report the account state"""
        make_user('client', email='disabled@crm.test', is_active=False)

        response = client.post('/api/auth/login', json={'email': 'disabled@crm.test', 'password': 'Password123'})

        assert response.status_code == 401
        message = json.loads(response.data)['message']
        assert 'Account disabled' in message
        assert message != 'Invalid credentials'


class TestTokenGuards:
    """Test require_auth and require_role"""

    def test_missing_token(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Access token required'

    def test_invalid_token(self, client):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not.a.token'})

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Invalid token'

    def test_expired_token(self, app, client, client_user):
        past = utcnow() - timedelta(hours=2)
        token = jwt.encode(
            {'user_id': client_user.id, 'role': 'client', 'type': 'access', 'iat': past,
             'exp': past + timedelta(minutes=5)},
            app.config['JWT_SECRET_KEY'], algorithm='HS256',
        )

        response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Token expired'

    def test_refresh_token_rejected_as_access_token(self, client, client_user):
        login = client.post('/api/auth/login', json={'email': 'client@crm.test', 'password': 'Password123'})
        refresh_token = json.loads(login.data)['data']['refreshToken']

        response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {refresh_token}'})

        assert response.status_code == 401

    def test_deleted_user(self, client, client_user, client_headers):
        db.session.delete(client_user)
        db.session.commit()

        response = client.get('/api/auth/me', headers=client_headers)

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'User not found'

    def test_disabled_user_with_valid_token(self, client, client_user, client_headers):
        client_user.is_active = False
        db.session.commit()

        response = client.get('/api/auth/me', headers=client_headers)

        assert response.status_code == 401
        assert json.loads(response.data)['message'] == 'Account disabled'

    def test_role_forbidden(self, client, client_headers):
        response = client.get('/api/users', headers=client_headers)

        assert response.status_code == 403
        assert json.loads(response.data)['message'] == 'Access not authorized for this role'


class TestRefreshAndLogout:

    def _login(self, client):
        response = client.post('/api/auth/login', json={'email': 'client@crm.test', 'password': 'Password123'})
        return json.loads(response.data)['data']

    def test_refresh_rotates_tokens(self, client, client_user):
        tokens = self._login(client)

        response = client.post('/api/auth/refresh', json={'refreshToken': tokens['refreshToken']})

        assert response.status_code == 200
        rotated = json.loads(response.data)['data']
        assert rotated['refreshToken'] != tokens['refreshToken']

        # the previous refresh token is no longer accepted
        replay = client.post('/api/auth/refresh', json={'refreshToken': tokens['refreshToken']})
        assert replay.status_code == 401

    def test_logout_clears_refresh_token(self, client, client_user):
        tokens = self._login(client)
        headers = {'Authorization': f'Bearer {tokens["accessToken"]}'}

        response = client.post('/api/auth/logout', headers=headers)

        assert response.status_code == 200
        db.session.refresh(client_user)
        assert client_user.refresh_token is None
        refresh = client.post('/api/auth/refresh', json={'refreshToken': tokens['refreshToken']})
        assert refresh.status_code == 401


class TestProfile:

    def test_me(self, client, client_user, client_headers):
        response = client.get('/api/auth/me', headers=client_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['data']['user']['email'] == 'client@crm.test'

    def test_update_profile_cannot_change_role(self, client, client_user, client_headers):
        response = client.put('/api/auth/profile', headers=client_headers,
                              json={'firstName': 'Clara', 'role': 'admin'})

        assert response.status_code == 200
        user = json.loads(response.data)['data']['user']
        assert user['firstName'] == 'Clara'
        assert user['role'] == 'client'

    def test_change_password(self, client, client_user, client_headers):
        response = client.put('/api/auth/change-password', headers=client_headers,
                              json={'currentPassword': 'Password123', 'newPassword': 'NewSecret42'})

        assert response.status_code == 200
        login = client.post('/api/auth/login', json={'email': 'client@crm.test', 'password': 'NewSecret42'})
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client, client_user, client_headers):
        response = client.put('/api/auth/change-password', headers=client_headers,
                              json={'currentPassword': 'wrong-one', 'newPassword': 'NewSecret42'})

        assert response.status_code == 400
