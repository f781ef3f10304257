"""
Authentication and profile endpoint tests.

Covers registration, email login, the simplejwt token endpoints (obtain,
refresh with rotation, logout blacklist) and the /api/me/ profile.
"""

import jwt
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    cache.clear()


@pytest.fixture
def registration_data():
    return {
        'email': 'New.Member@Example.com',
        'password': 'SecurePass123!',
        'confirm_password': 'SecurePass123!',
        'full_name': 'New Member',
    }


@pytest.mark.django_db
class TestRegistration:

    def test_register_returns_profile(self, api_client, registration_data):
        response = api_client.post(reverse('user_register'), registration_data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['email'] == 'new.member@example.com'
        assert response.data['full_name'] == 'New Member'
        assert response.data['role'] == 'both'
        assert response.data['rating'] is None
        assert response.data['completed_deals'] == 0
        assert 'password' not in response.data

        user = User.objects.get(email='new.member@example.com')
        assert user.check_password('SecurePass123!')
        assert user.username == 'new.member@example.com'

    def test_register_duplicate_email_case_insensitive(self, api_client, registration_data, buyer):
        registration_data['email'] = 'BUYER@test.com'

        response = api_client.post(reverse('user_register'), registration_data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data

    def test_register_password_mismatch(self, api_client, registration_data):
        registration_data['confirm_password'] = 'SomethingElse123!'

        response = api_client.post(reverse('user_register'), registration_data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'confirm_password' in response.data
        assert response.data['code'] == 'validation_failed'
        assert not User.objects.exists()

    def test_register_weak_password(self, api_client, registration_data):
        registration_data['password'] = registration_data['confirm_password'] = '12345'

        response = api_client.post(reverse('user_register'), registration_data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'password' in response.data

    def test_register_ignores_privileged_fields(self, api_client, registration_data):
        registration_data.update({'is_staff': True, 'is_superuser': True, 'rating_total': 50})

        response = api_client.post(reverse('user_register'), registration_data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        user = User.objects.get(email='new.member@example.com')
        assert not user.is_staff
        assert not user.is_superuser
        assert user.rating_total == 0


@pytest.mark.django_db
class TestLogin:

    def test_login_returns_tokens_and_profile(self, api_client, buyer):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'Buyer@Test.com', 'password': 'TestPass123!'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['id'] == buyer.id
        assert str(AccessToken(response.data['access'])['user_id']) == str(buyer.id)
        RefreshToken(response.data['refresh'])

    def test_access_token_is_signed_with_secret_key(self, api_client, buyer):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'buyer@test.com', 'password': 'TestPass123!'},
            format='json'
        )

        decoded = jwt.decode(response.data['access'], settings.SECRET_KEY, algorithms=['HS256'])

        assert decoded['token_type'] == 'access'
        assert str(decoded['user_id']) == str(buyer.id)

    def test_wrong_password_and_unknown_email_look_the_same(self, api_client, buyer):
        wrong_password = api_client.post(
            reverse('user_login'),
            {'email': 'buyer@test.com', 'password': 'nope'},
            format='json'
        )
        unknown_email = api_client.post(
            reverse('user_login'),
            {'email': 'ghost@test.com', 'password': 'nope'},
            format='json'
        )

        assert wrong_password.status_code == status.HTTP_401_UNAUTHORIZED
        assert unknown_email.status_code == status.HTTP_401_UNAUTHORIZED
        assert wrong_password.data['detail'] == unknown_email.data['detail'] == 'Invalid credentials'

    def test_inactive_user_cannot_login(self, api_client, make_user):
        make_user('inactive@test.com', 'Idle', is_active=False)

        response = api_client.post(
            reverse('user_login'),
            {'email': 'inactive@test.com', 'password': 'TestPass123!'},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_is_rate_limited(self, api_client, buyer):
        responses = [
            api_client.post(
                reverse('user_login'),
                {'email': 'buyer@test.com', 'password': 'wrong'},
                format='json'
            )
            for _ in range(6)
        ]

        assert responses[-1].status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert responses[-1].data['code'] == 'throttled'


@pytest.mark.django_db
class TestTokens:

    def test_obtain_pair_by_email(self, api_client, seller):
        response = api_client.post(
            reverse('token_obtain_pair'),
            {'email': 'seller@test.com', 'password': 'TestPass123!'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert str(AccessToken(response.data['access'])['user_id']) == str(seller.id)

    def test_obtain_pair_rejects_bad_password(self, api_client, seller):
        response = api_client.post(
            reverse('token_obtain_pair'),
            {'email': 'seller@test.com', 'password': 'wrong'},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_rotates_and_blacklists_old_token(self, api_client, buyer):
        old_refresh = str(RefreshToken.for_user(buyer))

        response = api_client.post(reverse('token_refresh'), {'refresh': old_refresh}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['refresh'] != old_refresh
        assert 'access' in response.data

        reused = api_client.post(reverse('token_refresh'), {'refresh': old_refresh}, format='json')
        assert reused.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_requires_token_field(self, api_client):
        response = api_client.post(reverse('token_refresh'), {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'refresh' in response.data

    def test_refresh_rejects_garbage(self, api_client):
        response = api_client.post(reverse('token_refresh'), {'refresh': 'not-a-token'}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'token_not_valid'

    def test_logout_blacklists_refresh_token(self, api_client, buyer):
        refresh = str(RefreshToken.for_user(buyer))

        response = api_client.post(reverse('user_logout'), {'refresh': refresh}, format='json')
        assert response.status_code == status.HTTP_200_OK

        response = api_client.post(reverse('token_refresh'), {'refresh': refresh}, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestProfile:

    def test_profile_requires_authentication(self, api_client):
        response = api_client.get(reverse('user_profile'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'not_authenticated'

    def test_get_own_profile(self, auth_client, buyer):
        response = auth_client(buyer).get(reverse('user_profile'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'buyer@test.com'
        assert response.data['full_name'] == 'Bea Buyer'
        assert response.data['role'] == 'buyer'

    def test_patch_display_fields(self, auth_client, buyer):
        response = auth_client(buyer).patch(
            reverse('user_profile'),
            {'full_name': 'Bea B.', 'avatar_url': 'https://cdn.example.com/bea.png', 'role': 'both'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        buyer.refresh_from_db()
        assert buyer.full_name == 'Bea B.'
        assert buyer.avatar_url == 'https://cdn.example.com/bea.png'
        assert buyer.role == 'both'

    def test_patch_cannot_touch_email_or_reputation(self, auth_client, buyer):
        response = auth_client(buyer).patch(
            reverse('user_profile'),
            {'email': 'hijack@test.com', 'rating_total': 99, 'completed_deals': 7},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        buyer.refresh_from_db()
        assert buyer.email == 'buyer@test.com'
        assert buyer.rating_total == 0
        assert buyer.completed_deals == 0

    @pytest.mark.parametrize('payload', [
        {'full_name': '   '},
        {'avatar_url': 'javascript:alert(1)'},
        {'role': 'admin'},
    ])
    def test_patch_rejects_invalid_values(self, auth_client, buyer, payload):
        response = auth_client(buyer).patch(reverse('user_profile'), payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
