import pytest
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.tokens import AccessToken
from users import sessions
from users.authentication import AccessTokenAuthentication, UserNotFound
from users.tests.factories import UserFactory


@pytest.mark.django_db
def test_get_user_returns_account_for_live_token():
    user = UserFactory()
    token = AccessToken(sessions.issue_access_token(user))
    assert AccessTokenAuthentication().get_user(token).pk == user.pk


@pytest.mark.django_db
def test_get_user_reports_deleted_account_as_not_found():
    user = UserFactory()
    token = AccessToken(sessions.issue_access_token(user))
    user.delete()
    with pytest.raises(UserNotFound):
        AccessTokenAuthentication().get_user(token)


@pytest.mark.django_db
def test_get_user_keeps_other_failures():
    user = UserFactory()
    token = AccessToken(sessions.issue_access_token(user))
    type(user).objects.filter(pk=user.pk).update(is_active=False)
    with pytest.raises(AuthenticationFailed):
        AccessTokenAuthentication().get_user(token)
