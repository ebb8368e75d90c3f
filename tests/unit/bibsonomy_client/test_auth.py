"""Unit tests for bibsonomy_client.auth module."""

import pytest
from unittest.mock import patch

from bibsync.bibsonomy_client.auth import DEFAULT_BASE_URL, Authenticator
from bibsync.bibsonomy_client.errors import MissingCredentialsError


@pytest.fixture
def no_dotenv():
    with patch('bibsync.bibsonomy_client.auth.load_dotenv'):
        yield


class TestAuthenticator:
    """Test cases for Authenticator class."""

    def test_loads_credentials_from_environment(self, monkeypatch, no_dotenv):
        """get_credentials returns user, key and base URL from the environment."""
        monkeypatch.setenv('BIBSONOMY_USER', 'alice')
        monkeypatch.setenv('BIBSONOMY_API_KEY', 'secret')
        monkeypatch.setenv('BIBSONOMY_URL', 'https://bibsonomy.test/')

        creds = Authenticator().get_credentials()

        assert creds.user == 'alice'
        assert creds.api_key == 'secret'
        assert creds.base_url == 'https://bibsonomy.test'

    def test_defaults_to_public_service(self, monkeypatch, no_dotenv):
        """Without BIBSONOMY_URL the public service is used."""
        monkeypatch.setenv('BIBSONOMY_USER', 'alice')
        monkeypatch.setenv('BIBSONOMY_API_KEY', 'secret')
        monkeypatch.delenv('BIBSONOMY_URL', raising=False)

        creds = Authenticator().get_credentials()

        assert creds.base_url == DEFAULT_BASE_URL

    def test_missing_key_raises(self, monkeypatch, no_dotenv):
        """A missing API key raises MissingCredentialsError naming it."""
        monkeypatch.setenv('BIBSONOMY_USER', 'alice')
        monkeypatch.delenv('BIBSONOMY_API_KEY', raising=False)

        with pytest.raises(MissingCredentialsError) as exc_info:
            Authenticator().get_credentials()

        assert exc_info.value.missing == ['BIBSONOMY_API_KEY']

    def test_missing_both_raises(self, monkeypatch, no_dotenv):
        """Both variables are reported when both are missing."""
        monkeypatch.delenv('BIBSONOMY_USER', raising=False)
        monkeypatch.delenv('BIBSONOMY_API_KEY', raising=False)

        with pytest.raises(MissingCredentialsError) as exc_info:
            Authenticator().get_credentials()

        assert exc_info.value.missing == ['BIBSONOMY_USER', 'BIBSONOMY_API_KEY']
