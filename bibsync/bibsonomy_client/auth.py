"""Authentication module for loading BibSonomy credentials.

This module handles loading BibSonomy credentials from environment variables
using python-dotenv. It validates that the user name and API key are present
and raises MissingCredentialsError if any of them are missing.
"""

import os
from typing import NamedTuple

from dotenv import load_dotenv

from .errors import MissingCredentialsError

DEFAULT_BASE_URL = "https://www.bibsonomy.org"


class Credentials(NamedTuple):
    """BibSonomy API credentials."""
    base_url: str
    user: str
    api_key: str


class Authenticator:
    """Loads and validates BibSonomy credentials from environment variables.

    Credentials are loaded from a .env file using python-dotenv and are never
    cached or logged.

    Environment variables:
        BIBSONOMY_USER: BibSonomy user name (required)
        BIBSONOMY_API_KEY: API key from the BibSonomy settings page (required)
        BIBSONOMY_URL: Service base URL (optional, defaults to bibsonomy.org)

    Example:
        >>> auth = Authenticator()
        >>> creds = auth.get_credentials()
        >>> print(f"Connecting to {creds.base_url} as {creds.user}")
    """

    def __init__(self):
        """Initialize the authenticator by loading environment variables from .env file."""
        load_dotenv()

    def get_credentials(self) -> Credentials:
        """Get BibSonomy credentials from environment variables.

        Returns:
            Credentials: A named tuple containing base_url, user, and api_key

        Raises:
            MissingCredentialsError: If the user name or API key is missing
        """
        base_url = os.getenv('BIBSONOMY_URL') or DEFAULT_BASE_URL
        user = os.getenv('BIBSONOMY_USER')
        api_key = os.getenv('BIBSONOMY_API_KEY')

        missing = []
        if not user:
            missing.append('BIBSONOMY_USER')
        if not api_key:
            missing.append('BIBSONOMY_API_KEY')

        if missing:
            raise MissingCredentialsError(missing)

        return Credentials(base_url=base_url.rstrip('/'), user=user, api_key=api_key)  # type: ignore[arg-type]
