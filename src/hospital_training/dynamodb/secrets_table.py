import logging
import typing

import boto3
from botocore.exceptions import ClientError

_LOGGER = logging.getLogger(__name__)


class SecretsTable:
    """
    DynamoDB table for storing application secrets (read-only with caching).

    Schema:
        - PK: secretKey (String) - "CHATBOT_API_KEY" or "ADMIN_DELETE_PASSWORD"
        - Attributes:
            - secretValue (String)

    Secrets are provisioned out of band and cached for the lifetime of the Lambda container.
    """

    _cache: typing.ClassVar[dict[str, str]] = {}

    def __init__(self, table_name: str):
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def __get_secret(self, secret_key: str) -> str:
        """
        :raises KeyError: If the secret is missing, empty or unreadable
        """
        if secret_key in self._cache:
            return self._cache[secret_key]

        try:
            _LOGGER.info(f"Fetching secret '{secret_key}' from DynamoDB.")
            response = self.table.get_item(Key={"secretKey": secret_key})
            item = response.get("Item")
            if not item:
                _LOGGER.error(f"Secret not found: {secret_key}")
                raise KeyError(f"Secret '{secret_key}' not found in secrets table")

            secret_value = item.get("secretValue")
            if not secret_value:
                raise KeyError(f"Secret '{secret_key}' has no value in secrets table")

            self._cache[secret_key] = secret_value
            return secret_value
        except ClientError as e:
            _LOGGER.error(f"Error retrieving secret {secret_key}: {e}")
            raise KeyError(f"Failed to retrieve secret '{secret_key}' from DynamoDB") from e

    def get_chatbot_api_key(self) -> str:
        return self.__get_secret("CHATBOT_API_KEY")

    def get_admin_delete_password(self) -> str:
        """Password an admin must re-enter before deleting a user."""
        return self.__get_secret("ADMIN_DELETE_PASSWORD")
