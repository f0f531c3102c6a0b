import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from hospital_training.models.user_models import (
    ModuleProgressModel,
    RegistrationDataModel,
    UserProfileModel,
    UserUpdateModel,
)
from hospital_training.utils.base_types import HospitalNumber, ModuleId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class UserProfileTable:
    """
    Data Abstraction Layer for interacting with the UserProfile DynamoDB table.
    Holds registration data and the per-module progress map of every employee.

    Table Schema:
      - PK: hospitalNumber (String)
      - progress (Map): moduleId -> ModuleProgressModel
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def get_profile(self, hospital_number: HospitalNumber) -> typing.Optional[UserProfileModel]:
        """
        Retrieves a user's profile from DynamoDB.

        :param hospital_number: The user's hospital number.
        :return: UserProfileModel instance if found, else None.
        """
        _LOGGER.debug(f"Fetching profile for hospital_number: {hospital_number}")
        try:
            response = self.table.get_item(Key={"hospitalNumber": hospital_number})
            item_data = response.get("Item")
            if item_data:
                return UserProfileModel.model_validate(item_data)
            _LOGGER.debug(f"No profile found for hospital_number: {hospital_number}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get profile for {hospital_number}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate profile data for {hospital_number}: {ve}", exc_info=True)
            return None

    def fetch_users(self) -> list[UserProfileModel]:
        """
        Scans the whole table. Items that no longer validate are logged and skipped so
        one bad record does not hide every other user from the admin portal.
        """
        users: list[UserProfileModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    try:
                        users.append(UserProfileModel.model_validate(item))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid profile {item.get('hospitalNumber')}: {ve}")
                last_evaluated_key = response.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_evaluated_key
        except ClientError as e:
            _LOGGER.error(f"Failed to scan user profiles: {e.response['Error']['Message']}")
            raise

        _LOGGER.info(f"Fetched {len(users)} user profiles.")
        return users

    def register_user(self, registration: RegistrationDataModel) -> typing.Optional[UserProfileModel]:
        """
        Creates a profile with empty progress.

        :return: The new profile, or None if the hospital number is already registered.
        """
        profile = UserProfileModel(**registration.model_dump(), progress={})
        try:
            self.table.put_item(
                Item=profile.model_dump(mode="json", exclude_none=True),
                ConditionExpression="attribute_not_exists(hospitalNumber)",
            )
            _LOGGER.info(f"Registered user {profile.hospitalNumber} ({profile.role}).")
            return profile
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Hospital number {profile.hospitalNumber} is already registered.")
                return None
            _LOGGER.error(f"Error registering {profile.hospitalNumber}: {e.response['Error']['Message']}")
            raise

    def update_user(
        self,
        hospital_number: HospitalNumber,
        update: UserUpdateModel,
    ) -> typing.Optional[UserProfileModel]:
        """
        Updates the provided registration fields of an existing profile; None values are ignored.

        :return: The updated profile, or None if nothing was updated.
        """
        _LOGGER.info(f"Updating profile for {hospital_number}")

        update_parts = []
        expression_attribute_names = {}
        expression_attribute_values = {}
        for field_name, value in update.model_dump(exclude_none=True).items():
            update_parts.append(f"#{field_name} = :{field_name}")
            expression_attribute_names[f"#{field_name}"] = field_name
            expression_attribute_values[f":{field_name}"] = value

        if not update_parts:
            _LOGGER.warning(f"No fields provided to update for {hospital_number}")
            return None

        try:
            response = self.table.update_item(
                Key={"hospitalNumber": hospital_number},
                UpdateExpression="SET " + ", ".join(update_parts),
                ConditionExpression="attribute_exists(hospitalNumber)",
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
                ReturnValues="ALL_NEW",
            )
            return UserProfileModel.model_validate(response.get("Attributes", {}))
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Cannot update unknown user {hospital_number}.")
                return None
            _LOGGER.error(
                f"Error updating profile for {hospital_number}: {e.response['Error']['Message']}", exc_info=True
            )
            return None

    def delete_user(self, hospital_number: HospitalNumber) -> bool:
        try:
            self.table.delete_item(
                Key={"hospitalNumber": hospital_number},
                ConditionExpression="attribute_exists(hospitalNumber)",
            )
            _LOGGER.info(f"Deleted user {hospital_number}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Cannot delete unknown user {hospital_number}.")
            else:
                _LOGGER.error(f"Error deleting {hospital_number}: {e.response['Error']['Message']}", exc_info=True)
            return False

    def update_module_progress(
        self,
        hospital_number: HospitalNumber,
        module_id: ModuleId,
        module_progress: ModuleProgressModel,
    ) -> bool:
        """
        Writes the progress record of a single module, leaving the rest of the map untouched.

        :return: True if successful, False otherwise.
        """
        try:
            self.table.update_item(
                Key={"hospitalNumber": hospital_number},
                UpdateExpression="SET #progress.#moduleId = :moduleProgress",
                ConditionExpression="attribute_exists(hospitalNumber)",
                ExpressionAttributeNames={"#progress": "progress", "#moduleId": module_id},
                ExpressionAttributeValues={
                    ":moduleProgress": module_progress.model_dump(mode="json", exclude_none=True),
                },
            )
            _LOGGER.info(f"Saved progress of module {module_id} for {hospital_number}.")
            return True
        except ClientError as e:
            _LOGGER.error(
                f"Error saving progress of module {module_id} for {hospital_number}: {e.response['Error']['Message']}",
                exc_info=True,
            )
            return False
