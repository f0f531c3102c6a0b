import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from hospital_training.models.session_models import SessionEvaluationModel, TrainingSessionModel
from hospital_training.utils.base_types import HospitalNumber, SessionId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class TrainingSessionsTable:
    """
    Data Abstraction Layer for training sessions.

    Table Schema:
      - PK: id (String)
      - startDateTime / endDateTime (String, ISO 8601 UTC)
      - evaluations (Map): hospitalNumber -> SessionEvaluationModel
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)
        _LOGGER.info(f"TrainingSessionsTable initialized for table: {table_name}")

    def get_session(self, session_id: SessionId) -> typing.Optional[TrainingSessionModel]:
        try:
            response = self.table.get_item(Key={"id": session_id})
            item_data = response.get("Item")
            if item_data:
                return TrainingSessionModel.model_validate(item_data)
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get session {session_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate session {session_id}: {ve}", exc_info=True)
            return None

    def list_sessions(self) -> list[TrainingSessionModel]:
        sessions: list[TrainingSessionModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    try:
                        sessions.append(TrainingSessionModel.model_validate(item))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid session {item.get('id')}: {ve}")
                last_evaluated_key = response.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_evaluated_key
        except ClientError as e:
            _LOGGER.error(f"Failed to scan training sessions: {e.response['Error']['Message']}")
            raise
        return sessions

    def save_session(self, session: TrainingSessionModel) -> TrainingSessionModel:
        """
        Creates or replaces a session.

        :raises: ClientError for DDB errors.
        """
        try:
            self.table.put_item(Item=session.model_dump(mode="json", exclude_none=True))
            _LOGGER.info(f"Saved session {session.id} with {len(session.employeeHospitalNumbers)} members.")
            return session
        except ClientError as e:
            _LOGGER.error(f"Error saving session {session.id}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def delete_session(self, session_id: SessionId) -> bool:
        try:
            self.table.delete_item(Key={"id": session_id}, ConditionExpression="attribute_exists(id)")
            _LOGGER.info(f"Deleted session {session_id}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                _LOGGER.error(f"Error deleting session {session_id}: {e.response['Error']['Message']}", exc_info=True)
            return False

    def add_member(
        self,
        session_id: SessionId,
        hospital_number: HospitalNumber,
    ) -> typing.Optional[TrainingSessionModel]:
        """
        Appends the employee to the session's member list. Joining twice is a no-op.

        :return: The session after the join, or None if it does not exist.
        """
        try:
            response = self.table.update_item(
                Key={"id": session_id},
                UpdateExpression="SET #members = list_append(#members, :newMembers)",
                ConditionExpression="attribute_exists(id) AND NOT contains(#members, :member)",
                ExpressionAttributeNames={"#members": "employeeHospitalNumbers"},
                ExpressionAttributeValues={":newMembers": [hospital_number], ":member": hospital_number},
                ReturnValues="ALL_NEW",
            )
            _LOGGER.info(f"User {hospital_number} joined session {session_id}.")
            return TrainingSessionModel.model_validate(response.get("Attributes", {}))
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                # Either an unknown session or an existing member
                return self.get_session(session_id)
            _LOGGER.error(f"Error joining session {session_id}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def save_evaluation(self, session_id: SessionId, evaluation: SessionEvaluationModel) -> bool:
        """Stores the evaluation under the submitter's hospital number, replacing any earlier one."""
        try:
            self.table.update_item(
                Key={"id": session_id},
                UpdateExpression="SET #evaluations.#userId = :evaluation",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={"#evaluations": "evaluations", "#userId": evaluation.userId},
                ExpressionAttributeValues={":evaluation": evaluation.model_dump(mode="json")},
            )
            _LOGGER.info(f"Saved evaluation from {evaluation.userId} for session {session_id}.")
            return True
        except ClientError as e:
            _LOGGER.error(
                f"Error saving evaluation for session {session_id}: {e.response['Error']['Message']}", exc_info=True
            )
            return False
