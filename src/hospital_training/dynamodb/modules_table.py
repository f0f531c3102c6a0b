import logging
import typing

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from hospital_training.catalog.modules import resolve_catalog
from hospital_training.models.module_models import ModuleModel
from hospital_training.utils.base_types import ModuleId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class ModulesTable:
    """
    Data Abstraction Layer for the admin-editable module catalog.

    An empty table means the built-in catalog is in effect. The first admin edit seeds the
    table from it, after which the table is authoritative.

    Table Schema:
      - PK: id (String)
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    def fetch_modules(self) -> list[ModuleModel]:
        modules: list[ModuleModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    try:
                        modules.append(ModuleModel.model_validate(item))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid module {item.get('id')}: {ve}")
                last_evaluated_key = response.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_evaluated_key
        except ClientError as e:
            _LOGGER.error(f"Failed to scan modules: {e.response['Error']['Message']}")
            raise
        return sorted(modules, key=lambda module: (module.section, module.id))

    def get_module(self, module_id: ModuleId) -> typing.Optional[ModuleModel]:
        try:
            response = self.table.get_item(Key={"id": module_id})
            item_data = response.get("Item")
            return ModuleModel.model_validate(item_data) if item_data else None
        except ClientError as e:
            _LOGGER.error(f"Failed to get module {module_id}: {e.response['Error']['Message']}")
            raise

    def save_module(self, module: ModuleModel) -> ModuleModel:
        try:
            self.table.put_item(Item=module.model_dump(mode="json", exclude_none=True))
            _LOGGER.info(f"Saved module {module.id} ('{module.title}').")
            return module
        except ClientError as e:
            _LOGGER.error(f"Error saving module {module.id}: {e.response['Error']['Message']}", exc_info=True)
            raise

    def delete_module(self, module_id: ModuleId) -> bool:
        try:
            self.table.delete_item(Key={"id": module_id}, ConditionExpression="attribute_exists(id)")
            _LOGGER.info(f"Deleted module {module_id}.")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                _LOGGER.error(f"Error deleting module {module_id}: {e.response['Error']['Message']}", exc_info=True)
            return False

    def seed_modules(self, modules: list[ModuleModel]) -> None:
        """Bulk-writes the given catalog, overwriting any module with the same id."""
        with self.table.batch_writer() as batch:
            for module in modules:
                batch.put_item(Item=module.model_dump(mode="json", exclude_none=True))
        _LOGGER.info(f"Seeded modules table with {len(modules)} modules.")

    def fetch_catalog(self) -> list[ModuleModel]:
        """The catalog in effect: the stored modules, or the built-in ones while the table is empty."""
        return resolve_catalog(self.fetch_modules())

    def ensure_seeded(self) -> list[ModuleModel]:
        """Copies the built-in catalog into an empty table so that admin edits have something to apply to."""
        stored_modules = self.fetch_modules()
        if stored_modules:
            return stored_modules
        catalog = resolve_catalog([])
        self.seed_modules(catalog)
        return catalog
