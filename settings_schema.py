from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from errors import InvalidArgument


class SettingsSchema(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    weight_unit: Literal["kg", "lbs"] = "kg"
    theme: Literal["light", "dark", "system"] = "system"
    calendar_color: str = "#007aff"
    firebase_api_key: str = ""
    firebase_project_id: str = ""
    firebase_app_id: str = ""
    firebase_sender_id: str = ""
    backup_identifier: str = ""
    has_unsynced_changes: bool = False


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise InvalidArgument(str(e))
