from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

class SettingsSchema(BaseModel):
    db_path: str = "records.db"
    remote_db_path: str = "remote_records.db"
    user_id: Optional[str] = None
    api_token: Optional[str] = None
    weight_unit: Literal["lb", "kg"] = "lb"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    api_base_url: str = "http://localhost:8000"

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
