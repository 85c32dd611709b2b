from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class AppSetting:
    """Runtime setting stored in app_settings"""
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "AppSetting":
        updated_at = row["updated_at"]
        try:
            updated_at = datetime.fromisoformat(updated_at) if updated_at else None
        except ValueError:
            updated_at = None
        return cls(key=row["key"], value=row["value"], description=row["description"], updated_at=updated_at)
