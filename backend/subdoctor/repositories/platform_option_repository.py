from typing import Any

from sqlalchemy.orm import Session

from subdoctor.models.platform_option import PlatformOption


class PlatformOptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, name: str, default: Any = None) -> Any:
        option = self.db.query(PlatformOption).filter(PlatformOption.name == name).first()
        if option is None or option.value is None:
            return default
        return option.value

    def set(self, name: str, value: Any) -> PlatformOption:
        option = self.db.query(PlatformOption).filter(PlatformOption.name == name).first()
        if option is None:
            option = PlatformOption(name=name, value=value)
            self.db.add(option)
        else:
            option.value = value
        self.db.commit()
        self.db.refresh(option)
        return option
