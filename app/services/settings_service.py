from datetime import datetime
from typing import Dict, Iterable

from sqlmodel import Session, select

from ..models.setting import Setting


class SettingsService:
    def __init__(self, session: Session):
        self.session = session

    def get_all_settings(self) -> Dict[str, str]:
        settings = self.session.exec(select(Setting)).all()
        return {s.key: s.value for s in settings}

    def update_settings(self, settings_to_update: Dict[str, str], commit: bool = True):
        for key, value in settings_to_update.items():
            setting = self.session.get(Setting, key)
            if setting:
                setting.value = value
                setting.updated_at = datetime.utcnow()
                self.session.add(setting)
            else:
                self.session.add(Setting(key=key, value=value))

        if commit:
            self.session.commit()

    def delete_settings(self, keys: Iterable[str]) -> int:
        deleted = 0
        for key in keys:
            setting = self.session.get(Setting, key)
            if setting:
                self.session.delete(setting)
                deleted += 1
        self.session.commit()
        return deleted
