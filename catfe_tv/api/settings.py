from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.models.settings import Settings
from catfe_tv.schemas.settings import SettingsOut, SettingsUpdate
from catfe_tv.security import require_admin

router = APIRouter(prefix="/settings", tags=["settings"])


def get_or_create_settings(db: Session) -> Settings:
    settings = db.query(Settings).order_by(Settings.id.asc()).first()
    if settings is None:
        settings = Settings()
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings


@router.get("", response_model=SettingsOut)
def get_settings(db: Session = Depends(get_db)):
    return get_or_create_settings(db)


@router.put("", response_model=SettingsOut, dependencies=[Depends(require_admin)])
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_db)):
    settings = get_or_create_settings(db)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field not in {"logo_url", "wifi_name", "wifi_password"}:
            continue
        setattr(settings, field, value)
    db.commit()
    db.refresh(settings)
    return settings
