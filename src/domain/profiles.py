import logging
from pathlib import Path

import tomlkit

from domain.models import ClientSettings

logger = logging.getLogger(__name__)


def load_settings(path: str | Path) -> ClientSettings:
    """
    Загрузка и валидация настроек клиента из TOML -> ClientSettings.

    Неизвестные ключи игнорируются, отсутствующие берутся по умолчанию.
    """
    p = Path(path)
    if not p.exists():
        msg = f'Файл настроек не найден: {p}'
        raise FileNotFoundError(msg)
    data = tomlkit.parse(p.read_text(encoding='utf-8'))
    settings = ClientSettings.model_validate(data.unwrap())
    logger.info(
        'Settings loaded from %s: environment=%s cache_capacity_mb=%s',
        p,
        settings.environment,
        settings.cache_capacity_mb,
    )
    return settings


def save_settings(settings: ClientSettings, path: str | Path) -> Path:
    """Сохранить настройки в TOML. Поля со значением None пропускаются."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.document()
    for name, value in settings.model_dump().items():
        if value is None:
            continue
        doc[name] = value
    p.write_text(tomlkit.dumps(doc), encoding='utf-8')
    logger.info('Settings saved to %s', p)
    return p
