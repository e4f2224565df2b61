# === FILE: page_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации PageScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
import time
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    PositiveInt,
    ValidationInfo,
    field_validator,
    model_validator,
)

DEFAULT_BLACKLIST: List[str] = ["delete", "post", "sign out", "log out", "download"]


class RouteDecision(BaseModel):
    """Правило маршрутизации: разрешить, запретить или ограничить первые N путей."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    regex: bool = Field(False, description="Трактовать строковый match как регулярное выражение.")
    match: Union[str, re.Pattern[str]] = Field(
        ...,
        description="Строка ищется как подстрока пути ('/admin' совпадает с '/admin/users'); "
                    "с regex: true или скомпилированным шаблоном применяется re.search к пути.",
    )
    allow: bool = Field(True, description="Решение для правила без limit.")
    limit: Optional[PositiveInt] = Field(None, description="Сколько разных путей допускается.")

    @field_validator("match")
    def _compile_regex(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str) and info.data.get("regex"):
            try:
                return re.compile(v)
            except re.error as exc:
                raise ValueError(f"Неправильное регулярное выражение {v!r}: {exc}") from exc
        return v

    def matches(self, path: str) -> bool:
        if isinstance(self.match, str):
            return self.match in path
        return self.match.search(path) is not None


class PoolConfig(BaseModel):
    """Границы пула браузеров."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_idle: int = Field(2, ge=0)
    max_total: int = Field(10, ge=1)
    idle_timeout: float = Field(600.0, gt=0, description="Секунд простоя до уничтожения экземпляра.")
    max_uses: int = Field(50, ge=0, description="0 отключает ограничение.")
    acquire_timeout: Optional[float] = Field(None, gt=0)
    reap_interval: float = Field(30.0, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> PoolConfig:
        if self.min_idle > self.max_total:
            raise ValueError("min_idle must not exceed max_total")
        return self


class CaptureConfig(BaseModel):
    """Параметры съёмки скриншотов."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sizes: List[str] = Field(default_factory=lambda: ["1920x1080"])
    crop: bool = False
    timeout: float = Field(360.0, gt=0, description="Таймаут загрузки страницы (секунд).")
    filename: str = "{url}-{size}"
    format: str = Field("png", pattern=r"^(png|jpeg)$")
    delay: Optional[float] = Field(None, ge=0, description="По умолчанию render_settle_delay.")
    concurrency: int = Field(5, ge=1)

    @field_validator("sizes")
    def _check_sizes(cls, v: List[str]) -> List[str]:
        for size in v:
            if not re.fullmatch(r"\d+x\d+", size):
                raise ValueError(f"Размер должен иметь вид WIDTHxHEIGHT, получено {size!r}")
        return v


def _default_output_dir() -> Path:
    return Path(f"page-scout_{int(time.time() * 1000)}")


class ScoutConfig(BaseModel):
    """Конфигурация для одного запуска обхода и съёмки."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: HttpUrl = Field(..., description="Стартовый URL обхода.")
    cookie: Optional[str] = Field(None, description="Cookie аутентификации, как в заголовке.")
    max_depth: int = Field(0, ge=0, description="Максимальная глубина (0 = без ограничения).")
    verbose: bool = False
    route_decisions: List[RouteDecision] = Field(default_factory=list)
    blacklist: List[str] = Field(default_factory=lambda: list(DEFAULT_BLACKLIST))
    render_settle_delay: float = Field(15, ge=0, description="Пауза для клиентских приложений (секунд).")
    pacing_interval_ms: int = Field(200, ge=0, description="Пауза между загрузками (мс).")
    http_probe: bool = Field(True, description="Предварительный HTTP-запрос каждой страницы.")
    navigation_timeout: float = Field(30.0, gt=0, description="Таймаут навигации браузера (секунд).")
    output_dir: Path = Field(default_factory=_default_output_dir)
    input_sitemap: Optional[Path] = None
    additional_urls: List[str] = Field(default_factory=list)
    skip_capture: bool = False

    pool: PoolConfig = Field(default_factory=PoolConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)

    @field_validator("blacklist")
    def _check_blacklist(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Неправильный шаблон blacklist {pattern!r}: {exc}") from exc
        return v

    @property
    def start_url(self) -> str:
        return str(self.url)

    @property
    def capture_delay(self) -> float:
        return self.render_settle_delay if self.capture.delay is None else self.capture.delay


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(
    path: Union[str, Path, None],
    overrides: Optional[Mapping[str, Any]] = None,
) -> ScoutConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект ScoutConfig.
    Значения из overrides (кроме None) заменяют значения из файла.
    При отсутствии файла конфига бросает FileNotFoundError.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(DEFAULT_CONFIG_PATH))
        path_obj = DEFAULT_CONFIG_PATH
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return ScoutConfig(**data)


__all__ = [
    "DEFAULT_BLACKLIST",
    "DEFAULT_CONFIG_PATH",
    "RouteDecision",
    "PoolConfig",
    "CaptureConfig",
    "ScoutConfig",
    "load_config",
]
