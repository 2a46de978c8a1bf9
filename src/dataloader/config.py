import logging
import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .models import Mode

logger = logging.getLogger(__name__)


class LoaderOptions(BaseModel):
    """Options shared by a single run and a benchmark matrix."""

    mode: Mode = Mode.LOAD
    concurrency: int = Field(default=16, ge=1)
    progress: bool = True
    verbose_errors: bool = False
    fatal_errors: bool = False

    driver: Literal["http", "simulated"] = "simulated"
    url: Optional[str] = None
    request_timeout_s: float = Field(default=30.0, gt=0)

    sim_min_latency_s: float = Field(default=0.005, ge=0)
    sim_max_latency_s: float = Field(default=0.05, ge=0)
    sim_failure_rate: float = Field(default=0.0, ge=0, le=1)
    sim_seed: Optional[int] = None

    output_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_driver(self) -> "LoaderOptions":
        if self.driver == "http" and not self.url:
            raise ValueError("the http driver needs a url")
        if self.sim_min_latency_s > self.sim_max_latency_s:
            raise ValueError("sim_min_latency_s must not exceed sim_max_latency_s")
        return self


class TestMatrix(BaseModel):
    """Benchmark sweep read from YAML: every mode in ``tests`` at every level in ``concurrency``."""

    __test__ = False  # keep pytest from collecting this model

    tests: list[Mode] = Field(min_length=1)
    concurrency: list[int] = Field(min_length=1)

    @field_validator("concurrency")
    @classmethod
    def _positive_levels(cls, levels: list[int]) -> list[int]:
        if any(c < 1 for c in levels):
            raise ValueError("concurrency levels must be >= 1")
        return levels


def _describe(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
    )


def build_options(**values) -> LoaderOptions:
    try:
        return LoaderOptions(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options: {_describe(e)}") from e


def parse_test_matrix(text: str, origin: str = "<string>") -> TestMatrix:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{origin}: invalid YAML ({e})") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{origin}: expected a mapping with 'tests' and 'concurrency'")
    try:
        matrix = TestMatrix(**data)
    except ValidationError as e:
        raise ConfigurationError(f"{origin}: {_describe(e)}") from e
    logger.debug(
        f"Test matrix from {origin}: modes={[m.value for m in matrix.tests]}, levels={matrix.concurrency}"
    )
    return matrix


def load_test_matrix(path: str) -> TestMatrix:
    if not os.path.isfile(path):
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, encoding="utf-8") as f:
        return parse_test_matrix(f.read(), origin=path)
