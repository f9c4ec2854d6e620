from __future__ import annotations

from pathlib import Path

import orjson
from jsonschema import Draft202012Validator


class SchemaValidationError(ValueError):
    pass


class ContractValidator:
    """Validates persisted run records against the bundled JSON schema."""

    def __init__(self, schema_dir: Path | None = None) -> None:
        self._schema_dir = schema_dir or Path(__file__).resolve().parents[1] / "contracts"
        self._run_validator = self._load_validator("run_record.schema.json")

    def validate_run_record(self, payload: dict) -> None:
        self._validate(self._run_validator, payload)

    def _load_validator(self, schema_name: str) -> Draft202012Validator:
        schema_path = self._schema_dir / schema_name
        with schema_path.open("rb") as f:
            schema = orjson.loads(f.read())
        return Draft202012Validator(schema)

    @staticmethod
    def _validate(validator: Draft202012Validator, payload: dict) -> None:
        errors = sorted(validator.iter_errors(payload), key=str)
        if not errors:
            return

        details = "; ".join(error.message for error in errors[:3])
        raise SchemaValidationError(details)
