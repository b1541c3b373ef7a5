from dataclasses import asdict, dataclass, field

from pydantic import ValidationError as PydanticValidationError

from services.batch.records import RawRecord, ValidatedRecord


@dataclass
class ValidationOutcome:
    record: ValidatedRecord | None = None
    violations: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.record is not None and not self.violations


def _violation_message(error: dict) -> str:
    ctx_error = (error.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


def validate_record(raw: RawRecord) -> ValidationOutcome:
    """Check one parsed row against the product field constraints."""
    payload = asdict(raw)
    payload.pop("line_number", None)
    try:
        record = ValidatedRecord.model_validate(payload)
    except PydanticValidationError as exc:
        return ValidationOutcome(violations=[_violation_message(err) for err in exc.errors()])
    return ValidationOutcome(record=record)
