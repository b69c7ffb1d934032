"""Amazon Resource Name value type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

ARN_PREFIX = "arn"


@dataclass(frozen=True, slots=True)
class ARN:
    """Parsed ``arn:partition:service:region:account-id:resource`` identifier."""

    partition: str
    service: str
    region: str
    account_id: str
    resource: str

    @classmethod
    def parse(cls, value: str) -> ARN:
        """
        Parse an ARN string.

        Args:
            value: ARN in its canonical colon-separated form

        Returns:
            Parsed ARN

        Raises:
            ValueError: If the string is not a well-formed ARN
        """
        if not isinstance(value, str):
            raise ValueError("ARN must be a string")

        # the resource part may itself contain colons
        sections = value.split(":", 5)
        if len(sections) != 6 or sections[0] != ARN_PREFIX:
            raise ValueError(f"malformed ARN {value!r}")

        _, partition, service, region, account_id, resource = sections
        if not partition or not service or not resource:
            raise ValueError(f"ARN {value!r} is missing a partition, service or resource")

        return cls(
            partition=partition,
            service=service,
            region=region,
            account_id=account_id,
            resource=resource,
        )

    def __str__(self) -> str:
        return ":".join(
            (ARN_PREFIX, self.partition, self.service, self.region, self.account_id, self.resource)
        )

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        def _validate(value: Any) -> ARN:
            if isinstance(value, ARN):
                return value
            return cls.parse(value)

        return core_schema.no_info_plain_validator_function(
            _validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
