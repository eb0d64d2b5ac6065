from typing import List

import yaml
from pydantic import BaseModel, ValidationError, model_validator
from pydantic_core import ErrorDetails


class TimeoutBudget(BaseModel):
    resource_timeout: float = 5.0    # per-resource bound used by BoundedCleanup
    fanout_timeout: float = 6.0      # deadline for the whole callback fan-out
    force_exit_timeout: float = 7.0  # watchdog, fires regardless of the fan-out

    @model_validator(mode='after')
    def validate_nesting(self) -> 'TimeoutBudget':
        """Each layer must expire strictly after the one it backs up."""
        if self.resource_timeout <= 0:
            raise ValueError("resource_timeout must be greater than 0")
        if self.fanout_timeout <= self.resource_timeout:
            raise ValueError("fanout_timeout must be greater than resource_timeout")
        if self.force_exit_timeout <= self.fanout_timeout:
            raise ValueError("force_exit_timeout must be greater than fanout_timeout")
        return self


class ShutdownConfig(BaseModel):
    budget: TimeoutBudget = TimeoutBudget()
    handle_signals: bool = True  # install SIGINT/SIGTERM handlers
    handle_faults: bool = True   # install uncaught exception hooks


def _build_validation_error_message(errors: List[ErrorDetails]) -> str:
    """Build a readable message from a list of Pydantic validation errors."""
    messages = []
    for error in errors:
        field_path = " -> ".join(str(loc) for loc in error['loc'])
        msg = error['msg']
        if field_path:
            messages.append(f"Error in field '{field_path}': {msg}")
        else:
            messages.append(msg)

    return "\n".join(messages)


class ShutdownConfigValidator:
    """Validates YAML content and creates ShutdownConfig instances."""

    @classmethod
    def validate_and_load(cls, yaml_content: str) -> ShutdownConfig:
        """
        Validate YAML content and create a ShutdownConfig instance.

        Args:
            yaml_content: The YAML content to validate

        Returns:
            ShutdownConfig: The validated configuration, defaults for an empty document

        Raises:
            ValueError: If the YAML content is invalid
        """
        try:
            data = yaml.safe_load(yaml_content)
            if data is None:
                return ShutdownConfig()
            if not isinstance(data, dict):
                raise ValueError("Shutdown configuration must be a mapping")

            return ShutdownConfig.model_validate(data)

        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format: {str(e)}")
        except ValidationError as e:
            raise ValueError(_build_validation_error_message(e.errors()))
