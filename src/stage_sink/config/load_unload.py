"""Cloud provider, encryption and file format settings for warehouse load/unload."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TypeVar

from stage_sink.errors import UnsupportedValueError

E = TypeVar("E", bound=Enum)


class CloudProvider(Enum):
    NONE = "None"
    GCP = "GCP"
    AWS = "AWS"
    AZURE = "Microsoft Azure"


class EncryptionType(Enum):
    NONE = "None"
    AWS_CSE = "AWS_CSE"
    AWS_SSE_S3 = "AWS_SSE_S3"
    AWS_SSE_KMS = "AWS_SSE_KMS"
    GCS_SSE_KMS = "GCS_SSE_KMS"
    AZURE_CSE = "AZURE_CSE"


class FileFormatFilteringPolicy(Enum):
    BY_FILE_TYPE = "By File Type"
    BY_EXISTING_FILE_FORMAT = "By Existing File Format"


def parse_enum(enum_cls: type[E], value: Optional[str], property_name: str) -> Optional[E]:
    """
    Resolve a configuration string to an enum member by its value, ignoring case.

    Returns None when value is None.

    Raises:
        UnsupportedValueError: If no member matches
    """
    if value is None:
        return None
    for member in enum_cls:
        if member.value.lower() == value.strip().lower():
            return member
    raise UnsupportedValueError(property_name, value, [m.value for m in enum_cls])


def _normalize_options(options: Optional[str]) -> str:
    return (options or "").replace(",", " ").replace(":", "=")


@dataclass(frozen=True)
class LoadUnloadConfig:
    """Configuration for loading staged files into (or unloading from) the warehouse."""

    use_cloud_provider_parameters: bool = False
    cloud_provider: Optional[str] = None
    storage_integration: Optional[str] = None
    aws_key_id: Optional[str] = None
    aws_secret_key: Optional[str] = None
    aws_token: Optional[str] = None
    azure_sas_token: Optional[str] = None
    files_encrypted: Optional[bool] = None
    encryption_type: Optional[str] = None
    master_key: Optional[str] = None
    kms_key_id: Optional[str] = None
    file_format_filtering_policy: str = FileFormatFilteringPolicy.BY_FILE_TYPE.value
    format_name: Optional[str] = None
    format_type: Optional[str] = "CSV"
    format_type_options: Optional[str] = None
    copy_options: Optional[str] = None

    def get_cloud_provider(self) -> CloudProvider:
        value = parse_enum(CloudProvider, self.cloud_provider, "cloud_provider")
        return value or CloudProvider.NONE

    def get_encryption_type(self) -> EncryptionType:
        value = parse_enum(EncryptionType, self.encryption_type, "encryption_type")
        return value or EncryptionType.NONE

    def get_file_format_filtering_policy(self) -> FileFormatFilteringPolicy:
        return parse_enum(
            FileFormatFilteringPolicy,
            self.file_format_filtering_policy,
            "file_format_filtering_policy",
        )

    def get_format_type_options(self) -> str:
        """Format options as 'KEY=VALUE' pairs separated by spaces."""
        return _normalize_options(self.format_type_options)

    def get_copy_options(self) -> str:
        return _normalize_options(self.copy_options)

    def validate(self, failures: list[str]) -> None:
        """Append a message to failures for every invalid property."""
        try:
            policy = self.get_file_format_filtering_policy()
        except UnsupportedValueError as e:
            failures.extend(e.failures)
            policy = None
        if policy is None:
            failures.append("'file_format_filtering_policy' property is not set.")
        elif policy is FileFormatFilteringPolicy.BY_FILE_TYPE and not self.format_type:
            failures.append("'format_type' property is not set.")
        elif policy is FileFormatFilteringPolicy.BY_EXISTING_FILE_FORMAT and not self.format_name:
            failures.append("'format_name' property is not set.")

        if not self.use_cloud_provider_parameters:
            return

        try:
            if self.get_cloud_provider() is CloudProvider.NONE:
                failures.append("'cloud_provider' property is not set.")
        except UnsupportedValueError as e:
            failures.extend(e.failures)

        if self.files_encrypted:
            try:
                if self.get_encryption_type() is EncryptionType.NONE:
                    failures.append("'encryption_type' property is not set.")
            except UnsupportedValueError as e:
                failures.extend(e.failures)
