"""Wire settings to concrete services for CLI commands."""

from collections.abc import Mapping

from keysmith.config.parameters import REGION_NAME_PARAM
from keysmith.config.settings import KeysmithSettings
from keysmith.credentials.builder import CredentialsHolderFactory
from keysmith.exceptions import ConnectionNotFoundError
from keysmith.models.domain import ConnectionRecord
from keysmith.persistence.file_store import JsonFileConnectionStore
from keysmith.providers.aws import StsIdentityVerifier, StsTokenExchangeService


def create_store(settings: KeysmithSettings) -> JsonFileConnectionStore:
    return JsonFileConnectionStore(settings.store_dir)


def create_verifier_factory(settings: KeysmithSettings):
    def verifier_factory(parameters: Mapping[str, str]) -> StsIdentityVerifier:
        return StsIdentityVerifier.from_connection_parameters(parameters, region_name=settings.sts.endpoint_region)

    return verifier_factory


def create_holder_factory(settings: KeysmithSettings) -> CredentialsHolderFactory:
    def exchange_service_factory(parameters: Mapping[str, str]) -> StsTokenExchangeService:
        return StsTokenExchangeService.from_connection_parameters(
            parameters, region_name=settings.sts.endpoint_region
        )

    return CredentialsHolderFactory(exchange_service_factory, settings=settings)


def load_connection(store: JsonFileConnectionStore, project_id: str, connection_id: str) -> ConnectionRecord:
    record = store.find(project_id, connection_id)
    if record is None:
        raise ConnectionNotFoundError(connection_id, project_id)
    return record


def connection_region(record: ConnectionRecord) -> str | None:
    return (record.parameters.get(REGION_NAME_PARAM) or "").strip() or None
