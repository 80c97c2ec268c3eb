from dataclasses import dataclass

from medchain.config.settings import Settings
from medchain.database.connection import close_pool, init_pool
from medchain.database.repositories.ingestion_repository import IngestionRepository
from medchain.extraction.factory import DocumentExtractor, ExtractorFactory
from medchain.ledger.base import BaseLedgerClient
from medchain.ledger.web3_adapter import Web3LedgerAdapter
from medchain.logging.logger import Log
from medchain.storage.base import BaseContentStore
from medchain.storage.ipfs_adapter import IpfsStoreAdapter


@dataclass
class PipelineContext:
    """Process-wide clients shared by every ingestion.

    Built once at startup and injected into the orchestrator. close() releases
    the store connection and the database pool; call it on shutdown.
    """

    settings: Settings
    extractor: DocumentExtractor
    store: BaseContentStore
    ledger: BaseLedgerClient
    repository: IngestionRepository
    owns_pool: bool = False

    def close(self) -> None:
        Log.info("Closing pipeline context")
        self.extractor.close()
        self.store.close()
        self.ledger.close()
        if self.owns_pool:
            close_pool()


def build_pipeline_context(settings: Settings) -> PipelineContext:
    """Open the database pool and construct every external client."""
    init_pool(settings)
    try:
        extractor = ExtractorFactory.create(settings)
        store = IpfsStoreAdapter(
            api_url=settings.ipfs_api_url,
            timeout_seconds=settings.store_timeout_seconds,
            retry_attempts=settings.store_retry_attempts,
            retry_base_seconds=settings.store_retry_base_seconds,
            retry_factor=settings.store_retry_factor,
        )
        ledger = Web3LedgerAdapter(
            rpc_url=settings.ledger_rpc_url,
            private_key=settings.ledger_private_key,
            contract_address=settings.ledger_contract_address,
            role_name=settings.ledger_uploader_role,
            permission_timeout_seconds=settings.permission_timeout_seconds,
            anchor_timeout_seconds=settings.anchor_timeout_seconds,
            receipt_timeout_seconds=settings.anchor_receipt_timeout_seconds,
        )
    except Exception:
        close_pool()
        raise
    Log.info(
        "Pipeline context ready",
        uploader=ledger.uploader,
        pdf_engine=settings.pdf_engine,
    )
    return PipelineContext(
        settings=settings,
        extractor=extractor,
        store=store,
        ledger=ledger,
        repository=IngestionRepository(),
        owns_pool=True,
    )
