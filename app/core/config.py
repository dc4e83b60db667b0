"""Runtime configuration helpers.

This module centralizes environment-driven runtime switches so the rest of the
codebase can import a single cached Settings instance.

Env vars (optional) and their roles:
        DOCUMENT_INTELLIGENCE_ENDPOINT -> Azure AI Document Intelligence endpoint URL.
        DOCUMENT_INTELLIGENCE_KEY      -> API key for the Document Intelligence resource (never hard-code).
        COSMOS_CONNECTION_STRING       -> Cosmos DB account connection string.
        MODEL_TYPE                     -> "GeneralDocument" or the id of a custom / composed model.
        ANALYSIS_TIMEOUT_S             -> Upper bound (seconds) on one analyze call; 0 disables the bound.
        MARK_FAILED_ON_ABORT           -> If true, a page whose analysis fails is re-persisted as Failed.
        LOG_LEVEL                      -> Root log level for the service.
"""

import os
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "True", "yes"}


class Settings:
        """Central runtime switches.

        Design notes:
        - Simple class instead of pydantic BaseSettings to minimize dependencies.
        - Values read once per instance and memoized via get_settings().
        - The model selector is validated by presence only; the processor refuses
          to run without one.
        """

        def __init__(self):
                # ---- Analysis service (Document Intelligence) ----
                self.DOCUMENT_INTELLIGENCE_ENDPOINT: str = os.getenv("DOCUMENT_INTELLIGENCE_ENDPOINT", "")
                self.DOCUMENT_INTELLIGENCE_KEY: str = os.getenv("DOCUMENT_INTELLIGENCE_KEY", "")

                # ---- Persistence (Cosmos DB) ----
                self.COSMOS_CONNECTION_STRING: str = os.getenv("COSMOS_CONNECTION_STRING", "")

                # ---- Model selection ----
                self.MODEL_TYPE: str = os.getenv("MODEL_TYPE", "").strip()

                # ---- Hardening knobs ----
                self.ANALYSIS_TIMEOUT_S: float = float(os.getenv("ANALYSIS_TIMEOUT_S", "300"))
                self.MARK_FAILED_ON_ABORT: bool = os.getenv("MARK_FAILED_ON_ABORT", "0") in _TRUTHY

                # ---- Diagnostics ----
                self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        @property
        def analysis_timeout(self) -> float | None:
                """Timeout passed to asyncio.wait_for (None means unbounded)."""
                return self.ANALYSIS_TIMEOUT_S if self.ANALYSIS_TIMEOUT_S > 0 else None


@lru_cache
def get_settings() -> Settings:
        """Return cached singleton Settings instance.

        Each worker process resolves environment variables once; tests call
        get_settings.cache_clear() after patching the environment.
        """
        return Settings()
