"""Core functionality for Productshot Studio.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with PRODUCTSHOT_ in .env files

2. **Dispatch Layer**:
   - credentials.py: credential pool parsing and source precedence
   - payload.py: ordered image + text payloads, data URI helpers
   - transport.py: one call to the Gemini API via google-genai
   - classifier.py: failure classification (quota, transient, refusal, fatal)
   - dispatcher.py: credential rotation, cooldowns, terminal outcomes
   - batch.py: concurrent or sequential dispatch of a batch

3. **Prompt Layer** (prompt_builder.py):
   - Per-mode prompt composition from presets.json

See Also
--------
- RequestDispatcher: the retrying, key-rotating client
- ProductshotConfig: configuration options and environment variables
"""

from productshot.core.config import ProductshotConfig, config
from productshot.core.credentials import ConfigurationError, CredentialPool, load_credential_pool
from productshot.core.dispatcher import RequestDispatcher
from productshot.core.outcome import DispatchOutcome, Failure, FailureKind, Success

__all__ = [
    "ConfigurationError",
    "CredentialPool",
    "DispatchOutcome",
    "Failure",
    "FailureKind",
    "ProductshotConfig",
    "RequestDispatcher",
    "Success",
    "config",
    "load_credential_pool",
]
