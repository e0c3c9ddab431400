from typing import Dict, Any

# AUTHORITATIVE GLOBAL STORE: DO NOT DUPLICATE
# Structure: { tenant_id: { "run_id": "", "file_a": "", "file_b": "", "outcomes": [], "summary": ..., "timestamp": "" } }
# Holds only the latest reconciliation run per tenant. In-memory only.
APP_STATE: Dict[str, Any] = {}
