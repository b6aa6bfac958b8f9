from .ledger import (
    RenameLedger, LedgerStore, TEMP_SUFFIX,
    to_temp_name, from_temp_name, is_temp_name,
)
from .protocol import ProtocolDispatcher, steam_action_url
from .orchestrator import DeepRepairOrchestrator, RepairJob, RepairState
