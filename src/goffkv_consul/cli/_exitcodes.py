"""Process exit codes for the goffkv CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
NO_ENTRY = 3
ENTRY_EXISTS = 4
CAS_CONFLICT = 5
TXN_FAILED = 6
CONNECTION_ERROR = 7
