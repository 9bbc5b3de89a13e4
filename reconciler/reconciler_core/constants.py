"""
Constants, defaults, timeouts, and agent command lines.
"""

RECONCILER_VERSION = "1.0.0"

# ─── Agent (defaults target Sysinternals Sysmon) ─────────────────
SERVICE_PATTERN = "Sysmon*"              # Matched against the service DISPLAY name
PACKAGE_URL = "https://download.sysinternals.com/files/Sysmon.zip"
PACKAGE_NAME = "Sysmon.zip"
EXECUTABLE_NAME = "Sysmon64.exe"

# Publisher page that lists the current release ("Sysmon v15.15")
VERSION_URL = "https://learn.microsoft.com/en-us/sysinternals/downloads/sysmon"
VERSION_PATTERN = r"Sysmon v(\d+)\.(\d+)"

# Self-report banner: "System Monitor v15.15 - System activity monitor"
SELF_REPORT_ARGS = ["-?"]
SELF_REPORT_PATTERN = r"v(\d+)\.(\d+)"

# "{config}" is replaced with the persisted configuration path
INSTALL_ARGS = ["-accepteula", "-i", "{config}"]
UNINSTALL_ARGS = ["-u", "force"]
RECONFIGURE_ARGS = ["-c", "{config}"]

# ─── Policy ──────────────────────────────────────────────────────
CONFIG_URL = (
    "https://raw.githubusercontent.com/SwiftOnSecurity/"
    "sysmon-config/master/sysmonconfig-export.xml"
)
CONFIG_FILE_NAME = "sysmonconfig.xml"
CONFIG_MARKER = "<Sysmon"                # Shallow "looks like a Sysmon config" check

# ─── Network ─────────────────────────────────────────────────────
PROBE_HOST = "download.sysinternals.com"
PROBE_PORT = 443
PROBE_TIMEOUT_SEC = 4
REQUEST_TIMEOUT_SEC = 30       # Pages and config documents
DOWNLOAD_TIMEOUT_SEC = 120     # Package archive

# ─── Service / process ───────────────────────────────────────────
SERVICE_TIMEOUT_SEC = 15       # Max wait for a start/stop transition
SERVICE_POLL_SEC = 1
COMMAND_TIMEOUT_SEC = 120      # Self-registration can take a while (driver load)

# ─── Logging ─────────────────────────────────────────────────────
EVENT_SOURCE = "AgentReconciler"
LOG_MAX_BYTES = 1_000_000
